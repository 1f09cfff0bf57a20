"""Input validation utilities."""

from typing import Any, Tuple, Union

import numpy as np

from ..exceptions import DimensionError, InvalidInputError


def as_array(
    value: Any,
    shape: Tuple[int, ...],
    dtype: Any,
    name: str,
) -> np.ndarray:
    """
    Convert ``value`` to a finite array of exactly ``shape``.

    Flat buffers with the right number of elements are reshaped in
    row-major order, which is the layout of the offline problem tables.
    """
    arr = np.asarray(value, dtype=np.float64)
    size = int(np.prod(shape))

    if arr.shape != shape:
        if arr.size != size:
            raise DimensionError(
                f"{name} must have shape {shape}, got {arr.shape}"
            )
        arr = arr.reshape(shape)

    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} contains NaN or infinite values")

    return arr.astype(dtype)


def as_diagonal(value: Any, dim: int, dtype: Any, name: str) -> np.ndarray:
    """
    Return the diagonal of a cost weight.

    Accepts a vector of length ``dim`` or a diagonal ``(dim, dim)`` matrix.
    """
    arr = np.asarray(value, dtype=np.float64)

    if arr.ndim == 2:
        if arr.shape != (dim, dim):
            raise DimensionError(f"{name} must be ({dim}, {dim}), got {arr.shape}")
        if np.any(arr - np.diag(np.diag(arr))):
            raise InvalidInputError(f"{name} must be diagonal")
        arr = np.diag(arr)

    arr = as_array(arr, (dim,), dtype, name)
    if np.any(arr < 0):
        raise InvalidInputError(f"{name} must be non-negative")
    return arr


def as_bounds(
    value: Union[None, float, np.ndarray],
    rows: int,
    cols: int,
    default: float,
    dtype: Any,
    name: str,
) -> np.ndarray:
    """
    Broadcast a bound to a ``(rows, cols)`` matrix.

    ``None`` gives ``default`` everywhere, a scalar is used for every
    entry, a ``(rows,)`` vector is repeated for every knot point and a
    full ``(rows, cols)`` matrix is taken as is. Infinite values are
    allowed and mean "unbounded".
    """
    if value is None:
        return np.full((rows, cols), default, dtype=dtype)

    arr = np.asarray(value, dtype=np.float64)

    if arr.ndim == 0:
        out = np.full((rows, cols), float(arr))
    elif arr.shape == (rows,):
        out = np.tile(arr.reshape(rows, 1), (1, cols))
    elif arr.shape == (rows, cols):
        out = arr.copy()
    else:
        raise DimensionError(
            f"{name} must be scalar, ({rows},) or ({rows}, {cols}), got {arr.shape}"
        )

    if np.any(np.isnan(out)):
        raise InvalidInputError(f"{name} contains NaN values")

    return out.astype(dtype)


def check_bound_order(lower: np.ndarray, upper: np.ndarray, name: str) -> None:
    """Raise if any lower bound lies above its upper bound."""
    if np.any(lower > upper):
        idx = np.argwhere(lower > upper)[0]
        raise InvalidInputError(
            f"{name} lower bound exceeds upper bound at index {tuple(idx)}"
        )
