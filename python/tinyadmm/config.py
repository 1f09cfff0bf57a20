"""
Problem Configuration
=====================

Structural dimensions and numeric precision shared by the cache, the
workspace and the solver.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np

from .exceptions import InvalidInputError

SUPPORTED_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))


@dataclass(frozen=True)
class ProblemDimensions:
    """
    Fixed shape of an MPC problem.

    Every array in a workspace is allocated once from these numbers and is
    never resized.

    Args:
        n_states: State dimension n
        n_inputs: Input dimension m
        horizon: Number of knot points N (N - 1 inputs)
        dtype: Working precision, float32 or float64

    Example:
        >>> dims = ProblemDimensions(n_states=12, n_inputs=4, horizon=10)
        >>> dims.state_traj_shape
        (12, 10)
    """
    n_states: int
    n_inputs: int
    horizon: int
    dtype: Any = np.float64

    def __post_init__(self):
        for name in ("n_states", "n_inputs", "horizon"):
            value = getattr(self, name)
            if isinstance(value, bool) or int(value) != value:
                raise InvalidInputError(f"{name} must be an integer, got {value!r}")
            object.__setattr__(self, name, int(value))

        if self.n_states < 1:
            raise InvalidInputError(f"n_states must be >= 1, got {self.n_states}")
        if self.n_inputs < 1:
            raise InvalidInputError(f"n_inputs must be >= 1, got {self.n_inputs}")
        if self.horizon < 2:
            raise InvalidInputError(f"horizon must be >= 2, got {self.horizon}")

        dtype = np.dtype(self.dtype)
        if dtype not in SUPPORTED_DTYPES:
            raise InvalidInputError(f"dtype must be float32 or float64, got {dtype}")
        object.__setattr__(self, "dtype", dtype)

    @property
    def state_traj_shape(self) -> Tuple[int, int]:
        """(n, N)"""
        return (self.n_states, self.horizon)

    @property
    def input_traj_shape(self) -> Tuple[int, int]:
        """(m, N - 1)"""
        return (self.n_inputs, self.horizon - 1)

    def zeros_state_traj(self) -> np.ndarray:
        return np.zeros(self.state_traj_shape, dtype=self.dtype)

    def zeros_input_traj(self) -> np.ndarray:
        return np.zeros(self.input_traj_shape, dtype=self.dtype)
