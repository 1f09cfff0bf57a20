"""
Problem Tables
==============

Static numeric tables describing one problem: dynamics, cost weights and
the Riccati cache, all as flat row-major arrays.

Tables are produced once, offline, by ``generate_tables`` (this is where
the Riccati recursion runs) and stored with ``save_tables``. A controller
only loads them at startup; nothing in a table is recomputed at runtime.

Keys:

    nx, nu, N                         structural dimensions
    rho                               ADMM penalty
    Kinf, Pinf, Quu_inv, AmBKt,       cache matrices
    coeff_d2p
    Adyn, Bdyn                        dynamics
    Q, Qf, R                          diagonal cost weights
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Union

import numpy as np

from .cache import Cache, compute_cache
from .config import ProblemDimensions
from .dynamics import LinearSystem
from .exceptions import InvalidInputError
from .utils.validation import as_diagonal

logger = logging.getLogger(__name__)

TABLE_KEYS = (
    "nx", "nu", "N", "rho",
    "Kinf", "Pinf", "Quu_inv", "AmBKt", "coeff_d2p",
    "Adyn", "Bdyn", "Q", "Qf", "R",
)

PathLike = Union[str, os.PathLike]


def generate_tables(
    system: LinearSystem,
    Q: np.ndarray,
    R: np.ndarray,
    rho: float,
    horizon: int,
    Qf: Optional[np.ndarray] = None,
    **riccati_kwargs: Any,
) -> Dict[str, np.ndarray]:
    """
    Build the tables of a problem.

    Args:
        system: Discrete-time dynamics
        Q: State cost diagonal (n,)
        R: Input cost diagonal (m,)
        rho: ADMM penalty parameter
        horizon: Number of knot points N
        Qf: Terminal cost diagonal (default: Q)
        **riccati_kwargs: Passed to compute_cache (max_iter, tol)

    Returns:
        Dictionary of flat float64 arrays

    Example:
        >>> tables = generate_tables(quadrotor_hover(20.0), Q, R, rho=5.0, horizon=10)
        >>> save_tables("quadrotor_20hz.npz", tables)
    """
    n, m = system.n_states, system.n_inputs
    Q = as_diagonal(Q, n, np.float64, "Q")
    R = as_diagonal(R, m, np.float64, "R")
    Qf = Q.copy() if Qf is None else as_diagonal(Qf, n, np.float64, "Qf")
    dims = ProblemDimensions(n, m, horizon)

    if not system.is_controllable():
        logger.warning(
            "(A, B) is not controllable: controllability rank %d < %d states",
            system.controllability_rank(), n,
        )

    cache = compute_cache(system.A, system.B, Q, R, rho, Qf=Qf, **riccati_kwargs)

    tables = {
        "nx": np.array([n]),
        "nu": np.array([m]),
        "N": np.array([dims.horizon]),
        "Adyn": system.A.ravel().copy(),
        "Bdyn": system.B.ravel().copy(),
        "Q": Q,
        "Qf": Qf,
        "R": R,
    }
    tables.update(cache.to_tables())
    logger.debug("generated tables for nx=%d nu=%d N=%d rho=%g", n, m, horizon, rho)
    return tables


def save_tables(path: PathLike, tables: Dict[str, np.ndarray]) -> None:
    """Write tables to an ``.npz`` file."""
    missing = [key for key in TABLE_KEYS if key not in tables]
    if missing:
        raise InvalidInputError(f"tables are missing {missing}")
    np.savez(path, **{key: np.asarray(tables[key]) for key in TABLE_KEYS})


def load_tables(path: PathLike) -> Dict[str, np.ndarray]:
    """Read tables written by ``save_tables``."""
    with np.load(path) as data:
        tables = {key: data[key] for key in data.files}

    missing = [key for key in TABLE_KEYS if key not in tables]
    if missing:
        raise InvalidInputError(f"{os.fspath(path)} is missing tables {missing}")
    return tables


def dims_from_tables(tables: Dict[str, Any], dtype: Any = np.float64) -> ProblemDimensions:
    """Structural dimensions recorded in the tables."""
    try:
        return ProblemDimensions(
            n_states=int(np.asarray(tables["nx"]).reshape(-1)[0]),
            n_inputs=int(np.asarray(tables["nu"]).reshape(-1)[0]),
            horizon=int(np.asarray(tables["N"]).reshape(-1)[0]),
            dtype=dtype,
        )
    except KeyError as e:
        raise InvalidInputError(f"missing dimension table {e.args[0]!r}") from e


def cache_from_tables(
    tables: Dict[str, Any],
    dims: ProblemDimensions,
    check: bool = True,
) -> Cache:
    """
    Load the cache, optionally checking it against the tabulated dynamics.

    Raises:
        CacheMismatchError: If ``check`` and the cache does not belong to
            ``Adyn``, ``Bdyn``, ``R`` and ``rho``
    """
    cache = Cache.from_tables(tables, dims)
    if check:
        cache.check_consistency(tables["Adyn"], tables["Bdyn"], tables["R"])
    return cache
