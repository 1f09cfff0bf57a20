"""
Riccati Cache
=============

Precomputed matrices of the infinite-horizon, rho-regularised LQR problem.

The ADMM loop never inverts a matrix. Everything it needs from the
quadratic part of the problem is computed here, once, from the dynamics,
the cost weights and the penalty parameter ``rho``:

    K     (m, n)  feedback gain
    P     (n, n)  cost-to-go
    Rinv  (m, m)  (R + rho I + B' P B)^{-1}
    Acl   (n, n)  (A - B K)'
    Coeff (n, m)  K' (R + rho I) - Acl P B

With constant K and P the finite-horizon problem with terminal cost P has
the same feedback law at every knot point, so the online backward pass
only propagates the affine terms:

    d_k = Rinv (B' p_{k+1} + r_k)
    p_k = q_k + Acl p_{k+1} - K' r_k + Coeff d_k

``Coeff`` vanishes in exact arithmetic whenever K is the gain of P. It is
kept so that tables produced elsewhere, or rounded to single precision,
still give the costate update that matches their own K and P.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from .config import ProblemDimensions
from .exceptions import CacheMismatchError, DimensionError, InvalidInputError
from .utils.validation import as_array

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cache:
    """
    Read-only Riccati cache.

    All matrices are copied on construction and flagged non-writeable, so
    one cache can be shared by several workspaces.

    Attributes:
        rho: ADMM penalty the matrices were computed with
        K: Infinite-horizon feedback gain (m, n)
        P: Infinite-horizon cost-to-go (n, n)
        Rinv: Inverted regularised input Hessian (m, m)
        Acl: Transposed closed-loop transition (n, n)
        Coeff: Costate coupling coefficient (n, m)
    """
    rho: float
    K: np.ndarray
    P: np.ndarray
    Rinv: np.ndarray
    Acl: np.ndarray
    Coeff: np.ndarray

    def __post_init__(self):
        rho = float(self.rho)
        if not np.isfinite(rho) or rho <= 0:
            raise InvalidInputError(f"rho must be positive and finite, got {rho}")
        object.__setattr__(self, "rho", rho)

        K = np.asarray(self.K)
        if K.ndim != 2:
            raise DimensionError(f"K must be 2D, got shape {K.shape}")
        m, n = K.shape
        expected = {
            "K": (m, n),
            "P": (n, n),
            "Rinv": (m, m),
            "Acl": (n, n),
            "Coeff": (n, m),
        }
        dtype = K.dtype if K.dtype in (np.float32, np.float64) else np.float64

        for name, shape in expected.items():
            arr = as_array(getattr(self, name), shape, dtype, name)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    @property
    def n_states(self) -> int:
        return self.K.shape[1]

    @property
    def n_inputs(self) -> int:
        return self.K.shape[0]

    @property
    def dtype(self) -> np.dtype:
        return self.K.dtype

    def astype(self, dtype: Any) -> "Cache":
        """Return a copy of the cache in another precision."""
        return Cache(
            rho=self.rho,
            K=self.K.astype(dtype),
            P=self.P.astype(dtype),
            Rinv=self.Rinv.astype(dtype),
            Acl=self.Acl.astype(dtype),
            Coeff=self.Coeff.astype(dtype),
        )

    def check_consistency(
        self,
        A: np.ndarray,
        B: np.ndarray,
        R: np.ndarray,
        rtol: Optional[float] = None,
    ) -> float:
        """
        Verify that the cached matrices belong to ``(A, B, R, rho)``.

        Only the relations that define Rinv, K, Acl and Coeff from P are
        checked; P itself is taken as given (it may come from a finite
        Riccati iteration budget).

        Args:
            A: State matrix (n, n)
            B: Input matrix (n, m)
            R: Input cost, diagonal vector (m,) or matrix (m, m)
            rtol: Relative tolerance (default depends on precision)

        Returns:
            Largest relative error found

        Raises:
            CacheMismatchError: If any relation is violated beyond rtol
        """
        if rtol is None:
            rtol = 1e-3 if self.dtype == np.float32 else 1e-6

        n, m = self.n_states, self.n_inputs
        A = as_array(A, (n, n), np.float64, "A")
        B = as_array(B, (n, m), np.float64, "B")
        R = _as_cost_matrix(R, m, "R")

        P = self.P.astype(np.float64)
        K = self.K.astype(np.float64)
        R1 = R + self.rho * np.eye(m)
        Quu = R1 + B.T @ P @ B

        checks = {
            "Rinv": (Quu @ self.Rinv.astype(np.float64), np.eye(m)),
            "K": (Quu @ K, B.T @ P @ A),
            "Acl": (self.Acl.astype(np.float64), (A - B @ K).T),
            "Coeff": (
                self.Coeff.astype(np.float64),
                K.T @ R1 - self.Acl.astype(np.float64) @ P @ B,
            ),
        }

        worst = 0.0
        for name, (actual, expected) in checks.items():
            scale = max(1.0, float(np.max(np.abs(expected))))
            error = float(np.max(np.abs(actual - expected))) / scale
            worst = max(worst, error)
            if error > rtol:
                raise CacheMismatchError(
                    f"{name} does not match the dynamics and rho={self.rho} "
                    f"(relative error {error:.3e} > {rtol:.1e})",
                    max_error=error,
                )
        return worst

    @classmethod
    def from_tables(
        cls,
        tables: Dict[str, Any],
        dims: ProblemDimensions,
    ) -> "Cache":
        """
        Load a cache from flat row-major tables.

        Expected keys: ``rho``, ``Kinf``, ``Pinf``, ``Quu_inv``, ``AmBKt``,
        ``coeff_d2p``.
        """
        n, m = dims.n_states, dims.n_inputs
        try:
            return cls(
                rho=float(np.asarray(tables["rho"]).reshape(-1)[0]),
                K=as_array(tables["Kinf"], (m, n), dims.dtype, "Kinf"),
                P=as_array(tables["Pinf"], (n, n), dims.dtype, "Pinf"),
                Rinv=as_array(tables["Quu_inv"], (m, m), dims.dtype, "Quu_inv"),
                Acl=as_array(tables["AmBKt"], (n, n), dims.dtype, "AmBKt"),
                Coeff=as_array(tables["coeff_d2p"], (n, m), dims.dtype, "coeff_d2p"),
            )
        except KeyError as e:
            raise InvalidInputError(f"missing cache table {e.args[0]!r}") from e

    def to_tables(self) -> Dict[str, np.ndarray]:
        """Flatten the cache into row-major tables."""
        return {
            "rho": np.array([self.rho]),
            "Kinf": self.K.ravel().copy(),
            "Pinf": self.P.ravel().copy(),
            "Quu_inv": self.Rinv.ravel().copy(),
            "AmBKt": self.Acl.ravel().copy(),
            "coeff_d2p": self.Coeff.ravel().copy(),
        }


def _as_cost_matrix(value: Any, dim: int, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 1:
        arr = np.diag(arr)
    return as_array(arr, (dim, dim), np.float64, name)


def compute_cache(
    A: np.ndarray,
    B: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    rho: float,
    Qf: Optional[np.ndarray] = None,
    dtype: Any = np.float64,
    max_iter: int = 10000,
    tol: float = 1e-10,
) -> Cache:
    """
    Run the infinite-horizon Riccati recursion and build a cache.

    Starting from ``P = Qf`` iterates

        K = (R + rho I + B' P B)^{-1} B' P A
        P = Q + rho I + A' P A - A' P B K

    until ``max|P_new - P| < tol * max(1, max|P|)`` or ``max_iter`` is
    reached. Computation is done in float64 regardless of ``dtype``; the
    result is cast at the end.

    This is the only place in the package where a matrix is inverted. It
    belongs to the setup phase, never to the control loop.

    Args:
        A: State matrix (n, n)
        B: Input matrix (n, m)
        Q: Stage state cost, diagonal (n,) or matrix (n, n)
        R: Stage input cost, diagonal (m,) or matrix (m, m)
        rho: ADMM penalty parameter
        Qf: Initial cost-to-go for the recursion (default: Q)
        dtype: Precision of the returned cache
        max_iter: Iteration cap of the recursion
        tol: Relative convergence threshold on P

    Returns:
        Cache

    Example:
        >>> sys = double_integrator(dt=0.1)
        >>> cache = compute_cache(sys.A, sys.B, Q=[10, 1], R=[0.1], rho=1.0)
    """
    A = np.asarray(A, dtype=np.float64)
    B = np.asarray(B, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise DimensionError(f"A must be square, got shape {A.shape}")
    n = A.shape[0]
    if B.ndim != 2 or B.shape[0] != n:
        raise DimensionError(f"B must be ({n}, m), got shape {B.shape}")
    m = B.shape[1]

    rho = float(rho)
    if not np.isfinite(rho) or rho <= 0:
        raise InvalidInputError(f"rho must be positive and finite, got {rho}")
    if max_iter < 1:
        raise InvalidInputError(f"max_iter must be >= 1, got {max_iter}")

    Q = _as_cost_matrix(Q, n, "Q")
    R = _as_cost_matrix(R, m, "R")
    Qf = Q if Qf is None else _as_cost_matrix(Qf, n, "Qf")

    Q1 = Q + rho * np.eye(n)
    R1 = R + rho * np.eye(m)

    P = Qf.copy()
    K = np.zeros((m, n))
    converged = False

    for i in range(max_iter):
        K = np.linalg.solve(R1 + B.T @ P @ B, B.T @ P @ A)
        P_new = Q1 + A.T @ P @ A - A.T @ P @ B @ K
        P_new = 0.5 * (P_new + P_new.T)

        delta = np.max(np.abs(P_new - P))
        P = P_new
        if delta < tol * max(1.0, float(np.max(np.abs(P)))):
            converged = True
            logger.debug("Riccati recursion converged after %d iterations", i + 1)
            break

    if not converged:
        logger.warning(
            "Riccati recursion did not converge in %d iterations "
            "(last change %.3e)", max_iter, delta,
        )

    Rinv = np.linalg.inv(R1 + B.T @ P @ B)
    K = Rinv @ B.T @ P @ A
    Acl = (A - B @ K).T
    Coeff = K.T @ R1 - Acl @ P @ B

    return Cache(
        rho=rho,
        K=K.astype(dtype),
        P=P.astype(dtype),
        Rinv=Rinv.astype(dtype),
        Acl=Acl.astype(dtype),
        Coeff=Coeff.astype(dtype),
    )
