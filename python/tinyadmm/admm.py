"""
ADMM Solver
===========

The online part of the solver: an ADMM loop that alternates an
unconstrained LQR subproblem, solved with the cached Riccati matrices, and
a projection onto the box constraints.

Each iteration:

1. backward pass   d_k = Rinv (B' p_{k+1} + r_k)
                   p_k = q_k + Acl p_{k+1} - K' r_k + Coeff d_k
2. forward pass    u_k = -K x_k - d_k,  x_{k+1} = A x_k + B u_k
3. slack update    znew = clip(u + y),  vnew = clip(x + g)
4. dual update     y += u - znew,  g += x - vnew
5. residuals, then the linear cost terms for the next backward pass

    r = -R * Uref - rho (znew - y)
    q = -Q * Xref - rho (vnew - g)
    p_{N-1} = -(P - rho I) xref_{N-1} - rho (vnew_{N-1} - g_{N-1})

No function in this module allocates workspace storage, inverts a matrix
or raises; the loop is bounded by ``Settings.max_iter``.
"""

from __future__ import annotations

import logging
import time

import numpy as np

from .cache import Cache
from .exceptions import DimensionError, InvalidInputError
from .result import SolveInfo, Status
from .settings import Settings
from .workspace import Workspace

logger = logging.getLogger(__name__)


def backward_pass(work: Workspace, cache: Cache) -> None:
    """Propagate the affine terms d and p from the last knot point to the first."""
    Bt = work.Bdyn.T
    Kt = cache.K.T
    for k in range(work.horizon - 2, -1, -1):
        work.d[:, k] = cache.Rinv @ (Bt @ work.p[:, k + 1] + work.r[:, k])
        work.p[:, k] = (
            work.q[:, k]
            + cache.Acl @ work.p[:, k + 1]
            - Kt @ work.r[:, k]
            + cache.Coeff @ work.d[:, k]
        )


def forward_pass(work: Workspace, cache: Cache) -> None:
    """Roll the affine feedback law out from the measured state x[:, 0]."""
    for k in range(work.horizon - 1):
        work.u[:, k] = -cache.K @ work.x[:, k] - work.d[:, k]
        work.x[:, k + 1] = work.Adyn @ work.x[:, k] + work.Bdyn @ work.u[:, k]


def update_slack(work: Workspace, settings: Settings) -> None:
    """Project primal plus scaled dual onto the enabled boxes."""
    np.add(work.u, work.y, out=work.znew)
    if settings.en_input_bound:
        np.clip(work.znew, work.u_min, work.u_max, out=work.znew)

    np.add(work.x, work.g, out=work.vnew)
    if settings.en_state_bound:
        np.clip(work.vnew, work.x_min, work.x_max, out=work.vnew)


def update_dual(work: Workspace) -> None:
    """Scaled dual ascent."""
    work.y += work.u - work.znew
    work.g += work.x - work.vnew


def update_residuals(work: Workspace) -> None:
    """Infinity-norm primal and dual residuals of the current iteration."""
    work.primal_residual_state = float(np.max(np.abs(work.x - work.vnew)))
    work.dual_residual_state = float(np.max(np.abs(work.vnew - work.v)))
    work.primal_residual_input = float(np.max(np.abs(work.u - work.znew)))
    work.dual_residual_input = float(np.max(np.abs(work.znew - work.z)))


def update_linear_cost(work: Workspace, cache: Cache) -> None:
    """Rebuild q, r and the terminal costate from references, slack and duals."""
    rho = cache.rho
    work.r[:] = -(work.R[:, None] * work.Uref) - rho * (work.znew - work.y)
    work.q[:] = -(work.Q[:, None] * work.Xref) - rho * (work.vnew - work.g)

    xref_N = work.Xref[:, -1]
    work.p[:, -1] = (
        -(cache.P @ xref_N)
        + rho * xref_N
        - rho * (work.vnew[:, -1] - work.g[:, -1])
    )


def is_converged(work: Workspace, settings: Settings) -> bool:
    return (
        work.primal_residual_state < settings.abs_pri_tol
        and work.primal_residual_input < settings.abs_pri_tol
        and work.dual_residual_state < settings.abs_dua_tol
        and work.dual_residual_input < settings.abs_dua_tol
    )


class Solver:
    """
    ADMM solver driving one workspace.

    The solver keeps references to its settings, cache and workspace; it
    copies none of them. Changing ``settings`` or the workspace between
    solves is allowed, replacing the cache is not (it is tied to ``rho``
    and the dynamics).

    Args:
        settings: Solver settings
        cache: Precomputed Riccati cache matching the workspace dynamics
        work: Workspace to solve in place

    Example:
        >>> cache = compute_cache(A, B, Q, R, rho=1.0)
        >>> work = Workspace(dims, A, B, Q, R, u_min=-1, u_max=1)
        >>> solver = Solver(Settings(), cache, work)
        >>> work.set_initial_state(x0)
        >>> status = solver.solve()
        >>> u_apply = work.u[:, 0]
    """

    def __init__(self, settings: Settings, cache: Cache, work: Workspace) -> None:
        self.settings = settings
        self.cache = cache
        self.work = work
        self.solve_time = 0.0

        self._validate()

    def _validate(self):
        """Check that cache and workspace describe the same problem."""
        n, m = self.work.n_states, self.work.n_inputs
        if (self.cache.n_states, self.cache.n_inputs) != (n, m):
            raise DimensionError(
                f"cache is for n={self.cache.n_states}, m={self.cache.n_inputs}; "
                f"workspace has n={n}, m={m}"
            )
        if self.cache.dtype != self.work.dims.dtype:
            raise InvalidInputError(
                f"cache precision {self.cache.dtype} differs from "
                f"workspace precision {self.work.dims.dtype}"
            )

    def solve(self) -> Status:
        """
        Run ADMM until convergence or ``max_iter`` iterations.

        Results are left in the workspace: ``x``, ``u``, the residuals,
        ``iter`` and ``status``. Reaching the iteration cap is not an error;
        the trajectory is still usable.

        Returns:
            Final status (also stored in ``work.status``)
        """
        work, cache, settings = self.work, self.cache, self.settings
        start = time.perf_counter()

        work.status = Status.UNSOLVED
        work.iter = 0

        update_linear_cost(work, cache)

        for _ in range(settings.max_iter):
            backward_pass(work, cache)
            forward_pass(work, cache)
            update_slack(work, settings)
            update_dual(work)
            update_residuals(work)

            work.v[:] = work.vnew
            work.z[:] = work.znew
            update_linear_cost(work, cache)

            work.iter += 1
            if settings.check_termination and is_converged(work, settings):
                work.status = Status.SOLVED
                break
        else:
            work.status = Status.MAX_ITERATIONS

        self.solve_time = time.perf_counter() - start
        logger.debug(
            "solve finished: status=%s iterations=%d primal=%.3e dual=%.3e",
            work.status, work.iter,
            max(work.primal_residual_state, work.primal_residual_input),
            max(work.dual_residual_state, work.dual_residual_input),
        )
        return work.status

    def info(self) -> SolveInfo:
        """Snapshot of the last solve."""
        work = self.work
        return SolveInfo(
            status=work.status,
            iterations=work.iter,
            primal_residual_state=work.primal_residual_state,
            primal_residual_input=work.primal_residual_input,
            dual_residual_state=work.dual_residual_state,
            dual_residual_input=work.dual_residual_input,
            solve_time=self.solve_time,
        )
