"""
Solver Context
==============

External entry points of the solver, bundled in an explicitly owned
context object.

A ``SolverContext`` owns one workspace and one solver and shares a
(read-only) cache. Several contexts can live side by side, for example
one per vehicle, without any module-level state.

Quick Start
-----------
>>> tables = load_tables("quadrotor_20hz.npz")
>>> ctx = SolverContext.from_tables(tables, Settings(max_iter=100))
>>> ctx.set_initial_state(x_measured)
>>> ctx.set_reference(x_hover)
>>> ctx.reset_duals()
>>> ctx.solve()
>>> u_apply = ctx.first_input

All ``verbose`` output goes to this module's logger at INFO level. It is a
debugging side channel and never changes results.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import numpy as np

from .admm import Solver
from .cache import Cache
from .config import ProblemDimensions
from .dynamics import LinearSystem
from .exceptions import DimensionError, InvalidInputError
from .result import SolveInfo, Status
from .settings import Settings
from .tables import cache_from_tables, dims_from_tables
from .utils.validation import as_array
from .workspace import BoundLike, Workspace

logger = logging.getLogger(__name__)


class SolverContext:
    """
    Boundary adapter around one solver instance.

    Args:
        settings: Solver settings
        cache: Riccati cache (may be shared with other contexts)
        work: Workspace owned by this context

    Example:
        >>> ctx = SolverContext(Settings(), cache, work)
        >>> ctx.set_initial_state(x0)
        >>> ctx.solve()
        >>> x_flat = ctx.get_state_trajectory()
    """

    def __init__(self, settings: Settings, cache: Cache, work: Workspace) -> None:
        self.solver = Solver(settings, cache, work)

    @classmethod
    def from_tables(
        cls,
        tables: Dict[str, Any],
        settings: Optional[Settings] = None,
        dtype: Any = np.float64,
        x_min: BoundLike = None,
        x_max: BoundLike = None,
        u_min: BoundLike = None,
        u_max: BoundLike = None,
        check_cache: bool = True,
    ) -> "SolverContext":
        """
        Build a context from static problem tables.

        Args:
            tables: Tables from generate_tables / load_tables
            settings: Solver settings (default: Settings())
            dtype: Working precision
            x_min, x_max, u_min, u_max: Bounds (see Workspace)
            check_cache: Verify the cache against the tabulated dynamics

        Returns:
            SolverContext with a zeroed workspace
        """
        dims = dims_from_tables(tables, dtype=dtype)
        cache = cache_from_tables(tables, dims, check=check_cache)
        work = Workspace(
            dims,
            A=tables["Adyn"],
            B=tables["Bdyn"],
            Q=tables["Q"],
            R=tables["R"],
            Qf=tables.get("Qf"),
            x_min=x_min,
            x_max=x_max,
            u_min=u_min,
            u_max=u_max,
        )
        return cls(settings or Settings(), cache, work)

    @property
    def work(self) -> Workspace:
        return self.solver.work

    @property
    def cache(self) -> Cache:
        return self.solver.cache

    @property
    def settings(self) -> Settings:
        return self.solver.settings

    @property
    def dims(self) -> ProblemDimensions:
        return self.solver.work.dims

    @property
    def horizon(self) -> int:
        return self.dims.horizon

    @property
    def status(self) -> Status:
        return self.work.status

    def set_initial_state(self, x0: Any, verbose: bool = False) -> None:
        """Copy n numbers into column 0 of the state trajectory."""
        self.work.set_initial_state(x0)
        if verbose:
            logger.info("set_initial_state: %s", self.work.x[:, 0])

    def set_reference(self, x_ref: Any, verbose: bool = False) -> None:
        """Track the state ``x_ref`` (n numbers) at every knot point."""
        x_ref = as_array(x_ref, (self.dims.n_states,), self.dims.dtype, "x_ref")
        self.work.set_state_reference(x_ref)
        if verbose:
            logger.info("set_reference: %s over %d knot points", x_ref, self.horizon)

    def set_input_reference(self, u_ref: Any, verbose: bool = False) -> None:
        """Use ``u_ref`` (m numbers) as input reference at every knot point."""
        u_ref = as_array(u_ref, (self.dims.n_inputs,), self.dims.dtype, "u_ref")
        self.work.set_input_reference(u_ref)
        if verbose:
            logger.info("set_input_reference: %s", u_ref)

    def reset_duals(self, verbose: bool = False) -> None:
        """Zero the scaled dual variables."""
        self.work.reset_duals()
        if verbose:
            logger.info("reset duals finished")

    def solve(self, verbose: bool = False) -> Status:
        """Run the solver on this context's workspace."""
        status = self.solver.solve()
        if verbose:
            logger.info("solve finished\n%s", self.solver.info().summary())
        return status

    def info(self) -> SolveInfo:
        return self.solver.info()

    def get_state_trajectory(
        self,
        out: Optional[np.ndarray] = None,
        verbose: bool = False,
    ) -> np.ndarray:
        """
        Copy the state trajectory out as n*N numbers in row-major order
        (row i holds state i over the horizon).
        """
        out = self._export(self.work.x, out, "out")
        if verbose:
            logger.info("get_state_trajectory: %s", out)
        return out

    def get_input_trajectory(
        self,
        out: Optional[np.ndarray] = None,
        verbose: bool = False,
    ) -> np.ndarray:
        """Copy the input trajectory out as m*(N-1) numbers in row-major order."""
        out = self._export(self.work.u, out, "out")
        if verbose:
            logger.info("get_input_trajectory: %s", out)
        return out

    @staticmethod
    def _export(source: np.ndarray, out: Optional[np.ndarray], name: str) -> np.ndarray:
        if out is None:
            return source.ravel().copy()
        if not isinstance(out, np.ndarray) or not np.issubdtype(out.dtype, np.floating):
            raise InvalidInputError(
                f"{name} must be a floating-point array, got {getattr(out, 'dtype', type(out))}"
            )
        if out.size != source.size:
            raise DimensionError(f"{name} must hold {source.size} numbers, got {out.size}")
        np.copyto(out, source.reshape(out.shape))
        return out

    @property
    def first_input(self) -> np.ndarray:
        """Control to apply now (m,)."""
        return self.work.u[:, 0].copy()

    def simulate(
        self,
        x0: np.ndarray,
        n_steps: int,
        x_ref: Optional[np.ndarray] = None,
        reset_duals: bool = True,
        disturbance: Optional[np.ndarray] = None,
        plant: Optional[LinearSystem] = None,
    ) -> Dict[str, np.ndarray]:
        """
        Simulate closed-loop MPC.

        At every step: write the measured state, optionally reset the
        duals, solve, apply the first input and propagate the plant.

        Args:
            x0: Initial state (n,)
            n_steps: Number of control cycles
            x_ref: Constant state reference (default: keep the current Xref)
            reset_duals: Zero y and g before every solve
            disturbance: Additive state disturbance (n, n_steps)
            plant: System driven by the inputs (default: the workspace
                model); a different plant simulates model mismatch

        Returns:
            Dictionary with 'x' (n, n_steps+1), 'u' (m, n_steps),
            'tracking_error' (n_steps+1,), 'iterations' and 'status'
            (n_steps,)
        """
        n, m = self.dims.n_states, self.dims.n_inputs
        if disturbance is not None:
            disturbance = as_array(disturbance, (n, n_steps), np.float64, "disturbance")
        if plant is not None and (plant.n_states, plant.n_inputs) != (n, m):
            raise DimensionError(
                f"plant must have {n} states and {m} inputs, "
                f"got {plant.n_states} and {plant.n_inputs}"
            )
        step = self.work.step if plant is None else plant.step

        if x_ref is not None:
            self.set_reference(x_ref)
        target = self.work.Xref[:, 0].astype(np.float64)

        x = np.zeros((n, n_steps + 1))
        u = np.zeros((m, n_steps))
        iterations = np.zeros(n_steps, dtype=int)
        status = np.zeros(n_steps, dtype=int)

        x[:, 0] = as_array(x0, (n,), np.float64, "x0")

        for k in range(n_steps):
            self.set_initial_state(x[:, k])
            if reset_duals:
                self.reset_duals()

            self.solve()
            u[:, k] = self.work.u[:, 0]
            iterations[k] = self.work.iter
            status[k] = self.work.status.code

            x[:, k + 1] = step(x[:, k], u[:, k])
            if disturbance is not None:
                x[:, k + 1] += disturbance[:, k]

        tracking_error = np.linalg.norm(x - target[:, None], axis=0)

        return {
            "x": x,
            "u": u,
            "tracking_error": tracking_error,
            "iterations": iterations,
            "status": status,
        }
