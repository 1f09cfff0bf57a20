"""
Solver Workspace
================

All per-cycle mutable state of one MPC problem.

Trajectories are stored as ``(rows, knot points)``: column ``k`` of ``x``
is the state at knot point ``k``. Every array is allocated once in the
constructor. Setters copy into the existing arrays and the solver only
writes in place, so references handed out by ``workspace.x`` stay valid
across solves.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import numpy as np

from .config import ProblemDimensions
from .exceptions import DimensionError
from .result import Status
from .utils.validation import as_array, as_bounds, as_diagonal, check_bound_order

BoundLike = Union[None, float, np.ndarray]


class Workspace:
    """
    Mutable state of the ADMM solver.

    Args:
        dims: Problem dimensions and precision
        A: Dynamics state matrix (n, n)
        B: Dynamics input matrix (n, m)
        Q: Stage state cost diagonal (n,) or diagonal matrix
        R: Stage input cost diagonal (m,) or diagonal matrix
        Qf: Terminal state cost diagonal (default: Q)
        x_min, x_max: State bounds (scalar, (n,) or (n, N))
        u_min, u_max: Input bounds (scalar, (m,) or (m, N-1))

    Example:
        >>> dims = ProblemDimensions(2, 1, horizon=20)
        >>> work = Workspace(dims, A, B, Q=[10, 1], R=[0.1], u_min=-1, u_max=1)
        >>> work.set_initial_state([1.0, 0.0])
    """

    def __init__(
        self,
        dims: ProblemDimensions,
        A: np.ndarray,
        B: np.ndarray,
        Q: np.ndarray,
        R: np.ndarray,
        Qf: Optional[np.ndarray] = None,
        x_min: BoundLike = None,
        x_max: BoundLike = None,
        u_min: BoundLike = None,
        u_max: BoundLike = None,
    ) -> None:
        self.dims = dims
        n, m, dtype = dims.n_states, dims.n_inputs, dims.dtype

        # Model
        self.Adyn = as_array(A, (n, n), dtype, "A")
        self.Bdyn = as_array(B, (n, m), dtype, "B")
        self.Q = as_diagonal(Q, n, dtype, "Q")
        self.Qf = self.Q.copy() if Qf is None else as_diagonal(Qf, n, dtype, "Qf")
        self.R = as_diagonal(R, m, dtype, "R")

        # Bounds
        self.x_min = dims.zeros_state_traj()
        self.x_max = dims.zeros_state_traj()
        self.u_min = dims.zeros_input_traj()
        self.u_max = dims.zeros_input_traj()
        self.set_state_bounds(x_min, x_max)
        self.set_input_bounds(u_min, u_max)

        # References
        self.Xref = dims.zeros_state_traj()
        self.Uref = dims.zeros_input_traj()

        # Primal trajectories
        self.x = dims.zeros_state_traj()
        self.u = dims.zeros_input_traj()

        # Linear cost terms
        self.q = dims.zeros_state_traj()
        self.r = dims.zeros_input_traj()

        # Riccati backward pass terms
        self.p = dims.zeros_state_traj()
        self.d = dims.zeros_input_traj()

        # Slack variables
        self.v = dims.zeros_state_traj()
        self.vnew = dims.zeros_state_traj()
        self.z = dims.zeros_input_traj()
        self.znew = dims.zeros_input_traj()

        # Scaled dual variables
        self.g = dims.zeros_state_traj()
        self.y = dims.zeros_input_traj()

        self.primal_residual_state = 0.0
        self.primal_residual_input = 0.0
        self.dual_residual_state = 0.0
        self.dual_residual_input = 0.0
        self.iter = 0
        self.status = Status.UNSOLVED

    @property
    def n_states(self) -> int:
        return self.dims.n_states

    @property
    def n_inputs(self) -> int:
        return self.dims.n_inputs

    @property
    def horizon(self) -> int:
        return self.dims.horizon

    def set_state_bounds(self, x_min: BoundLike = None, x_max: BoundLike = None) -> None:
        """Set state bounds; ``None`` means unbounded on that side."""
        n, N = self.dims.state_traj_shape
        lower = as_bounds(x_min, n, N, -np.inf, self.dims.dtype, "x_min")
        upper = as_bounds(x_max, n, N, np.inf, self.dims.dtype, "x_max")
        check_bound_order(lower, upper, "state")
        self.x_min[:] = lower
        self.x_max[:] = upper

    def set_input_bounds(self, u_min: BoundLike = None, u_max: BoundLike = None) -> None:
        """Set input bounds; ``None`` means unbounded on that side."""
        m, N1 = self.dims.input_traj_shape
        lower = as_bounds(u_min, m, N1, -np.inf, self.dims.dtype, "u_min")
        upper = as_bounds(u_max, m, N1, np.inf, self.dims.dtype, "u_max")
        check_bound_order(lower, upper, "input")
        self.u_min[:] = lower
        self.u_max[:] = upper

    def set_initial_state(self, x0: Any) -> None:
        """Write the measured state into column 0 of ``x``."""
        self.x[:, 0] = as_array(x0, (self.n_states,), self.dims.dtype, "x0")

    def set_state_reference(self, x_ref: Any) -> None:
        """
        Set the state reference.

        A vector of length n is used as a constant setpoint for all knot
        points; an (n, N) array gives a time-varying reference.
        """
        self.Xref[:] = self._reference(x_ref, self.dims.state_traj_shape, "x_ref")

    def set_input_reference(self, u_ref: Any) -> None:
        """Set the input reference, a vector of length m or an (m, N-1) array."""
        self.Uref[:] = self._reference(u_ref, self.dims.input_traj_shape, "u_ref")

    def _reference(self, value: Any, shape, name: str) -> np.ndarray:
        arr = np.asarray(value, dtype=np.float64)
        rows, cols = shape
        if arr.shape == (rows,):
            arr = np.tile(arr.reshape(rows, 1), (1, cols))
        elif arr.shape != shape:
            raise DimensionError(f"{name} must be ({rows},) or {shape}, got {arr.shape}")
        return as_array(arr, shape, self.dims.dtype, name)

    def reset_duals(self) -> None:
        """
        Zero the scaled dual variables ``y`` and ``g``.

        The slack warm start (``v``, ``z``) is kept, so the next solve still
        depends on earlier ones: it reaches the same solution within the
        tolerances, not bit for bit. Call ``reset()`` when a solve must not
        depend on history.
        """
        self.y.fill(0)
        self.g.fill(0)

    def reset(self) -> None:
        """
        Cold start: zero every iterate, keeping model, bounds, references
        and the measured state in column 0 of ``x``.
        """
        x0 = self.x[:, 0].copy()
        for arr in (self.x, self.u, self.q, self.r, self.p, self.d,
                    self.v, self.vnew, self.z, self.znew, self.g, self.y):
            arr.fill(0)
        self.x[:, 0] = x0

        self.primal_residual_state = 0.0
        self.primal_residual_input = 0.0
        self.dual_residual_state = 0.0
        self.dual_residual_input = 0.0
        self.iter = 0
        self.status = Status.UNSOLVED

    def step(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """Propagate the model one step: A x + B u."""
        return self.Adyn @ x + self.Bdyn @ u

    def tracking_cost(self) -> float:
        """
        Quadratic tracking cost of the current trajectories.

            0.5 * sum_k (x_k - xref_k)' Q (x_k - xref_k)
                      + (u_k - uref_k)' R (u_k - uref_k)
            + 0.5 * (x_N - xref_N)' Qf (x_N - xref_N)
        """
        dx = (self.x - self.Xref).astype(np.float64)
        du = (self.u - self.Uref).astype(np.float64)

        cost = np.sum(self.Q[:, None] * dx[:, :-1] ** 2)
        cost += np.sum(self.R[:, None] * du ** 2)
        cost += np.sum(self.Qf * dx[:, -1] ** 2)
        return 0.5 * float(cost)

    def state_violation(self) -> float:
        """Largest violation of the state bounds by ``x``."""
        lower = np.maximum(self.x_min - self.x, 0).max()
        upper = np.maximum(self.x - self.x_max, 0).max()
        return float(max(lower, upper))

    def input_violation(self) -> float:
        """Largest violation of the input bounds by ``u``."""
        lower = np.maximum(self.u_min - self.u, 0).max()
        upper = np.maximum(self.u - self.u_max, 0).max()
        return float(max(lower, upper))
