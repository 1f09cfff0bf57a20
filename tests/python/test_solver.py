"""
Tests for the ADMM Solver.

Tests covering:
1. Unconstrained problems against batch LQR and the DARE gain
2. Box-constrained problems against a generic bound-constrained solver
3. Iteration budget and termination
4. Warm start, dual reset and determinism
5. Precision and mismatch handling
"""

import numpy as np
import pytest
from scipy.linalg import solve_discrete_are
from scipy.optimize import lsq_linear

from tinyadmm import (
    DimensionError,
    InvalidInputError,
    ProblemDimensions,
    Settings,
    Solver,
    Status,
    Workspace,
    compute_cache,
)


def _make_solver(system, params, settings=None, horizon=None, dtype=np.float64, **bounds):
    horizon = horizon or params["horizon"]
    cache = compute_cache(system.A, system.B, params["Q"], params["R"], params["rho"])
    if dtype != np.float64:
        cache = cache.astype(dtype)
    work = Workspace(
        ProblemDimensions(system.n_states, system.n_inputs, horizon, dtype=dtype),
        system.A, system.B,
        Q=params["Q"], R=params["R"],
        **bounds,
    )
    return Solver(settings or Settings(), cache, work)


class TestUnconstrained:
    """Without active bounds ADMM reduces to finite-horizon LQR."""

    def test_first_iteration_is_lqr_feedback(self, double_integrator, di_params):
        solver = _make_solver(double_integrator, di_params, Settings(max_iter=1))
        x0 = np.array([1.0, -0.5])
        solver.work.set_initial_state(x0)

        solver.solve()

        np.testing.assert_allclose(solver.work.u[:, 0], -solver.cache.K @ x0)

    def test_matches_batch_lqr(self, double_integrator, di_params, batch_lqr):
        settings = Settings(abs_pri_tol=1e-9, abs_dua_tol=1e-9, max_iter=2000)
        solver = _make_solver(double_integrator, di_params, settings)
        x0 = np.array([1.0, 0.5])
        solver.work.set_initial_state(x0)

        status = solver.solve()
        assert status is Status.SOLVED

        cache = solver.cache
        H, g, Phi, Gamma = batch_lqr(
            double_integrator.A, double_integrator.B,
            di_params["Q"], di_params["R"],
            cache.P - cache.rho * np.eye(2),
            x0, di_params["horizon"],
        )
        u_ref = np.linalg.solve(H, -g)
        x_ref = (Phi @ x0 + Gamma @ u_ref).reshape(-1, 2).T

        np.testing.assert_allclose(solver.work.u.T.ravel(), u_ref, atol=1e-5)
        np.testing.assert_allclose(solver.work.x, x_ref, atol=1e-5)

    def test_long_horizon_matches_dare_gain(self, double_integrator, di_params):
        settings = Settings(abs_pri_tol=1e-10, abs_dua_tol=1e-10, max_iter=2000)
        solver = _make_solver(double_integrator, di_params, settings, horizon=100)
        x0 = np.array([0.8, -0.3])
        solver.work.set_initial_state(x0)

        solver.solve()

        A, B = double_integrator.A, double_integrator.B
        Q, R = np.diag(di_params["Q"]), np.diag(di_params["R"])
        P = solve_discrete_are(A, B, Q, R)
        K = np.linalg.solve(R + B.T @ P @ B, B.T @ P @ A)

        np.testing.assert_allclose(solver.work.u[:, 0], -K @ x0, atol=1e-4)

    def test_tracks_reference_without_offset(self, double_integrator, di_params):
        """A reachable equilibrium is tracked exactly."""
        settings = Settings(abs_pri_tol=1e-9, abs_dua_tol=1e-9, max_iter=2000)
        solver = _make_solver(double_integrator, di_params, settings)
        solver.work.set_initial_state([2.0, 0.0])
        solver.work.set_state_reference([2.0, 0.0])

        solver.solve()

        np.testing.assert_allclose(solver.work.u, 0.0, atol=1e-7)
        np.testing.assert_allclose(solver.work.x[0], 2.0, atol=1e-7)


class TestConstrained:
    """Box-constrained problems."""

    def test_input_bounds_hold_on_slack(self, double_integrator, di_params):
        solver = _make_solver(double_integrator, di_params, u_min=-0.5, u_max=0.5)
        solver.work.set_initial_state([1.0, 0.0])

        solver.solve()

        assert np.all(solver.work.z >= -0.5)
        assert np.all(solver.work.z <= 0.5)

    def test_violation_bounded_by_residual(self, double_integrator, di_params):
        solver = _make_solver(
            double_integrator, di_params, Settings(max_iter=10),
            u_min=-0.2, u_max=0.2, x_min=[-2.0, -0.3], x_max=[2.0, 0.3],
        )
        solver.work.set_initial_state([1.0, 0.0])

        solver.solve()
        work = solver.work

        assert work.input_violation() <= work.primal_residual_input + 1e-12
        assert work.state_violation() <= work.primal_residual_state + 1e-12

    @pytest.mark.slow
    def test_matches_bound_constrained_qp(self, double_integrator, di_params, batch_lqr):
        settings = Settings(abs_pri_tol=1e-8, abs_dua_tol=1e-8, max_iter=20000)
        solver = _make_solver(
            double_integrator, di_params, settings, u_min=-0.5, u_max=0.5
        )
        x0 = np.array([1.0, 0.0])
        solver.work.set_initial_state(x0)

        status = solver.solve()
        assert status is Status.SOLVED

        cache = solver.cache
        H, g, _, _ = batch_lqr(
            double_integrator.A, double_integrator.B,
            di_params["Q"], di_params["R"],
            cache.P - cache.rho * np.eye(2),
            x0, di_params["horizon"],
        )
        # 1/2 u' H u + g' u = 1/2 |L' u + L^-1 g|^2 + const with H = L L'
        L = np.linalg.cholesky(H)
        result = lsq_linear(
            L.T, -np.linalg.solve(L, g),
            bounds=(-0.5, 0.5), method="bvls", tol=1e-12,
        )
        assert result.success

        # Bound is active at the start of the manoeuvre
        assert result.x[0] == pytest.approx(-0.5)
        np.testing.assert_allclose(solver.work.z.T.ravel(), result.x, atol=1e-4)


class TestTermination:
    """Iteration budget and status."""

    def test_iterations_within_budget(self, double_integrator, di_params):
        solver = _make_solver(
            double_integrator, di_params, Settings(max_iter=25),
            u_min=-0.1, u_max=0.1,
        )
        solver.work.set_initial_state([5.0, 0.0])

        status = solver.solve()

        assert 1 <= solver.work.iter <= 25
        assert status in (Status.SOLVED, Status.MAX_ITERATIONS)

    def test_without_termination_check(self, double_integrator, di_params):
        solver = _make_solver(
            double_integrator, di_params,
            Settings(max_iter=17, check_termination=False),
        )
        solver.work.set_initial_state([1.0, 0.0])

        status = solver.solve()

        assert solver.work.iter == 17
        assert status is Status.MAX_ITERATIONS

    def test_budget_exhausted(self, double_integrator, di_params):
        settings = Settings(abs_pri_tol=1e-14, abs_dua_tol=1e-14, max_iter=3)
        solver = _make_solver(double_integrator, di_params, settings, u_min=-0.1, u_max=0.1)
        solver.work.set_initial_state([1.0, 0.0])

        assert solver.solve() is Status.MAX_ITERATIONS
        assert solver.work.status is Status.MAX_ITERATIONS
        assert solver.work.iter == 3

    def test_zero_problem_converges_immediately(self, double_integrator, di_params):
        solver = _make_solver(double_integrator, di_params)

        assert solver.solve() is Status.SOLVED
        assert solver.work.iter == 1
        assert np.all(solver.work.u == 0)

    def test_info_snapshot(self, double_integrator, di_params):
        solver = _make_solver(double_integrator, di_params, u_min=-1.0, u_max=1.0)
        solver.work.set_initial_state([1.0, 0.0])
        solver.solve()

        info = solver.info()
        assert info.status is solver.work.status
        assert info.iterations == solver.work.iter
        assert info.primal_residual_input == solver.work.primal_residual_input
        assert info.solve_time > 0
        assert "Solve Summary" in info.summary()


class TestWarmStart:
    """Repeated solves, dual reset and determinism."""

    def test_arrays_keep_identity(self, double_integrator, di_params):
        solver = _make_solver(double_integrator, di_params, u_min=-1.0, u_max=1.0)
        work = solver.work
        refs = {name: getattr(work, name) for name in ("x", "u", "v", "z", "g", "y", "p", "d")}
        work.set_initial_state([1.0, 0.0])

        solver.solve()
        solver.solve()

        for name, arr in refs.items():
            assert getattr(work, name) is arr, name

    def test_resolve_after_reset_duals(self, double_integrator, di_params):
        settings = Settings(abs_pri_tol=1e-7, abs_dua_tol=1e-7, max_iter=5000)
        solver = _make_solver(double_integrator, di_params, settings, u_min=-0.5, u_max=0.5)
        solver.work.set_initial_state([1.0, 0.0])

        solver.solve()
        first = solver.work.u.copy()

        solver.work.reset_duals()
        solver.solve()

        np.testing.assert_allclose(solver.work.u, first, atol=1e-4)

    def test_reset_forgets_history(self, double_integrator, di_params):
        bounds = dict(u_min=-0.3, u_max=0.3, x_min=[-5.0, -1.0], x_max=[5.0, 1.0])

        used = _make_solver(double_integrator, di_params, **bounds)
        used.work.set_initial_state([-2.0, 0.5])
        used.solve()
        used.work.set_initial_state([1.0, 0.2])
        used.solve()
        used.work.reset_duals()
        used.work.reset()
        used.solve()

        fresh = _make_solver(double_integrator, di_params, **bounds)
        fresh.work.set_initial_state([1.0, 0.2])
        fresh.solve()

        np.testing.assert_array_equal(used.work.u, fresh.work.u)
        np.testing.assert_array_equal(used.work.x, fresh.work.x)
        assert used.work.iter == fresh.work.iter

    def test_deterministic(self, double_integrator, di_params):
        results = []
        for _ in range(2):
            solver = _make_solver(
                double_integrator, di_params, u_min=-0.3, u_max=0.3,
                x_min=[-5.0, -1.0], x_max=[5.0, 1.0],
            )
            solver.work.set_initial_state([1.0, 0.2])
            solver.work.set_state_reference([0.5, 0.0])
            solver.solve()
            results.append((solver.work.x.copy(), solver.work.u.copy(), solver.work.iter))

        np.testing.assert_array_equal(results[0][0], results[1][0])
        np.testing.assert_array_equal(results[0][1], results[1][1])
        assert results[0][2] == results[1][2]

    def test_settings_change_between_solves(self, double_integrator, di_params):
        solver = _make_solver(double_integrator, di_params, Settings(max_iter=2, check_termination=False))
        solver.work.set_initial_state([1.0, 0.0])
        solver.solve()
        assert solver.work.iter == 2

        solver.settings.max_iter = 4
        solver.solve()
        assert solver.work.iter == 4


class TestPrecisionAndMismatch:
    """Single precision and cache/workspace mismatches."""

    def test_single_precision_agrees(self, double_integrator, di_params):
        results = {}
        for dtype in (np.float64, np.float32):
            solver = _make_solver(
                double_integrator, di_params, Settings(max_iter=50, check_termination=False),
                dtype=dtype, u_min=-0.5, u_max=0.5,
            )
            solver.work.set_initial_state([1.0, 0.0])
            solver.solve()
            assert solver.work.u.dtype == dtype
            results[dtype] = solver.work.u.astype(np.float64)

        np.testing.assert_allclose(results[np.float32], results[np.float64], atol=1e-3)

    def test_dimension_mismatch(self, di_cache):
        from tinyadmm import double_integrator_2d

        system = double_integrator_2d(dt=0.1)
        work = Workspace(
            ProblemDimensions(4, 2, 10), system.A, system.B,
            Q=np.ones(4), R=np.ones(2),
        )
        with pytest.raises(DimensionError):
            Solver(Settings(), di_cache, work)

    def test_precision_mismatch(self, di_cache, double_integrator):
        work = Workspace(
            ProblemDimensions(2, 1, 10, dtype=np.float32),
            double_integrator.A, double_integrator.B,
            Q=[1.0, 1.0], R=[1.0],
        )
        with pytest.raises(InvalidInputError, match="precision"):
            Solver(Settings(), di_cache, work)
