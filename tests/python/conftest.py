"""
pytest configuration and fixtures for tinyadmm tests.
"""

import pytest
import numpy as np


# ============================================================================
# Problem fixtures
# ============================================================================

@pytest.fixture
def double_integrator():
    """Double integrator system, dt = 0.1."""
    from tinyadmm import double_integrator

    return double_integrator(dt=0.1)


@pytest.fixture
def di_params():
    """Cost weights and penalty for the double integrator."""
    return {
        "Q": np.array([10.0, 1.0]),
        "R": np.array([1.0]),
        "rho": 1.0,
        "horizon": 20,
    }


@pytest.fixture
def di_cache(double_integrator, di_params):
    """Riccati cache for the double integrator."""
    from tinyadmm import compute_cache

    return compute_cache(
        double_integrator.A,
        double_integrator.B,
        di_params["Q"],
        di_params["R"],
        di_params["rho"],
    )


@pytest.fixture
def di_workspace(double_integrator, di_params):
    """Unbounded double integrator workspace."""
    from tinyadmm import ProblemDimensions, Workspace

    dims = ProblemDimensions(2, 1, di_params["horizon"])
    return Workspace(
        dims,
        double_integrator.A,
        double_integrator.B,
        Q=di_params["Q"],
        R=di_params["R"],
    )


@pytest.fixture
def di_tables(double_integrator, di_params):
    """Problem tables for the double integrator."""
    from tinyadmm import generate_tables

    return generate_tables(
        double_integrator,
        Q=di_params["Q"],
        R=di_params["R"],
        rho=di_params["rho"],
        horizon=di_params["horizon"],
    )


@pytest.fixture(scope="module")
def hover_tables():
    """
    Tables of the 12-state / 4-input quadrotor hovering problem at 20 Hz.

    Weights follow Bryson's rule on the largest acceptable deviation of
    each state and input. Position is weighted lightly and attitude and
    body rates heavily, so the unconstrained plan from the standard start
    stays well inside the motor bounds.
    """
    from tinyadmm import generate_tables, quadrotor_hover

    max_dev_x = np.array([
        1.0, 1.0, 1.0,
        0.1, 0.1, 0.1,
        0.5, 0.5, 0.5,
        0.2, 0.2, 0.2,
    ])
    max_dev_u = np.full(4, 0.1)

    return generate_tables(
        quadrotor_hover(freq=20.0),
        Q=1.0 / max_dev_x**2,
        R=1.0 / max_dev_u**2,
        rho=1.0,
        horizon=10,
    )


# ============================================================================
# Helpers
# ============================================================================

def batch_lqr_problem(A, B, Q, R, P_terminal, x0, horizon):
    """
    Condensed finite-horizon problem over the input sequence.

    Returns (H, g, Phi, Gamma) with x = Phi x0 + Gamma u and cost
    1/2 u' H u + g' u + const, where u stacks u_0 ... u_{N-2}, the stage
    cost uses Q on x_1 ... x_{N-2} and R on every input, and
    x_{N-1} is weighted by P_terminal.
    """
    n, m = B.shape
    N = horizon

    Phi = np.zeros((n * N, n))
    Gamma = np.zeros((n * N, m * (N - 1)))
    Phi[:n] = np.eye(n)
    for k in range(1, N):
        Phi[k * n:(k + 1) * n] = A @ Phi[(k - 1) * n:k * n]
        Gamma[k * n:(k + 1) * n] = A @ Gamma[(k - 1) * n:k * n]
        Gamma[k * n:(k + 1) * n, (k - 1) * m:k * m] = B

    Qbar = np.zeros((n * N, n * N))
    for k in range(1, N - 1):
        Qbar[k * n:(k + 1) * n, k * n:(k + 1) * n] = np.diag(Q)
    Qbar[(N - 1) * n:, (N - 1) * n:] = P_terminal
    Rbar = np.kron(np.eye(N - 1), np.diag(R))

    H = Gamma.T @ Qbar @ Gamma + Rbar
    g = Gamma.T @ Qbar @ Phi @ x0
    return H, g, Phi, Gamma


@pytest.fixture
def batch_lqr():
    """Condensed LQR builder, see batch_lqr_problem."""
    return batch_lqr_problem


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")
