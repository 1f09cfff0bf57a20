"""
tinyadmm: ADMM Solver for Linear MPC with Box Constraints
=========================================================

tinyadmm solves linear model-predictive control problems

    minimize    sum_k 1/2 (x_k - xref_k)' Q (x_k - xref_k)
                      + 1/2 (u_k - uref_k)' R (u_k - uref_k)
    subject to  x_{k+1} = A x_k + B u_k
                x_min <= x_k <= x_max
                u_min <= u_k <= u_max
                x_0 = x_measured

with an ADMM loop whose LQR subproblem reuses an infinite-horizon Riccati
solution computed once, up front. The control loop itself never inverts a
matrix and never runs more than ``max_iter`` iterations.

Quick Start
-----------
>>> import numpy as np
>>> import tinyadmm
>>> system = tinyadmm.double_integrator(dt=0.1)
>>> tables = tinyadmm.generate_tables(system, Q=[10, 1], R=[0.1], rho=1.0, horizon=20)
>>> ctx = tinyadmm.SolverContext.from_tables(tables, u_min=-1.0, u_max=1.0)
>>> ctx.set_initial_state([1.0, 0.0])
>>> status = ctx.solve()
>>> u_apply = ctx.first_input

Lower-level pieces (compute_cache, Workspace, Solver) can be assembled by
hand when a cache should be shared between several workspaces.
"""

__version__ = "0.1.0"
__author__ = "tinyadmm Contributors"

from .config import ProblemDimensions
from .settings import Settings
from .cache import Cache, compute_cache
from .workspace import Workspace
from .admm import Solver
from .result import SolveInfo, Status
from .interface import SolverContext
from .tables import (
    generate_tables,
    save_tables,
    load_tables,
    dims_from_tables,
    cache_from_tables,
)
from .dynamics import (
    LinearSystem,
    double_integrator,
    double_integrator_2d,
    quadrotor_hover,
)
from .exceptions import (
    TinyAdmmError,
    DimensionError,
    InvalidInputError,
    CacheMismatchError,
)

__all__ = [
    # Version
    "__version__",

    # Problem setup
    "ProblemDimensions",
    "Settings",
    "Cache",
    "compute_cache",
    "Workspace",

    # Solving
    "Solver",
    "SolverContext",

    # Results
    "SolveInfo",
    "Status",

    # Tables
    "generate_tables",
    "save_tables",
    "load_tables",
    "dims_from_tables",
    "cache_from_tables",

    # Models
    "LinearSystem",
    "double_integrator",
    "double_integrator_2d",
    "quadrotor_hover",

    # Exceptions
    "TinyAdmmError",
    "DimensionError",
    "InvalidInputError",
    "CacheMismatchError",
]


def info() -> str:
    """Return information about the tinyadmm installation."""
    import platform

    import numpy as np

    lines = [
        f"tinyadmm version: {__version__}",
        f"Python version: {platform.python_version()}",
        f"Platform: {platform.platform()}",
        f"NumPy version: {np.__version__}",
    ]

    return "\n".join(lines)
