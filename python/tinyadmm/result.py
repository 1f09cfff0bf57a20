"""
tinyadmm Result Classes
=======================

Solver status codes and a read-only snapshot of a finished solve.
"""

from dataclasses import dataclass
from enum import Enum

from .exceptions import InvalidInputError


class Status(Enum):
    """
    Solver status codes.

    Attributes:
        UNSOLVED: No solve has finished on this workspace (or one is running)
        SOLVED: All residuals fell below the configured tolerances
        MAX_ITERATIONS: Iteration budget exhausted before convergence
    """
    UNSOLVED = "unsolved"
    SOLVED = "solved"
    MAX_ITERATIONS = "max_iterations"

    def __str__(self) -> str:
        return self.value

    @property
    def code(self) -> int:
        """Integer code used in flat external buffers."""
        return _STATUS_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "Status":
        """Status for an integer code, as stored in flat histories."""
        for status, value in _STATUS_CODES.items():
            if value == code:
                return status
        raise InvalidInputError(f"unknown status code {code!r}")

    @property
    def is_successful(self) -> bool:
        """True if the solve converged."""
        return self == Status.SOLVED

    @property
    def has_solution(self) -> bool:
        """True if a (possibly degraded) trajectory is available."""
        return self in (Status.SOLVED, Status.MAX_ITERATIONS)


_STATUS_CODES = {
    Status.UNSOLVED: 0,
    Status.SOLVED: 1,
    Status.MAX_ITERATIONS: 2,
}


@dataclass(frozen=True)
class SolveInfo:
    """
    Snapshot of the scalar outcome of one solve.

    Attributes:
        status: Final solver status
        iterations: ADMM iterations performed
        primal_residual_state: max |x - vnew|
        primal_residual_input: max |u - znew|
        dual_residual_state: max |vnew - v| over the last iteration
        dual_residual_input: max |znew - z| over the last iteration
        solve_time: Wall clock time of the solve in seconds
    """

    status: Status
    iterations: int
    primal_residual_state: float
    primal_residual_input: float
    dual_residual_state: float
    dual_residual_input: float
    solve_time: float = 0.0

    @property
    def primal_residual(self) -> float:
        return max(self.primal_residual_state, self.primal_residual_input)

    @property
    def dual_residual(self) -> float:
        return max(self.dual_residual_state, self.dual_residual_input)

    def __repr__(self) -> str:
        return (
            f"SolveInfo(status={self.status}, "
            f"iterations={self.iterations}, "
            f"primal={self.primal_residual:.3e}, "
            f"dual={self.dual_residual:.3e})"
        )

    def summary(self) -> str:
        """Return a formatted summary of the solve."""
        lines = [
            "=" * 50,
            "tinyadmm Solve Summary",
            "=" * 50,
            f"Status:                 {self.status}",
            f"Iterations:             {self.iterations}",
            f"Solve time:             {self.solve_time * 1000:.3f} ms",
            "-" * 50,
            f"Primal residual state:  {self.primal_residual_state:.6e}",
            f"Primal residual input:  {self.primal_residual_input:.6e}",
            f"Dual residual state:    {self.dual_residual_state:.6e}",
            f"Dual residual input:    {self.dual_residual_input:.6e}",
            "=" * 50,
        ]
        return "\n".join(lines)
