"""
tinyadmm Exception Classes
==========================

Exceptions raised while setting up a problem.

The solve loop itself never raises: its outcome is reported through
``Workspace.status``. Everything that can be checked ahead of time
(shapes, bounds, settings, cache tables) is checked when the data is
loaded and reported with one of the classes below.
"""

from typing import Optional


class TinyAdmmError(Exception):
    """Base exception for all tinyadmm errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DimensionError(TinyAdmmError):
    """
    Raised when matrix/vector dimensions do not match the problem.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Dimension mismatch: {message}")


class InvalidInputError(TinyAdmmError):
    """
    Raised when input data is invalid.

    Examples: NaN values, non-positive tolerances, lower bound above
    upper bound, unsupported precision.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")


class CacheMismatchError(TinyAdmmError):
    """
    Raised when cached Riccati matrices do not belong to the dynamics,
    cost or penalty parameter they are used with.

    The matrices in a cache are only valid as a set; recomputing one of
    them without the others (or changing ``rho``) breaks the solver.
    """

    def __init__(self, message: str, max_error: Optional[float] = None) -> None:
        self.max_error = max_error
        super().__init__(f"Cache mismatch: {message}")
