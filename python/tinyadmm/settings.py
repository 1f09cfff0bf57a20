"""
Solver Settings
===============

Tunable knobs of the ADMM loop. Settings are read, never written, by the
solver.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .exceptions import InvalidInputError


@dataclass
class Settings:
    """
    ADMM solver settings.

    Attributes:
        abs_pri_tol: Absolute tolerance on the primal residuals
        abs_dua_tol: Absolute tolerance on the dual residuals
        max_iter: Hard cap on ADMM iterations per solve
        check_termination: If False the loop always runs max_iter iterations
        en_state_bound: Project states onto [x_min, x_max]
        en_input_bound: Project inputs onto [u_min, u_max]

    Example:
        >>> settings = Settings(max_iter=100, abs_pri_tol=1e-3)
        >>> settings = Settings.from_params({"max_iterations": 50, "tolerance": 1e-4})
    """
    abs_pri_tol: float = 1e-3
    abs_dua_tol: float = 1e-3
    max_iter: int = 100
    check_termination: bool = True
    en_state_bound: bool = True
    en_input_bound: bool = True

    def __post_init__(self):
        """Validate settings."""
        for name in ("abs_pri_tol", "abs_dua_tol"):
            value = float(getattr(self, name))
            if not value > 0:
                raise InvalidInputError(f"{name} must be positive, got {value}")
            setattr(self, name, value)

        if isinstance(self.max_iter, bool) or int(self.max_iter) != self.max_iter:
            raise InvalidInputError(f"max_iter must be an integer, got {self.max_iter!r}")
        self.max_iter = int(self.max_iter)
        if self.max_iter < 1:
            raise InvalidInputError(f"max_iter must be >= 1, got {self.max_iter}")

        self.check_termination = bool(self.check_termination)
        self.en_state_bound = bool(self.en_state_bound)
        self.en_input_bound = bool(self.en_input_bound)

    @classmethod
    def from_params(cls, params: Optional[Dict[str, Any]] = None) -> "Settings":
        """
        Build settings from a parameter dictionary.

        Besides the field names, accepts ``max_iterations``/``max_iters``
        for ``max_iter`` and ``tolerance``/``tol`` to set both tolerances.
        Unknown keys raise InvalidInputError.
        """
        params = dict(params or {})
        kwargs: Dict[str, Any] = {}

        tol = params.pop("tolerance", params.pop("tol", None))
        if tol is not None:
            kwargs["abs_pri_tol"] = tol
            kwargs["abs_dua_tol"] = tol

        for alias in ("max_iterations", "max_iters"):
            if alias in params:
                kwargs["max_iter"] = params.pop(alias)

        names = {f.name for f in fields(cls)}
        unknown = set(params) - names
        if unknown:
            raise InvalidInputError(f"unknown settings: {sorted(unknown)}")

        kwargs.update(params)
        return cls(**kwargs)

    def to_params(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
