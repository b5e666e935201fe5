"""Custom exceptions for the :mod:`fdcons` package."""
from __future__ import annotations

from typing import Any, List, Optional, Tuple


class FdConsError(Exception):
    """Base exception for finite-difference conservation runs."""


class InitializationError(FdConsError, ValueError):
    """Invalid grid size, step size or initial condition."""


class ConfigurationError(InitializationError):
    """Configuration file or parameter validation error."""


class NumericalError(FdConsError, RuntimeError):
    """Stability violations and other failures of the time integration."""


class NumericalInstabilityError(NumericalError):
    """Raised when a step produces non-finite values."""

    def __init__(self, message: str, *, step: Optional[int] = None, index: Optional[int] = None) -> None:
        super().__init__(message)
        self.step = step
        self.index = index


class CFLViolationError(NumericalInstabilityError):
    """Raised when a local Courant number exceeds one."""

    def __init__(
        self,
        message: str,
        *,
        max_courant: float,
        step: Optional[int] = None,
        index: Optional[int] = None,
    ) -> None:
        super().__init__(message, step=step, index=index)
        self.max_courant = max_courant


class MassBudgetViolationError(NumericalError):
    """Raised when the relative drift of the conserved total exceeds the tolerance."""


class WorkerError(FdConsError, RuntimeError):
    """One or more parallel chunk updates failed during a step.

    ``failures`` lists ``(lo, hi, exception)`` for every failing chunk and
    ``last_state`` holds the last complete snapshot, which is left untouched.
    """

    def __init__(
        self,
        message: str,
        *,
        step: int,
        failures: List[Tuple[int, int, BaseException]],
        last_state: Any = None,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.failures = list(failures)
        self.last_state = last_state


__all__ = [
    "FdConsError",
    "InitializationError",
    "ConfigurationError",
    "NumericalError",
    "NumericalInstabilityError",
    "CFLViolationError",
    "MassBudgetViolationError",
    "WorkerError",
]
