"""Structured warning classes for the :mod:`fdcons` package."""
from __future__ import annotations


class FdConsWarning(UserWarning):
    """Base warning class for fdcons."""


class NumericalWarning(FdConsWarning):
    """Numerical stability or accuracy warnings."""


__all__ = [
    "FdConsWarning",
    "NumericalWarning",
]
