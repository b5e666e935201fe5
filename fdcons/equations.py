"""Scalar conservation laws ``u_t + f(u)_x = 0``.

Each equation provides the flux ``f`` and its derivative ``f'`` (the
characteristic speed).  Both must accept NumPy arrays and be free of side
effects so that worker threads can evaluate them concurrently.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict

import numpy as np

from . import constants
from .errors import ConfigurationError

# Kernel codes understood by the numba backend; -1 means "numpy only".
KIND_CUSTOM = -1
KIND_ADVECTION = 0
KIND_BURGERS = 1


class Equation:
    """Base class for scalar flux functions."""

    name = "equation"
    kind = KIND_CUSTOM

    def f(self, u: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def df(self, u: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @property
    def speed_param(self) -> float:
        """Scalar parameter forwarded to the compiled kernels."""

        return 0.0

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


@dataclass(frozen=True, repr=True)
class Advection(Equation):
    """Linear advection ``f(u) = a u``."""

    a: float = constants.DEFAULT_ADVECTION_SPEED
    name = "advection"
    kind = KIND_ADVECTION

    def __post_init__(self) -> None:
        if not math.isfinite(self.a):
            raise ConfigurationError("advection speed must be finite")

    def f(self, u: np.ndarray) -> np.ndarray:
        return self.a * u

    def df(self, u: np.ndarray) -> np.ndarray:
        return np.full_like(np.asarray(u, dtype=float), self.a)

    @property
    def speed_param(self) -> float:
        return float(self.a)


@dataclass(frozen=True, repr=True)
class InviscidBurgers(Equation):
    """Inviscid Burgers equation ``f(u) = u^2 / 2``."""

    name = "burgers"
    kind = KIND_BURGERS

    def f(self, u: np.ndarray) -> np.ndarray:
        return 0.5 * u * u

    def df(self, u: np.ndarray) -> np.ndarray:
        return np.asarray(u, dtype=float).copy()


_REGISTRY: Dict[str, Callable[..., Equation]] = {
    "advection": Advection,
    "burgers": InviscidBurgers,
}

_ALIASES = {
    "linear_advection": "advection",
    "inviscid_burgers": "burgers",
    "inviscidburger": "burgers",
    "burger": "burgers",
}


def normalise_equation_name(name: Any) -> str:
    """Return the canonical equation name."""

    text = str(name).strip().lower().replace("-", "_")
    text = _ALIASES.get(text, text)
    if text not in _REGISTRY:
        raise ConfigurationError(
            f"Unknown equation {name!r}; expected one of {sorted(_REGISTRY)}"
        )
    return text


def get_equation(name: str, **params: Any) -> Equation:
    """Instantiate an equation by name.

    Only the parameters a given equation accepts are forwarded; ``a`` is
    ignored for Burgers.
    """

    key = normalise_equation_name(name)
    if key == "advection":
        return Advection(a=float(params.get("a", constants.DEFAULT_ADVECTION_SPEED)))
    return _REGISTRY[key]()


def available_equations() -> list[str]:
    return sorted(_REGISTRY)


__all__ = [
    "Equation",
    "Advection",
    "InviscidBurgers",
    "KIND_CUSTOM",
    "KIND_ADVECTION",
    "KIND_BURGERS",
    "normalise_equation_name",
    "get_equation",
    "available_equations",
]
