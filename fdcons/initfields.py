"""Initial conditions sampled on a :class:`~fdcons.grid.UniformGrid`."""
from __future__ import annotations

import math
from typing import Any, Callable, Dict

import numpy as np

from .errors import ConfigurationError
from .grid import UniformGrid

InitFunc = Callable[[np.ndarray], np.ndarray]


def sine(*, amplitude: float = 1.0, wavenumber: float = 1.0, offset: float = 0.0, **_: Any) -> InitFunc:
    """``offset + amplitude * sin(pi * k * x)``."""

    def _init(x: np.ndarray) -> np.ndarray:
        return offset + amplitude * np.sin(math.pi * wavenumber * x)

    return _init


def square(
    *,
    amplitude: float = 1.0,
    left: float = 0.0,
    right: float = 1.0,
    offset: float = 0.0,
    **_: Any,
) -> InitFunc:
    """``offset + amplitude`` on ``[left, right]``, ``offset`` elsewhere."""

    if left > right:
        raise ConfigurationError("square pulse requires left <= right")

    def _init(x: np.ndarray) -> np.ndarray:
        inside = (x >= left) & (x <= right)
        return np.where(inside, offset + amplitude, offset)

    return _init


def gaussian(
    *,
    amplitude: float = 1.0,
    center: float = 0.0,
    width: float = 0.25,
    offset: float = 0.0,
    **_: Any,
) -> InitFunc:
    if width <= 0.0:
        raise ConfigurationError("gaussian width must be positive")

    def _init(x: np.ndarray) -> np.ndarray:
        return offset + amplitude * np.exp(-0.5 * ((x - center) / width) ** 2)

    return _init


def constant(*, value: float = 1.0, **_: Any) -> InitFunc:
    """Uniform state; a steady state of every scheme."""

    def _init(x: np.ndarray) -> np.ndarray:
        return np.full_like(x, float(value), dtype=float)

    return _init


_REGISTRY: Dict[str, Callable[..., InitFunc]] = {
    "sine": sine,
    "square": square,
    "gaussian": gaussian,
    "constant": constant,
}


def normalise_initial_name(name: Any) -> str:
    text = str(name).strip().lower()
    if text not in _REGISTRY:
        raise ConfigurationError(f"Unknown initial condition {name!r}; expected one of {sorted(_REGISTRY)}")
    return text


def get_initial(name: str, **params: Any) -> InitFunc:
    return _REGISTRY[normalise_initial_name(name)](**params)


def sample_initial(grid: UniformGrid, name: str, **params: Any) -> np.ndarray:
    """Return the named initial condition evaluated on ``grid``."""

    values = grid.sample(get_initial(name, **params))
    if not np.all(np.isfinite(values)):
        raise ConfigurationError(f"initial condition {name!r} produced non-finite values")
    return values


def available_initials() -> list[str]:
    return sorted(_REGISTRY)


__all__ = [
    "sine",
    "square",
    "gaussian",
    "constant",
    "normalise_initial_name",
    "get_initial",
    "sample_initial",
    "available_initials",
]
