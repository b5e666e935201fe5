"""Uniform one dimensional grid utilities.

Cells are addressed by their left coordinate ``x_i = x_min + i*dx`` over the
half-open range ``[x_min, x_max)``, so that a periodic domain does not repeat
the point ``x_max``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .errors import InitializationError

MIN_CELLS = 3


@dataclass(frozen=True)
class UniformGrid:
    """Equally spaced 1D grid.

    Parameters
    ----------
    x_min:
        Left edge of the domain.
    dx:
        Cell spacing.
    n_cells:
        Number of cells.
    """

    x_min: float
    dx: float
    n_cells: int

    def __post_init__(self) -> None:
        if not math.isfinite(self.x_min):
            raise InitializationError("x_min must be finite")
        if not math.isfinite(self.dx) or self.dx <= 0.0:
            raise InitializationError("dx must be positive and finite")
        if int(self.n_cells) < MIN_CELLS:
            raise InitializationError(f"grid needs at least {MIN_CELLS} cells (got {self.n_cells})")

    @classmethod
    def from_range(cls, x_min: float, x_max: float, dx: float) -> "UniformGrid":
        """Construct the grid covering ``[x_min, x_max)`` with spacing ``dx``."""

        x_min = float(x_min)
        x_max = float(x_max)
        dx = float(dx)
        if not (math.isfinite(x_min) and math.isfinite(x_max)):
            raise InitializationError("domain bounds must be finite")
        if x_min >= x_max:
            raise InitializationError("x_min must be less than x_max")
        if not math.isfinite(dx) or dx <= 0.0:
            raise InitializationError("dx must be positive and finite")
        n_cells = int(round((x_max - x_min) / dx))
        return cls(x_min=x_min, dx=dx, n_cells=n_cells)

    @property
    def x_max(self) -> float:
        return self.x_min + self.n_cells * self.dx

    @property
    def length(self) -> float:
        return self.n_cells * self.dx

    @property
    def x(self) -> np.ndarray:
        """Cell coordinates."""

        return self.x_min + self.dx * np.arange(self.n_cells, dtype=float)

    def sample(self, func: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
        """Evaluate ``func`` on the cell coordinates and return a float array."""

        values = np.asarray(func(self.x), dtype=float)
        if values.shape != (self.n_cells,):
            values = np.broadcast_to(values, (self.n_cells,)).astype(float)
        return values

    def integrate(self, values: np.ndarray) -> float:
        """Return the discrete total ``sum(u) * dx``."""

        return float(np.sum(values) * self.dx)


__all__ = ["UniformGrid", "MIN_CELLS"]
