"""Configuration schema for conservation-law runs.

This module defines Pydantic models that mirror the structure of the YAML
configuration files read by :func:`fdcons.run.load_config`.  Every section
has defaults, so an empty mapping reproduces the reference example (square
pulse advected over the periodic domain ``[-3, 3)`` with Lax-Wendroff).

Example::

    domain:
      x_min: -3.0
      x_max: 3.0
      dx: 0.01
    numerics:
      cfl: 0.6
      t_end: 3.0
    equation:
      name: burgers
    scheme:
      name: upwind
    runner:
      mode: parallel
      workers: 4
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from . import constants
from .equations import normalise_equation_name
from .errors import ConfigurationError
from .initfields import normalise_initial_name
from .schemes import normalise_scheme_name

logger = logging.getLogger(__name__)


class Domain(BaseModel):
    """Spatial domain ``[x_min, x_max)`` and resolution."""

    x_min: float = Field(constants.DEFAULT_X_RANGE[0], description="Left edge of the domain")
    x_max: float = Field(constants.DEFAULT_X_RANGE[1], description="Right edge (excluded)")
    dx: float = Field(constants.DEFAULT_DX, gt=0.0, description="Cell spacing")

    @model_validator(mode="after")
    def _check_order(self) -> "Domain":
        if self.x_min >= self.x_max:
            raise ConfigurationError(f"domain.x_min ({self.x_min}) must be less than x_max ({self.x_max})")
        return self


class Numerics(BaseModel):
    """Time integration controls."""

    cfl: float = Field(constants.DEFAULT_CFL, gt=0.0, description="Courant number used when dt is not given")
    dt: Optional[float] = Field(None, gt=0.0, description="Explicit step size; overrides cfl")
    t_end: float = Field(constants.DEFAULT_T_END, ge=0.0, description="End time")
    n_steps: Optional[int] = Field(None, ge=0, description="Explicit number of steps; overrides t_end")
    cfl_check: bool = Field(True, description="Abort when a local Courant number exceeds one")
    check_finite: bool = Field(True, description="Abort when a step produces NaN or inf")
    backend: Literal["numpy", "numba", "auto"] = Field("numpy", description="Kernel backend")


class Boundary(BaseModel):
    """Boundary treatment; ``fixed`` holds the ghost cells at constant values."""

    mode: Literal["periodic", "fixed"] = "periodic"
    left: float = 0.0
    right: float = 0.0


class EquationConfig(BaseModel):
    name: str = "advection"
    a: float = Field(constants.DEFAULT_ADVECTION_SPEED, description="Advection speed (advection only)")

    @field_validator("name")
    @classmethod
    def _canonical_name(cls, value: str) -> str:
        return normalise_equation_name(value)


class SchemeConfig(BaseModel):
    name: str = "lax_wendroff"

    @field_validator("name")
    @classmethod
    def _canonical_name(cls, value: str) -> str:
        return normalise_scheme_name(value)


class Initial(BaseModel):
    """Initial condition name and its keyword parameters."""

    name: str = "square"
    params: Dict[str, float] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _canonical_name(cls, value: str) -> str:
        return normalise_initial_name(value)


class Runner(BaseModel):
    """Execution mode of the step loop."""

    mode: Literal["serial", "parallel"] = "serial"
    workers: Optional[int] = Field(None, ge=1, description="Worker threads; defaults to os.cpu_count()")
    chunk_size: int = Field(0, ge=0, description="Cells per chunk; 0 selects ceil(n / workers)")
    min_cells: int = Field(4, ge=1, description="Grids smaller than this run without the pool")


class Progress(BaseModel):
    enable: bool = False
    refresh_seconds: float = Field(1.0, gt=0.0)


class Animation(BaseModel):
    """GIF animation of the evolving state (matplotlib + Pillow)."""

    enable: bool = False
    frame_every: int = Field(5, ge=1)
    fps: int = Field(25, ge=1)
    y_range: Optional[List[float]] = Field(default_factory=lambda: [-1.5, 1.5])

    @field_validator("y_range")
    @classmethod
    def _two_limits(cls, value: Optional[List[float]]) -> Optional[List[float]]:
        if value is not None and len(value) != 2:
            raise ConfigurationError("io.animation.y_range must hold exactly two values")
        return value


class IO(BaseModel):
    outdir: Optional[Path] = Field(None, description="Output directory; nothing is written when unset")
    quiet: bool = False
    progress: Progress = Field(default_factory=Progress)
    write_series: bool = True
    write_state: bool = True
    plot_final: bool = False
    animation: Animation = Field(default_factory=Animation)


class Sweep(BaseModel):
    """Experiment matrix ``equations x initial x schemes``."""

    equations: List[str] = Field(default_factory=lambda: ["advection", "burgers"])
    initial: List[str] = Field(default_factory=lambda: ["sine", "square"])
    schemes: List[str] = Field(
        default_factory=lambda: ["upwind", "beam_warming", "lax_wendroff", "lax_friedrichs"]
    )
    jobs: int = Field(1, ge=1, description="Experiments run concurrently")

    @field_validator("equations")
    @classmethod
    def _equations(cls, value: List[str]) -> List[str]:
        return [normalise_equation_name(v) for v in value]

    @field_validator("initial")
    @classmethod
    def _initial(cls, value: List[str]) -> List[str]:
        return [normalise_initial_name(v) for v in value]

    @field_validator("schemes")
    @classmethod
    def _schemes(cls, value: List[str]) -> List[str]:
        return [normalise_scheme_name(v) for v in value]


class Config(BaseModel):
    """Top-level run configuration."""

    domain: Domain = Field(default_factory=Domain)
    numerics: Numerics = Field(default_factory=Numerics)
    boundary: Boundary = Field(default_factory=Boundary)
    equation: EquationConfig = Field(default_factory=EquationConfig)
    scheme: SchemeConfig = Field(default_factory=SchemeConfig)
    initial: Initial = Field(default_factory=Initial)
    runner: Runner = Field(default_factory=Runner)
    io: IO = Field(default_factory=IO)
    sweep: Optional[Sweep] = None

    @model_validator(mode="before")
    @classmethod
    def _reject_unknown_sections(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        unknown = sorted(str(key) for key in data if key not in known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {', '.join(unknown)}")
        return data


__all__ = [
    "Domain",
    "Numerics",
    "Boundary",
    "EquationConfig",
    "SchemeConfig",
    "Initial",
    "Runner",
    "Progress",
    "Animation",
    "IO",
    "Sweep",
    "Config",
]
