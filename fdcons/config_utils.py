"""Helper utilities for normalising configuration inputs."""
from __future__ import annotations

import logging
import math
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from . import constants
from .equations import Equation, get_equation
from .errors import ConfigurationError
from .grid import UniformGrid
from .initfields import sample_initial
from .schema import Config
from .schemes import Scheme, get_scheme
from .run_parallel import ParallelRunner
from .run_serial import SerialRunner
from .runtime import env_flag
from .runtime.parallel import ENV_PARALLEL
from .runtime.numba_config import numba_disabled_env, numba_status
from .solver import Boundary, GridState, SolverCore, StepParams, build_params, resolve_backend, warn_if_marginal_cfl

logger = logging.getLogger(__name__)


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    if lower in {"nan"}:
        return float("nan")
    if lower in {"inf", "+inf", "+infinity", "infinity"}:
        return float("inf")
    if lower in {"-inf", "-infinity"}:
        return float("-inf")
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    if text.startswith("[") and text.endswith("]"):
        inner = text[1:-1].strip()
        if not inner:
            return []
        return [parse_override_value(part) for part in inner.split(",")]
    return text


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply dotted-path overrides (``numerics.cfl=0.4``) to a configuration mapping."""

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        path = key.strip()
        parts = [segment for segment in path.split(".") if segment]
        if not parts:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        target: Any = payload
        for segment in parts[:-1]:
            if not isinstance(target, dict):
                raise ConfigurationError(
                    f"Cannot traverse into non-mapping for override '{item}' at '{segment}'"
                )
            if segment not in target or target[segment] is None:
                target[segment] = {}
            target = target[segment]
        if not isinstance(target, dict):
            raise ConfigurationError(f"Cannot set override '{item}'; target is not a mapping")
        target[parts[-1]] = parse_override_value(value_str)
    return payload


def read_overrides_file(path: Path) -> List[str]:
    """Return ``PATH=VALUE`` lines from ``path``, skipping blanks and ``#`` comments."""

    lines: List[str] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for raw in fh:
            text = raw.strip()
            if not text or text.startswith("#"):
                continue
            lines.append(text)
    return lines


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Configure root logging and optionally silence Python warnings."""

    logging.basicConfig(level=level)
    root = logging.getLogger()
    root.setLevel(level)
    if suppress_warnings:
        warnings.filterwarnings("ignore")
    logging.captureWarnings(True)


@dataclass
class TimeGridInfo:
    """Resolved time stepping.

    Attributes
    ----------
    dt : float
        Step size.
    n_steps : int
        Number of steps to take.
    t_end : float
        ``n_steps * dt``, the time actually reached.
    dt_mode : str
        ``"cfl"`` when derived from ``cfl * dx / |a_max|``, ``"explicit"`` otherwise.
    cfl_nominal : float
        ``|a_max| * dt / dx`` with the initial speeds.
    """

    dt: float
    n_steps: int
    t_end: float
    dt_mode: str
    cfl_nominal: float


def resolve_time_grid(cfg: Config, grid: UniformGrid, max_speed: float = 1.0) -> TimeGridInfo:
    """Resolve ``dt`` and the step count from the numerics section.

    Without an explicit ``dt`` the step follows the reference example,
    ``dt = cfl * dx``, scaled down when the largest initial speed exceeds one.
    """

    numerics = cfg.numerics
    speed = abs(float(max_speed)) if math.isfinite(max_speed) else 1.0
    if numerics.dt is not None:
        dt = float(numerics.dt)
        dt_mode = "explicit"
    else:
        dt = float(numerics.cfl) * grid.dx / max(speed, 1.0)
        dt_mode = "cfl"
    if not math.isfinite(dt) or dt <= 0.0:
        raise ConfigurationError("dt must be positive and finite")
    if numerics.n_steps is not None:
        n_steps = int(numerics.n_steps)
    else:
        n_steps = int(math.floor(float(numerics.t_end) / dt + constants.STEP_COUNT_EPS))
    if n_steps < 0:
        raise ConfigurationError("number of steps must be non-negative")
    if n_steps > constants.MAX_STEPS:
        raise ConfigurationError(f"{n_steps} steps exceed MAX_STEPS={constants.MAX_STEPS}")
    return TimeGridInfo(
        dt=dt,
        n_steps=n_steps,
        t_end=n_steps * dt,
        dt_mode=dt_mode,
        cfl_nominal=speed * dt / grid.dx,
    )


@dataclass
class RunSetup:
    """Everything a runner needs, built from a :class:`Config`."""

    grid: UniformGrid
    equation: Equation
    scheme: Scheme
    params: StepParams
    state: GridState
    time_grid: TimeGridInfo
    backend: str = "numpy"

    def backend_status(self, requested: str) -> Dict[str, object]:
        return numba_status(requested, self.backend, numba_disabled_env())


def build_setup(cfg: Config) -> RunSetup:
    """Construct grid, equation, scheme, step parameters and initial state."""

    grid = UniformGrid.from_range(cfg.domain.x_min, cfg.domain.x_max, cfg.domain.dx)
    equation = get_equation(cfg.equation.name, a=cfg.equation.a)
    scheme = get_scheme(cfg.scheme.name)
    values = sample_initial(grid, cfg.initial.name, **cfg.initial.params)
    state = GridState.initial(values)
    with np.errstate(over="ignore", invalid="ignore"):
        max_speed = float(np.max(np.abs(equation.df(values))))
    time_grid = resolve_time_grid(cfg, grid, max_speed=max_speed)
    if cfg.numerics.cfl_check:
        warn_if_marginal_cfl(time_grid.cfl_nominal)
    boundary = Boundary(mode=cfg.boundary.mode, left=cfg.boundary.left, right=cfg.boundary.right)
    params = build_params(
        grid,
        equation,
        scheme,
        time_grid.dt,
        boundary=boundary,
        cfl_check=cfg.numerics.cfl_check,
        check_finite=cfg.numerics.check_finite,
    )
    logger.debug(
        "setup: n_cells=%d dt=%g n_steps=%d equation=%r scheme=%r",
        grid.n_cells,
        time_grid.dt,
        time_grid.n_steps,
        equation,
        scheme,
    )
    return RunSetup(
        grid=grid,
        equation=equation,
        scheme=scheme,
        params=params,
        state=state,
        time_grid=time_grid,
        backend=resolve_backend(cfg.numerics.backend, equation, scheme),
    )


def make_runner(
    cfg: Config,
    setup: RunSetup,
    *,
    mode: Optional[str] = None,
    workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
    use_env: bool = True,
) -> SerialRunner:
    """Return the runner selected by ``runner.mode`` (or ``mode``) for ``setup``.

    ``workers`` and ``chunk_size`` take precedence over the runner section.
    """

    selected = (mode or cfg.runner.mode).strip().lower()
    if mode is None and use_env and env_flag(os.environ.get(ENV_PARALLEL)):
        selected = "parallel"
    core = SolverCore(setup.backend)
    if selected == "serial":
        return SerialRunner(setup.params, core=core)
    if selected == "parallel":
        return ParallelRunner(
            setup.params,
            workers=workers if workers is not None else cfg.runner.workers,
            chunk_size=chunk_size if chunk_size is not None else cfg.runner.chunk_size,
            min_cells=cfg.runner.min_cells,
            core=core,
            use_env=use_env,
        )
    raise ConfigurationError(f"Unknown runner mode {selected!r}; expected serial or parallel")


__all__ = [
    "parse_override_value",
    "apply_overrides_dict",
    "read_overrides_file",
    "configure_logging",
    "TimeGridInfo",
    "resolve_time_grid",
    "RunSetup",
    "build_setup",
    "make_runner",
]
