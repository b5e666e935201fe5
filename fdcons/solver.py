"""Pure step function shared by the serial and the parallel runner.

:class:`SolverCore` separates *what* a step computes from *how* it is
scheduled.  A step is split into three phases:

1. :meth:`SolverCore.extend` builds a read-only ghost-extended snapshot of
   the current :class:`GridState`;
2. :meth:`SolverCore.update_range` writes the updated values of a contiguous
   range of cells into a fresh output buffer, reading only the snapshot;
3. :meth:`SolverCore.finalize` checks stability and publishes the buffer as
   the next immutable :class:`GridState`.

The serial runner performs phase 2 once over ``[0, n)``; the parallel runner
splits it into chunks.  Because every chunk applies exactly the same
element-wise operations to the same snapshot, both modes agree bit for bit.
"""
from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

import numpy as np

from . import constants
from .equations import Equation
from .errors import CFLViolationError, ConfigurationError, InitializationError, NumericalInstabilityError
from .grid import UniformGrid
from .runtime.numba_config import numba_disabled_env
from .schemes import Scheme, roe_speed
from .warnings import NumericalWarning

logger = logging.getLogger(__name__)

BoundaryMode = Literal["periodic", "fixed"]
Backend = Literal["numpy", "numba"]


@dataclass(frozen=True)
class Boundary:
    """Ghost cell policy.

    ``periodic`` wraps around the domain; ``fixed`` fills the ghost cells with
    the constant ``left``/``right`` values.
    """

    mode: BoundaryMode = "periodic"
    left: float = 0.0
    right: float = 0.0

    def __post_init__(self) -> None:
        if self.mode not in ("periodic", "fixed"):
            raise ConfigurationError(f"Unknown boundary mode {self.mode!r}")


@dataclass(frozen=True)
class StepParams:
    """Fixed update parameters of a run."""

    equation: Equation
    scheme: Scheme
    dt: float
    dx: float
    boundary: Boundary = field(default_factory=Boundary)
    cfl_check: bool = True
    check_finite: bool = True

    def __post_init__(self) -> None:
        if not math.isfinite(self.dt) or self.dt <= 0.0:
            raise InitializationError("dt must be positive and finite")
        if not math.isfinite(self.dx) or self.dx <= 0.0:
            raise InitializationError("dx must be positive and finite")

    @property
    def dt_over_dx(self) -> float:
        return self.dt / self.dx

    @property
    def ghost(self) -> int:
        return int(self.scheme.ghost)


@dataclass(frozen=True)
class GridState:
    """Immutable snapshot of the discrete solution.

    ``values`` is stored as a read-only float64 array; build new snapshots
    with :meth:`initial` or :meth:`advance` instead of mutating it.
    """

    values: np.ndarray
    step: int = 0
    time: float = 0.0

    def __post_init__(self) -> None:
        arr = np.asarray(self.values, dtype=float)
        if arr.ndim != 1:
            raise InitializationError("GridState values must be one-dimensional")
        if arr is self.values and arr.flags.writeable:
            arr = arr.copy()
        arr.flags.writeable = False
        object.__setattr__(self, "values", arr)

    @classmethod
    def initial(cls, values: np.ndarray, *, time: float = 0.0) -> "GridState":
        arr = np.array(values, dtype=float, copy=True)
        if arr.ndim != 1 or arr.size == 0:
            raise InitializationError("initial state must be a non-empty 1D array")
        if not np.all(np.isfinite(arr)):
            raise InitializationError("initial state contains non-finite values")
        arr.flags.writeable = False
        return cls(values=arr, step=0, time=float(time))

    @property
    def size(self) -> int:
        return int(self.values.size)

    def advance(self, values: np.ndarray, dt: float) -> "GridState":
        """Return the snapshot one step later; ``values`` is taken over."""

        if values.shape != self.values.shape:
            raise NumericalInstabilityError(
                f"step changed the grid size from {self.values.shape} to {values.shape}",
                step=self.step + 1,
            )
        values.flags.writeable = False
        return GridState(values=values, step=self.step + 1, time=self.time + dt)


def resolve_backend(requested: str, equation: Equation, scheme: Scheme) -> Backend:
    """Return the backend actually used for ``requested``.

    ``auto`` selects numba for the built-in equation/scheme pairs unless
    ``FDCONS_DISABLE_NUMBA`` is set; an explicit ``numba`` request for a
    custom equation is a configuration error.
    """

    text = str(requested or "numpy").strip().lower()
    if text not in ("numpy", "numba", "auto"):
        raise ConfigurationError(f"Unknown backend {requested!r}; expected numpy, numba or auto")
    if text == "numpy":
        return "numpy"
    if numba_disabled_env():
        if text == "numba":
            logger.info("numba backend disabled via environment; using numpy")
        return "numpy"
    from . import _numba_kernels

    if not _numba_kernels.supports(equation.kind, scheme.kind):
        if text == "numba":
            raise ConfigurationError(
                f"numba backend does not support {equation!r} with {scheme!r}"
            )
        return "numpy"
    return "numba"


class SolverCore:
    """Pure state-transition strategy ``step(state, params) -> state``."""

    def __init__(self, backend: Backend = "numpy") -> None:
        if backend not in ("numpy", "numba"):
            raise ConfigurationError(f"Unknown backend {backend!r}")
        self.backend = backend
        self._kernel = None
        if backend == "numba":
            from . import _numba_kernels

            _numba_kernels.warmup()
            self._kernel = _numba_kernels.update_range_numba

    def __repr__(self) -> str:
        return f"SolverCore(backend={self.backend!r})"

    @staticmethod
    def extend(values: np.ndarray, ghost: int, boundary: Boundary) -> np.ndarray:
        """Return a read-only copy of ``values`` padded with ``ghost`` cells per side."""

        n = values.size
        if ghost > n:
            raise InitializationError(f"grid of {n} cells is too small for {ghost} ghost cells")
        ext = np.empty(n + 2 * ghost, dtype=float)
        ext[ghost : ghost + n] = values
        if ghost > 0:
            if boundary.mode == "periodic":
                ext[:ghost] = values[n - ghost :]
                ext[ghost + n :] = values[:ghost]
            else:
                ext[:ghost] = boundary.left
                ext[ghost + n :] = boundary.right
        ext.flags.writeable = False
        return ext

    def update_range(
        self,
        u_ext: np.ndarray,
        params: StepParams,
        lo: int,
        hi: int,
        out: np.ndarray,
    ) -> float:
        """Write cells ``[lo, hi)`` of ``out`` and return the largest ``|nu|`` seen.

        Only ``u_ext`` is read and only ``out[lo:hi]`` is written, so disjoint
        ranges can run concurrently.
        """

        if hi <= lo:
            return 0.0
        g = params.ghost
        dtdx = params.dt_over_dx
        if self._kernel is not None:
            return float(
                self._kernel(
                    int(params.equation.kind),
                    float(params.equation.speed_param),
                    int(params.scheme.kind),
                    u_ext,
                    g,
                    dtdx,
                    int(lo),
                    int(hi),
                    out,
                )
            )
        count = hi - lo + 1
        with np.errstate(over="ignore", invalid="ignore"):
            w = u_ext[lo : hi + 2 * g]
            fw = np.asarray(params.equation.f(w), dtype=float)
            nu = roe_speed(w, fw, params.equation) * dtdx
            h = params.scheme.interface_fluxes(w, fw, nu, dtdx, params.equation, count)
            out[lo:hi] = w[g : g + hi - lo] - dtdx * (h[1:] - h[:-1])
            nu_used = nu[g - 1 : g - 1 + count]
        if nu_used.size == 0:
            return 0.0
        max_nu = float(np.max(np.abs(nu_used)))
        if math.isnan(max_nu):
            return math.inf
        return max_nu

    def finalize(
        self,
        state: GridState,
        new_values: np.ndarray,
        max_courant: float,
        params: StepParams,
    ) -> GridState:
        """Validate ``new_values`` and wrap them as the next snapshot."""

        step_no = state.step + 1
        if params.check_finite:
            bad = np.flatnonzero(~np.isfinite(new_values))
            if bad.size:
                raise NumericalInstabilityError(
                    f"non-finite value at cell {int(bad[0])} after step {step_no}",
                    step=step_no,
                    index=int(bad[0]),
                )
        if params.cfl_check:
            check_courant(max_courant, step=step_no)
        return state.advance(new_values, params.dt)

    def step_with_courant(self, state: GridState, params: StepParams) -> Tuple[GridState, float]:
        """Advance ``state`` over the whole grid; also return the largest ``|nu|``."""

        u_ext = self.extend(state.values, params.ghost, params.boundary)
        out = np.empty_like(state.values)
        max_nu = self.update_range(u_ext, params, 0, state.size, out)
        return self.finalize(state, out, max_nu, params), max_nu

    def step(self, state: GridState, params: StepParams) -> GridState:
        """Advance ``state`` by one step over the whole grid."""

        return self.step_with_courant(state, params)[0]


def check_courant(max_courant: float, *, step: Optional[int] = None) -> None:
    """Raise :class:`CFLViolationError` when ``max_courant`` exceeds one."""

    if not math.isfinite(max_courant) or max_courant > 1.0 + 1.0e-12:
        raise CFLViolationError(
            f"Check the CFL condition: max |nu| = {max_courant:.6g} at step {step}",
            max_courant=max_courant,
            step=step,
        )


def warn_if_marginal_cfl(cfl: float) -> None:
    """Emit a :class:`NumericalWarning` for Courant numbers close to the limit."""

    if cfl >= constants.CFL_WARN_FRACTION:
        warnings.warn(
            f"Courant number {cfl:.3g} is close to the stability limit",
            NumericalWarning,
            stacklevel=2,
        )


def build_params(
    grid: UniformGrid,
    equation: Equation,
    scheme: Scheme,
    dt: float,
    *,
    boundary: Optional[Boundary] = None,
    cfl_check: bool = True,
    check_finite: bool = True,
) -> StepParams:
    """Bundle the step parameters for ``grid``."""

    if scheme.ghost > grid.n_cells:
        raise InitializationError(
            f"{scheme!r} needs at least {scheme.ghost} cells (grid has {grid.n_cells})"
        )
    return StepParams(
        equation=equation,
        scheme=scheme,
        dt=float(dt),
        dx=float(grid.dx),
        boundary=boundary or Boundary(),
        cfl_check=cfl_check,
        check_finite=check_finite,
    )


def state_checksum(state: GridState) -> Tuple[float, float]:
    """Return ``(sum, sum of squares)`` used to compare final states cheaply."""

    values = state.values
    return float(np.sum(values)), float(np.sum(values * values))


__all__ = [
    "Boundary",
    "StepParams",
    "GridState",
    "SolverCore",
    "resolve_backend",
    "check_courant",
    "warn_if_marginal_cfl",
    "build_params",
    "state_checksum",
]
