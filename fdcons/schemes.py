"""Conservative finite-difference schemes.

Every scheme advances the cell values with the conservation form

.. math::

    u_j^{n+1} = u_j^n - \\frac{\\Delta t}{\\Delta x}
    \\left(h_{j+1/2} - h_{j-1/2}\\right)

and differs only in the numerical interface flux :math:`h`.  The flux
routines operate on a *window* ``w`` of the ghost-extended state that covers
the cells ``[lo - ghost, hi + ghost)``; window interface ``i`` sits between
``w[i]`` and ``w[i + 1]``.  Interfaces ``lo .. hi`` of the global grid are the
window interfaces ``ghost - 1 .. ghost - 1 + (hi - lo)``.
"""
from __future__ import annotations

from typing import Any, Dict, Type

import numpy as np

from .equations import Equation
from .errors import ConfigurationError

KIND_UPWIND = 0
KIND_LAX_WENDROFF = 1
KIND_LAX_FRIEDRICHS = 2
KIND_BEAM_WARMING = 3


def roe_speed(w: np.ndarray, fw: np.ndarray, equation: Equation) -> np.ndarray:
    """Return the discrete characteristic speed at every window interface.

    ``(f_{i+1} - f_i) / (u_{i+1} - u_i)`` where the jump is non-zero and
    ``f'(u_i)`` otherwise.
    """

    du = w[1:] - w[:-1]
    dfw = fw[1:] - fw[:-1]
    speed = np.array(equation.df(w[:-1]), dtype=float, copy=True)
    mask = du != 0.0
    speed[mask] = dfw[mask] / du[mask]
    return speed


class Scheme:
    """Base class; subclasses implement :meth:`interface_fluxes`."""

    name = "scheme"
    ghost = 1
    kind = -1

    def interface_fluxes(
        self,
        w: np.ndarray,
        fw: np.ndarray,
        nu: np.ndarray,
        dt_over_dx: float,
        equation: Equation,
        count: int,
    ) -> np.ndarray:
        """Return ``count`` interface fluxes starting at window interface ``ghost - 1``."""

        raise NotImplementedError

    def _pair(self, arr: np.ndarray, count: int) -> tuple[np.ndarray, np.ndarray]:
        g = self.ghost
        return arr[g - 1 : g - 1 + count], arr[g : g + count]

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Upwind(Scheme):
    """First-order upwind flux chosen by the sign of the local speed."""

    name = "upwind"
    kind = KIND_UPWIND

    def interface_fluxes(self, w, fw, nu, dt_over_dx, equation, count):
        f_left, f_right = self._pair(fw, count)
        nu_c = nu[self.ghost - 1 : self.ghost - 1 + count]
        return np.where(nu_c >= 0.0, f_left, f_right)


class LaxWendroff(Scheme):
    """Richtmyer two-step Lax-Wendroff flux.

    .. math::

        h_{j+1/2} = f\\left(\\frac{u_j + u_{j+1}}{2}
        - \\frac{\\Delta t}{2 \\Delta x}(f_{j+1} - f_j)\\right)
    """

    name = "lax_wendroff"
    kind = KIND_LAX_WENDROFF

    def interface_fluxes(self, w, fw, nu, dt_over_dx, equation, count):
        u_left, u_right = self._pair(w, count)
        f_left, f_right = self._pair(fw, count)
        u_half = 0.5 * (u_left + u_right) - 0.5 * dt_over_dx * (f_right - f_left)
        return equation.f(u_half)


class LaxFriedrichs(Scheme):
    """Lax-Friedrichs flux with numerical viscosity ``dx / (2 dt)``."""

    name = "lax_friedrichs"
    kind = KIND_LAX_FRIEDRICHS

    def interface_fluxes(self, w, fw, nu, dt_over_dx, equation, count):
        u_left, u_right = self._pair(w, count)
        f_left, f_right = self._pair(fw, count)
        return 0.5 * (f_left + f_right) - (0.5 / dt_over_dx) * (u_right - u_left)


class BeamWarming(Scheme):
    """Second-order upwind (Beam-Warming) flux.

    For a non-negative interface speed the flux extrapolates from the two
    upwind cells, ``h = f_j + (1 - nu_{j-1/2}) (f_j - f_{j-1}) / 2``; the
    mirrored stencil is used for negative speeds.
    """

    name = "beam_warming"
    ghost = 2
    kind = KIND_BEAM_WARMING

    def interface_fluxes(self, w, fw, nu, dt_over_dx, equation, count):
        g = self.ghost
        f_ll = fw[g - 2 : g - 2 + count]
        f_left = fw[g - 1 : g - 1 + count]
        f_right = fw[g : g + count]
        f_rr = fw[g + 1 : g + 1 + count]
        nu_m = nu[g - 2 : g - 2 + count]
        nu_c = nu[g - 1 : g - 1 + count]
        nu_p = nu[g : g + count]
        positive = f_left + 0.5 * (1.0 - nu_m) * (f_left - f_ll)
        negative = f_right - 0.5 * (1.0 + nu_p) * (f_rr - f_right)
        return np.where(nu_c >= 0.0, positive, negative)


_REGISTRY: Dict[str, Type[Scheme]] = {
    "upwind": Upwind,
    "lax_wendroff": LaxWendroff,
    "lax_friedrichs": LaxFriedrichs,
    "beam_warming": BeamWarming,
}

_ALIASES = {
    "laxwendroff": "lax_wendroff",
    "lw": "lax_wendroff",
    "laxfriedrichs": "lax_friedrichs",
    "lf": "lax_friedrichs",
    "beamwarming": "beam_warming",
    "bw": "beam_warming",
}


def normalise_scheme_name(name: Any) -> str:
    """Return the canonical scheme name."""

    text = str(name).strip().lower().replace("-", "_")
    text = _ALIASES.get(text, text)
    if text not in _REGISTRY:
        raise ConfigurationError(f"Unknown scheme {name!r}; expected one of {sorted(_REGISTRY)}")
    return text


def get_scheme(name: str) -> Scheme:
    return _REGISTRY[normalise_scheme_name(name)]()


def available_schemes() -> list[str]:
    return sorted(_REGISTRY)


__all__ = [
    "Scheme",
    "Upwind",
    "LaxWendroff",
    "LaxFriedrichs",
    "BeamWarming",
    "KIND_UPWIND",
    "KIND_LAX_WENDROFF",
    "KIND_LAX_FRIEDRICHS",
    "KIND_BEAM_WARMING",
    "roe_speed",
    "normalise_scheme_name",
    "get_scheme",
    "available_schemes",
]
