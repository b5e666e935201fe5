"""Default numerical parameters for the conservation-law examples.

The defaults reproduce the reference example: a periodic domain
``[-3, 3)`` resolved with ``dx = 1e-2`` and advanced to ``t = 3`` with a
Courant number of ``0.6``.
"""
from __future__ import annotations

from typing import Tuple

# Spatial domain (half-open) and resolution
DEFAULT_X_RANGE: Tuple[float, float] = (-3.0, 3.0)
DEFAULT_DX: float = 1.0e-2

# Time integration
DEFAULT_CFL: float = 0.6
DEFAULT_T_END: float = 3.0

# Advection speed of the linear advection equation
DEFAULT_ADVECTION_SPEED: float = 1.0

# A run never takes more steps than this
MAX_STEPS: int = 50_000_000

# Courant numbers above this fraction of the limit emit a NumericalWarning
CFL_WARN_FRACTION: float = 0.95

# Relative drift of sum(u)*dx tolerated with --enforce-mass-budget
MASS_BUDGET_TOLERANCE: float = 1.0e-10

# Slack applied when truncating t_end/dt to a step count
STEP_COUNT_EPS: float = 1.0e-9

__all__ = [
    "DEFAULT_X_RANGE",
    "DEFAULT_DX",
    "DEFAULT_CFL",
    "DEFAULT_T_END",
    "DEFAULT_ADVECTION_SPEED",
    "MAX_STEPS",
    "CFL_WARN_FRACTION",
    "MASS_BUDGET_TOLERANCE",
    "STEP_COUNT_EPS",
]
