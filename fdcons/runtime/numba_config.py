"""Shared configuration helpers for the Numba enable/disable switch."""
from __future__ import annotations

import os
from typing import Mapping, Optional

from .helpers import env_flag

_DISABLE_ENV_VARS = (
    "FDCONS_NUMBA_DISABLE",
    "FDCONS_DISABLE_NUMBA",
)


def numba_disabled_env(env: Optional[Mapping[str, str]] = None) -> bool:
    """Return True when Numba is explicitly disabled via environment variables."""

    env_map = os.environ if env is None else env
    for key in _DISABLE_ENV_VARS:
        flag = env_flag(env_map.get(key))
        if flag is not None:
            return flag
    return False


def numba_status(backend_requested: str, backend_used: str, disabled_env: bool) -> dict[str, object]:
    """Standardise the backend payload recorded in run summaries."""

    return {
        "requested": str(backend_requested),
        "used": str(backend_used),
        "disabled_env": bool(disabled_env),
    }


__all__ = [
    "numba_disabled_env",
    "numba_status",
]
