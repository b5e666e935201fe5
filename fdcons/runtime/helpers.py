"""Shared helper functions for runners and the CLI."""
from __future__ import annotations

import math
import os
from typing import Optional

_TRUTHY = {"1", "true", "yes", "on", "enable", "enabled"}
_FALSY = {"0", "false", "no", "off", "disable", "disabled"}


def env_flag(value: Optional[str]) -> Optional[bool]:
    """Interpret an environment string as a boolean; None when unset or unknown."""

    if value is None:
        return None
    text = value.strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    return None


def env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def format_exception_short(exc: BaseException) -> str:
    """Return a concise exception string."""

    name = exc.__class__.__name__
    return f"{name}: {exc}"


def format_seconds(seconds: float) -> str:
    """Render a duration as ``m:ss.ss`` above one minute, ``s.sss`` below."""

    if not math.isfinite(seconds) or seconds < 0.0:
        return "?"
    if seconds >= 60.0:
        minutes = int(seconds // 60.0)
        return f"{minutes}:{seconds - 60.0 * minutes:05.2f}"
    return f"{seconds:.3f}"


def log_stage(logger_obj, label: str, *, extra: dict | None = None) -> None:
    """Lightweight stage logger wrapper."""

    if logger_obj is None:
        return
    if extra:
        logger_obj.info("stage=%s %s", label, extra)
    else:
        logger_obj.info("stage=%s", label)


__all__ = [
    "env_flag",
    "env_int",
    "format_exception_short",
    "format_seconds",
    "log_stage",
]
