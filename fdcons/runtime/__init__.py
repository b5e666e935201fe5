"""Runtime helpers used by the runners."""

from .progress import ProgressReporter
from .history import ColumnarBuffer, RunHistory
from .parallel import ParallelPlan, partition, plan_from_settings, resolve_parallel_config
from .helpers import (
    env_flag,
    env_int,
    format_exception_short,
    format_seconds,
    log_stage,
)

__all__ = [
    "ProgressReporter",
    "ColumnarBuffer",
    "RunHistory",
    "ParallelPlan",
    "partition",
    "plan_from_settings",
    "resolve_parallel_config",
    "env_flag",
    "env_int",
    "format_exception_short",
    "format_seconds",
    "log_stage",
]
