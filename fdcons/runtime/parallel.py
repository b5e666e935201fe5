"""Resolution of the chunked cell-parallel settings."""
from __future__ import annotations

import logging
import math
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .helpers import env_flag, env_int

logger = logging.getLogger(__name__)

ENV_PARALLEL = "FDCONS_PARALLEL"
ENV_JOBS = "FDCONS_JOBS"
ENV_MIN_CELLS = "FDCONS_MIN_CELLS"
ENV_CHUNK_SIZE = "FDCONS_CHUNK_SIZE"


@dataclass(frozen=True)
class ParallelPlan:
    """Effective chunking decided for a run."""

    requested: bool
    enabled: bool
    reason: str
    jobs_requested: int
    jobs_effective: int
    chunk_size: int
    chunk_mode: str
    n_cells: int

    def chunks(self) -> List[range]:
        """Contiguous, disjoint cell ranges covering ``[0, n_cells)``."""

        return partition(self.n_cells, self.chunk_size)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_jobs() -> int:
    return max(int(os.cpu_count() or 1), 1)


def partition(n_cells: int, chunk_size: int) -> List[range]:
    """Split ``[0, n_cells)`` into consecutive ranges of at most ``chunk_size`` cells."""

    if n_cells <= 0:
        return []
    size = max(int(chunk_size), 1)
    return [range(start, min(start + size, n_cells)) for start in range(0, n_cells, size)]


def resolve_parallel_config(
    *,
    n_cells: int,
    parallel_requested: bool,
    jobs_requested: int,
    min_cells: int,
    chunk_size_raw: int,
) -> ParallelPlan:
    """Decide whether and how the grid is split across workers.

    Parallelism is disabled with a recorded reason when it was not requested,
    the grid is smaller than ``min_cells`` or only one job is available.
    Jobs are capped at the number of cells; ``chunk_size_raw <= 0`` selects
    ``ceil(n_cells / jobs)`` cells per chunk.
    """

    reason = "enabled"
    if not parallel_requested:
        reason = "not_requested"
    elif n_cells < min_cells:
        reason = "too_few_cells"
    elif jobs_requested <= 1:
        reason = "single_job"

    enabled = reason == "enabled"
    jobs_effective = jobs_requested
    if enabled:
        jobs_effective = max(1, min(jobs_effective, n_cells))
        if jobs_effective <= 1:
            enabled = False
            reason = "single_job"
            jobs_effective = 1
    else:
        jobs_effective = 1

    chunk_mode = "auto"
    if chunk_size_raw > 0 and enabled:
        chunk_mode = "fixed"
        chunk_size = chunk_size_raw
    else:
        chunk_size = int(math.ceil(n_cells / jobs_effective)) if jobs_effective > 0 else n_cells
    chunk_size = max(1, min(chunk_size, max(n_cells, 1)))

    return ParallelPlan(
        requested=bool(parallel_requested),
        enabled=enabled,
        reason=reason,
        jobs_requested=int(jobs_requested),
        jobs_effective=int(jobs_effective),
        chunk_size=int(chunk_size),
        chunk_mode=chunk_mode,
        n_cells=int(n_cells),
    )


def plan_from_settings(
    n_cells: int,
    *,
    parallel: bool,
    workers: Optional[int],
    min_cells: int = 4,
    chunk_size: int = 0,
    use_env: bool = True,
) -> ParallelPlan:
    """Resolve a :class:`ParallelPlan`, letting ``FDCONS_*`` variables override the inputs."""

    requested = bool(parallel)
    jobs = int(workers) if workers is not None else default_jobs()
    if use_env:
        flag = env_flag(os.environ.get(ENV_PARALLEL))
        if flag is not None:
            requested = flag
        jobs_env = env_int(ENV_JOBS)
        if jobs_env is not None:
            jobs = jobs_env
        min_env = env_int(ENV_MIN_CELLS)
        if min_env is not None:
            min_cells = min_env
        chunk_env = env_int(ENV_CHUNK_SIZE)
        if chunk_env is not None:
            chunk_size = chunk_env
    plan = resolve_parallel_config(
        n_cells=int(n_cells),
        parallel_requested=requested,
        jobs_requested=max(int(jobs), 1),
        min_cells=max(int(min_cells), 1),
        chunk_size_raw=int(chunk_size),
    )
    if plan.requested:
        logger.info(
            "cell-parallel: enabled=%s jobs=%s chunk=%s reason=%s",
            plan.enabled,
            plan.jobs_effective,
            plan.chunk_size,
            plan.reason,
        )
    return plan


__all__ = [
    "ParallelPlan",
    "ENV_PARALLEL",
    "ENV_JOBS",
    "ENV_MIN_CELLS",
    "ENV_CHUNK_SIZE",
    "default_jobs",
    "partition",
    "resolve_parallel_config",
    "plan_from_settings",
]
