"""Wall-clock and CPU timing of the step loop."""
from __future__ import annotations

import logging
import math
import os
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .config_utils import build_setup, make_runner
from .errors import InitializationError
from .runtime import ProgressReporter, RunHistory, format_seconds
from .run_serial import SerialRunner
from .schema import Config
from .solver import GridState, state_checksum

logger = logging.getLogger(__name__)

DEFAULT_SCAN_WORKERS = (1, 2, 4, 8)


@dataclass
class BenchReport:
    """Timing of one runner invocation.

    ``cpu_s`` is the thread CPU time of the runner itself: the calling
    thread plus the chunk updates on its pool.  ``user_s`` and ``system_s``
    come from :func:`os.times` and cover every thread of the process; they
    are ``nan`` when the run shares the process with other runs.
    ``worker_cpu_s`` only sums the thread CPU time spent inside the step
    updates.
    """

    mode: str
    workers: int
    steps: int
    n_cells: int
    wall_s: float
    user_s: float
    system_s: float
    cpu_s: float
    cpu_percent: float
    worker_cpu_s: float

    @property
    def process_scoped(self) -> bool:
        return math.isfinite(self.user_s) and math.isfinite(self.system_s)

    def summary_line(self) -> str:
        """Return a ``time(1)``-style line."""

        head = f"{self.mode} workers={self.workers} steps={self.steps} cells={self.n_cells}  "
        if self.process_scoped:
            usage = f"{self.user_s:.2f}s user {self.system_s:.2f}s system "
        else:
            usage = f"{self.cpu_s:.2f}s thread "
        return f"{head}{usage}{self.cpu_percent:.0f}% cpu {format_seconds(self.wall_s)} total"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class BenchRunner:
    """Run a serial or parallel runner to completion and time it.

    Pass ``process_times=False`` when other runs execute concurrently in the
    same process; the process-wide user/system split is then omitted.
    """

    def __init__(self, runner: SerialRunner, *, process_times: bool = True) -> None:
        self.runner = runner
        self.process_times = bool(process_times)

    def run(
        self,
        state: GridState,
        n_steps: int,
        *,
        history: Optional[RunHistory] = None,
        progress: Optional[ProgressReporter] = None,
    ) -> Tuple[GridState, BenchReport]:
        times_start = os.times()
        thread_start = time.thread_time()
        wall_start = time.perf_counter()
        worker_before = self.runner.worker_cpu_s
        offthread_before = self.runner.offthread_cpu_s
        final = self.runner.run(state, n_steps, history=history, progress=progress)
        wall = time.perf_counter() - wall_start
        caller_cpu = time.thread_time() - thread_start
        times_end = os.times()
        cpu = caller_cpu + (self.runner.offthread_cpu_s - offthread_before)
        if self.process_times:
            user = times_end.user - times_start.user
            system = times_end.system - times_start.system
        else:
            user = system = math.nan
        report = BenchReport(
            mode=self.runner.mode,
            workers=self.runner.workers,
            steps=int(n_steps),
            n_cells=state.size,
            wall_s=wall,
            user_s=user,
            system_s=system,
            cpu_s=cpu,
            cpu_percent=100.0 * cpu / wall if wall > 0.0 else 0.0,
            worker_cpu_s=self.runner.worker_cpu_s - worker_before,
        )
        logger.info("bench: %s", report.summary_line())
        return final, report


def scan_workers(
    cfg: Config,
    workers: Iterable[int] = DEFAULT_SCAN_WORKERS,
    *,
    n_steps: Optional[int] = None,
    chunk_size: Optional[int] = None,
) -> pd.DataFrame:
    """Time the parallel runner for each worker count in ``workers``.

    One row per worker count; ``checksum_sum``/``checksum_sq`` and
    ``max_abs_diff`` (against the first row) expose whether the final
    states agree.
    """

    counts = [int(w) for w in workers]
    if not counts:
        raise InitializationError("scan_workers needs at least one worker count")
    if any(w < 1 for w in counts):
        raise InitializationError(f"worker counts must be positive (got {counts})")
    setup = build_setup(cfg)
    steps = setup.time_grid.n_steps if n_steps is None else int(n_steps)
    rows: List[Dict[str, Any]] = []
    reference: Optional[np.ndarray] = None
    for count in counts:
        runner = make_runner(
            cfg,
            setup,
            mode="parallel",
            workers=count,
            chunk_size=chunk_size,
            use_env=False,
        )
        final, report = BenchRunner(runner).run(setup.state, steps)
        if reference is None:
            reference = final.values
        total, squares = state_checksum(final)
        row = report.to_dict()
        row.update(
            {
                "workers_requested": count,
                "checksum_sum": total,
                "checksum_sq": squares,
                "max_abs_diff": float(np.max(np.abs(final.values - reference))),
            }
        )
        rows.append(row)
    return pd.DataFrame(rows)


__all__ = ["BenchReport", "BenchRunner", "scan_workers", "DEFAULT_SCAN_WORKERS"]
