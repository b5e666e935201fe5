"""Chunked multi-threaded step loop.

Each step builds one read-only ghost-extended snapshot, hands contiguous cell
ranges to a fixed :class:`~concurrent.futures.ThreadPoolExecutor` and waits
for every range before the next step starts.  Workers write disjoint slices
of a fresh output buffer, so the previous snapshot is never modified and a
failing step leaves it intact.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Optional, Tuple

import numpy as np

from .errors import WorkerError
from .runtime import ParallelPlan, format_exception_short, plan_from_settings
from .run_serial import SerialRunner
from .solver import GridState, SolverCore, StepParams

logger = logging.getLogger(__name__)


class ParallelRunner(SerialRunner):
    """Advance a :class:`GridState` with the grid split across worker threads.

    Parameters
    ----------
    params:
        Step parameters shared by all chunks.
    workers:
        Pool size; defaults to ``os.cpu_count()``.
    chunk_size:
        Cells per chunk; ``0`` gives one chunk per worker.
    min_cells:
        Grids with fewer cells are updated inline without the pool.
    use_env:
        Let the ``FDCONS_*`` environment variables override the settings.
    """

    mode = "parallel"

    def __init__(
        self,
        params: StepParams,
        *,
        workers: Optional[int] = None,
        chunk_size: int = 0,
        min_cells: int = 4,
        core: Optional[SolverCore] = None,
        use_env: bool = False,
    ) -> None:
        super().__init__(params, core=core)
        self.workers_requested = workers
        self.chunk_size = int(chunk_size)
        self.min_cells = int(min_cells)
        self.use_env = bool(use_env)
        self.plan: Optional[ParallelPlan] = None
        self._chunks: List[Tuple[int, int]] = []
        self._pool: Optional[ThreadPoolExecutor] = None

    @property
    def workers(self) -> int:
        if self.plan is not None:
            return self.plan.jobs_effective
        return int(self.workers_requested or 1)

    def prepare(self, state: GridState) -> None:
        """Resolve the chunk plan for ``state`` and start the pool."""

        plan = plan_from_settings(
            state.size,
            parallel=True,
            workers=self.workers_requested,
            min_cells=self.min_cells,
            chunk_size=self.chunk_size,
            use_env=self.use_env,
        )
        self.plan = plan
        self._chunks = [(r.start, r.stop) for r in plan.chunks()]
        if plan.enabled and self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=plan.jobs_effective,
                thread_name_prefix="fdcons-worker",
            )
        logger.debug(
            "parallel plan: enabled=%s reason=%s jobs=%d chunks=%d",
            plan.enabled,
            plan.reason,
            plan.jobs_effective,
            len(self._chunks),
        )

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def _run_chunk(self, u_ext: np.ndarray, lo: int, hi: int, out: np.ndarray) -> Tuple[float, float]:
        cpu_start = time.thread_time()
        max_nu = self.core.update_range(u_ext, self.params, lo, hi, out)
        return max_nu, time.thread_time() - cpu_start

    def advance(self, state: GridState) -> GridState:
        if self.plan is None or self.plan.n_cells != state.size:
            self.prepare(state)
        u_ext = self.core.extend(state.values, self.params.ghost, self.params.boundary)
        out = np.empty_like(state.values)

        if self._pool is None:
            max_nu, cpu = self._run_chunk(u_ext, 0, state.size, out)
            self.worker_cpu_s += cpu
            new_state = self.core.finalize(state, out, max_nu, self.params)
            self.last_courant = max_nu
            return new_state

        futures: List[Future] = [
            self._pool.submit(self._run_chunk, u_ext, lo, hi, out) for lo, hi in self._chunks
        ]
        wait(futures)

        failures: List[Tuple[int, int, BaseException]] = []
        max_nu = 0.0
        for (lo, hi), fut in zip(self._chunks, futures):
            exc = fut.exception()
            if exc is not None:
                failures.append((lo, hi, exc))
                continue
            chunk_nu, cpu = fut.result()
            self.worker_cpu_s += cpu
            self.offthread_cpu_s += cpu
            if chunk_nu > max_nu or chunk_nu != chunk_nu:
                max_nu = chunk_nu
        if failures:
            step_no = state.step + 1
            for lo, hi, exc in failures:
                logger.error(
                    "worker failed on cells [%d, %d) at step %d: %s",
                    lo,
                    hi,
                    step_no,
                    format_exception_short(exc),
                )
            raise WorkerError(
                f"{len(failures)} of {len(self._chunks)} chunks failed at step {step_no}",
                step=step_no,
                failures=failures,
                last_state=state,
            ) from failures[0][2]

        new_state = self.core.finalize(state, out, max_nu, self.params)
        self.last_courant = max_nu
        return new_state


def run_parallel(
    state: GridState,
    params: StepParams,
    n_steps: int,
    *,
    workers: Optional[int] = None,
    chunk_size: int = 0,
    core: Optional[SolverCore] = None,
) -> GridState:
    """Convenience wrapper around :class:`ParallelRunner`."""

    runner = ParallelRunner(params, workers=workers, chunk_size=chunk_size, core=core)
    return runner.run(state, n_steps)


__all__ = ["ParallelRunner", "run_parallel"]
