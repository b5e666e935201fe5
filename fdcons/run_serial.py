"""Single-threaded step loop."""
from __future__ import annotations

import logging
import time
from typing import Optional

from .errors import InitializationError
from .runtime import ProgressReporter, RunHistory, log_stage
from .solver import GridState, SolverCore, StepParams

logger = logging.getLogger(__name__)


class SerialRunner:
    """Advance a :class:`GridState` by calling the solver on the whole grid.

    Subclasses only replace :meth:`advance`; the loop, the history and the
    progress hooks are shared so that every runner records the same series.
    """

    mode = "serial"

    def __init__(self, params: StepParams, *, core: Optional[SolverCore] = None) -> None:
        self.params = params
        self.core = core if core is not None else SolverCore()
        self.last_courant = 0.0
        self.steps_done = 0
        self.worker_cpu_s = 0.0
        # thread CPU spent off the calling thread (pool workers)
        self.offthread_cpu_s = 0.0

    @property
    def workers(self) -> int:
        return 1

    def __enter__(self) -> "SerialRunner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release resources held between steps (none for the serial runner)."""

    def prepare(self, state: GridState) -> None:
        """Hook called once before the first step of :meth:`run`."""

    def advance(self, state: GridState) -> GridState:
        """Return the state one step later."""

        cpu_start = time.thread_time()
        try:
            new_state, max_nu = self.core.step_with_courant(state, self.params)
        finally:
            self.worker_cpu_s += time.thread_time() - cpu_start
        self.last_courant = max_nu
        return new_state

    def run(
        self,
        state: GridState,
        n_steps: int,
        *,
        history: Optional[RunHistory] = None,
        progress: Optional[ProgressReporter] = None,
    ) -> GridState:
        """Advance ``state`` by ``n_steps`` steps and return the final snapshot.

        ``n_steps == 0`` returns ``state`` itself.
        """

        n_steps = int(n_steps)
        if n_steps < 0:
            raise InitializationError(f"n_steps must be non-negative (got {n_steps})")
        log_stage(logger, f"{self.mode}_start", extra={"n_cells": state.size, "n_steps": n_steps})
        if history is not None:
            history.record(state.step, state.time, state.values, 0.0)
        self.prepare(state)
        if progress is not None:
            progress.begin(state)
        try:
            for _ in range(n_steps):
                state = self.advance(state)
                self.steps_done += 1
                if history is not None:
                    history.record(state.step, state.time, state.values, self.last_courant)
                if progress is not None:
                    progress.update(state)
        finally:
            self.close()
        if progress is not None:
            progress.finish(state)
        log_stage(logger, f"{self.mode}_done", extra={"step": state.step, "time": state.time})
        return state


def run_serial(state: GridState, params: StepParams, n_steps: int, *, core: Optional[SolverCore] = None) -> GridState:
    """Convenience wrapper around :class:`SerialRunner`."""

    return SerialRunner(params, core=core).run(state, n_steps)


__all__ = ["SerialRunner", "run_serial"]
