from __future__ import annotations

import math
import threading
import time

import numpy as np

from fdcons.bench import BenchReport, BenchRunner
from fdcons.equations import Advection
from fdcons.run_serial import SerialRunner
from fdcons.schemes import Upwind
from fdcons.solver import GridState, StepParams


def _report(**overrides) -> BenchReport:
    payload = dict(
        mode="parallel",
        workers=4,
        steps=500,
        n_cells=600,
        wall_s=0.25,
        user_s=0.8,
        system_s=0.02,
        cpu_s=0.82,
        cpu_percent=328.0,
        worker_cpu_s=0.75,
    )
    payload.update(overrides)
    return BenchReport(**payload)


def test_summary_line_follows_time_format() -> None:
    line = _report().summary_line()

    assert line == "parallel workers=4 steps=500 cells=600  0.80s user 0.02s system 328% cpu 0.250 total"


def test_summary_line_uses_minutes_for_long_runs() -> None:
    assert _report(wall_s=75.5).summary_line().endswith("1:15.50 total")


def test_bench_runner_reports_serial_run() -> None:
    params = StepParams(Advection(), Upwind(), dt=0.05, dx=0.1)
    state = GridState.initial(np.linspace(0.0, 1.0, 10))

    final, report = BenchRunner(SerialRunner(params)).run(state, 3)

    assert final.step == 3
    assert report.mode == "serial"
    assert report.workers == 1
    assert report.steps == 3
    assert report.n_cells == 10
    assert report.wall_s >= 0.0
    assert report.cpu_s >= report.worker_cpu_s >= 0.0
    assert report.user_s >= 0.0
    assert report.to_dict()["mode"] == "serial"


class _SleepingRunner(SerialRunner):
    def advance(self, state: GridState) -> GridState:
        time.sleep(0.05)
        return state.advance(state.values, self.params.dt)


def _burn(stop: threading.Event) -> None:
    total = 0
    while not stop.is_set():
        total += sum(range(1000))


def test_cpu_excludes_unrelated_threads() -> None:
    params = StepParams(Advection(), Upwind(), dt=0.05, dx=0.1)
    state = GridState.initial(np.zeros(10))
    stop = threading.Event()
    burner = threading.Thread(target=_burn, args=(stop,), daemon=True)
    burner.start()
    try:
        _, report = BenchRunner(_SleepingRunner(params)).run(state, 10)
    finally:
        stop.set()
        burner.join()

    assert report.wall_s >= 0.5
    assert report.cpu_s < 0.1 * report.wall_s
    assert report.cpu_percent < 10.0


def test_concurrent_runs_omit_process_times() -> None:
    params = StepParams(Advection(), Upwind(), dt=0.05, dx=0.1)
    state = GridState.initial(np.linspace(0.0, 1.0, 10))

    _, report = BenchRunner(SerialRunner(params), process_times=False).run(state, 2)

    assert not report.process_scoped
    assert math.isnan(report.user_s)
    assert math.isnan(report.system_s)
    assert " thread " in report.summary_line()
    assert "user" not in report.summary_line()


def test_summary_line_without_process_times() -> None:
    line = _report(user_s=math.nan, system_s=math.nan, cpu_s=0.5, cpu_percent=200.0).summary_line()

    assert line == "parallel workers=4 steps=500 cells=600  0.50s thread 200% cpu 0.250 total"
