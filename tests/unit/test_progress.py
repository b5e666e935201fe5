"""Tests for the console progress of the step loop."""

from __future__ import annotations

import io

import numpy as np

from fdcons.equations import Advection
from fdcons.runtime import progress as progress_mod
from fdcons.run_serial import SerialRunner
from fdcons.schemes import Upwind
from fdcons.solver import GridState, StepParams


def _fake_monotonic(times):
    iterator = iter(times)

    def _next():
        return next(iterator)

    return _next


def _states(n: int, dt: float):
    state = GridState.initial(np.zeros(3))
    states = [state]
    for _ in range(n):
        state = state.advance(np.zeros(3), dt)
        states.append(state)
    return states


def test_progress_reports_rate_and_remaining_time(monkeypatch):
    monkeypatch.setattr(progress_mod.time, "monotonic", _fake_monotonic([0.0, 0.5, 1.0, 1.5, 2.0]))
    stream = io.StringIO()
    reporter = progress_mod.ProgressReporter(4, 2.0, refresh_seconds=0.0, enabled=True, stream=stream)
    states = _states(4, 0.5)

    reporter.begin(states[0])
    for state in states[1:]:
        reporter.update(state)
    reporter.finish(states[-1])

    lines = stream.getvalue().splitlines()
    assert len(lines) == 4
    assert lines[1] == "t=1 ( 50.0%) step 2/4 2.0 steps/s left 1.000"
    assert lines[-1] == "t=2 (100.0%) step 4/4 2.0 steps/s left 0.000"


def test_progress_renders_at_refresh_interval(monkeypatch):
    monkeypatch.setattr(
        progress_mod.time, "monotonic", _fake_monotonic([0.0, 0.2, 0.4, 0.6, 1.3, 1.5])
    )
    stream = io.StringIO()
    reporter = progress_mod.ProgressReporter(
        5, 1.0, refresh_seconds=1.0, enabled=True, label="advection-sine-upwind", stream=stream
    )
    states = _states(5, 0.2)

    reporter.begin(states[0])
    for state in states[1:]:
        reporter.update(state)
    reporter.finish(states[-1])

    lines = stream.getvalue().splitlines()
    assert [line.split(" step ")[1].split()[0] for line in lines] == ["1/5", "4/5", "5/5"]
    assert all(line.startswith("advection-sine-upwind: ") for line in lines)
    assert "5.0 steps/s" in lines[0]


def test_progress_disabled_prints_nothing(capsys):
    reporter = progress_mod.ProgressReporter(3, 1.0, enabled=False)
    states = _states(3, 1.0 / 3.0)

    reporter.begin(states[0])
    reporter.update(states[1])
    reporter.finish(states[-1])

    assert capsys.readouterr().out == ""


def test_serial_runner_drives_progress():
    params = StepParams(Advection(), Upwind(), dt=0.05, dx=0.1)
    state = GridState.initial(np.linspace(0.0, 1.0, 10))
    stream = io.StringIO()
    reporter = progress_mod.ProgressReporter(3, 0.15, enabled=True, stream=stream)

    SerialRunner(params).run(state, 3, progress=reporter)

    lines = stream.getvalue().splitlines()
    assert lines
    assert "step 3/3" in lines[-1]
    assert "(100.0%)" in lines[-1]
