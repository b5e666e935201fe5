"""Serial and parallel runners must produce the same states."""
from __future__ import annotations

import itertools

import numpy as np
import pytest

from fdcons.equations import Advection, InviscidBurgers
from fdcons.grid import UniformGrid
from fdcons.initfields import sample_initial
from fdcons.run_parallel import ParallelRunner, run_parallel
from fdcons.run_serial import SerialRunner, run_serial
from fdcons.runtime import RunHistory
from fdcons.schemes import available_schemes, get_scheme
from fdcons.solver import Boundary, GridState, build_params

BOUNDARIES = [Boundary("periodic"), Boundary("fixed", left=0.0, right=0.0)]


def _setup(scheme_name: str, equation, boundary: Boundary, initial: str = "square"):
    grid = UniformGrid.from_range(-3.0, 3.0, 0.05)
    values = sample_initial(grid, initial)
    params = build_params(grid, equation, get_scheme(scheme_name), 0.4 * grid.dx, boundary=boundary)
    return grid, GridState.initial(values), params


@pytest.mark.parametrize(
    "scheme_name, equation, boundary",
    list(itertools.product(available_schemes(), [Advection(1.0), Advection(-0.7), InviscidBurgers()], BOUNDARIES)),
)
def test_parallel_matches_serial_for_all_worker_counts(scheme_name, equation, boundary) -> None:
    _, state, params = _setup(scheme_name, equation, boundary, initial="sine")
    expected = run_serial(state, params, 20)

    for workers in (1, 2, 4, 8):
        result = run_parallel(state, params, 20, workers=workers)
        np.testing.assert_allclose(result.values, expected.values, rtol=0.0, atol=1e-12)
        assert result.step == expected.step == 20
        assert result.time == pytest.approx(expected.time)


@pytest.mark.parametrize("chunk_size", [1, 7, 33])
def test_fixed_chunk_sizes_match_serial(chunk_size: int) -> None:
    _, state, params = _setup("beam_warming", Advection(1.0), BOUNDARIES[0])

    expected = run_serial(state, params, 25)
    result = run_parallel(state, params, 25, workers=3, chunk_size=chunk_size)

    np.testing.assert_allclose(result.values, expected.values, rtol=0.0, atol=1e-12)


@pytest.mark.parametrize("runner_cls", [SerialRunner, ParallelRunner])
def test_zero_steps_returns_initial_state(runner_cls) -> None:
    _, state, params = _setup("upwind", Advection(1.0), BOUNDARIES[0])

    result = runner_cls(params).run(state, 0)

    assert result is state
    assert result.step == 0


@pytest.mark.parametrize(
    "scheme_name, boundary",
    list(itertools.product(available_schemes(), BOUNDARIES)),
)
def test_constant_state_is_steady(scheme_name: str, boundary: Boundary) -> None:
    grid = UniformGrid.from_range(0.0, 1.0, 0.02)
    level = 0.75
    fixed = Boundary(boundary.mode, left=level, right=level)
    state = GridState.initial(np.full(grid.n_cells, level))

    for equation in (Advection(1.0), InviscidBurgers()):
        params = build_params(grid, equation, get_scheme(scheme_name), 0.5 * grid.dx, boundary=fixed)
        serial = run_serial(state, params, 30)
        parallel = run_parallel(state, params, 30, workers=4)
        np.testing.assert_allclose(serial.values, level, rtol=0.0, atol=1e-14)
        np.testing.assert_allclose(parallel.values, level, rtol=0.0, atol=1e-14)


@pytest.mark.parametrize("scheme_name", available_schemes())
def test_periodic_domain_conserves_mass(scheme_name: str) -> None:
    grid, state, params = _setup(scheme_name, Advection(1.0), BOUNDARIES[0])
    history = RunHistory(dx=grid.dx)

    with ParallelRunner(params, workers=4) as runner:
        runner.run(state, 100, history=history)

    assert len(history.to_frame()) == 101
    assert history.mass_drift() < 1e-12


def test_square_pulse_returns_after_one_period() -> None:
    grid = UniformGrid.from_range(-3.0, 3.0, 0.05)
    values = sample_initial(grid, "square")
    params = build_params(grid, Advection(1.0), get_scheme("upwind"), grid.dx)
    n_steps = grid.n_cells

    result = run_parallel(GridState.initial(values), params, n_steps, workers=4)

    # Courant number one shifts the pulse by exactly one cell per step
    np.testing.assert_allclose(result.values, values, atol=1e-12)


def test_history_is_identical_across_runners() -> None:
    grid, state, params = _setup("lax_wendroff", InviscidBurgers(), BOUNDARIES[1])
    serial_history = RunHistory(dx=grid.dx)
    parallel_history = RunHistory(dx=grid.dx)

    SerialRunner(params).run(state, 20, history=serial_history)
    ParallelRunner(params, workers=4).run(state, 20, history=parallel_history)

    serial_df = serial_history.to_frame()
    parallel_df = parallel_history.to_frame()
    assert list(serial_df.columns) == list(parallel_df.columns)
    np.testing.assert_allclose(parallel_df.to_numpy(), serial_df.to_numpy(), rtol=0.0, atol=1e-12)


def test_parallel_runner_records_plan_and_worker_cpu() -> None:
    _, state, params = _setup("upwind", Advection(1.0), BOUNDARIES[0])
    runner = ParallelRunner(params, workers=4)

    runner.run(state, 5)

    assert runner.plan is not None
    assert runner.plan.enabled is True
    assert runner.workers == 4
    assert len(runner.plan.chunks()) == 4
    assert runner.worker_cpu_s >= 0.0
    assert runner._pool is None


def test_small_grid_runs_inline() -> None:
    grid = UniformGrid.from_range(0.0, 0.3, 0.1)
    state = GridState.initial(np.array([0.0, 1.0, 0.0]))
    params = build_params(grid, Advection(1.0), get_scheme("upwind"), 0.05)
    runner = ParallelRunner(params, workers=4, min_cells=4)

    result = runner.run(state, 2)

    assert runner.plan.reason == "too_few_cells"
    np.testing.assert_allclose(result.values, run_serial(state, params, 2).values, atol=1e-15)
