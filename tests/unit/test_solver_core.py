from __future__ import annotations

import numpy as np
import pytest

from fdcons.equations import Advection, InviscidBurgers
from fdcons.errors import CFLViolationError, ConfigurationError, InitializationError, NumericalInstabilityError
from fdcons.grid import UniformGrid
from fdcons.schemes import BeamWarming, LaxWendroff, Upwind
from fdcons.solver import (
    Boundary,
    GridState,
    SolverCore,
    StepParams,
    build_params,
    check_courant,
    resolve_backend,
    state_checksum,
)
from fdcons.warnings import NumericalWarning
from fdcons.solver import warn_if_marginal_cfl


def _params(scheme=None, equation=None, *, dt=0.05, dx=0.1, boundary=None) -> StepParams:
    return StepParams(
        equation=equation or Advection(a=1.0),
        scheme=scheme or Upwind(),
        dt=dt,
        dx=dx,
        boundary=boundary or Boundary(),
    )


def test_extend_periodic_wraps_and_is_read_only() -> None:
    values = np.array([1.0, 2.0, 3.0, 4.0])

    ext = SolverCore.extend(values, 2, Boundary("periodic"))

    np.testing.assert_array_equal(ext, [3.0, 4.0, 1.0, 2.0, 3.0, 4.0, 1.0, 2.0])
    assert not ext.flags.writeable


def test_extend_fixed_uses_boundary_values() -> None:
    ext = SolverCore.extend(np.array([1.0, 2.0, 3.0]), 1, Boundary("fixed", left=-1.0, right=5.0))

    np.testing.assert_array_equal(ext, [-1.0, 1.0, 2.0, 3.0, 5.0])


def test_unknown_boundary_mode() -> None:
    with pytest.raises(ConfigurationError):
        Boundary("reflective")


def test_grid_state_is_immutable_and_copies_input() -> None:
    raw = np.array([0.0, 1.0, 2.0])
    state = GridState.initial(raw)
    raw[0] = 99.0

    assert state.values[0] == 0.0
    with pytest.raises(ValueError):
        state.values[0] = 1.0
    with pytest.raises(InitializationError):
        GridState.initial(np.array([0.0, np.nan]))


def test_upwind_step_shifts_pulse_by_one_cell_at_unit_courant() -> None:
    params = _params(dt=0.1, dx=0.1)
    state = GridState.initial(np.array([0.0, 1.0, 0.0, 0.0]))

    new_state = SolverCore().step(state, params)

    np.testing.assert_allclose(new_state.values, [0.0, 0.0, 1.0, 0.0])
    assert new_state.step == 1
    assert new_state.time == pytest.approx(0.1)
    np.testing.assert_array_equal(state.values, [0.0, 1.0, 0.0, 0.0])


def test_update_range_pieces_match_full_range() -> None:
    params = _params(BeamWarming(), InviscidBurgers(), dt=0.02)
    values = np.sin(np.linspace(0.0, 2.0 * np.pi, 17))[:-1]
    core = SolverCore()
    ext = core.extend(values, params.ghost, params.boundary)
    full = np.empty_like(values)
    pieces = np.empty_like(values)

    nu_full = core.update_range(ext, params, 0, values.size, full)
    nu_parts = max(core.update_range(ext, params, lo, hi, pieces) for lo, hi in [(0, 5), (5, 6), (6, 16)])

    np.testing.assert_array_equal(pieces, full)
    assert nu_parts == nu_full


def test_cfl_violation_raises() -> None:
    params = _params(LaxWendroff(), dt=0.2, dx=0.1)
    state = GridState.initial(np.zeros(5))

    with pytest.raises(CFLViolationError) as excinfo:
        SolverCore().step(state, params)

    assert excinfo.value.max_courant == pytest.approx(2.0)
    assert excinfo.value.step == 1


def test_cfl_check_can_be_disabled() -> None:
    params = StepParams(Advection(), Upwind(), dt=0.2, dx=0.1, cfl_check=False)

    state = SolverCore().step(GridState.initial(np.zeros(5)), params)

    assert state.step == 1


def test_non_finite_values_raise_with_cell_index() -> None:
    params = _params(equation=InviscidBurgers(), dt=1e-210, dx=0.1)
    state = GridState.initial(np.full(4, 1e200))

    with pytest.raises(NumericalInstabilityError) as excinfo:
        SolverCore().step(state, params)

    assert type(excinfo.value) is NumericalInstabilityError
    assert excinfo.value.index == 0
    assert excinfo.value.step == 1


def test_check_courant_and_marginal_warning() -> None:
    check_courant(1.0)
    with pytest.raises(CFLViolationError):
        check_courant(float("inf"))
    with pytest.warns(NumericalWarning):
        warn_if_marginal_cfl(0.99)


def test_build_params_requires_enough_cells_for_ghosts() -> None:
    grid = UniformGrid(x_min=0.0, dx=0.1, n_cells=3)

    params = build_params(grid, Advection(), BeamWarming(), 0.05)

    assert params.ghost == 2
    assert params.dt_over_dx == pytest.approx(0.5)
    with pytest.raises(InitializationError):
        StepParams(Advection(), Upwind(), dt=0.0, dx=0.1)


def test_resolve_backend(monkeypatch) -> None:
    assert resolve_backend("numpy", Advection(), Upwind()) == "numpy"
    assert resolve_backend("auto", Advection(), Upwind()) == "numba"
    monkeypatch.setenv("FDCONS_DISABLE_NUMBA", "1")
    assert resolve_backend("numba", Advection(), Upwind()) == "numpy"
    with pytest.raises(ConfigurationError):
        resolve_backend("cuda", Advection(), Upwind())


def test_state_checksum() -> None:
    assert state_checksum(GridState.initial(np.array([1.0, -2.0]))) == (-1.0, 5.0)
