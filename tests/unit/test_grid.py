from __future__ import annotations

import numpy as np
import pytest

from fdcons.errors import InitializationError
from fdcons.grid import UniformGrid


def test_from_range_uses_half_open_interval() -> None:
    grid = UniformGrid.from_range(-3.0, 3.0, 0.01)

    assert grid.n_cells == 600
    assert grid.x[0] == pytest.approx(-3.0)
    assert grid.x[-1] == pytest.approx(2.99)
    assert grid.x_max == pytest.approx(3.0)
    assert grid.length == pytest.approx(6.0)


@pytest.mark.parametrize(
    "x_min, x_max, dx",
    [
        (1.0, 1.0, 0.1),
        (2.0, 1.0, 0.1),
        (0.0, 1.0, 0.0),
        (0.0, 1.0, -0.1),
        (0.0, 1.0, float("nan")),
        (0.0, 0.2, 0.1),
    ],
)
def test_from_range_rejects_invalid_domains(x_min: float, x_max: float, dx: float) -> None:
    with pytest.raises(InitializationError):
        UniformGrid.from_range(x_min, x_max, dx)


def test_sample_broadcasts_scalars_and_integrates() -> None:
    grid = UniformGrid(x_min=0.0, dx=0.5, n_cells=4)

    values = grid.sample(lambda x: 2.0)

    np.testing.assert_array_equal(values, np.full(4, 2.0))
    assert grid.integrate(values) == pytest.approx(4.0)
