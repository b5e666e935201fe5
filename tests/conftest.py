from __future__ import annotations

import sys
import pytest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

RUNNER_ENV_VARS = (
    "FDCONS_PARALLEL",
    "FDCONS_JOBS",
    "FDCONS_MIN_CELLS",
    "FDCONS_CHUNK_SIZE",
    "FDCONS_DISABLE_NUMBA",
    "FDCONS_NUMBA_DISABLE",
)


@pytest.fixture(autouse=True)
def _clear_runner_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the runner settings of the shell out of the tests."""

    for name in RUNNER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def small_overrides() -> list[str]:
    """Coarse grid and short horizon shared by the CLI tests."""

    return ["domain.dx=0.1", "numerics.t_end=0.5"]
