from __future__ import annotations

import pytest

from fdcons.runtime import parallel as parallel_mod
from fdcons.runtime.parallel import partition, plan_from_settings, resolve_parallel_config


@pytest.mark.parametrize(
    "payload, expected_reason",
    [
        (
            {
                "n_cells": 8,
                "parallel_requested": False,
                "jobs_requested": 4,
                "min_cells": 4,
                "chunk_size_raw": 0,
            },
            "not_requested",
        ),
        (
            {
                "n_cells": 2,
                "parallel_requested": True,
                "jobs_requested": 4,
                "min_cells": 4,
                "chunk_size_raw": 0,
            },
            "too_few_cells",
        ),
        (
            {
                "n_cells": 8,
                "parallel_requested": True,
                "jobs_requested": 1,
                "min_cells": 4,
                "chunk_size_raw": 0,
            },
            "single_job",
        ),
    ],
)
def test_parallel_disabled_reasons(payload: dict[str, object], expected_reason: str) -> None:
    plan = resolve_parallel_config(**payload)

    assert plan.enabled is False
    assert plan.reason == expected_reason
    assert plan.jobs_effective == 1
    assert [(r.start, r.stop) for r in plan.chunks()] == [(0, payload["n_cells"])]


def test_parallel_job_capping_and_auto_chunking() -> None:
    plan = resolve_parallel_config(
        n_cells=5,
        parallel_requested=True,
        jobs_requested=10,
        min_cells=1,
        chunk_size_raw=0,
    )

    assert plan.enabled is True
    assert plan.jobs_effective == 5
    assert plan.chunk_mode == "auto"
    assert plan.chunk_size == 1


def test_parallel_fixed_chunk_size() -> None:
    plan = resolve_parallel_config(
        n_cells=10,
        parallel_requested=True,
        jobs_requested=3,
        min_cells=1,
        chunk_size_raw=4,
    )

    assert plan.enabled is True
    assert plan.chunk_mode == "fixed"
    assert [(r.start, r.stop) for r in plan.chunks()] == [(0, 4), (4, 8), (8, 10)]


def test_partition_covers_range_without_overlap() -> None:
    chunks = partition(601, 151)

    assert [len(r) for r in chunks] == [151, 151, 151, 148]
    assert chunks[0].start == 0 and chunks[-1].stop == 601
    assert all(a.stop == b.start for a, b in zip(chunks, chunks[1:]))
    assert partition(0, 4) == []


def test_environment_overrides_settings(monkeypatch) -> None:
    monkeypatch.setenv(parallel_mod.ENV_JOBS, "3")
    monkeypatch.setenv(parallel_mod.ENV_CHUNK_SIZE, "2")

    plan = plan_from_settings(12, parallel=True, workers=8)

    assert plan.jobs_effective == 3
    assert plan.chunk_size == 2

    monkeypatch.setenv(parallel_mod.ENV_PARALLEL, "off")
    assert plan_from_settings(12, parallel=True, workers=8).reason == "not_requested"
    assert plan_from_settings(12, parallel=True, workers=8, use_env=False).jobs_effective == 8
