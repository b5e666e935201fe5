from __future__ import annotations

import json

import numpy as np
import pandas as pd
import pyarrow.parquet as pq

from fdcons.io import writer


def test_write_parquet_records_units_and_definitions(tmp_path) -> None:
    df = pd.DataFrame({"step": [0, 1], "time": [0.0, 0.1], "mass": [1.0, 1.0], "extra": [1, 2]})
    path = tmp_path / "series" / "run.parquet"

    writer.write_parquet(df, path)

    pd.testing.assert_frame_equal(pd.read_parquet(path), df)
    units = writer.read_units(path)
    assert units == {"step": "count", "time": "t", "mass": "u x"}
    definitions = json.loads(pq.read_schema(path).metadata[b"definitions"])
    assert "extra" not in definitions
    assert definitions["mass"].startswith("Total conserved quantity")


def test_write_state_columns(tmp_path) -> None:
    path = tmp_path / "state.parquet"

    writer.write_state(np.array([0.0, 0.5]), np.array([1.0, 2.0]), path)

    df = pd.read_parquet(path)
    assert list(df.columns) == ["x", "u"]
    np.testing.assert_array_equal(df["u"].to_numpy(), [1.0, 2.0])


def test_write_summary_stores_non_finite_as_null(tmp_path) -> None:
    path = tmp_path / "summary.json"

    writer.write_summary(
        {"drift": float("nan"), "n": np.int64(3), "outdir": tmp_path, "nested": {"x": (1.0, float("inf"))}},
        path,
    )

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"drift": None, "n": 3, "outdir": str(tmp_path), "nested": {"x": [1.0, None]}}
