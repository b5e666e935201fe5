from __future__ import annotations

import numpy as np
import pytest

from fdcons.runtime.history import SERIES_COLUMNS, ColumnarBuffer, RunHistory


def test_columnar_buffer_basic():
    buf = ColumnarBuffer()
    buf.append_row({"a": 1})
    buf.append_row({"b": 2})
    assert buf.row_count == 2
    frame = buf.to_frame()
    assert list(frame.columns) == ["a", "b"]
    assert frame["a"].tolist()[0] == 1
    assert frame["a"].isna().tolist() == [False, True]
    assert frame["b"].isna().tolist() == [True, False]
    buf.clear()
    assert len(buf) == 0
    assert not buf


def test_columnar_buffer_extend_and_records():
    buf = ColumnarBuffer(["a"])
    buf.extend_rows([{"a": 1}, {"a": 2, "b": 3}])
    assert buf.to_records() == [{"a": 1, "b": None}, {"a": 2, "b": 3}]
    assert list(buf.to_frame().columns) == ["a", "b"]


def test_run_history_records_series_and_frames():
    history = RunHistory(dx=0.5, frame_every=2)
    values = np.array([1.0, -1.0, 2.0])
    for step in range(5):
        history.record(step, 0.1 * step, values, 0.25 if step else 0.0)

    df = history.to_frame()
    assert tuple(df.columns) == SERIES_COLUMNS
    assert len(df) == 5
    assert df["mass"].iloc[0] == pytest.approx(1.0)
    assert df["u_min"].iloc[0] == -1.0
    assert len(history.frames) == 3
    assert history.frame_times == pytest.approx([0.0, 0.2, 0.4])
    assert history.mass_drift() == 0.0


def test_mass_drift_is_relative_to_absolute_total():
    history = RunHistory(dx=1.0)
    history.record(0, 0.0, np.array([1.0, -1.0]), 0.0)
    history.record(1, 0.1, np.array([1.5, -1.0]), 0.0)

    # initial total is zero; the scale falls back to sum(|u0|) dx = 2
    assert history.mass_drift() == pytest.approx(0.25)
