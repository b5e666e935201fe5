"""History containers filled by the runners."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd


class ColumnarBuffer:
    """Column-oriented record buffer for per-step diagnostics."""

    def __init__(self, columns: Iterable[str] | None = None) -> None:
        self._columns: Dict[str, List[Any]] = {}
        self._column_order: List[str] = []
        self._row_count = 0
        if columns:
            for name in columns:
                self._columns[name] = []
                self._column_order.append(name)

    @property
    def row_count(self) -> int:
        return self._row_count

    def __len__(self) -> int:
        return self._row_count

    def __bool__(self) -> bool:
        return self._row_count > 0

    def columns(self) -> List[str]:
        return list(self._column_order)

    def append_row(self, record: Mapping[str, Any]) -> None:
        if record is None:
            return
        if not isinstance(record, Mapping):
            record = dict(record)
        for key in record:
            if key not in self._columns:
                self._columns[key] = [None] * self._row_count
                self._column_order.append(key)
        for name in self._column_order:
            self._columns[name].append(record.get(name))
        self._row_count += 1

    def extend_rows(self, records: Iterable[Mapping[str, Any]]) -> None:
        for record in records:
            self.append_row(record)

    def column(self, name: str) -> List[Any]:
        return list(self._columns.get(name, []))

    def clear(self) -> None:
        for values in self._columns.values():
            values.clear()
        self._row_count = 0

    def to_records(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for idx in range(self._row_count):
            rows.append({name: self._columns[name][idx] for name in self._column_order})
        return rows

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({name: self._columns[name] for name in self._column_order})


SERIES_COLUMNS = ("step", "time", "mass", "u_min", "u_max", "max_courant")


@dataclass
class RunHistory:
    """Per-step history bundle shared by the serial and the parallel runner.

    ``frame_every`` > 0 additionally keeps a copy of every ``frame_every``-th
    state for animations.
    """

    dx: float
    frame_every: int = 0
    records: ColumnarBuffer = field(default_factory=lambda: ColumnarBuffer(SERIES_COLUMNS))
    frames: List[np.ndarray] = field(default_factory=list)
    frame_times: List[float] = field(default_factory=list)
    mass_initial: Optional[float] = None
    mass_scale: Optional[float] = None

    def record(self, step: int, time: float, values: np.ndarray, max_courant: float) -> None:
        mass = float(np.sum(values) * self.dx)
        if self.mass_initial is None:
            self.mass_initial = mass
            self.mass_scale = float(np.sum(np.abs(values)) * self.dx)
        self.records.append_row(
            {
                "step": int(step),
                "time": float(time),
                "mass": mass,
                "u_min": float(np.min(values)),
                "u_max": float(np.max(values)),
                "max_courant": float(max_courant),
            }
        )
        if self.frame_every > 0 and step % self.frame_every == 0:
            self.frames.append(np.array(values, copy=True))
            self.frame_times.append(float(time))

    def to_frame(self) -> pd.DataFrame:
        return self.records.to_frame()

    def mass_drift(self) -> float:
        """Return the largest deviation of the total from its initial value, relative to ``sum|u0| dx``."""

        masses = self.records.column("mass")
        if not masses or self.mass_initial is None:
            return 0.0
        scale = max(self.mass_scale or 0.0, abs(self.mass_initial), 1.0e-300)
        return float(max(abs(m - self.mass_initial) for m in masses) / scale)


__all__ = ["ColumnarBuffer", "RunHistory", "SERIES_COLUMNS"]
