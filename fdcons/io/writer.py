"""Output helper utilities.

The routines in this module provide thin wrappers around :mod:`pandas` and
:mod:`pyarrow` to serialise run results.  Parquet is used for the per-step
series and the final state, JSON for run summaries and the resolved
configuration.  All functions create the destination directories when
necessary.
"""
from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Mapping

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

UNITS = {
    "step": "count",
    "time": "t",
    "mass": "u x",
    "u_min": "u",
    "u_max": "u",
    "max_courant": "dimensionless",
    "x": "x",
    "u": "u",
}

DEFINITIONS = {
    "step": "Number of completed time steps.",
    "time": "Simulation time reached after the step.",
    "mass": "Total conserved quantity sum(u) * dx.",
    "u_min": "Smallest cell value of the state.",
    "u_max": "Largest cell value of the state.",
    "max_courant": "Largest local Courant number |a dt/dx| of the step (0 for the initial row).",
    "x": "Cell coordinate x_min + i dx.",
    "u": "Cell value of the conserved quantity.",
}


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_parquet(df: pd.DataFrame, path: Path, *, compression: str = "snappy") -> None:
    """Write a DataFrame to a Parquet file using ``pyarrow``.

    Units and definitions of the known columns are stored in the schema
    metadata under the ``units`` and ``definitions`` keys.
    """
    path = Path(path)
    _ensure_parent(path)
    units = {col: UNITS[col] for col in df.columns if col in UNITS}
    definitions = {col: DEFINITIONS[col] for col in df.columns if col in DEFINITIONS}
    table = pa.Table.from_pandas(df, preserve_index=False)
    metadata = dict(table.schema.metadata or {})
    metadata.update(
        {
            b"units": json.dumps(units, sort_keys=True).encode("utf-8"),
            b"definitions": json.dumps(definitions, sort_keys=True).encode("utf-8"),
        }
    )
    table = table.replace_schema_metadata(metadata)
    compression_arg = None if compression == "none" else compression
    pq.write_table(table, path, compression=compression_arg)


def read_units(path: Path) -> dict:
    """Return the ``units`` mapping stored by :func:`write_parquet`."""

    schema = pq.read_schema(path)
    raw = (schema.metadata or {}).get(b"units")
    if raw is None:
        return {}
    return json.loads(raw.decode("utf-8"))


def write_state(x: np.ndarray, values: np.ndarray, path: Path) -> None:
    """Write the final state as ``x``/``u`` columns."""

    df = pd.DataFrame({"x": np.asarray(x, dtype=float), "u": np.asarray(values, dtype=float)})
    write_parquet(df, path)


def _json_safe(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary to ``summary.json``.

    The JSON file is formatted with a small indentation for human
    readability; non-finite floats are stored as ``null``.
    """
    path = Path(path)
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(_json_safe(summary), fh, indent=2, sort_keys=True)


def write_run_config(config: Mapping[str, Any], path: Path) -> None:
    """Persist the resolved run configuration."""

    path = Path(path)
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(_json_safe(config), fh, indent=2, sort_keys=True)


__all__ = [
    "UNITS",
    "DEFINITIONS",
    "write_parquet",
    "read_units",
    "write_state",
    "write_summary",
    "write_run_config",
]
