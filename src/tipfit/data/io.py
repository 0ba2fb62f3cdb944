"""I/O helpers for replicate tables and estimation outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from tipfit.core.types import EstimationSettings, Trace

TIME_COLUMN = "time"
SUPPORTED_SUFFIXES = (".csv", ".parquet", ".xlsx")


class DatasetIOError(FileNotFoundError):
    """Raised when expected dataset files are missing or unreadable."""


class TraceValidationError(ValueError):
    """Raised when a replicate table is malformed."""


def read_table(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        raise DatasetIOError(f"Dataset file does not exist: {p}")
    suffix = p.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(p)
    if suffix == ".parquet":
        return pd.read_parquet(p)
    if suffix == ".xlsx":
        return pd.read_excel(p)
    raise DatasetIOError(f"Unsupported dataset format '{suffix}' for {p}. Supported: csv|parquet|xlsx")


def write_table(df: pd.DataFrame, path: str | Path, index: bool = True) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = p.suffix.lower()
    if suffix == ".csv":
        df.to_csv(p, index=index)
    elif suffix == ".parquet":
        df.to_parquet(p, index=index)
    elif suffix == ".xlsx":
        df.to_excel(p, index=index)
    else:
        raise DatasetIOError(f"Unsupported output format '{suffix}' for {p}")
    return p


def write_json(data: dict[str, Any], path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)


def discover_datasets(path: str | Path) -> list[Path]:
    """Expand a file or directory argument into the dataset files it names."""

    p = Path(path)
    if p.is_file():
        return [p]
    if not p.is_dir():
        raise DatasetIOError(f"Dataset path does not exist: {p}")
    files = sorted(f for f in p.iterdir() if f.is_file() and f.suffix.lower() in SUPPORTED_SUFFIXES)
    if not files:
        raise DatasetIOError(f"No dataset files ({'|'.join(SUPPORTED_SUFFIXES)}) found in {p}")
    return files


def replicate_columns(df: pd.DataFrame) -> list[str]:
    return [str(c) for c in df.columns if str(c).strip().lower() != TIME_COLUMN]


def time_axis(df: pd.DataFrame, start: float, delta: float) -> np.ndarray:
    for col in df.columns:
        if str(col).strip().lower() == TIME_COLUMN:
            return pd.to_numeric(df[col], errors="raise").to_numpy(dtype=float)
    return start + delta * np.arange(len(df), dtype=float)


def table_to_traces(df: pd.DataFrame, settings: EstimationSettings) -> list[Trace]:
    times = time_axis(df, start=settings.start, delta=settings.delta)
    traces: list[Trace] = []
    for col in replicate_columns(df):
        values = pd.to_numeric(df[col], errors="coerce").to_numpy(dtype=float)
        traces.append(Trace(name=col, times=times.copy(), values=values, delta=settings.delta))
    return traces


def dataset_name(path: str | Path) -> str:
    return Path(path).stem
