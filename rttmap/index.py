from __future__ import annotations

from typing import Any, Iterable

import numpy as np
import pandas as pd

from rttmap.config import DST_COL, METRIC_FIELDS, SRC_COL
from rttmap.log import log
from rttmap.models import normalize_country_code, parse_num


def normalize_rows(df: pd.DataFrame) -> pd.DataFrame:
    """
    Trim/upper-case the country code columns and drop rows missing either code.
    Does not mutate the input.
    """
    out = df.copy()
    for col in (SRC_COL, DST_COL):
        if col in out.columns:
            out[col] = out[col].map(normalize_country_code)
        else:
            out[col] = ""
    keep = (out[SRC_COL] != "") & (out[DST_COL] != "")
    dropped = int((~keep).sum())
    if dropped:
        log.warning("Dropped %d rows without %s/%s", dropped, SRC_COL, DST_COL)
    return out.loc[keep].reset_index(drop=True)


def build_source_index(
    df: pd.DataFrame,
) -> tuple[dict[str, dict[str, dict[str, Any]]], list[str]]:
    """
    src -> dst -> row record, plus the sorted list of source codes.
    Expects normalized rows; a repeated (src, dst) pair keeps the last row.
    """
    by_src: dict[str, dict[str, dict[str, Any]]] = {}
    for record in df.to_dict("records"):
        src = normalize_country_code(record.get(SRC_COL))
        dst = normalize_country_code(record.get(DST_COL))
        if not src or not dst:
            continue
        by_src.setdefault(src, {})[dst] = record
    return by_src, sorted(by_src)


def build_metric_values(
    df: pd.DataFrame, metrics: Iterable[str] = METRIC_FIELDS
) -> dict[str, np.ndarray]:
    """
    metric -> ascending array of every valid (finite, >= 0) value in the table.
    Duplicates are kept; only the order matters for percentile lookups.
    """
    values: dict[str, np.ndarray] = {}
    for metric in metrics:
        if metric not in df.columns:
            values[metric] = np.array([], dtype=float)
            continue
        col = pd.to_numeric(df[metric].map(parse_num), errors="coerce").to_numpy(
            dtype=float
        )
        col = col[np.isfinite(col) & (col >= 0)]
        values[metric] = np.sort(col)
    return values


def percentile(values: np.ndarray | list[float], p: float) -> float:
    """
    Linearly interpolated order statistic of an ascending, non-empty sequence.

    index = (p / 100) * (len - 1); integral indices return that element, otherwise
    interpolate between the neighbours. Callers must not pass an empty sequence.
    """
    if not 0 <= p <= 100:
        raise ValueError(f"percentile must be within [0, 100], got {p}")
    arr = np.asarray(values, dtype=float)
    idx = (p / 100.0) * (len(arr) - 1)
    lo = int(np.floor(idx))
    hi = int(np.ceil(idx))
    if lo == hi:
        return float(arr[lo])
    t = idx - lo
    return float(arr[lo] * (1 - t) + arr[hi] * t)
