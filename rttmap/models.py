from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import pandas as pd

from rttmap.config import DST_COL, SENTINEL_MS, SRC_COL


def parse_num(value: Any) -> float | None:
    """
    Coerce one table cell to a finite float, or None ("absent").

    Blank strings, non-numeric text, NaN/inf and booleans are all absent. Never raises.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        # float() accepts "1_000" digit grouping; treat it as non-numeric.
        if not value or "_" in value:
            return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        # list-likes and other odd cell payloads
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def normalize_country_code(value: Any) -> str:
    """Trimmed, upper-cased country code; "" when absent."""
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip().upper()


@dataclass(frozen=True)
class Valid:
    ms: float


class Invalid:
    """Marker for a latency field that reported no valid samples."""

    _instance: Optional["Invalid"] = None

    def __new__(cls) -> "Invalid":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INVALID"


INVALID = Invalid()

# None means the field was absent or unparseable.
Reading = Union[Valid, Invalid, None]


def reading_from_wire(value: Any) -> Reading:
    num = parse_num(value)
    if num is None:
        return None
    if num < 0:
        return INVALID
    return Valid(num)


def reading_to_wire(reading: Reading) -> float | None:
    if reading is None:
        return None
    if isinstance(reading, Invalid):
        return SENTINEL_MS
    return float(reading.ms)


@dataclass(frozen=True)
class MeasurementRow:
    """
    One source/destination pair, converted from its wire form.

    `n` and `mean_ms` stay raw: a contaminated mean can be negative and is still
    used arithmetically when correcting for invalid samples.
    """

    src: str
    dst: str
    n: float | None
    mean_ms: float | None
    min_ms: Reading = None
    max_ms: Reading = None
    p50_ms: Reading = None
    p90_ms: Reading = None
    p95_ms: Reading = None
    average_ms: Reading = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "MeasurementRow":
        return cls(
            src=normalize_country_code(record.get(SRC_COL)),
            dst=normalize_country_code(record.get(DST_COL)),
            n=parse_num(record.get("n")),
            mean_ms=parse_num(record.get("mean_ms")),
            min_ms=reading_from_wire(record.get("min_ms")),
            max_ms=reading_from_wire(record.get("max_ms")),
            p50_ms=reading_from_wire(record.get("p50_ms")),
            p90_ms=reading_from_wire(record.get("p90_ms")),
            p95_ms=reading_from_wire(record.get("p95_ms")),
            average_ms=reading_from_wire(record.get("average_ms")),
        )

    def reading(self, field: str) -> Reading:
        return getattr(self, field)
