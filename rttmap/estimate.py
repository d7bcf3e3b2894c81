from __future__ import annotations

import math
from collections import Counter
from typing import Sequence

import pandas as pd

from rttmap.config import (
    AVERAGE_FALLBACK_FIELDS,
    INVALID_FRACTION_FLOOR,
    PERCENTILE_INVALID_FRACTIONS,
)
from rttmap.log import log
from rttmap.models import (
    INVALID,
    Invalid,
    MeasurementRow,
    Valid,
    reading_to_wire,
)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def estimate_invalid_fraction(
    row: MeasurementRow,
    n: int,
    *,
    thresholds: Sequence[tuple[str, float]] = PERCENTILE_INVALID_FRACTIONS,
    floor: float = INVALID_FRACTION_FLOOR,
) -> float:
    """
    Lower bound on the share of invalid samples hidden in the reported mean.

    We only have percentile summaries, never raw samples. Each percentile that is
    itself invalid raises the bound; the result is the max of every triggered threshold.
    """
    frac = max(1.0 / max(1, n), floor)
    for field, threshold in thresholds:
        if isinstance(row.reading(field), Invalid):
            frac = max(frac, threshold)
    return frac


def estimate_invalid_count(
    row: MeasurementRow,
    n: int,
    *,
    thresholds: Sequence[tuple[str, float]] = PERCENTILE_INVALID_FRACTIONS,
    floor: float = INVALID_FRACTION_FLOOR,
) -> int:
    # At least one invalid sample (we only get here after detecting some), and at
    # least one valid sample left to estimate from.
    frac = estimate_invalid_fraction(row, n, thresholds=thresholds, floor=floor)
    return min(n - 1, max(1, _round_half_up(frac * n)))


def _first_valid(row: MeasurementRow, fields: Sequence[str]) -> Valid | None:
    for field in fields:
        reading = row.reading(field)
        if isinstance(reading, Valid):
            return reading
    return None


def _average_with_source(
    row: MeasurementRow,
    *,
    thresholds: Sequence[tuple[str, float]],
    floor: float,
) -> tuple[Valid | Invalid, str]:
    if row.average_ms is not None:
        return row.average_ms, "provided"

    n = _round_half_up(row.n) if row.n is not None else 0
    mean = row.mean_ms
    if n <= 0 or mean is None:
        return INVALID, "invalid"
    # An invalid max means no sample of the pair was valid.
    if isinstance(row.max_ms, Invalid):
        return INVALID, "invalid"
    if not isinstance(row.min_ms, Invalid) and mean >= 0:
        return Valid(mean), "trusted"

    invalid_count = estimate_invalid_count(row, n, thresholds=thresholds, floor=floor)
    if invalid_count >= n:
        return INVALID, "invalid"

    # Invalid samples were stored as 1ms before being flagged, so remove them from the
    # sum and average over what remains.
    corrected = (mean * n + invalid_count) / (n - invalid_count)
    if math.isfinite(corrected) and corrected >= 0:
        return Valid(corrected), "corrected"

    fallback = _first_valid(row, AVERAGE_FALLBACK_FIELDS)
    if fallback is None:
        return INVALID, "invalid"
    return fallback, "fallback"


def compute_average(
    row: MeasurementRow,
    *,
    thresholds: Sequence[tuple[str, float]] = PERCENTILE_INVALID_FRACTIONS,
    floor: float = INVALID_FRACTION_FLOOR,
) -> Valid | Invalid:
    """
    Best-effort average latency for one pair.

    A provided `average_ms` is authoritative. Otherwise the mean is used as-is when
    nothing marks it as contaminated, corrected for an estimated invalid share when
    something does, and replaced by the first usable percentile/max when the
    correction is not usable. INVALID when no reconstruction is possible.
    """
    average, _source = _average_with_source(row, thresholds=thresholds, floor=floor)
    return average


def enrich_average_metric(df: pd.DataFrame) -> pd.DataFrame:
    """
    Return a copy of the table with `average_ms` populated on every row.

    Values are wire floats: -1.0 when no average could be reconstructed.
    """
    out = df.copy()
    sources: Counter[str] = Counter()
    averages: list[float] = []
    for record in out.to_dict("records"):
        average, source = _average_with_source(
            MeasurementRow.from_record(record),
            thresholds=PERCENTILE_INVALID_FRACTIONS,
            floor=INVALID_FRACTION_FLOOR,
        )
        sources[source] += 1
        averages.append(float(reading_to_wire(average)))
    out["average_ms"] = pd.Series(averages, index=out.index, dtype=float)

    log.debug(
        "average_ms enrichment: %d rows (%s)",
        len(out),
        ", ".join(f"{k}={v}" for k, v in sorted(sources.items())),
    )
    return out
