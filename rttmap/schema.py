from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from rttmap.config import DST_COL, METRIC_FIELDS, SRC_COL


@dataclass(frozen=True)
class FrameSchema:
    """
    Lightweight DataFrame schema:
    - required: must exist as columns
    - optional: may exist; missing ones read as absent
    """

    name: str
    required: tuple[str, ...]
    optional: tuple[str, ...] = ()


RTT_TABLE_SCHEMA = FrameSchema(
    name="rtt_table",
    required=(SRC_COL, DST_COL),
    optional=("n", *METRIC_FIELDS),
)


def validate_frame(
    df: pd.DataFrame, schema: FrameSchema, *, allow_empty: bool = True
) -> dict:
    """
    Return a small validation report (JSON-serializable).
    Does not mutate the dataframe.
    """
    missing = [c for c in schema.required if c not in df.columns]
    present_optional = [c for c in schema.optional if c in df.columns]
    return {
        "schema": schema.name,
        "rows": int(len(df)),
        "cols": int(len(df.columns)),
        "missing_required": missing,
        "present_optional": present_optional,
        "ok": (not missing) and (allow_empty or len(df) > 0),
    }


def require_schema(df: pd.DataFrame, schema: FrameSchema) -> None:
    missing = [c for c in schema.required if c not in df.columns]
    if missing:
        raise ValueError(
            f"DataFrame does not satisfy schema '{schema.name}'. Missing columns: {missing}"
        )
