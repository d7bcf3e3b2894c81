from __future__ import annotations

import json
import os
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

import numpy as np
import pandas as pd

from rttmap.deck import build_deck, styled_geojson
from rttmap.estimate import enrich_average_metric
from rttmap.index import build_metric_values, build_source_index, normalize_rows
from rttmap.log import log
from rttmap.render import RenderStateCoordinator
from rttmap.schema import RTT_TABLE_SCHEMA, require_schema

META_VERSION = 1


@dataclass(frozen=True)
class RttDataset:
    """Enriched rows plus the indexes built from them. Read-only after build."""

    rows: pd.DataFrame
    by_src: dict[str, dict[str, dict[str, Any]]]
    sources: list[str]
    metric_values: dict[str, np.ndarray] = field(default_factory=dict)


def _utc_ts() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _slugify(text: str) -> str:
    text = text.strip().lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-") or "map"


def prepare_dataset(df: pd.DataFrame) -> RttDataset:
    """
    Schema check -> normalize codes -> enrich average_ms -> index.
    Rebuild whenever the row set changes.
    """
    require_schema(df, RTT_TABLE_SCHEMA)
    rows = enrich_average_metric(normalize_rows(df))
    by_src, sources = build_source_index(rows)
    metric_values = build_metric_values(rows)
    log.info(
        "Dataset ready: %d rows, %d sources, %d valid average_ms values",
        len(rows),
        len(sources),
        len(metric_values.get("average_ms", [])),
    )
    return RttDataset(
        rows=rows, by_src=by_src, sources=sources, metric_values=metric_values
    )


def write_map_artifacts(
    dataset: RttDataset,
    coordinator: RenderStateCoordinator,
    geojson: dict[str, Any],
    *,
    out_dir: str,
    label: str,
    meta: dict[str, Any] | None = None,
) -> dict[str, str]:
    """
    Write the rendered map (HTML), the styled GeoJSON, the enriched table and a
    sidecar metadata JSON. Uses the coordinator's current snapshot as-is.
    Returns {"html", "geojson", "csv", "meta"} -> path.
    """
    os.makedirs(out_dir, exist_ok=True)
    ts = _utc_ts()
    run_id = f"{_slugify(label)}_{ts}"
    base = os.path.join(out_dir, run_id)
    paths = {
        "html": f"{base}.html",
        "geojson": f"{base}.geojson",
        "csv": f"{base}.csv",
        "meta": f"{base}.meta.json",
    }

    styled = styled_geojson(coordinator, geojson)
    with open(paths["geojson"], "w", encoding="utf-8") as f:
        json.dump(styled, f)

    build_deck(coordinator, styled=styled).to_html(
        paths["html"], open_browser=False, notebook_display=False
    )

    dataset.rows.to_csv(paths["csv"], index=False)

    state = coordinator.state
    payload = {
        "meta_version": META_VERSION,
        "run_id": run_id,
        "run_label": label,
        "timestamp_utc": ts,
        "src": state.src,
        "metric": state.metric,
        "scale_min": state.scale_min,
        "scale_max": state.scale_max,
        "scale_config": asdict(state.scale),
        "rows": int(len(dataset.rows)),
        "sources": len(dataset.sources),
        "features": len(styled.get("features") or []),
        **(meta or {}),
    }
    with open(paths["meta"], "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Wrote map artifacts to %s", base)
    return paths
