import asyncio
import io
import json
import warnings
from pathlib import Path
from typing import Any

import pandas as pd
import requests

from rttmap.config import DEFAULT_CSV_PATH, GEOJSON_URL, HTTP_TIMEOUT_S
from rttmap.log import log
from rttmap.schema import RTT_TABLE_SCHEMA, validate_frame


class DataLoadError(RuntimeError):
    """The RTT table or the country shapes could not be acquired."""


def _is_url(source: str) -> bool:
    return str(source).startswith(("http://", "https://"))


def _read_text(source: str) -> str:
    if _is_url(source):
        try:
            response = requests.get(source, timeout=HTTP_TIMEOUT_S)
            response.raise_for_status()
        except requests.RequestException as err:
            raise DataLoadError(f"Failed to fetch {source}: {err}") from err
        return response.text

    try:
        return Path(source).read_text(encoding="utf-8")
    except OSError as err:
        raise DataLoadError(f"Failed to read {source}: {err}") from err


def load_rtt_csv(source: str = DEFAULT_CSV_PATH) -> pd.DataFrame:
    """
    Load the country/country RTT table from a path or URL.

    Every cell is kept as text; numeric coercion happens downstream so that bad
    cells become "absent" instead of failing the whole load.
    """
    text = _read_text(source)
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", pd.errors.ParserWarning)
            df = pd.read_csv(
                io.StringIO(text),
                dtype=str,
                # "NA" is Namibia, not a missing value.
                keep_default_na=False,
                skip_blank_lines=True,
                on_bad_lines="warn",
            )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as err:
        raise DataLoadError(f"Failed to parse RTT table {source}: {err}") from err
    for w in caught:
        log.warning("%s: %s", source, w.message)

    df.columns = [str(c).strip() for c in df.columns]
    report = validate_frame(df, RTT_TABLE_SCHEMA)
    if not report["ok"]:
        raise DataLoadError(
            f"RTT table {source} is missing columns: {report['missing_required']}"
        )

    log.info(
        "Loaded RTT table %s: %d rows, metrics present: %s",
        source,
        report["rows"],
        ", ".join(report["present_optional"]) or "none",
    )
    return df


def load_geojson(source: str = GEOJSON_URL) -> dict[str, Any]:
    text = _read_text(source)
    try:
        geojson = json.loads(text)
    except json.JSONDecodeError as err:
        raise DataLoadError(f"Failed to parse GeoJSON {source}: {err}") from err

    if not isinstance(geojson, dict) or geojson.get("type") != "FeatureCollection":
        raise DataLoadError(f"{source} is not a GeoJSON FeatureCollection")
    log.info("Loaded GeoJSON %s: %d features", source, len(geojson.get("features") or []))
    return geojson


async def load_inputs(
    csv_source: str = DEFAULT_CSV_PATH, geojson_source: str = GEOJSON_URL
) -> tuple[pd.DataFrame, dict[str, Any]]:
    """Load the table and the shapes concurrently; both must succeed before rendering."""
    df, geojson = await asyncio.gather(
        asyncio.to_thread(load_rtt_csv, csv_source),
        asyncio.to_thread(load_geojson, geojson_source),
    )
    return df, geojson
