"""Shared fixtures: a small RTT table as loaded from CSV (all text) and a few country shapes."""

import pandas as pd
import pytest

COLUMNS = [
    "src_country",
    "dst_country",
    "n",
    "mean_ms",
    "min_ms",
    "max_ms",
    "p50_ms",
    "p90_ms",
    "p95_ms",
    "average_ms",
]

ROWS = [
    # p50 invalid -> 70% invalid -> (50*100 + 70) / 30 = 169.0
    ["US", "DE", "100", "50", "-1", "80", "-1", "10", "20", ""],
    # clean pair: mean is trusted
    ["US", "FR", "10", "30", "5", "60", "28", "40", "45", ""],
    # p90 invalid -> 9 of 10 invalid -> (30*10 + 9) / 1 = 309
    ["US", "JP", "10", "30", "-1", "80", "40", "-1", "60", ""],
    # max invalid: nothing usable
    ["DE", "US", "20", "12", "-1", "-1", "-1", "-1", "-1", ""],
    # provided average is authoritative
    ["DE", "FR", "", "", "", "", "", "", "", "7.5"],
    # no source code: dropped at index time
    ["", "FR", "10", "11", "9", "15", "11", "13", "14", ""],
    # codes are normalized
    [" fr ", "us", "5", "100", "90", "120", "99", "110", "115", ""],
]


@pytest.fixture
def rtt_frame() -> pd.DataFrame:
    return pd.DataFrame(ROWS, columns=COLUMNS, dtype=str)


def _polygon(name_key: str, name: str, code_key: str, code: str) -> dict:
    return {
        "type": "Feature",
        "properties": {name_key: name, code_key: code},
        "geometry": {
            "type": "Polygon",
            "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
        },
    }


@pytest.fixture
def world_geojson() -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            _polygon("name", "United States of America", "ISO3166-1-Alpha-2", "US"),
            _polygon("ADMIN", "Germany", "ISO_A2", "DE"),
            _polygon("name", "France", "iso_a2", "fr"),
            _polygon("NAME", "Japan", "ISO2", "JP"),
            _polygon("name", "Brazil", "ISO3166-1-Alpha-2", "BR"),
        ],
    }
