"""Tests for dataset preparation, the styled GeoJSON and the written map artifacts."""

import json
import os

import pandas as pd
import pytest

from rttmap.deck import LAYER_ID, TOOLTIP, build_deck, styled_geojson
from rttmap.pipeline import _slugify, prepare_dataset, write_map_artifacts
from rttmap.render import RenderStateCoordinator, Selection


@pytest.fixture
def dataset(rtt_frame):
    return prepare_dataset(rtt_frame)


@pytest.fixture
def coordinator(dataset):
    return RenderStateCoordinator(dataset, selection=Selection(src="US"))


class TestPrepareDataset:
    def test_rows_are_normalized_and_enriched(self, dataset):
        assert len(dataset.rows) == 6
        assert dataset.sources == ["DE", "FR", "US"]
        assert dataset.rows["average_ms"].dtype == float

    def test_index_holds_enriched_averages(self, dataset):
        assert dataset.by_src["US"]["DE"]["average_ms"] == pytest.approx(169.0)
        assert dataset.by_src["DE"]["US"]["average_ms"] == -1.0

    def test_metric_values_use_enriched_averages(self, dataset):
        assert dataset.metric_values["average_ms"].tolist() == [7.5, 30.0, 100.0, 169.0, 309.0]

    def test_missing_code_columns(self):
        with pytest.raises(ValueError):
            prepare_dataset(pd.DataFrame({"n": ["1"]}))

    def test_empty_table(self):
        dataset = prepare_dataset(pd.DataFrame(columns=["src_country", "dst_country"]))

        assert dataset.sources == []
        assert len(dataset.metric_values["average_ms"]) == 0


class TestStyledGeojson:
    """Style and tooltip fields are attached under properties.rtt_*."""

    def test_properties(self, coordinator, world_geojson):
        styled = styled_geojson(coordinator, world_geojson)

        props = {f["properties"]["rtt_code"]: f["properties"] for f in styled["features"]}
        assert props["US"]["rtt_fill"] == [47, 107, 255, 242]
        assert props["US"]["rtt_line"] == [22, 61, 186, 255]
        assert props["US"]["rtt_line_width"] == 2
        assert props["JP"]["rtt_fill"] == [255, 0, 0, 217]
        assert props["JP"]["rtt_value"] == "309.0 ms"
        assert props["BR"]["rtt_fill"] == [221, 221, 221, 217]
        assert props["BR"]["rtt_value"] == "n/a"
        assert props["FR"]["rtt_name"] == "France"
        assert props["FR"]["rtt_src"] == "US"

    def test_tooltip_html_is_escaped(self, coordinator, world_geojson):
        world_geojson["features"][3]["properties"]["NAME"] = "<img src=x>"

        styled = styled_geojson(coordinator, world_geojson)

        tooltip = styled["features"][3]["properties"]["rtt_tooltip"]
        assert "&lt;img src=x&gt;" in tooltip
        assert "<img" not in tooltip
        assert "309.0 ms" in tooltip
        assert TOOLTIP["html"] == "{properties.rtt_tooltip}"

    def test_style_descriptor(self, coordinator, world_geojson):
        styled = styled_geojson(coordinator, world_geojson)

        style = styled["features"][0]["properties"]["rtt_style"]
        assert style == {
            "weight": 2,
            "opacity": 1.0,
            "color": "#163dba",
            "fillOpacity": 0.95,
            "fillColor": "#2f6bff",
        }

    def test_input_is_not_mutated(self, coordinator, world_geojson):
        before = json.dumps(world_geojson, sort_keys=True)

        styled_geojson(coordinator, world_geojson)

        assert json.dumps(world_geojson, sort_keys=True) == before

    def test_feature_without_properties(self, coordinator):
        styled = styled_geojson(
            coordinator, {"type": "FeatureCollection", "features": [{"type": "Feature"}]}
        )

        props = styled["features"][0]["properties"]
        assert props["rtt_code"] == ""
        assert props["rtt_value"] == "n/a"


class TestBuildDeck:
    def test_single_pickable_layer(self, coordinator, world_geojson):
        deck = build_deck(coordinator, world_geojson)

        assert len(deck.layers) == 1
        assert deck.layers[0].id == LAYER_ID

    def test_requires_shapes(self, coordinator):
        with pytest.raises(ValueError):
            build_deck(coordinator)


class TestWriteMapArtifacts:
    def test_writes_all_artifacts(self, tmp_path, dataset, coordinator, world_geojson):
        paths = write_map_artifacts(
            dataset,
            coordinator,
            world_geojson,
            out_dir=str(tmp_path / "maps"),
            label="US Average",
            meta={"kind": "rtt_map"},
        )

        assert set(paths) == {"html", "geojson", "csv", "meta"}
        for path in paths.values():
            assert os.path.exists(path)
            assert os.path.basename(path).startswith("us-average_")

        meta = json.loads(open(paths["meta"], encoding="utf-8").read())
        assert meta["src"] == "US"
        assert meta["metric"] == "average_ms"
        assert meta["rows"] == 6
        assert meta["features"] == 5
        assert meta["kind"] == "rtt_map"
        assert meta["scale_config"]["auto"] is True

        enriched = pd.read_csv(paths["csv"], keep_default_na=False)
        assert "average_ms" in enriched.columns

    @pytest.mark.parametrize(
        "label, slug", [("US Average", "us-average"), ("  ", "map"), ("p95/ms", "p95-ms")]
    )
    def test_slugify(self, label, slug):
        assert _slugify(label) == slug
