from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

import pydeck as pdk

from rttmap.colors import hex_to_rgba

if TYPE_CHECKING:
    from rttmap.render import RenderStateCoordinator

LAYER_ID = "rtt-countries"

TOOLTIP = {
    "html": "{properties.rtt_tooltip}",
    "style": {"backgroundColor": "rgba(20,20,20,0.85)", "color": "white"},
}


def styled_geojson(
    coordinator: "RenderStateCoordinator", geojson: dict[str, Any]
) -> dict[str, Any]:
    """
    Copy of the FeatureCollection with style + tooltip fields under `properties.rtt_*`.

    Every feature is styled from the same `coordinator.state` snapshot.
    """
    out = copy.deepcopy(geojson)
    for feature in out.get("features") or []:
        style = coordinator.style_for_feature(feature)
        tip = coordinator.tooltip_for_feature(feature)
        props = feature.setdefault("properties", {}) or {}
        feature["properties"] = props
        props.update(
            {
                "rtt_fill": hex_to_rgba(style.fill_color, style.fill_opacity),
                "rtt_line": hex_to_rgba(style.color, style.opacity),
                "rtt_line_width": style.weight,
                "rtt_name": tip.name,
                "rtt_code": tip.code,
                "rtt_src": tip.src,
                "rtt_metric": tip.metric,
                "rtt_value": tip.value_text,
                # escaped HTML; the deck tooltip only substitutes this one field
                "rtt_tooltip": tip.html,
                "rtt_style": style.as_dict(),
            }
        )
    return out


def build_deck(
    coordinator: "RenderStateCoordinator",
    geojson: dict[str, Any] | None = None,
    *,
    styled: dict[str, Any] | None = None,
) -> pdk.Deck:
    if styled is None:
        if geojson is None:
            raise ValueError("build_deck needs either geojson or styled")
        styled = styled_geojson(coordinator, geojson)

    layer = pdk.Layer(
        "GeoJsonLayer",
        id=LAYER_ID,
        data=styled,
        get_fill_color="properties.rtt_fill",
        get_line_color="properties.rtt_line",
        get_line_width="properties.rtt_line_width",
        line_width_units="pixels",
        stroked=True,
        filled=True,
        pickable=True,
        auto_highlight=True,
    )
    view_state = pdk.ViewState(latitude=20.0, longitude=0.0, zoom=1.2, pitch=0)
    return pdk.Deck(
        layers=[layer],
        initial_view_state=view_state,
        tooltip=TOOLTIP,
        map_style=None,
    )
