from __future__ import annotations

import html
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

import pycountry

from rttmap.colors import value_to_color
from rttmap.config import (
    BORDER_COLOR,
    DEFAULT_METRIC,
    SELECTED_SOURCE_BORDER_COLOR,
    SELECTED_SOURCE_COLOR,
)
from rttmap.log import log
from rttmap.models import normalize_country_code, parse_num
from rttmap.scale import ScaleConfig, compute_scale

if TYPE_CHECKING:
    from rttmap.pipeline import RttDataset

ISO2_PROPERTY_KEYS = ("ISO3166-1-Alpha-2", "ISO_A2", "iso_a2", "iso2", "ISO2")
NAME_PROPERTY_KEYS = ("name", "ADMIN", "admin", "NAME")


def _properties(feature: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return (feature or {}).get("properties") or {}


def feature_iso2(feature: Mapping[str, Any] | None) -> str:
    props = _properties(feature)
    for key in ISO2_PROPERTY_KEYS:
        code = normalize_country_code(props.get(key))
        if code:
            return code
    return ""


def _country_name(iso2: str) -> str | None:
    if not iso2:
        return None
    try:
        country = pycountry.countries.get(alpha_2=iso2)
    except LookupError:
        return None
    return getattr(country, "name", None)


def feature_name(feature: Mapping[str, Any] | None) -> str:
    props = _properties(feature)
    for key in NAME_PROPERTY_KEYS:
        name = props.get(key)
        if name:
            return str(name)
    iso2 = feature_iso2(feature)
    return _country_name(iso2) or iso2


def format_value(value: Any) -> str:
    v = parse_num(value)
    return f"{v:.1f} ms" if v is not None and v >= 0 else "n/a"


@dataclass
class Selection:
    """Current UI selection. Written by the UI, read only by `recompute()`."""

    src: str = ""
    metric: str = DEFAULT_METRIC


@dataclass(frozen=True)
class RenderState:
    src: str
    metric: str
    scale_min: float
    scale_max: float
    scale: ScaleConfig


@dataclass(frozen=True)
class FeatureStyle:
    weight: int
    opacity: float
    color: str
    fill_opacity: float
    fill_color: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "weight": self.weight,
            "opacity": self.opacity,
            "color": self.color,
            "fillOpacity": self.fill_opacity,
            "fillColor": self.fill_color,
        }


@dataclass(frozen=True)
class TooltipPayload:
    name: str
    code: str
    src: str
    metric: str
    value_text: str

    @property
    def html(self) -> str:
        esc = html.escape
        return (
            f'<div style="font-weight:600;margin-bottom:2px;">{esc(self.name)} ({esc(self.code)})</div>'
            f"<div>from <b>{esc(self.src)}</b>: <b>{esc(self.metric)}</b> = {esc(self.value_text)}</div>"
        )


@dataclass(frozen=True)
class Legend:
    title: str
    min_text: str
    max_text: str
    footer: str
    low_label: str = "fast"
    high_label: str = "slow"


class RenderStateCoordinator:
    """
    Owns the selection, the scale config and the render snapshot.

    Style and tooltip callbacks read only `self.state`, so every feature painted
    in one pass sees the same source, metric and scale.
    """

    def __init__(
        self,
        dataset: "RttDataset",
        *,
        selection: Selection | None = None,
        scale_config: ScaleConfig | None = None,
    ):
        self.dataset = dataset
        self.selection = selection if selection is not None else Selection()
        self.scale_config = scale_config if scale_config is not None else ScaleConfig()
        self._source_set = set(dataset.sources)
        self.state = self._snapshot()

    def _current_src(self) -> str:
        src = normalize_country_code(self.selection.src)
        if src:
            return src
        return self.dataset.sources[0] if self.dataset.sources else ""

    def _snapshot(self) -> RenderState:
        metric = self.selection.metric or DEFAULT_METRIC
        cfg = self.scale_config
        rng = compute_scale(metric, cfg, self.dataset.metric_values)
        return RenderState(
            src=self._current_src(),
            metric=metric,
            scale_min=rng.min,
            scale_max=rng.max,
            scale=cfg,
        )

    def recompute(self) -> RenderState:
        self.state = self._snapshot()
        log.debug(
            "Render state: src=%s metric=%s scale=[%.3f, %.3f] %s",
            self.state.src,
            self.state.metric,
            self.state.scale_min,
            self.state.scale_max,
            self.state.scale.transform,
        )
        return self.state

    def apply_scale_config(self, config: ScaleConfig) -> None:
        self.scale_config = config

    def select_source(self, iso2: str | None) -> bool:
        """Select a known source country (e.g. from a map click)."""
        src = normalize_country_code(iso2)
        if not src or src not in self._source_set:
            return False
        self.selection.src = src
        return True

    def value_for(self, iso2: str) -> float | None:
        state = self.state
        row = self.dataset.by_src.get(state.src, {}).get(iso2)
        if row is None:
            return None
        v = parse_num(row.get(state.metric))
        return v if v is not None and v >= 0 else None

    def style_for_feature(self, feature: Mapping[str, Any]) -> FeatureStyle:
        state = self.state
        iso2 = feature_iso2(feature)
        if state.src and iso2 == state.src:
            return FeatureStyle(
                weight=2,
                opacity=1.0,
                color=SELECTED_SOURCE_BORDER_COLOR,
                fill_opacity=0.95,
                fill_color=SELECTED_SOURCE_COLOR,
            )

        v = self.value_for(iso2)
        fill = (
            value_to_color(
                v,
                state.scale_min,
                state.scale_max,
                state.scale.transform,
                missing_color=state.scale.missing_color,
            )
            if v is not None
            else state.scale.missing_color
        )
        return FeatureStyle(
            weight=1,
            opacity=0.9,
            color=BORDER_COLOR,
            fill_opacity=0.85,
            fill_color=fill,
        )

    def tooltip_for_feature(self, feature: Mapping[str, Any]) -> TooltipPayload:
        state = self.state
        iso2 = feature_iso2(feature)
        return TooltipPayload(
            name=feature_name(feature) or iso2,
            code=iso2,
            src=state.src,
            metric=state.metric,
            value_text=format_value(self.value_for(iso2)),
        )

    def legend(self) -> Legend:
        state = self.state
        cfg = state.scale
        min_text = f"{state.scale_min:.1f}"
        max_text = f"{state.scale_max:.1f}"
        if cfg.auto:
            min_text += f" (p{cfg.p_low:g})"
            max_text += f" (p{cfg.p_high:g})"
        mode = "Auto global scale" if cfg.auto else "Manual scale"
        return Legend(
            title=f"RTT ({state.metric})",
            min_text=f"{min_text} ms",
            max_text=f"{max_text} ms",
            footer=f"{mode} • {cfg.transform}",
        )
