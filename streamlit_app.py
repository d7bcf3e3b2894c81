import argparse

import altair as alt
import pandas as pd
import streamlit as st

from rttmap.config import (
    DEFAULT_CSV_PATH,
    FAST_COLOR,
    GEOJSON_URL,
    METRIC_FIELDS,
    MISSING_COLOR,
    SLOW_COLOR,
)
from rttmap.data import DataLoadError, load_geojson, load_rtt_csv
from rttmap.deck import LAYER_ID, build_deck, styled_geojson
from rttmap.log import configure_logging, log
from rttmap.pipeline import RttDataset, prepare_dataset
from rttmap.refresh import RefreshScheduler, TickQueue
from rttmap.render import RenderStateCoordinator, Selection, feature_iso2
from rttmap.scale import TRANSFORMS, ScaleConfig


@st.cache_resource
def load_dataset(source: str) -> RttDataset:
    return prepare_dataset(load_rtt_csv(source))


@st.cache_data
def load_shapes(source: str) -> dict:
    return load_geojson(source)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--csv", default=DEFAULT_CSV_PATH)
    parser.add_argument("--geojson", default=GEOJSON_URL)
    return parser.parse_known_args()[0]


st.set_page_config(page_title="rttmap viewer", layout="wide")
st.title("Country RTT map")
st.caption(
    "Destination countries colored by round-trip latency from the selected source. "
    "Click a country to make it the source."
)

if "logging_configured" not in st.session_state:
    configure_logging()
    st.session_state.logging_configured = True

args = _parse_args()

try:
    dataset = load_dataset(args.csv)
    geojson = load_shapes(args.geojson)
except DataLoadError as err:
    st.error(f"App failed to start: {err}")
    st.info(
        "Point the viewer at your data with "
        "`streamlit run streamlit_app.py -- --csv country_country_rtt.csv`."
    )
    st.stop()

if not dataset.sources:
    st.info("The RTT table has no rows with both src_country and dst_country.")
    st.stop()


def _redraw() -> None:
    coordinator: RenderStateCoordinator = st.session_state.coordinator
    coordinator.recompute()
    st.session_state.styled = styled_geojson(coordinator, geojson)


# One engine per browser session; widgets only signal, the scheduler recomputes.
if "coordinator" not in st.session_state:
    st.session_state.coordinator = RenderStateCoordinator(
        dataset, selection=Selection(src=dataset.sources[0])
    )
    st.session_state.ticks = TickQueue()
    st.session_state.scheduler = RefreshScheduler(
        _redraw,
        st.session_state.ticks.defer,
        on_busy=lambda busy: log.debug("refresh busy=%s", busy),
    )

coordinator: RenderStateCoordinator = st.session_state.coordinator
scheduler: RefreshScheduler = st.session_state.scheduler


def _on_selection_change() -> None:
    coordinator.selection.src = st.session_state.src_select
    coordinator.selection.metric = st.session_state.metric_select
    scheduler.signal()


def _on_map_select() -> None:
    event = st.session_state.get("rtt_map")
    if not event:
        return
    picked = (event.selection.get("objects") or {}).get(LAYER_ID) or []
    if picked and coordinator.select_source(feature_iso2(picked[0])):
        st.session_state.src_select = coordinator.selection.src
        scheduler.signal()


def _on_apply_scale() -> None:
    try:
        config = ScaleConfig(
            auto=bool(st.session_state.auto_scale),
            min_ms=float(st.session_state.scale_min),
            max_ms=float(st.session_state.scale_max),
            p_low=float(st.session_state.p_low),
            p_high=float(st.session_state.p_high),
            transform=str(st.session_state.scale_transform),
            missing_color=(st.session_state.missing_color or MISSING_COLOR).strip(),
        )
    except ValueError as err:
        # Keep the last good config on screen.
        st.session_state.scale_error = f"Scale not applied: {err}"
        return
    st.session_state.scale_error = None
    coordinator.apply_scale_config(config)
    scheduler.signal()


if "src_select" not in st.session_state:
    st.session_state.src_select = coordinator.state.src

st.sidebar.subheader("Selection")
st.sidebar.selectbox(
    "Source country",
    options=dataset.sources,
    key="src_select",
    on_change=_on_selection_change,
)
st.sidebar.selectbox(
    "Metric",
    options=list(METRIC_FIELDS),
    key="metric_select",
    on_change=_on_selection_change,
)

st.sidebar.markdown("---")
st.sidebar.subheader("Scale")
defaults = ScaleConfig()
with st.sidebar.form("scale_form"):
    st.checkbox(
        "Auto global scale",
        value=defaults.auto,
        key="auto_scale",
        help="Derive the range from percentiles of every pair's values for the metric",
    )
    st.number_input("Min (ms, manual)", value=defaults.min_ms, key="scale_min")
    st.number_input("Max (ms, manual)", value=defaults.max_ms, key="scale_max")
    st.number_input(
        "Low percentile (auto)",
        min_value=0.0,
        max_value=100.0,
        value=defaults.p_low,
        key="p_low",
    )
    st.number_input(
        "High percentile (auto)",
        min_value=0.0,
        max_value=100.0,
        value=defaults.p_high,
        key="p_high",
    )
    st.selectbox("Transform", options=list(TRANSFORMS), key="scale_transform")
    st.text_input("Missing color", value=defaults.missing_color, key="missing_color")
    st.form_submit_button("Apply", on_click=_on_apply_scale)

if st.session_state.get("scale_error"):
    st.sidebar.warning(st.session_state.scale_error)

if "styled" not in st.session_state:
    scheduler.signal()
# Callbacks above ran before this point; a burst of them collapses into one pass here.
st.session_state.ticks.drain()

state = coordinator.state
legend = coordinator.legend()

st.pydeck_chart(
    build_deck(coordinator, styled=st.session_state.styled),
    width="stretch",
    on_select=_on_map_select,
    selection_mode="single-object",
    key="rtt_map",
)

left, right = st.columns([1, 2])
with left:
    st.markdown(
        f"""
<div style="font-weight:700;">{legend.title}</div>
<div style="height:10px;margin:4px 0;background:linear-gradient(90deg, {FAST_COLOR}, {SLOW_COLOR});"></div>
<div style="display:flex;justify-content:space-between;"><span>{legend.low_label}</span><span>{legend.high_label}</span></div>
<div style="display:flex;justify-content:space-between;"><span>{legend.min_text}</span><span>{legend.max_text}</span></div>
<div style="margin-top:6px;font-size:12px;color:rgba(0,0,0,.65);">{legend.footer}</div>
""",
        unsafe_allow_html=True,
    )

with right:
    values = dataset.metric_values.get(state.metric)
    if values is None or len(values) == 0:
        st.info(f"No valid `{state.metric}` values in the table.")
    else:
        hist = pd.DataFrame({state.metric: values})
        x_scale = alt.Scale(type="symlog") if state.scale.transform == "log" else alt.Scale()
        bars = (
            alt.Chart(hist)
            .mark_bar(color="#94a3b8")
            .encode(
                x=alt.X(f"{state.metric}:Q", bin=alt.Bin(maxbins=40), scale=x_scale),
                y=alt.Y("count():Q", title="pairs"),
            )
        )
        bounds = (
            alt.Chart(
                pd.DataFrame(
                    {"bound": ["min", "max"], "ms": [state.scale_min, state.scale_max]}
                )
            )
            .mark_rule(strokeWidth=2)
            .encode(
                x="ms:Q",
                color=alt.Color(
                    "bound:N",
                    scale=alt.Scale(domain=["min", "max"], range=[FAST_COLOR, SLOW_COLOR]),
                    legend=alt.Legend(title="scale"),
                ),
            )
        )
        st.caption(f"Distribution of `{state.metric}` across all pairs")
        st.altair_chart((bars + bounds).properties(height=220), width="stretch")

st.markdown("---")
st.subheader(f"Pairs from {state.src}")
pairs = dataset.rows[dataset.rows["src_country"] == state.src]
cols = [c for c in ["dst_country", "n", *METRIC_FIELDS] if c in pairs.columns]
st.dataframe(
    pairs[cols].sort_values("dst_country", ignore_index=True),
    width="stretch",
    height=420,
)
