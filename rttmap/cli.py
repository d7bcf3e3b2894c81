import argparse
import asyncio
import json
import sys
from dataclasses import dataclass

from rttmap.config import (
    DEFAULT_CSV_PATH,
    DEFAULT_METRIC,
    GEOJSON_URL,
    METRIC_FIELDS,
    MISSING_COLOR,
)
from rttmap.data import DataLoadError, load_inputs, load_rtt_csv
from rttmap.log import configure_logging, log
from rttmap.pipeline import prepare_dataset, write_map_artifacts
from rttmap.render import RenderStateCoordinator, Selection
from rttmap.scale import TRANSFORMS, ScaleConfig, compute_scale


@dataclass(frozen=True)
class RenderResult:
    label: str
    html_path: str
    meta_path: str


def _add_scale_args(parser: argparse.ArgumentParser) -> None:
    defaults = ScaleConfig()
    parser.add_argument(
        "--manual",
        action="store_true",
        help="Use --min-ms/--max-ms verbatim instead of percentile bounds of the data",
    )
    parser.add_argument("--min-ms", type=float, default=defaults.min_ms)
    parser.add_argument("--max-ms", type=float, default=defaults.max_ms)
    parser.add_argument(
        "--p-low",
        type=float,
        default=defaults.p_low,
        help="Lower percentile bound for the auto scale",
    )
    parser.add_argument(
        "--p-high",
        type=float,
        default=defaults.p_high,
        help="Upper percentile bound for the auto scale",
    )
    parser.add_argument("--transform", default=defaults.transform, choices=TRANSFORMS)
    parser.add_argument(
        "--missing-color",
        default=MISSING_COLOR,
        help="Fill for countries without a valid value (#rrggbb)",
    )


def _scale_config_from_args(args: argparse.Namespace) -> ScaleConfig:
    return ScaleConfig(
        auto=not bool(args.manual),
        min_ms=float(args.min_ms),
        max_ms=float(args.max_ms),
        p_low=float(args.p_low),
        p_high=float(args.p_high),
        transform=str(args.transform),
        missing_color=str(args.missing_color).strip() or MISSING_COLOR,
    )


def _enrich(csv: str, out: str) -> str:
    dataset = prepare_dataset(load_rtt_csv(csv))
    dataset.rows.to_csv(out, index=False)
    return out


def _scale(csv: str, metric: str, config: ScaleConfig) -> dict:
    dataset = prepare_dataset(load_rtt_csv(csv))
    rng = compute_scale(metric, config, dataset.metric_values)
    return {
        "metric": metric,
        "min": rng.min,
        "max": rng.max,
        "transform": rng.transform,
        "auto": config.auto,
        "values": int(len(dataset.metric_values.get(metric, []))),
    }


async def _render(
    *,
    csv: str,
    geojson_source: str,
    src: str,
    metric: str,
    label: str,
    out_dir: str,
    config: ScaleConfig,
) -> RenderResult:
    df, geojson = await load_inputs(csv, geojson_source)
    dataset = prepare_dataset(df)

    coordinator = RenderStateCoordinator(
        dataset, selection=Selection(metric=metric), scale_config=config
    )
    if src and not coordinator.select_source(src):
        log.warning("Unknown source country %s; using %s", src, coordinator.state.src)
    coordinator.recompute()

    paths = write_map_artifacts(
        dataset,
        coordinator,
        geojson,
        out_dir=out_dir,
        label=label,
        meta={"kind": "rtt_map", "csv": csv, "geojson": geojson_source},
    )
    return RenderResult(label=label, html_path=paths["html"], meta_path=paths["meta"])


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="rttmap")
    sub = parser.add_subparsers(dest="command", required=True)

    enrich = sub.add_parser(
        "enrich", help="Write the RTT table with average_ms reconstructed on every row"
    )
    enrich.add_argument("--csv", default=DEFAULT_CSV_PATH, help="RTT table (path or URL)")
    enrich.add_argument("--out", required=True, help="Output CSV path")

    scale = sub.add_parser("scale", help="Print the color scale range for a metric")
    scale.add_argument("--csv", default=DEFAULT_CSV_PATH, help="RTT table (path or URL)")
    scale.add_argument("--metric", default=DEFAULT_METRIC, choices=METRIC_FIELDS)
    _add_scale_args(scale)

    render = sub.add_parser("render", help="Render the choropleth for one source country")
    render.add_argument("--csv", default=DEFAULT_CSV_PATH, help="RTT table (path or URL)")
    render.add_argument(
        "--geojson", default=GEOJSON_URL, help="Country shapes (path or URL)"
    )
    render.add_argument(
        "--src",
        default="",
        help="Source country (ISO alpha-2). Defaults to the first source in the table.",
    )
    render.add_argument("--metric", default=DEFAULT_METRIC, choices=METRIC_FIELDS)
    render.add_argument("--label", default="rtt-map", help="Label for the output files")
    render.add_argument(
        "--out-dir", default="data/maps", help="Directory to store rendered maps"
    )
    render.add_argument(
        "--launch",
        action="store_true",
        help="Launch the Streamlit viewer on the same table after rendering",
    )
    _add_scale_args(render)

    args = parser.parse_args(argv)
    configure_logging()

    config = None
    if args.command in ("scale", "render"):
        try:
            config = _scale_config_from_args(args)
        except ValueError as err:
            parser.error(str(err))

    try:
        if args.command == "enrich":
            print(_enrich(str(args.csv), str(args.out)))
        elif args.command == "scale":
            summary = _scale(str(args.csv), str(args.metric), config)
            print(json.dumps(summary, indent=2))
        elif args.command == "render":
            result = asyncio.run(
                _render(
                    csv=str(args.csv),
                    geojson_source=str(args.geojson),
                    src=str(args.src),
                    metric=str(args.metric),
                    label=str(args.label),
                    out_dir=str(args.out_dir),
                    config=config,
                )
            )
            print(result.html_path)

            if args.launch:
                import subprocess

                subprocess.run(
                    ["streamlit", "run", "streamlit_app.py", "--", "--csv", str(args.csv)],
                    check=True,
                )
    except DataLoadError as err:
        log.error("%s", err)
        sys.exit(1)


if __name__ == "__main__":
    main()
