# Central place for metric names, heuristic constants and colors.
NOTES = """
The invalid-fraction thresholds and the two anchor colors come from the first version of the
map and have no documented derivation. Keep the values for compatibility, tune them here.
"""

DEFAULT_CSV_PATH = "country_country_rtt.csv"
GEOJSON_URL: str = (
    "https://raw.githubusercontent.com/datasets/geo-countries/master/data/countries.geojson"
)
HTTP_TIMEOUT_S = 30

SRC_COL = "src_country"
DST_COL = "dst_country"

DEFAULT_METRIC = "average_ms"
METRIC_FIELDS: tuple[str, ...] = (
    DEFAULT_METRIC,
    "mean_ms",
    "p50_ms",
    "p90_ms",
    "p95_ms",
    "min_ms",
    "max_ms",
)

# Wire value meaning "no valid samples" for a latency field.
SENTINEL_MS = -1.0

# Lower bound on the invalid share once contamination is detected: at least one
# sample, or 1% of n, whichever is larger.
INVALID_FRACTION_FLOOR = 0.01
# A negative k-th percentile implies at least (100 - k)% of the samples are invalid.
PERCENTILE_INVALID_FRACTIONS: tuple[tuple[str, float], ...] = (
    ("p50_ms", 0.70),
    ("p90_ms", 0.925),
    ("p95_ms", 0.975),
)
# Order matters: first usable value wins.
AVERAGE_FALLBACK_FIELDS: tuple[str, ...] = ("p50_ms", "p90_ms", "p95_ms", "max_ms")

FAST_COLOR = "#00b050"  # green
SLOW_COLOR = "#ff0000"  # red
MISSING_COLOR = "#dddddd"
LOG_EPSILON = 1e-6

SELECTED_SOURCE_COLOR = "#2f6bff"
SELECTED_SOURCE_BORDER_COLOR = "#163dba"
BORDER_COLOR = "#666666"
