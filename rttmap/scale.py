from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping

import numpy as np

from rttmap.colors import hex_to_rgb
from rttmap.config import MISSING_COLOR
from rttmap.index import percentile

TRANSFORMS = ("linear", "log")
# Minimum width of an auto scale so color normalization never divides by zero.
MIN_SCALE_SPAN = 1e-6


@dataclass(frozen=True)
class ScaleConfig:
    """
    Global color scale settings, shared by every selected source.

    - auto: derive [min, max] from percentiles of the observed values
    - min_ms / max_ms: manual bounds, used verbatim when auto is off
    - p_low / p_high: percentile bounds used when auto is on
    """

    auto: bool = True
    min_ms: float = 20.0
    max_ms: float = 300.0
    p_low: float = 5.0
    p_high: float = 95.0
    transform: str = "linear"
    missing_color: str = MISSING_COLOR

    def __post_init__(self) -> None:
        if self.transform not in TRANSFORMS:
            raise ValueError(
                f"Unknown scale transform '{self.transform}'. Expected one of {TRANSFORMS}."
            )
        for name in ("p_low", "p_high"):
            p = float(getattr(self, name))
            if not 0 <= p <= 100:
                raise ValueError(f"{name} must be within [0, 100], got {p}")
        try:
            hex_to_rgb(self.missing_color)
        except ValueError as err:
            raise ValueError(f"missing_color: {err}") from err

    def replace(self, **changes) -> "ScaleConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class ScaleRange:
    min: float
    max: float
    transform: str = "linear"


def compute_scale(
    metric: str,
    config: ScaleConfig,
    metric_values: Mapping[str, np.ndarray],
) -> ScaleRange:
    """
    Display range for `metric`.

    Manual mode returns the configured bounds unvalidated (even max < min). Auto mode
    takes the p_low/p_high percentiles of the metric's values and always yields max > min.
    """
    if not config.auto:
        return ScaleRange(
            min=float(config.min_ms),
            max=float(config.max_ms),
            transform=config.transform,
        )

    values = metric_values.get(metric)
    if values is None or len(values) == 0:
        return ScaleRange(min=0.0, max=1.0, transform=config.transform)

    lo = percentile(values, config.p_low)
    hi = percentile(values, config.p_high)
    if not hi > lo:
        hi = lo + MIN_SCALE_SPAN
    return ScaleRange(min=lo, max=hi, transform=config.transform)
