from __future__ import annotations

import math
import re
from typing import Any

from rttmap.config import FAST_COLOR, LOG_EPSILON, MISSING_COLOR, SLOW_COLOR
from rttmap.models import parse_num

_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    m = _HEX_RE.match(str(color).strip())
    if not m:
        raise ValueError(f"Not a #rrggbb color: {color!r}")
    return int(m.group(1), 16), int(m.group(2), 16), int(m.group(3), 16)


def rgb_to_hex(rgb: tuple[int, int, int]) -> str:
    return "#" + "".join(f"{int(c):02x}" for c in rgb)


def hex_to_rgba(color: str, alpha: float = 1.0) -> list[int]:
    """[r, g, b, a] with a in 0..255, the shape pydeck color accessors expect."""
    r, g, b = hex_to_rgb(color)
    return [r, g, b, _channel(alpha * 255)]


def _channel(x: float) -> int:
    return max(0, min(255, int(math.floor(x + 0.5))))


def _log10_floor(x: float) -> float:
    return math.log10(max(LOG_EPSILON, x))


def value_to_color(
    value: Any,
    min_v: float,
    max_v: float,
    transform: str = "linear",
    *,
    missing_color: str = MISSING_COLOR,
    fast_color: str = FAST_COLOR,
    slow_color: str = SLOW_COLOR,
) -> str:
    """
    Color along the fast -> slow ramp for `value` within [min_v, max_v].

    Absent, non-finite and negative (sentinel) values get `missing_color`. The log
    transform is applied to value and bounds before normalizing.
    """
    v = parse_num(value)
    if v is None or v < 0:
        return missing_color

    a, b = float(min_v), float(max_v)
    if transform == "log":
        v, a, b = _log10_floor(v), _log10_floor(a), _log10_floor(b)

    span = (b - a) or 1.0
    t = max(0.0, min(1.0, (v - a) / span))

    fast = hex_to_rgb(fast_color)
    slow = hex_to_rgb(slow_color)
    return rgb_to_hex(
        tuple(_channel(lo + (hi - lo) * t) for lo, hi in zip(fast, slow))
    )
