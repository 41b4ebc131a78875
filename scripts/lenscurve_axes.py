import math
from bisect import bisect_right
from dataclasses import dataclass
from typing import Any

from lenscurve_data import format_focal_length


@dataclass(frozen=True)
class AxisTickDefinition:
    value: float
    label: str


@dataclass(frozen=True)
class ChartPoint:
    x: float
    y: float
    point_type: str
    source: Any = None


# --- SENSOR SIZE TICKS ---
def _sensor_label(denominator):
    if denominator == 0.75:
        return "4/3"
    if float(denominator).is_integer():
        return f"1/{int(denominator)}"
    return "1/" + f"{denominator:.2f}".rstrip("0").rstrip(".")


def sensor_tick_definitions(first=0.75, last=5.0, step=0.25):
    """Quarter-stop sensor formats from 4/3 down to 1/5, largest first."""
    count = int(round((last - first) / step)) + 1
    denominators = [first + k * step for k in range(count)]
    defs = [AxisTickDefinition(1 / d, _sensor_label(d)) for d in denominators]
    return tuple(sorted(defs, key=lambda t: t.value, reverse=True))


SENSOR_TICKS = sensor_tick_definitions()


# --- COORDINATE MAPPING ---
def equidistant_position(major_ticks, value):
    """
    Map a physical value onto evenly spaced tick indices.

    Between two ticks the position is linear in the value; outside the tick
    range the first or last segment is extended rather than clamped.
    """
    ticks = list(major_ticks)
    if not ticks or value is None:
        return None
    if len(ticks) == 1:
        return 0.0
    if value <= ticks[0]:
        i = 0
    elif value >= ticks[-1]:
        i = len(ticks) - 2
    else:
        i = bisect_right(ticks, value) - 1
    lo, hi = ticks[i], ticks[i + 1]
    if hi == lo:
        return float(i)
    return i + (value - lo) / (hi - lo)


def reversed_category_position(tick_defs, value):
    """
    Map a sensor size onto a descending list of tick definitions.

    Index 0 is the largest format. Values outside the list snap to the end
    categories.
    """
    if value is None or not tick_defs:
        return None
    if value >= tick_defs[0].value:
        return 0.0
    last = len(tick_defs) - 1
    if value <= tick_defs[last].value:
        return float(last)
    for i in range(last):
        upper, lower = tick_defs[i], tick_defs[i + 1]
        if lower.value < value <= upper.value:
            if upper.value == lower.value:
                return float(i)
            return (i + 1) - (value - lower.value) / (upper.value - lower.value)
    return float(last)


# --- TICK LABELS ---
def category_tick_label(position, labels):
    position = float(position)
    if not position.is_integer():
        return ""
    i = int(position)
    if 0 <= i < len(labels):
        return labels[i]
    return ""


def tick_callback(labels):
    """Label formatter for an index axis, usable as a matplotlib FuncFormatter."""
    labels = list(labels)
    return lambda position, _=None: category_tick_label(position, labels)


def focal_tick_callback(major_ticks):
    return tick_callback([format_focal_length(t) for t in major_ticks])


def sensor_tick_callback(tick_defs=SENSOR_TICKS):
    return tick_callback([t.label for t in tick_defs])


def log_tick_label(value, reference_focal_lengths):
    for ref in reference_focal_lengths:
        if math.isclose(value, ref, rel_tol=1e-9):
            return format_focal_length(ref)
    return ""


# --- APERTURE AXIS ---
def aperture_axis_range(values, step=4):
    values = [v for v in values if v is not None]
    if not values:
        return (step, 8 * step)
    lo = max(step, math.floor(min(values) / step) * step)
    hi = math.ceil(max(values) / step) * step
    return (lo, max(lo + step, hi))


def aperture_ticks(axis_range, step=4):
    lo, hi = axis_range
    return list(range(int(lo), int(hi) + 1, step))


# --- CHART POINTS ---
def chart_points(points, x_map=None, y_map=None):
    """Rewrite projected points into chart coordinates, dropping unmappable ones."""
    result = []
    for p in points:
        x = x_map(p.focal_length) if x_map else p.focal_length
        y = y_map(p.value) if y_map else p.value
        if x is None or y is None:
            continue
        result.append(ChartPoint(x, y, p.kind.value, p))
    return result


def aperture_chart_points(points, major_ticks):
    return chart_points(points, x_map=lambda fl: equidistant_position(major_ticks, fl))


def sensor_chart_points(points, tick_defs=SENSOR_TICKS):
    return chart_points(points, y_map=lambda v: reversed_category_position(tick_defs, v))
