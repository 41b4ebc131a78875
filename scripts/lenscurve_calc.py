import logging
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional

from lenscurve_data import (
    CEILING_FOCAL_LENGTH, DIVERGENCE_TOLERANCE, NativeLens,
    as_number, focal_key, format_focal_length, sensor_lenses,
)

logger = logging.getLogger(__name__)


# --- POINT TYPES ---
class PointKind(Enum):
    NATIVE = "actual"
    CONNECTOR = "theoretical_extension"
    BOUNDARY = "theoretical_end"


@dataclass(frozen=True)
class NativePoint:
    focal_length: float
    value: float
    basis: NativeLens
    kind: ClassVar[PointKind] = PointKind.NATIVE


@dataclass(frozen=True)
class ConnectorPoint:
    """Reference focal length strictly inside the basis lens's segment."""
    focal_length: float
    value: float
    basis: NativeLens
    kind: ClassVar[PointKind] = PointKind.CONNECTOR


@dataclass(frozen=True)
class BoundaryPoint:
    """Where the basis lens hands over to next_lens (None at the ceiling)."""
    focal_length: float
    value: float
    basis: NativeLens
    next_lens: Optional[NativeLens] = None
    kind: ClassVar[PointKind] = PointKind.BOUNDARY


# --- PROJECTION RULES ---
def project_aperture(lens, target_fl):
    """Equivalent F-number of `lens` cropped to `target_fl`."""
    if target_fl == lens.focal_length:
        return lens.optical_value
    if lens.has_physical_path:
        return (lens.physical_value * lens.conversion_factor / lens.focal_length) * target_fl
    return lens.optical_value * (target_fl / lens.focal_length)


def project_sensor_size(lens, target_fl):
    """Equivalent sensor size shrinks by the crop factor target/native."""
    if target_fl == lens.focal_length:
        return lens.optical_value
    return lens.optical_value / (target_fl / lens.focal_length)


def projection_divergence(lens):
    if not lens.has_physical_path or not lens.optical_value:
        return None
    physical = lens.physical_value * lens.conversion_factor
    return abs(physical - lens.optical_value) / abs(lens.optical_value)


def divergent_lenses(lenses, tolerance=DIVERGENCE_TOLERANCE):
    result = []
    for lens in lenses:
        d = projection_divergence(lens)
        if d is not None and d > tolerance:
            result.append((lens, d))
    return result


def _is_usable(lens, label):
    focal = as_number(getattr(lens, "focal_length", None))
    value = as_number(getattr(lens, "optical_value", None))
    if focal is None or value is None or focal <= 0:
        logger.warning("[%s] Skipping lens without usable focal length/value: %r", label, lens)
        return False
    return True


# --- CURVE PROJECTION ---
def project_curve(lenses, reference_focal_lengths, ceiling=CEILING_FOCAL_LENGTH,
                  rule=project_aperture, label=""):
    """
    Expand native lenses into an ordered point sequence.

    Each lens owns the range from its own focal length up to the next lens
    (or `ceiling` for the last one): a native point, connector points at every
    reference focal length strictly inside that range, and a boundary point
    at its end. A boundary point always comes right before the native point
    of the following lens sharing its focal length, so a polyline through
    the sequence draws a vertical step there.
    """
    usable = sorted((l for l in lenses if _is_usable(l, label)), key=lambda l: l.focal_length)
    references = sorted(set(reference_focal_lengths))
    points = []
    for i, lens in enumerate(usable):
        next_lens = usable[i + 1] if i + 1 < len(usable) else None
        points.append(NativePoint(lens.focal_length, lens.optical_value, lens))

        boundary = next_lens.focal_length if next_lens else ceiling
        for ref in references:
            if lens.focal_length < ref < boundary:
                points.append(ConnectorPoint(ref, rule(lens, ref), lens))

        if boundary > lens.focal_length:
            points.append(BoundaryPoint(boundary, rule(lens, boundary), lens, next_lens))
    return tuple(points)


def aperture_curve(dataset, reference_focal_lengths, ceiling=CEILING_FOCAL_LENGTH):
    for lens, d in divergent_lenses(dataset.lenses):
        logger.warning("[%s] %smm: physical aperture x conversion factor (%.3f) differs from "
                       "equivalent aperture F%s by %.0f%%; using the physical projection",
                       dataset.label, focal_key(lens.focal_length),
                       lens.physical_value * lens.conversion_factor, lens.optical_value, d * 100)
    return project_curve(dataset.lenses, reference_focal_lengths, ceiling,
                         rule=project_aperture, label=dataset.label)


def sensor_size_curve(dataset, reference_focal_lengths, ceiling=CEILING_FOCAL_LENGTH):
    return project_curve(sensor_lenses(dataset), reference_focal_lengths, ceiling,
                         rule=project_sensor_size, label=dataset.label)


# --- SINGLE TARGET LOOKUP ---
def value_at_focal_length(lenses, target_fl, rule=project_aperture):
    """
    Value at `target_fl` projected from the closest native lens at or below it.
    None when the target is wider than every native lens.
    """
    usable = [l for l in lenses if _is_usable(l, "lookup")]
    if not usable:
        return None
    if target_fl < min(l.focal_length for l in usable):
        return None
    for lens in usable:
        if lens.focal_length == target_fl:
            return lens.optical_value
    basis = max((l for l in usable if l.focal_length <= target_fl), key=lambda l: l.focal_length)
    return rule(basis, target_fl)


def aperture_at_focal_length(lenses, target_fl):
    value = value_at_focal_length(lenses, target_fl, project_aperture)
    if value is None:
        return None
    return round(value, 1)


def sensor_size_at_focal_length(lenses, target_fl):
    return value_at_focal_length(lenses, target_fl, project_sensor_size)


# --- SELECTION & TABLES ---
def default_visible_labels(datasets, per_brand=3):
    """Newest `per_brand` phones of every brand."""
    by_brand = {}
    for d in datasets:
        if d.release_year is None:
            continue
        by_brand.setdefault(d.brand, []).append(d)
    visible = []
    for brand_sets in by_brand.values():
        newest = sorted(brand_sets, key=lambda d: d.release_year, reverse=True)[:per_brand]
        visible.extend(d.label for d in newest)
    return [d.label for d in datasets if d.label in visible]


def filter_dataset_labels(datasets, years=(), brands=()):
    years, brands = set(years), set(brands)
    return [d.label for d in datasets
            if (not years or d.release_year in years) and (not brands or d.brand in brands)]


def table_focal_lengths(datasets, reference_focal_lengths):
    focals = set(reference_focal_lengths)
    for d in datasets:
        focals.update(l.focal_length for l in d.lenses)
    return sorted(focals)


def aperture_table_rows(datasets, reference_focal_lengths):
    focals = table_focal_lengths(datasets, reference_focal_lengths)
    rows = []
    for d in datasets:
        row = {"Phone": d.label}
        for fl in focals:
            row[format_focal_length(fl)] = aperture_at_focal_length(d.lenses, fl)
        rows.append(row)
    return rows


def sensor_table_rows(datasets, reference_focal_lengths, formatter=None):
    focals = table_focal_lengths(datasets, reference_focal_lengths)
    rows = []
    for d in datasets:
        lenses = sensor_lenses(d)
        row = {"Phone": d.label}
        for fl in focals:
            size = sensor_size_at_focal_length(lenses, fl)
            if size is not None and formatter is not None:
                size = formatter(size)
            row[format_focal_length(fl)] = size
        rows.append(row)
    return rows
