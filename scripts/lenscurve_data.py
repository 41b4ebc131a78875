import json
import logging
import math
import numbers
import os
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# --- CONFIGURATION & CONSTANTS ---
CEILING_FOCAL_LENGTH = 200.0  # mm, terminal point for the longest lens
DEFAULT_FOCAL_LABELS = ["12mm", "16mm", "24mm", "28mm", "35mm", "50mm",
                        "75mm", "85mm", "105mm", "120mm", "135mm", "200mm"]

# Relative disagreement tolerated between the physical-aperture projection
# and the equivalent-aperture ratio before a lens is flagged.
DIVERGENCE_TOLERANCE = 0.05

# Sub-1/2" sensors are quoted against an 18mm diagonal, larger ones against 16mm.
SMALL_SENSOR_THRESHOLD = 1 / 2.0
LEGACY_DIAGONAL_MM = 18.0
STANDARD_DIAGONAL_MM = 16.0

DATA_DIR = Path(os.environ.get("LENSCURVE_DATA_DIR", Path(__file__).resolve().parent.parent / "data"))
CHART_DATA_FILE = "chart-enhanced.json"
PHONE_DATA_FILE = "phones-enhanced.json"

DEFAULT_VIEW_PARAMS = {
    "visible_per_brand": 3,
    "view_mode": "Chart",
    "figsize": (9, 6),
    "dpi": 120,
}

BRAND_NAMES = {
    "xiaomi": "Xiaomi", "vivo": "vivo", "oppo": "OPPO", "apple": "Apple",
    "samsung": "Samsung", "huawei": "Huawei", "honor": "Honor", "nubia": "nubia",
}

BRAND_COLORS = {
    "xiaomi": ["#FF6B35", "#FF8A50", "#FFA726", "#FFB74D", "#FFCC80"],
    "vivo": ["#8E24AA", "#AB47BC", "#BA68C8", "#CE93D8", "#E1BEE7"],
    "oppo": ["#43A047", "#66BB6A", "#81C784", "#A5D6A7", "#C8E6C9"],
    "apple": ["#1E88E5", "#42A5F5", "#64B5F6", "#90CAF9", "#BBDEFB"],
    "samsung": ["#E53935", "#EF5350", "#F44336", "#EF5350", "#FFCDD2"],
    "huawei": ["#F57C00", "#FF9800", "#FFB74D", "#FFCC80", "#FFE0B2"],
    "honor": ["#7B1FA2", "#9C27B0", "#BA68C8", "#CE93D8", "#E1BEE7"],
    "nubia": ["#D32F2F", "#F44336", "#EF5350", "#E57373", "#FFCDD2"],
}
FALLBACK_COLOR = "#666666"


class LensDataError(ValueError):
    """A lens record is missing a usable focal length or optical value."""


# --- DATA MODEL ---
@dataclass(frozen=True)
class NativeLens:
    focal_length: float
    optical_value: float
    physical_value: Optional[float] = None
    conversion_factor: Optional[float] = None
    sensor_spec: Optional[str] = None
    lens_type: str = ""

    @property
    def has_physical_path(self):
        return self.physical_value is not None and self.conversion_factor is not None and self.focal_length != 0

    @classmethod
    def from_record(cls, record):
        if not isinstance(record, dict):
            raise LensDataError(f"lens record is not an object: {record!r}")
        focal = as_number(record.get("focalLength"))
        value = as_number(record.get("aperture"))
        if focal is None or value is None:
            raise LensDataError(f"missing focal length or aperture: {record!r}")
        if focal <= 0:
            raise LensDataError(f"non-positive focal length {focal}")
        return cls(
            focal_length=focal,
            optical_value=value,
            physical_value=as_number(record.get("physicalApertureValue")),
            conversion_factor=as_number(record.get("conversionFactor")),
            lens_type=str(record.get("type") or ""),
        )


@dataclass(frozen=True)
class PhoneDataset:
    label: str
    brand: str = ""
    release_year: Optional[int] = None
    lenses: tuple = ()
    lens_details: dict = field(default_factory=dict)
    border_color: str = FALLBACK_COLOR

    def detail_for(self, focal_length):
        return self.lens_details.get(focal_key(focal_length)) or {}


@dataclass(frozen=True)
class ChartData:
    labels: tuple
    reference_focal_lengths: tuple
    datasets: tuple


# --- PARSERS ---
def is_real(value):
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def as_number(value):
    """Return value as a finite float, or None for anything non-numeric."""
    if not is_real(value):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


_APERTURE_RE = re.compile(r"f?/?([\d.]+)", re.IGNORECASE)


def parse_aperture(raw):
    if raw is None:
        return None
    if is_real(raw):
        return as_number(raw)
    match = _APERTURE_RE.search(str(raw).strip())
    if match:
        try:
            return float(match.group(1))
        except ValueError:
            pass
    logger.warning("Could not parse aperture value %r", raw)
    return None


def parse_sensor_size(raw):
    """'1/1.28' -> 0.78125, '0.5' -> 0.5. Returns None when unparseable."""
    if raw is None:
        return None
    if is_real(raw):
        value = as_number(raw)
    else:
        text = str(raw).strip().rstrip('"').replace("英寸", "")
        try:
            if "/" in text:
                num, den = text.split("/", 1)
                value = float(num) / float(den)
            else:
                value = float(text)
        except (ValueError, ZeroDivisionError):
            value = None
    if value is None or value <= 0 or math.isinf(value):
        return None
    return value


def format_sensor_size(size):
    fraction = f"{1 / size:.2f}".rstrip("0").rstrip(".")
    if fraction == "0.75":
        return "4/3"
    return f"1/{fraction}"


def to_standard_basis(size):
    """Express a nominal sensor size on the 16mm-diagonal basis."""
    if size < SMALL_SENSOR_THRESHOLD:
        return size * LEGACY_DIAGONAL_MM / STANDARD_DIAGONAL_MM
    return size


def focal_key(focal_length):
    focal_length = float(focal_length)
    if focal_length.is_integer():
        return str(int(focal_length))
    return repr(focal_length)


def format_focal_length(focal_length):
    return f"{focal_key(focal_length)}mm"


def parse_focal_label(label):
    if is_real(label):
        return as_number(label)
    try:
        return float(str(label).strip().lower().replace("mm", ""))
    except ValueError:
        return None


def reference_focal_lengths(labels):
    """Ascending, de-duplicated focal lengths from labels like '24mm'."""
    values = set()
    for label in labels:
        value = parse_focal_label(label)
        if value is None or value <= 0:
            logger.warning("Ignoring unparseable focal length label %r", label)
            continue
        values.add(value)
    return tuple(sorted(values))


_EXCEL_EPOCH = date(1899, 12, 30)
_EXCEL_MAX_SERIAL = 2958465  # 9999-12-31


def extract_year(raw):
    if raw is None:
        return None
    if isinstance(raw, (datetime, date)):
        return raw.year
    if is_real(raw):
        if math.isnan(raw):
            return None
        if 1900 <= raw <= 2100:
            return int(raw)
        if not math.isfinite(raw) or not 1 <= raw <= _EXCEL_MAX_SERIAL:
            logger.warning("Release date %r is not a year or an Excel serial date", raw)
            return None
        # Excel serial date
        return (_EXCEL_EPOCH + timedelta(days=int(raw))).year
    match = re.search(r"(\d{4})", str(raw))
    if match:
        return int(match.group(1))
    logger.warning("Could not parse release date %r", raw)
    return None


# --- LENS SETS ---
def parse_lenses(records, label=""):
    """Build a sorted NativeLens tuple, skipping malformed and duplicate entries."""
    lenses = []
    seen = set()
    for record in records or []:
        try:
            lens = NativeLens.from_record(record)
        except LensDataError as e:
            logger.warning("[%s] Skipping lens: %s", label, e)
            continue
        if lens.focal_length in seen:
            logger.warning("[%s] Skipping duplicate lens at %smm", label, focal_key(lens.focal_length))
            continue
        seen.add(lens.focal_length)
        lenses.append(lens)
    return tuple(sorted(lenses, key=lambda l: l.focal_length))


def sensor_lenses(dataset):
    """Lenses whose optical value is the native sensor size on the 16mm basis."""
    result = []
    for lens in dataset.lenses:
        spec = dataset.detail_for(lens.focal_length).get("sensorSize")
        size = parse_sensor_size(spec)
        if size is None:
            logger.warning("[%s] Sensor spec not found for %smm (%r). Skipping this lens segment.",
                           dataset.label, focal_key(lens.focal_length), spec)
            continue
        result.append(NativeLens(
            focal_length=lens.focal_length,
            optical_value=to_standard_basis(size),
            sensor_spec=str(spec),
            lens_type=lens.lens_type,
        ))
    return tuple(result)


# --- LOADING ---
def dataset_from_record(record):
    label = record.get("label")
    if not label:
        raise ValueError(f"dataset without a label: {sorted(record)}")
    details = record.get("lensDetails") or {}
    if not isinstance(details, dict):
        details = {}
    records = record.get("originalLenses")
    if records is not None and not isinstance(records, list):
        raise ValueError(f"dataset {label!r}: originalLenses is not a list: {records!r}")
    year = record.get("releaseYear")
    return PhoneDataset(
        label=str(label),
        brand=str(record.get("brand") or ""),
        release_year=int(year) if as_number(year) is not None else None,
        lenses=parse_lenses(records, label),
        lens_details={str(k): v for k, v in details.items() if isinstance(v, dict)},
        border_color=str(record.get("borderColor") or FALLBACK_COLOR),
    )


def chart_data_from_dict(raw):
    if not isinstance(raw, dict) or not isinstance(raw.get("datasets"), list):
        raise ValueError("chart data must be an object with a 'datasets' list")
    labels = raw.get("labels")
    if isinstance(labels, str):
        labels = [labels]
    elif labels is not None and not isinstance(labels, list):
        logger.warning("Ignoring labels %r, using the default focal lengths", labels)
        labels = None
    if labels is None:
        labels = DEFAULT_FOCAL_LABELS
    datasets = []
    seen = set()
    for record in raw["datasets"]:
        if not isinstance(record, dict):
            logger.warning("Skipping non-object dataset entry %r", record)
            continue
        try:
            dataset = dataset_from_record(record)
        except ValueError as e:
            logger.warning("Skipping dataset: %s", e)
            continue
        if dataset.label in seen:
            logger.warning("Skipping duplicate dataset %r", dataset.label)
            continue
        seen.add(dataset.label)
        datasets.append(dataset)
    return ChartData(
        labels=tuple(labels),
        reference_focal_lengths=reference_focal_lengths(labels),
        datasets=tuple(datasets),
    )


def load_chart_data(path=None):
    path = Path(path) if path is not None else DATA_DIR / CHART_DATA_FILE
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    chart = chart_data_from_dict(raw)
    logger.info("Loaded %d datasets from %s", len(chart.datasets), path)
    return chart
