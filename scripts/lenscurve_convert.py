import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path

import pandas as pd

from lenscurve_data import (
    BRAND_COLORS, CHART_DATA_FILE, DATA_DIR, DEFAULT_FOCAL_LABELS, FALLBACK_COLOR, PHONE_DATA_FILE,
    as_number, extract_year, focal_key, is_real, parse_aperture,
)

logger = logging.getLogger(__name__)

# --- SPREADSHEET LAYOUT ---
BRAND_SHEETS = {
    "小米机型": "xiaomi",
    "VIVO机型": "vivo",
    "OPPO机型": "oppo",
    "苹果机型": "apple",
    "三星机型": "samsung",
    "华为机型": "huawei",
    "荣耀机型": "honor",
    "努比亚机型": "nubia",
}

# lens type -> column prefix
LENS_ROLES = [
    ("ultraWide", "超广角"),
    ("main", "主摄"),
    ("telephoto", "长焦"),
    ("superTelephoto", "超长焦"),
]

NAME_COL = "名称"
DATE_COL = "发布日期"
LEVEL_COL = "级别"


def role_columns(prefix):
    return {
        "focal": f"{prefix}等效焦距（mm）",
        "eq_aperture": f"{prefix}等效光圈（F）",
        "aperture": f"{prefix}光圈（F）",
        "conversion": f"{prefix}转换系数",
        "sensor": f"{prefix}传感器型号",
        "sensor_size": f"{prefix}传感器尺寸（英寸）",
        "physical_focal": f"{prefix}物理焦距（mm）",
    }


# --- CELL HELPERS ---
def _cell(row, col):
    value = row.get(col)
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _plain(value):
    """JSON-safe copy of a spreadsheet cell."""
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.date().isoformat() if isinstance(value, datetime) else value.isoformat()
    if is_real(value):
        value = float(value)
        return int(value) if value.is_integer() else value
    return str(value).strip()


def _number(value):
    if is_real(value):
        return as_number(value)
    if value is None:
        return None
    try:
        return as_number(float(str(value).strip()))
    except ValueError:
        return None


def background_color(hex_color, alpha=0.1):
    h = hex_color.lstrip("#")
    r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    return f"rgba({r}, {g}, {b}, {alpha})"


# --- ROW CONVERSION ---
def lens_from_row(row, lens_type, prefix, phone=""):
    """Return (lens record, lens detail) for one lens role, or None when absent."""
    cols = role_columns(prefix)
    focal = _number(_cell(row, cols["focal"]))
    eq_raw = _cell(row, cols["eq_aperture"])
    if focal is None and eq_raw is None:
        return None
    eq_aperture = parse_aperture(eq_raw)
    if focal is None or focal <= 0 or eq_aperture is None:
        logger.warning("[%s] Skipping %s lens: focal=%r equivalent aperture=%r", phone, lens_type,
                       _cell(row, cols["focal"]), eq_raw)
        return None

    physical_raw = _cell(row, cols["aperture"])
    lens = {
        "focalLength": focal,
        "aperture": eq_aperture,
        "type": lens_type,
        "physicalApertureValue": parse_aperture(physical_raw),
        "conversionFactor": _number(_cell(row, cols["conversion"])),
    }
    detail = {
        "sensor": _plain(_cell(row, cols["sensor"])),
        "sensorSize": _plain(_cell(row, cols["sensor_size"])),
        "physicalFocalLength": _plain(_cell(row, cols["physical_focal"])),
        "equivalentFocalLength": _plain(focal),
        "aperture": _plain(physical_raw),
        "equivalentAperture": _plain(eq_raw),
    }
    logger.info("    %s: %smm, EqAp F%s, PhysAp F%s, CF %s", lens_type, focal_key(focal), eq_aperture,
                lens["physicalApertureValue"], lens["conversionFactor"])
    return lens, detail


def dataset_from_row(row, brand, index):
    name = _cell(row, NAME_COL)
    if name is None:
        return None
    name = str(name).strip()
    logger.info("  Processing %s", name)

    lenses, details = [], {}
    for lens_type, prefix in LENS_ROLES:
        result = lens_from_row(row, lens_type, prefix, name)
        if result is None:
            continue
        lens, detail = result
        key = focal_key(lens["focalLength"])
        if key in details:
            logger.warning("[%s] Duplicate native focal length %smm, keeping the first lens", name, key)
            continue
        lenses.append(lens)
        details[key] = detail

    colors = BRAND_COLORS.get(brand) or [FALLBACK_COLOR]
    color = colors[index % len(colors)]
    return {
        "label": name,
        "borderColor": color,
        "backgroundColor": background_color(color),
        "tension": 0,
        "brand": brand,
        "releaseYear": extract_year(_cell(row, DATE_COL)),
        "lensDetails": details,
        "originalLenses": sorted(lenses, key=lambda l: l["focalLength"]),
    }


def convert_sheets(sheets, labels=DEFAULT_FOCAL_LABELS):
    """sheets: {sheet name: DataFrame}. Returns (phone data, chart data)."""
    phones = {}
    datasets = []
    for sheet_name, frame in sheets.items():
        brand = BRAND_SHEETS.get(str(sheet_name).strip())
        if not brand:
            logger.info("Ignoring sheet %r", sheet_name)
            continue
        logger.info("Processing sheet %s (%s)", sheet_name, brand)
        rows = frame.to_dict("records")
        phones[brand] = []
        for index, row in enumerate(rows):
            dataset = dataset_from_row(row, brand, index)
            if dataset is None:
                logger.warning("Skipping row %d in sheet %s: no phone name", index + 2, sheet_name)
                continue
            phones[brand].append({
                "name": dataset["label"],
                "releaseDate": _plain(_cell(row, DATE_COL)),
                "level": _plain(_cell(row, LEVEL_COL)),
                "releaseYear": dataset["releaseYear"],
            })
            datasets.append(dataset)
        logger.info("%s: processed %d phones", sheet_name, len(phones[brand]))
    return phones, {"labels": list(labels), "datasets": datasets}


def convert_file(path, out_dir=DATA_DIR):
    sheets = pd.read_excel(path, sheet_name=None)
    phones, chart = convert_sheets(sheets)

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    phone_path = out_dir / PHONE_DATA_FILE
    chart_path = out_dir / CHART_DATA_FILE
    phone_path.write_text(json.dumps(phones, ensure_ascii=False, indent=2), encoding="utf-8")
    chart_path.write_text(json.dumps(chart, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Wrote %s and %s (%d curves)", phone_path, chart_path, len(chart["datasets"]))

    years = {}
    for d in chart["datasets"]:
        if d["releaseYear"]:
            years[d["releaseYear"]] = years.get(d["releaseYear"], 0) + 1
    logger.info("Release years: %s", dict(sorted(years.items())))
    return phone_path, chart_path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Convert the phone camera spreadsheet into chart JSON files.")
    parser.add_argument("spreadsheet", help="Path to the .xlsx file")
    parser.add_argument("--out-dir", default=str(DATA_DIR), help="Directory for the JSON output")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    if not Path(args.spreadsheet).is_file():
        parser.error(f"spreadsheet not found: {args.spreadsheet}")
    convert_file(args.spreadsheet, args.out_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
