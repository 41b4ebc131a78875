import json
import logging
from datetime import datetime

import pandas as pd
import pytest

from lenscurve_convert import (
    background_color, convert_sheets, dataset_from_row, lens_from_row, main, role_columns,
)
from lenscurve_data import CHART_DATA_FILE, PHONE_DATA_FILE, chart_data_from_dict

MAIN = role_columns("主摄")
TELE = role_columns("长焦")


def apple_sheet():
    return pd.DataFrame([
        {
            "名称": "Phone A", "发布日期": "2024-01-15", "级别": "旗舰",
            MAIN["focal"]: 23, MAIN["eq_aperture"]: "F4.4", MAIN["aperture"]: "f/1.63",
            MAIN["conversion"]: 2.7, MAIN["sensor"]: "LYT-900", MAIN["sensor_size"]: "1/0.98",
            MAIN["physical_focal"]: 8.7,
            TELE["focal"]: 75, TELE["eq_aperture"]: "F10.8",
        },
        {"名称": None, "发布日期": "2023-09-12"},
        {
            "名称": "Phone B", "发布日期": datetime(2023, 9, 12), "级别": "旗舰",
            MAIN["focal"]: 24, MAIN["eq_aperture"]: "F1.78", MAIN["sensor_size"]: "1/1.28",
        },
    ])


def test_background_color():
    assert background_color("#1E88E5") == "rgba(30, 136, 229, 0.1)"
    assert background_color("FF6B35", alpha=0.5) == "rgba(255, 107, 53, 0.5)"


def test_lens_from_row_reads_one_role():
    row = apple_sheet().to_dict("records")[0]
    lens, detail = lens_from_row(row, "main", "主摄", "Phone A")
    assert lens == {"focalLength": 23.0, "aperture": 4.4, "type": "main",
                    "physicalApertureValue": 1.63, "conversionFactor": 2.7}
    assert detail["sensorSize"] == "1/0.98"
    assert detail["sensor"] == "LYT-900"
    assert detail["equivalentFocalLength"] == 23
    assert lens_from_row(row, "ultraWide", "超广角", "Phone A") is None


def test_lens_from_row_skips_unparseable_lens(caplog):
    row = {MAIN["focal"]: 24, MAIN["eq_aperture"]: "unknown"}
    with caplog.at_level(logging.WARNING):
        assert lens_from_row(row, "main", "主摄", "Phone C") is None
    assert "Phone C" in caplog.text


def test_dataset_from_row():
    rows = apple_sheet().to_dict("records")
    dataset = dataset_from_row(rows[0], "apple", 1)
    assert dataset["label"] == "Phone A"
    assert dataset["borderColor"] == "#42A5F5"
    assert dataset["releaseYear"] == 2024
    assert [l["focalLength"] for l in dataset["originalLenses"]] == [23.0, 75.0]
    assert sorted(dataset["lensDetails"]) == ["23", "75"]
    assert dataset_from_row(rows[1], "apple", 2) is None


def test_convert_sheets_builds_loadable_chart_data():
    phones, chart = convert_sheets({"苹果机型": apple_sheet(), "说明": pd.DataFrame()})

    assert list(phones) == ["apple"]
    assert [p["name"] for p in phones["apple"]] == ["Phone A", "Phone B"]
    assert phones["apple"][1]["releaseDate"] == "2023-09-12"
    assert phones["apple"][1]["releaseYear"] == 2023

    loaded = chart_data_from_dict(json.loads(json.dumps(chart, ensure_ascii=False)))
    assert [d.label for d in loaded.datasets] == ["Phone A", "Phone B"]
    phone_b = loaded.datasets[1]
    assert phone_b.lenses[0].optical_value == 1.78
    assert phone_b.lenses[0].physical_value is None
    assert len(loaded.reference_focal_lengths) == 12


def test_unreadable_release_date_does_not_stop_conversion(caplog):
    sheet = pd.DataFrame([
        {"名称": "Phone Z", "发布日期": 1e9, MAIN["focal"]: 24, MAIN["eq_aperture"]: "F1.8"},
    ])
    with caplog.at_level(logging.WARNING):
        phones, chart = convert_sheets({"苹果机型": sheet})
    assert phones["apple"][0]["releaseYear"] is None
    assert chart["datasets"][0]["releaseYear"] is None
    assert "1000000000" in caplog.text


def test_main_writes_json_files(tmp_path):
    pytest.importorskip("openpyxl")
    workbook = tmp_path / "phones.xlsx"
    with pd.ExcelWriter(workbook) as writer:
        apple_sheet().to_excel(writer, sheet_name="苹果机型", index=False)
    out_dir = tmp_path / "out"

    assert main([str(workbook), "--out-dir", str(out_dir)]) == 0

    phones = json.loads((out_dir / PHONE_DATA_FILE).read_text(encoding="utf-8"))
    chart = json.loads((out_dir / CHART_DATA_FILE).read_text(encoding="utf-8"))
    assert [p["name"] for p in phones["apple"]] == ["Phone A", "Phone B"]
    assert chart["datasets"][0]["originalLenses"][0]["aperture"] == 4.4


def test_main_rejects_missing_spreadsheet(tmp_path):
    with pytest.raises(SystemExit):
        main([str(tmp_path / "missing.xlsx")])
