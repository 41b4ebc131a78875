import json
import logging
from datetime import date, datetime
from pathlib import Path

import pytest

from lenscurve_data import (
    DEFAULT_FOCAL_LABELS, LensDataError, NativeLens, PhoneDataset,
    chart_data_from_dict, extract_year, focal_key, format_focal_length, format_sensor_size,
    load_chart_data, parse_aperture, parse_lenses, parse_sensor_size, reference_focal_lengths,
    sensor_lenses, to_standard_basis,
)

SAMPLE = Path(__file__).resolve().parent.parent / "data" / "chart-enhanced.json"


# --- PARSERS ---
@pytest.mark.parametrize("raw, expected", [
    ("f/1.8", 1.8),
    ("F4.4", 4.4),
    ("1.63", 1.63),
    (2.8, 2.8),
    (None, None),
])
def test_parse_aperture(raw, expected):
    assert parse_aperture(raw) == expected


def test_parse_aperture_warns_on_garbage(caplog):
    with caplog.at_level(logging.WARNING):
        assert parse_aperture("n/a") is None
    assert "n/a" in caplog.text


@pytest.mark.parametrize("raw, expected", [
    ("1/1.28", 1 / 1.28),
    ('1/2.55"', 1 / 2.55),
    ("1/1.3英寸", 1 / 1.3),
    ("0.5", 0.5),
    (0.75, 0.75),
])
def test_parse_sensor_size(raw, expected):
    assert parse_sensor_size(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "1/0", "0", "-1/2", "big", float("nan")])
def test_parse_sensor_size_rejects_invalid(raw):
    assert parse_sensor_size(raw) is None


def test_format_sensor_size():
    assert format_sensor_size(1 / 1.28) == "1/1.28"
    assert format_sensor_size(1.0) == "1/1"
    assert format_sensor_size(0.5) == "1/2"
    assert format_sensor_size(4 / 3) == "4/3"


def test_small_sensors_move_to_standard_basis():
    assert to_standard_basis(0.4) == pytest.approx(0.45)
    assert to_standard_basis(0.5) == 0.5
    assert to_standard_basis(1 / 1.28) == 1 / 1.28


def test_focal_formatting():
    assert focal_key(24.0) == "24"
    assert focal_key(13.5) == "13.5"
    assert format_focal_length(120) == "120mm"


def test_reference_focal_lengths_sorted_and_unique(caplog):
    with caplog.at_level(logging.WARNING):
        refs = reference_focal_lengths(["24mm", "12mm", "bad", "24mm", "0mm", 35])
    assert refs == (12.0, 24.0, 35.0)
    assert "bad" in caplog.text
    assert reference_focal_lengths(DEFAULT_FOCAL_LABELS)[0] == 12.0


@pytest.mark.parametrize("raw, year", [
    (datetime(2023, 9, 12), 2023),
    (date(2024, 2, 22), 2024),
    (2022, 2022),
    (45000, 2023),
    ("2024-05-13", 2024),
    ("2023年9月", 2023),
    (None, None),
    ("soon", None),
    (1e9, None),
    (-3, None),
    (float("inf"), None),
])
def test_extract_year(raw, year):
    assert extract_year(raw) == year


# --- LENS RECORDS ---
def test_lens_from_record():
    lens = NativeLens.from_record({"focalLength": 23, "aperture": 4.4, "physicalApertureValue": 1.63,
                                   "conversionFactor": 2.7, "type": "main"})
    assert lens == NativeLens(23.0, 4.4, 1.63, 2.7, None, "main")
    assert lens.sensor_spec is None
    assert lens.has_physical_path
    assert not NativeLens(24.0, 1.8).has_physical_path


@pytest.mark.parametrize("record", [
    "24mm",
    {"focalLength": 24},
    {"aperture": 1.8},
    {"focalLength": 0, "aperture": 1.8},
    {"focalLength": True, "aperture": 1.8},
    {"focalLength": "24", "aperture": 1.8},
])
def test_lens_from_record_rejects_bad_records(record):
    with pytest.raises(LensDataError):
        NativeLens.from_record(record)


def test_parse_lenses_sorts_and_skips(caplog):
    records = [
        {"focalLength": 120, "aperture": 4.0},
        {"focalLength": 24, "aperture": 1.8},
        {"focalLength": 24, "aperture": 2.0},
        {"focalLength": None, "aperture": 2.0},
    ]
    with caplog.at_level(logging.WARNING):
        lenses = parse_lenses(records, "Phone X")
    assert [(l.focal_length, l.optical_value) for l in lenses] == [(24.0, 1.8), (120.0, 4.0)]
    assert caplog.text.count("Phone X") == 2
    assert parse_lenses(None) == ()


def test_sensor_lenses_read_lens_details():
    dataset = PhoneDataset(
        label="P",
        lenses=(NativeLens(13.5, 12.0, lens_type="ultraWide"), NativeLens(24.0, 1.8)),
        lens_details={"13.5": {"sensorSize": "1/2.55"}, "24": {"sensorSize": "1/1.28"}},
    )
    lenses = sensor_lenses(dataset)
    assert [l.focal_length for l in lenses] == [13.5, 24.0]
    assert lenses[0].optical_value == pytest.approx((1 / 2.55) * 18 / 16)
    assert lenses[0].sensor_spec == "1/2.55"
    assert lenses[0].lens_type == "ultraWide"
    assert lenses[1].optical_value == pytest.approx(1 / 1.28)


# --- LOADING ---
def test_chart_data_from_dict_skips_bad_datasets(caplog):
    raw = {
        "datasets": [
            {"label": "A", "brand": "apple", "releaseYear": 2023,
             "originalLenses": [{"focalLength": 24, "aperture": 1.8}]},
            {"label": ""},
            "not a dataset",
            {"label": "A"},
            {"label": "B", "originalLenses": []},
            {"label": "C", "originalLenses": 5},
            {"label": "D", "originalLenses": True},
        ],
    }
    with caplog.at_level(logging.WARNING):
        chart = chart_data_from_dict(raw)
    assert [d.label for d in chart.datasets] == ["A", "B"]
    assert chart.datasets[0].release_year == 2023
    assert chart.datasets[0].brand == "apple"
    assert chart.datasets[1].lenses == ()
    assert chart.labels == tuple(DEFAULT_FOCAL_LABELS)
    assert "duplicate" in caplog.text
    assert "originalLenses is not a list" in caplog.text


def test_single_string_label_is_one_focal_length():
    chart = chart_data_from_dict({"labels": "24mm", "datasets": []})
    assert chart.labels == ("24mm",)
    assert chart.reference_focal_lengths == (24.0,)


@pytest.mark.parametrize("labels", [24, {"24mm": True}, True])
def test_non_list_labels_fall_back_to_defaults(labels, caplog):
    with caplog.at_level(logging.WARNING):
        chart = chart_data_from_dict({"labels": labels, "datasets": []})
    assert chart.labels == tuple(DEFAULT_FOCAL_LABELS)
    assert len(chart.reference_focal_lengths) == 12
    assert "default focal lengths" in caplog.text


@pytest.mark.parametrize("raw", [[], {}, {"datasets": "none"}])
def test_chart_data_from_dict_requires_dataset_list(raw):
    with pytest.raises(ValueError):
        chart_data_from_dict(raw)


def test_load_bundled_chart_data():
    chart = load_chart_data(SAMPLE)
    assert len(chart.datasets) == 5
    assert len(chart.reference_focal_lengths) == 12
    xiaomi = chart.datasets[0]
    assert xiaomi.label == "Xiaomi 14 Ultra"
    assert [l.focal_length for l in xiaomi.lenses] == [12.0, 23.0, 75.0, 120.0]
    assert xiaomi.detail_for(23)["sensorSize"] == "1/0.98"


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_chart_data(tmp_path / "missing.json")


def test_load_malformed_file(tmp_path):
    path = tmp_path / "chart.json"
    path.write_text(json.dumps({"labels": ["24mm"]}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_chart_data(path)
