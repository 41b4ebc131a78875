import logging

import pandas as pd
import streamlit as st

from lenscurve_data import (
    BRAND_NAMES, CEILING_FOCAL_LENGTH, CHART_DATA_FILE, DATA_DIR, DEFAULT_VIEW_PARAMS,
    focal_key, format_sensor_size, load_chart_data,
)
from lenscurve_calc import (
    aperture_curve, aperture_table_rows, default_visible_labels, divergent_lenses,
    filter_dataset_labels, sensor_size_curve, sensor_table_rows,
)
from lenscurve_axes import aperture_axis_range, aperture_chart_points, sensor_chart_points
from lenscurve_plots import plot_aperture_chart, plot_sensor_chart

logging.basicConfig(level=logging.INFO)

# --- CONFIGURATION & CONSTANTS ---
st.set_page_config(page_title="Phone Camera Lens Curves", layout="wide")

APERTURE_VIEW = "Equivalent Aperture"
SENSOR_VIEW = "Equivalent Sensor Size"


@st.cache_data
def get_chart_data(path):
    return load_chart_data(path)


st.title("📱 Phone Camera Lens Curves")

try:
    chart = get_chart_data(str(DATA_DIR / CHART_DATA_FILE))
except (OSError, ValueError) as e:
    st.error(f"❌ Could not load chart data: {e}")
    st.stop()

datasets = chart.datasets
reference = chart.reference_focal_lengths
all_labels = [d.label for d in datasets]

if "visible_phones" not in st.session_state:
    st.session_state.visible_phones = default_visible_labels(datasets, DEFAULT_VIEW_PARAMS["visible_per_brand"])

# --- HELP SECTION ---
with st.sidebar.expander("❓ How to read these charts"):
    st.markdown("""
    * **Dots** are native lenses. Lines between them are projected by cropping the
      previous lens: equivalent aperture grows and equivalent sensor size shrinks
      with the ratio *target / native* focal length.
    * Where two lenses meet, the curve jumps vertically from the cropped value
      of the wider lens to the native value of the longer one.
    * After the longest lens the curve continues as a theoretical crop up to 200mm.
    * Nothing is projected below the widest native lens.
    """)

# --- SIDEBAR ---
st.sidebar.header("View")
metric = st.sidebar.radio("Chart", [APERTURE_VIEW, SENSOR_VIEW], key="metric")
view_mode = st.sidebar.radio("Mode", ["Chart", "Table"], horizontal=True, key="view_mode",
                             index=["Chart", "Table"].index(DEFAULT_VIEW_PARAMS["view_mode"]))

st.sidebar.divider()
st.sidebar.header("Filters")
years = sorted({d.release_year for d in datasets if d.release_year}, reverse=True)
brands = sorted({d.brand for d in datasets if d.brand})
sel_years = st.sidebar.multiselect("Release Year", years)
sel_brands = st.sidebar.multiselect("Brand", brands, format_func=lambda b: BRAND_NAMES.get(b, b))

f_c1, f_c2, f_c3 = st.sidebar.columns(3)
with f_c1:
    if st.button("Apply", help="Show only the phones matching the selected years and brands."):
        st.session_state.visible_phones = filter_dataset_labels(datasets, sel_years, sel_brands)
with f_c2:
    if st.button("All"):
        st.session_state.visible_phones = list(all_labels)
with f_c3:
    if st.button("None"):
        st.session_state.visible_phones = []

st.sidebar.multiselect("Phones", all_labels, key="visible_phones")

visible = set(st.session_state.visible_phones)
shown = [d for d in datasets if d.label in visible]

if not shown:
    st.info("No phones selected. Pick phones in the sidebar.")
    st.stop()

# --- DATA QUALITY ---
flagged = [(d, lens, div) for d in shown for lens, div in divergent_lenses(d.lenses)]
if flagged and metric == APERTURE_VIEW:
    with st.expander(f"⚠️ {len(flagged)} lens(es) with inconsistent aperture data"):
        for d, lens, div in flagged:
            st.write(f"**{d.label}** {focal_key(lens.focal_length)}mm: f/{lens.physical_value} × "
                     f"{lens.conversion_factor} vs equivalent F{lens.optical_value} ({div:.0%} apart)")

# --- CHART ---
if view_mode == "Chart":
    figsize, dpi = DEFAULT_VIEW_PARAMS["figsize"], DEFAULT_VIEW_PARAMS["dpi"]
    if metric == APERTURE_VIEW:
        series = []
        for d in shown:
            points = aperture_chart_points(aperture_curve(d, reference, CEILING_FOCAL_LENGTH), reference)
            series.append((d.label, d.border_color, points))
        y_range = aperture_axis_range([p.y for _, _, pts in series for p in pts])
        st.pyplot(plot_aperture_chart(APERTURE_VIEW, series, reference, y_range, figsize=figsize, dpi=dpi))
        st.caption("Lower F-number = more light and stronger background blur.")
    else:
        series = []
        for d in shown:
            points = sensor_chart_points(sensor_size_curve(d, reference, CEILING_FOCAL_LENGTH))
            series.append((d.label, d.border_color, points))
        st.pyplot(plot_sensor_chart(SENSOR_VIEW, series, reference, figsize=figsize, dpi=dpi))
        st.caption("Larger equivalent sensor = better signal-to-noise and dynamic range.")

# --- TABLE ---
else:
    if metric == APERTURE_VIEW:
        rows = aperture_table_rows(shown, reference)
    else:
        rows = sensor_table_rows(shown, reference, formatter=format_sensor_size)
    df = pd.DataFrame(rows).set_index("Phone")
    if metric == APERTURE_VIEW:
        df = df.apply(lambda col: col.map(lambda v: "" if v is None or pd.isna(v) else f"F{v:.1f}"))
    else:
        df = df.fillna("")

    row_height = 35
    header_height = 38
    st.dataframe(df, width="stretch", height=min(len(df) * row_height + header_height + 5, 800))
    st.caption("Blank cells are wider than the phone's widest native lens.")
