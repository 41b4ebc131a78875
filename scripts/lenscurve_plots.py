import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import matplotlib.lines as mlines  # noqa: E402
from matplotlib.ticker import FixedLocator, FuncFormatter, NullFormatter  # noqa: E402

from lenscurve_axes import (  # noqa: E402
    SENSOR_TICKS, aperture_ticks, focal_tick_callback, log_tick_label, sensor_tick_callback,
)
from lenscurve_calc import PointKind  # noqa: E402

GRID_COLOR = "#2a2a2a"
TEXT_COLOR = "#999999"
NATIVE = PointKind.NATIVE.value


def _style_axes(fig, ax, dark):
    if not dark:
        ax.grid(True, linestyle=":", alpha=0.6)
        return
    fig.patch.set_facecolor("black")
    ax.set_facecolor("black")
    ax.grid(True, color=GRID_COLOR, linewidth=1)
    ax.tick_params(colors=TEXT_COLOR, labelsize=9)
    for spine in ax.spines.values():
        spine.set_color("#444444")
    ax.xaxis.label.set_color(TEXT_COLOR)
    ax.yaxis.label.set_color(TEXT_COLOR)
    ax.title.set_color("white")


def _draw_series(ax, series):
    """series: iterable of (label, color, chart_points)."""
    for label, color, points in series:
        if not points:
            continue
        ax.plot([p.x for p in points], [p.y for p in points], color=color, linewidth=1.5, label=label, zorder=2)
        native = [p for p in points if p.point_type == NATIVE]
        ax.plot([p.x for p in native], [p.y for p in native], "o", color=color, markersize=5,
                markeredgecolor="white", markeredgewidth=0.5, zorder=3)


def _legend(ax, dark):
    handles, labels = ax.get_legend_handles_labels()
    native_h = mlines.Line2D([], [], color="gray", marker="o", linestyle="None", markersize=6, label="Native lens")
    handles.append(native_h)
    legend = ax.legend(handles=handles, loc="best", fontsize="small", framealpha=0.9)
    if dark:
        legend.get_frame().set_facecolor("#111111")
        for text in legend.get_texts():
            text.set_color(TEXT_COLOR)


# --- EQUIVALENT APERTURE (EQUIDISTANT FOCAL AXIS) ---
def plot_aperture_chart(title, series, major_ticks, y_range, figsize=(9, 6), dpi=120, dark=True):
    fig, ax = plt.subplots(figsize=figsize, dpi=dpi)
    _draw_series(ax, series)

    n = len(major_ticks)
    ax.xaxis.set_major_locator(FixedLocator(list(range(n))))
    ax.xaxis.set_major_formatter(FuncFormatter(focal_tick_callback(major_ticks)))
    if n:
        ax.set_xlim(-0.3, n - 1 + 0.3)

    ticks = aperture_ticks(y_range)
    ax.yaxis.set_major_locator(FixedLocator(ticks))
    ax.yaxis.set_major_formatter(FuncFormatter(lambda v, _: f"F{v:.0f}"))
    ax.set_ylim(y_range[1], y_range[0])  # small F-numbers on top

    ax.set_title(title)
    ax.set_xlabel("Equivalent focal length (mm)")
    ax.set_ylabel("Equivalent aperture (F)")
    _style_axes(fig, ax, dark)
    _legend(ax, dark)
    return fig


# --- EQUIVALENT SENSOR SIZE (LOG FOCAL AXIS) ---
def plot_sensor_chart(title, series, reference_focal_lengths, tick_defs=SENSOR_TICKS,
                      figsize=(9, 6), dpi=120, dark=True):
    fig, ax = plt.subplots(figsize=figsize, dpi=dpi)
    _draw_series(ax, series)

    ax.set_xscale("log")
    if reference_focal_lengths:
        ax.set_xlim(min(reference_focal_lengths) * 0.9, max(reference_focal_lengths) * 1.05)
    ax.xaxis.set_major_locator(FixedLocator(list(reference_focal_lengths)))
    ax.xaxis.set_major_formatter(FuncFormatter(lambda v, _: log_tick_label(v, reference_focal_lengths)))
    ax.xaxis.set_minor_formatter(NullFormatter())

    n = len(tick_defs)
    ax.yaxis.set_major_locator(FixedLocator(list(range(n))))
    ax.yaxis.set_major_formatter(FuncFormatter(sensor_tick_callback(tick_defs)))
    ax.set_ylim(max(n - 1, 0), 0)  # largest format on top

    ax.set_title(title)
    ax.set_xlabel("Equivalent focal length (mm)")
    ax.set_ylabel('Equivalent sensor size (inch type)')
    _style_axes(fig, ax, dark)
    _legend(ax, dark)
    return fig
