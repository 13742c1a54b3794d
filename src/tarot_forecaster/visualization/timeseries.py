# stdlib
from typing import Optional
# thirdpartylib
import matplotlib.pyplot as plt
import matplotlib as mpl
from cycler import cycler
from matplotlib.axes import Axes
# projectlib
from tarot_forecaster.data.schemas import (
    ComparisonPoint,
    EvaluationReport,
    TrainProgress,
)


def use_dark_theme() -> None:
    """
    Apply a shadcn-inspired dark theme to Matplotlib.

    Updates the global rcParams with a dark palette, subtle gridlines,
    muted text, and a line color cycle suited to time-series charts.
    """
    mpl.rcParams.update({
        "figure.facecolor": "#0a0a0a",
        "axes.facecolor": "#171717",
        "axes.edgecolor": "#ffffff1a",
        "axes.labelcolor": "#fafafa",
        "axes.titlecolor": "#fafafa",
        "grid.color": "#ffffff1a",
        "grid.alpha": 0.4,
        "grid.linewidth": 0.2,
        "xtick.color": "#a1a1a1",
        "ytick.color": "#a1a1a1",
        "lines.linewidth": 1.6,
        "text.color": "#e5e7eb",
        "legend.edgecolor": "#ffffff1a",
        "legend.facecolor": "#171717",
        "legend.fontsize": 9,
        "legend.frameon": True,
        "axes.grid": True,
        "axes.prop_cycle": cycler(color=[
            "#1447e6",
            "#00bc7d",
            "#fe9a00",
            "#ad46ff",
            "#ff2056",
        ]),
    })

def _new_axes(ax: Optional[Axes]) -> Axes:
    if ax is None:
        use_dark_theme()
        _, ax = plt.subplots(figsize=(12, 5)) # pyright: ignore[reportUnknownMemberType]
    return ax

def _mark(ax: Axes, point: Optional[ComparisonPoint], label: str, color: str) -> None:
    if point is None or point.predicted is None:
        return
    ax.scatter( # pyright: ignore[reportUnknownMemberType]
        [point.timestamp], [point.predicted],
        color=color, s=36, zorder=3,
        label=f"{label} ({point.predicted:.3g})",
    )

def plot_evaluation(report: EvaluationReport, ax: Optional[Axes] = None) -> Axes:
    """
    Draw the historical tail next to the forecast.

    The highest and lowest predicted points are marked.

    Parameters
    ----------
    report : EvaluationReport
        Result of a forecast.
    ax : matplotlib.axes.Axes, optional
        Axes to draw on; a new dark-themed figure is created if None.

    Returns
    -------
    matplotlib.axes.Axes
        The axes drawn on.
    """
    ax = _new_axes(ax)
    observed = [p for p in report.points if p.observed is not None]
    predicted = [p for p in report.points if p.predicted is not None]
    ax.plot( # pyright: ignore[reportUnknownMemberType]
        [p.timestamp for p in observed],
        [p.observed for p in observed],
        label="Historical",
    )
    ax.plot( # pyright: ignore[reportUnknownMemberType]
        [p.timestamp for p in predicted],
        [p.predicted for p in predicted],
        label="Forecast",
    )
    _mark(ax, report.high_peak, "High peak", "#ff2056")
    _mark(ax, report.low_peak, "Low peak", "#ad46ff")
    ax.set_xlabel("Date/Time") # pyright: ignore[reportUnknownMemberType]
    ax.set_ylabel("Value") # pyright: ignore[reportUnknownMemberType]
    ax.set_title(f"Forecast (confidence {report.confidence:.1f}%)") # pyright: ignore[reportUnknownMemberType]
    ax.legend() # pyright: ignore[reportUnknownMemberType]
    return ax

def plot_training_progress(
        progress: TrainProgress,
        ax: Optional[Axes] = None
    ) -> Axes:
    """Confidence per epoch, with the x axis running to the terminal epoch."""
    ax = _new_axes(ax)
    ax.plot( # pyright: ignore[reportUnknownMemberType]
        [p.epoch for p in progress.points],
        [p.confidence for p in progress.points],
        label="Confidence",
    )
    ax.set_xlim(0, progress.end_epoch)
    ax.set_ylim(0, 100)
    ax.set_xlabel("Epoch") # pyright: ignore[reportUnknownMemberType]
    ax.set_ylabel("Confidence (%)") # pyright: ignore[reportUnknownMemberType]
    ax.set_title("Training progress") # pyright: ignore[reportUnknownMemberType]
    return ax
