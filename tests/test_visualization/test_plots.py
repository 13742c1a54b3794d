"""
Tests for the evaluation and training-progress charts.

What we test
------------
1. plot_evaluation — one line per series plus both peak markers.
2. plot_training_progress — x axis spans the terminal epoch.
3. use_dark_theme — rcParams carry the dark palette.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import matplotlib

matplotlib.use("Agg")

import matplotlib as mpl
import matplotlib.pyplot as plt

from tarot_forecaster.data.schemas import (
    ComparisonPoint,
    EvaluationReport,
    ProgressPoint,
    TrainProgress,
)
from tarot_forecaster.visualization.timeseries import (
    plot_evaluation,
    plot_training_progress,
    use_dark_theme,
)


def _report() -> EvaluationReport:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    observed = [
        ComparisonPoint(start + timedelta(hours=i), observed=float(i))
        for i in range(3)
    ]
    predicted = [
        ComparisonPoint(start + timedelta(hours=3 + i), predicted=v)
        for i, v in enumerate([4.0, 2.0, 5.0])
    ]
    return EvaluationReport(
        confidence=91.0,
        points=tuple(observed + predicted),
        high_peak=predicted[2],
        low_peak=predicted[1],
    )


def test_plot_evaluation() -> None:
    ax = plot_evaluation(_report())
    assert len(ax.get_lines()) == 2
    assert len(ax.collections) == 2
    assert "91.0" in ax.get_title()
    plt.close(ax.figure)


def test_plot_training_progress() -> None:
    progress = TrainProgress([ProgressPoint(1, 0.0), ProgressPoint(2, 40.0)])
    ax = plot_training_progress(progress)
    assert ax.get_xlim() == (0.0, 500.0)
    assert list(ax.get_lines()[0].get_xdata()) == [1, 2]
    plt.close(ax.figure)


def test_dark_theme() -> None:
    use_dark_theme()
    assert mpl.rcParams["figure.facecolor"] == "#0a0a0a"
