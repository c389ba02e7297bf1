"""Tests for the Plotly series figure."""

from __future__ import annotations

from overdose_dashboard.data_manager import series_frame
from overdose_dashboard.pipeline import run_pipeline
from overdose_dashboard.plotting import LINE_COLOR, create_series_plot


def test_figure_follows_series(sample_csv) -> None:
    points = run_pipeline(sample_csv.read_text(encoding="utf-8")).series("Heroin")
    fig = create_series_plot(series_frame(points), "Heroin")

    assert len(fig.data) == 1
    trace = fig.data[0]
    assert list(trace.x) == ["2021-01", "2021-02"]
    assert list(trace.y) == [3.0, 7.0]
    assert trace.line.color == LINE_COLOR
    assert "Heroin" in fig.layout.title.text


def test_empty_frame_gives_empty_figure() -> None:
    fig = create_series_plot(series_frame([]), "Nothing")
    assert len(fig.data) == 0
