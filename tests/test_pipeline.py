"""Tests for the end-to-end pipeline over CSV text."""

from __future__ import annotations

import pytest

from overdose_dashboard.errors import SchemaError
from overdose_dashboard.pipeline import run_pipeline


def test_scenario(scenario_csv: str) -> None:
    dataset = run_pipeline(scenario_csv)
    points = dataset.series("Opioid")

    assert dataset.indicators == ["Opioid"]
    assert dataset.default_indicator == "Opioid"
    assert [(p.month_key, p.total, p.count) for p in points] == [("2021-01", 15, 2)]


def test_sample_export(sample_csv) -> None:
    dataset = run_pipeline(sample_csv.read_text(encoding="utf-8"))

    assert set(dataset.indicators) == {
        "All drugs",
        'All drugs, incl. "other"',
        "Heroin",
    }
    assert dataset.default_indicator.startswith("All drugs")
    assert [p.month_key for p in dataset.series("Heroin")] == ["2021-01", "2021-02"]
    assert dataset.totals["All drugs"] == {"2021-02": 12.5}
    # "Febuary" is not a month name
    assert dataset.skipped == 1


def test_empty_document_raises() -> None:
    with pytest.raises(SchemaError, match="empty"):
        run_pipeline("")
    with pytest.raises(SchemaError):
        run_pipeline("\n\n")


def test_missing_column_aborts() -> None:
    with pytest.raises(SchemaError) as excinfo:
        run_pipeline("Year,Month,Data Value\n2021,January,1\n")
    assert excinfo.value.found_columns == ["Year", "Month", "Data Value"]


def test_header_only() -> None:
    dataset = run_pipeline("Year,Month,Indicator,Data Value\n")
    assert dataset.indicators == []
    assert dataset.default_indicator == ""
    assert dataset.series("anything") == []


def test_negative_year_does_not_break_series() -> None:
    dataset = run_pipeline(
        "Year,Month,Indicator,Data Value\n-5,January,X,1\n2021,May,X,4\n"
    )
    points = dataset.series("X")
    assert [(p.year, p.month_number, p.total) for p in points] == [(2021, 5, 4.0)]
    assert dataset.skipped == 1
