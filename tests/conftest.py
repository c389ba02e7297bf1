"""
Pytest configuration and fixtures.

Ensures the repository root is importable so tests can run without an
editable install.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))


SCENARIO_CSV = (
    "Year,Month,Indicator,Data Value\n"
    "2021,January,Opioid,10\n"
    "2021,January,Opioid,5\n"
    "2021,February,Opioid,\n"
)


@pytest.fixture
def scenario_csv() -> str:
    """Three Opioid rows; the February one has no value and must be skipped."""
    return SCENARIO_CSV


@pytest.fixture
def sample_csv(tmp_path: Path) -> Path:
    """A small export with a predicted-value column and a quoted indicator."""
    csv_path = tmp_path / "overdoseRates.csv"
    csv_path.write_text(
        "State,Year,Month,Indicator,Data Value,Predicted Value\r\n"
        "US,2021,February,Heroin,7,\r\n"
        "US,2021,January,Heroin,3,\r\n"
        'US,2021,January,"All drugs, incl. ""other""",20,\r\n'
        "US,2021,February,All drugs,,12.5\r\n"
        "US,2021,Febuary,Heroin,99,\r\n",
        encoding="utf-8",
    )
    return csv_path
