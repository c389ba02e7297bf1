"""Aggregate tokenized rows into per-indicator monthly totals.

Each accepted row is an observation that lands in exactly one
``(indicator, month_key)`` bucket.  Rows with a blank indicator, a
non-numeric or out-of-range year, an unknown month name or no usable
value are skipped silently; only a broken header aborts the load.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, NamedTuple, Optional, Sequence

from .config import (
    INDICATOR_COL,
    MONTH_COL,
    MONTHS,
    PREDICTED_COL,
    REQUIRED_COLUMNS,
    VALUE_COL,
    YEAR_COL,
)
from .errors import SchemaError

logger = logging.getLogger(__name__)

MONTH_TO_NUM: Dict[str, int] = {name: i for i, name in enumerate(MONTHS, start=1)}

# indicator -> month_key -> value
SeriesMap = Dict[str, Dict[str, float]]
CountMap = Dict[str, Dict[str, int]]


class Aggregation(NamedTuple):
    totals: SeriesMap
    counts: CountMap
    indicators: List[str]
    accepted: int = 0
    skipped: int = 0


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def parse_number(raw: str) -> Optional[float]:
    """Return ``raw`` as a finite float, or ``None`` when it is blank or invalid."""
    text = raw.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def month_number(name: str) -> Optional[int]:
    """Map a full English month name to 1–12 (exact, case-sensitive)."""
    return MONTH_TO_NUM.get(name)


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def normalize_row(row: Sequence[str], width: int) -> List[str]:
    """Truncate or pad ``row`` with empty strings to exactly ``width`` fields."""
    normalized = list(row[:width])
    if len(normalized) < width:
        normalized.extend([""] * (width - len(normalized)))
    return normalized


def column_index(header: Sequence[str]) -> Dict[str, int]:
    """Map column names to positions, raising ``SchemaError`` on a bad header."""
    if not header:
        raise SchemaError("CSV appears to be empty (missing header row).")

    index = {name: idx for idx, name in enumerate(header)}
    missing = [col for col in REQUIRED_COLUMNS if col not in index]
    if missing:
        raise SchemaError(
            f"CSV missing required columns: {', '.join(missing)}.",
            found_columns=header,
        )
    return index


def _resolve_year(raw: str) -> Optional[int]:
    year = parse_number(raw)
    # month keys are YYYY-MM
    if year is None or not year.is_integer() or not 0 <= year <= 9999:
        return None
    return int(year)


def _resolve_value(row: Sequence[str], value_idx: int, predicted_idx: Optional[int]) -> Optional[float]:
    raw = row[value_idx]
    if raw.strip() == "" and predicted_idx is not None:
        raw = row[predicted_idx]
    return parse_number(raw)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def sort_indicators(indicators) -> List[str]:
    """Sort indicator names case-insensitively, ties broken by the exact name."""
    return sorted(indicators, key=lambda name: (name.casefold(), name))


def aggregate(rows: Sequence[Sequence[str]], header: Sequence[str]) -> Aggregation:
    """Group observations by indicator and month.

    Parameters
    ----------
    rows : Sequence[Sequence[str]]
        Data rows, header excluded.  Ragged rows are normalized to the
        header width before any field is read.
    header : Sequence[str]
        Column names.  ``Year``, ``Month``, ``Indicator`` and ``Data Value``
        are required; ``Predicted Value`` is used as a fallback when present.

    Returns
    -------
    Aggregation
        ``totals`` and ``counts`` keyed by indicator then month key, the
        sorted list of indicators, and accepted/skipped row tallies.

    Raises
    ------
    SchemaError
        If the header is empty or a required column is missing.
    """
    index = column_index(header)
    width = len(header)
    year_idx = index[YEAR_COL]
    month_idx = index[MONTH_COL]
    indicator_idx = index[INDICATOR_COL]
    value_idx = index[VALUE_COL]
    predicted_idx = index.get(PREDICTED_COL)

    totals: SeriesMap = {}
    counts: CountMap = {}
    accepted = 0
    skipped = 0

    for raw_row in rows:
        row = normalize_row(raw_row, width)

        indicator = row[indicator_idx]
        year = _resolve_year(row[year_idx])
        month = month_number(row[month_idx])
        if not indicator or year is None or month is None:
            skipped += 1
            continue

        value = _resolve_value(row, value_idx, predicted_idx)
        if value is None:
            skipped += 1
            continue

        key = month_key(year, month)

        if indicator not in totals:
            totals[indicator] = {}
            counts[indicator] = {}
        indicator_totals = totals[indicator]
        indicator_counts = counts[indicator]
        if key not in indicator_totals:
            indicator_totals[key] = 0.0
            indicator_counts[key] = 0

        indicator_totals[key] += value
        indicator_counts[key] += 1
        accepted += 1

    if skipped:
        logger.debug("Skipped %d of %d rows with unusable fields", skipped, len(rows))

    return Aggregation(
        totals=totals,
        counts=counts,
        indicators=sort_indicators(totals.keys()),
        accepted=accepted,
        skipped=skipped,
    )
