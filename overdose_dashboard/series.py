"""Project aggregated totals into an ordered monthly series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, NamedTuple, Sequence

from .config import MONTHS


@dataclass(frozen=True)
class MonthlyPoint:
    month_key: str
    year: int
    month_number: int
    month_name: str
    total: float
    count: int


class SeriesSummary(NamedTuple):
    grand_total: float
    point_count: int


def decode_month_key(key: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` key back into ``(year, month)``."""
    year, month = key.split("-", 1)
    return int(year), int(month)


def project(
    totals: Mapping[str, Mapping[str, float]],
    counts: Mapping[str, Mapping[str, int]],
    indicator: str,
) -> List[MonthlyPoint]:
    """Return one point per month for ``indicator``, oldest first.

    An unknown indicator yields an empty list.  The inputs are only read, so
    switching indicators never requires re-running the aggregation.
    """
    indicator_totals = totals.get(indicator, {})
    indicator_counts = counts.get(indicator, {})

    points = []
    for key, total in indicator_totals.items():
        year, month = decode_month_key(key)
        points.append(
            MonthlyPoint(
                month_key=key,
                year=year,
                month_number=month,
                month_name=MONTHS[month - 1] if 1 <= month <= 12 else f"{month:02d}",
                total=total,
                count=indicator_counts.get(key, 0),
            )
        )
    # Zero-padded keys sort chronologically
    points.sort(key=lambda p: p.month_key)
    return points


def default_indicator(indicators: Sequence[str]) -> str:
    """Prefer an aggregate "all ..." indicator, else the first one, else ``""``."""
    for name in indicators:
        if "all" in name.lower():
            return name
    return indicators[0] if indicators else ""


def summarize(points: Sequence[MonthlyPoint]) -> SeriesSummary:
    return SeriesSummary(
        grand_total=sum(p.total for p in points),
        point_count=len(points),
    )


def format_number(value: float) -> str:
    """Thousands separators, at most two decimals, no trailing zeros."""
    text = f"{value:,.2f}"
    return text.rstrip("0").rstrip(".") if "." in text else text
