"""Core pipeline logic: turn the raw overdose export into monthly totals.

The primary entry point is :func:`run_pipeline`, which tokenizes the CSV
text, aggregates observations per indicator and month, and picks the
indicator shown first.  Everything here is synchronous and free of I/O;
fetching the text is the job of :mod:`overdose_dashboard.data_manager`.
"""

from __future__ import annotations

import logging
from typing import Dict, List, NamedTuple

from . import csv_tokenizer
from .aggregate import aggregate
from .errors import SchemaError
from .series import MonthlyPoint, default_indicator, project

# Module‑level logger
logger = logging.getLogger(__name__)


class Dataset(NamedTuple):
    totals: Dict[str, Dict[str, float]]
    counts: Dict[str, Dict[str, int]]
    indicators: List[str]
    default_indicator: str
    accepted: int
    skipped: int

    def series(self, indicator: str) -> List[MonthlyPoint]:
        """Monthly points for ``indicator`` (empty when unknown)."""
        return project(self.totals, self.counts, indicator)


def run_pipeline(text: str) -> Dataset:
    """Run the full pipeline over already-fetched CSV text.

    Parameters
    ----------
    text : str
        The decoded CSV document, header first.

    Returns
    -------
    Dataset
        Totals and counts by indicator/month, the sorted indicator list and
        the default selection.

    Raises
    ------
    SchemaError
        If the document has no header or lacks a required column.
    """
    rows = csv_tokenizer.parse(text)
    if not rows:
        raise SchemaError("CSV appears to be empty (missing header row).")

    header, data_rows = rows[0], rows[1:]
    result = aggregate(data_rows, header)

    logger.info(
        "Aggregated %d rows (%d skipped) into %d indicators",
        result.accepted,
        result.skipped,
        len(result.indicators),
    )

    return Dataset(
        totals=result.totals,
        counts=result.counts,
        indicators=result.indicators,
        default_indicator=default_indicator(result.indicators),
        accepted=result.accepted,
        skipped=result.skipped,
    )
