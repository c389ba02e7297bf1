"""
Command-line driver: load the overdose export, print the monthly series for
one indicator and optionally save it to CSV.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .config import DATA_SOURCE
from .data_manager import export_series_csv, fetch_dataset_text
from .errors import DashboardError
from .pipeline import run_pipeline
from .series import summarize


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Aggregate provisional drug overdose death counts into monthly "
            "totals per indicator."
        )
    )
    parser.add_argument(
        "--source",
        default=DATA_SOURCE,
        help="Path or URL to the overdose CSV (default: data/overdoseRates.csv).",
    )
    parser.add_argument(
        "--indicator",
        default=None,
        help="Indicator to show (default: the 'all drugs' aggregate if present).",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Optional CSV path for the selected indicator's monthly series.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        dataset = run_pipeline(fetch_dataset_text(args.source))
    except DashboardError as exc:
        print(f"Couldn't load the CSV: {exc}", file=sys.stderr)
        return 1

    indicator = args.indicator or dataset.default_indicator
    if indicator not in dataset.indicators:
        print(f"Unknown indicator {indicator!r}.", file=sys.stderr)
        print(f"Available: {', '.join(dataset.indicators)}", file=sys.stderr)
        return 2

    points = dataset.series(indicator)
    summary = summarize(points)

    print(f"\nIndicators ({len(dataset.indicators)}): {', '.join(dataset.indicators)}")
    print(f"Selected: {indicator}")
    print(f"Months: {summary.point_count} | Total: {summary.grand_total:,.2f}\n")
    for p in points:
        print(f"  {p.year}  {p.month_name:<10} {p.total:>14,.2f}  (n={p.count})")

    if args.output:
        path = export_series_csv(points, args.output)
        print(f"\nSaved series to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
