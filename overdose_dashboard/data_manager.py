"""Data manager for fetching the overdose export and saving results.

This module wraps the pure computations in ``pipeline.py`` with the I/O
around them: reading the CSV from disk or over HTTP, tracking the state of
the current load so that an abandoned load never overwrites a newer one,
and writing a monthly series to CSV.  Failures surface as
:class:`~overdose_dashboard.errors.FetchError` or
:class:`~overdose_dashboard.errors.SchemaError`; nothing is retried.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd
import requests

from .config import DATA_SOURCE, DEFAULT_EXPORT_NAME, REPO_ROOT
from .errors import DashboardError, FetchError
from .pipeline import Dataset, run_pipeline
from .series import MonthlyPoint

logger = logging.getLogger(__name__)

LOADING = "loading"
READY = "ready"
ERROR = "error"

SERIES_COLUMNS = ["month_key", "year", "month_number", "month_name", "total", "count"]


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


def fetch_dataset_text(
    source: str | Path = DATA_SOURCE,
    *,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> str:
    """Return the CSV document at ``source`` as text.

    ``source`` may be an ``http(s)`` URL or a local path.  A byte-order
    mark is stripped.  No timeout is applied unless ``timeout`` is given.
    """
    source_str = str(source)
    if source_str.lower().startswith(("http://", "https://")):
        http = session or requests
        try:
            response = http.get(
                source_str, headers={"Cache-Control": "no-store"}, timeout=timeout
            )
        except requests.RequestException as exc:
            raise FetchError(f"Failed to load CSV: {exc}") from exc
        if not response.ok:
            raise FetchError(
                f"Failed to load CSV: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )
        try:
            return response.content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise FetchError(f"Failed to load CSV: not valid UTF-8 ({exc})") from exc

    path = Path(source_str).expanduser()
    try:
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FetchError(f"Failed to load CSV from {path}: not valid UTF-8 ({exc})") from exc
    except OSError as exc:
        raise FetchError(f"Failed to load CSV from {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Load lifecycle
# ---------------------------------------------------------------------------


class DatasetLoader:
    """Load the dataset and keep the outcome of the latest attempt.

    Every call to :meth:`load` starts a new generation.  When a load
    finishes after a newer one has started, or after :meth:`cancel`, its
    result is discarded.
    """

    def __init__(
        self,
        source: str | Path = DATA_SOURCE,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.source = source
        self.session = session
        self.status: str = LOADING
        self.error: str = ""
        self.dataset: Optional[Dataset] = None
        self._generation = 0
        self._lock = threading.Lock()

    def _begin(self) -> int:
        with self._lock:
            self._generation += 1
            self.status = LOADING
            self.error = ""
            return self._generation

    def _is_current(self, token: int) -> bool:
        return token == self._generation

    def cancel(self) -> None:
        """Abandon any load still in flight."""
        with self._lock:
            self._generation += 1

    def load(self) -> Optional[Dataset]:
        """Fetch and aggregate the dataset.

        Returns the new dataset, or ``None`` when the attempt failed or was
        superseded.  On failure ``status`` is ``"error"`` and ``error``
        holds the raw message; the previous dataset is cleared so that no
        partial chart is shown.
        """
        token = self._begin()
        logger.info("Loading dataset from %s", self.source)
        try:
            text = fetch_dataset_text(self.source, session=self.session)
            dataset = run_pipeline(text)
        except DashboardError as exc:
            with self._lock:
                if not self._is_current(token):
                    logger.warning("Discarding failure of superseded load: %s", exc)
                    return None
                self.status = ERROR
                self.error = str(exc)
                self.dataset = None
            logger.warning("Dataset load failed: %s", exc)
            return None

        with self._lock:
            if not self._is_current(token):
                logger.warning("Discarding result of superseded load from %s", self.source)
                return None
            self.dataset = dataset
            self.status = READY
        return dataset


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _resolve_export_dir() -> Path:
    """Pick the directory exports go to when no path is given.

    ``DATA_CACHE_DIR`` wins when set, then the repository ``data`` folder,
    then a folder under the system temp directory.
    """
    configured = os.getenv("DATA_CACHE_DIR")
    candidates = [Path(configured).expanduser().resolve()] if configured else []
    candidates += [REPO_ROOT / "data", Path(tempfile.gettempdir()) / "overdose_dashboard"]

    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.debug("Skipping export dir %s: %s", candidate, exc)
            continue
        if os.access(candidate, os.W_OK):
            return candidate
    return candidates[-1]


def series_frame(points: Sequence[MonthlyPoint]) -> pd.DataFrame:
    """Tabulate monthly points, one row per month in series order."""
    return pd.DataFrame(
        [
            {
                "month_key": p.month_key,
                "year": p.year,
                "month_number": p.month_number,
                "month_name": p.month_name,
                "total": p.total,
                "count": p.count,
            }
            for p in points
        ],
        columns=SERIES_COLUMNS,
    )


def _atomic_to_csv(df: pd.DataFrame, path: Path) -> None:
    """Write ``df`` beside ``path`` first so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".part")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            df.to_csv(handle, index=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def export_series_csv(
    points: Sequence[MonthlyPoint], path: Optional[str | Path] = None
) -> Path:
    """Save a monthly series as CSV and return where it was written.

    Without ``path`` the file goes to the export directory.
    """
    if path is None:
        target = _resolve_export_dir() / DEFAULT_EXPORT_NAME
    else:
        target = Path(path)
    _atomic_to_csv(series_frame(points), target)
    logger.info("Exported %d months to %s", len(points), target)
    return target
