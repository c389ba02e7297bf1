"""
Configuration constants for the overdose dashboard.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
REPO_ROOT: Path = Path(__file__).resolve().parent.parent

# Local copy of the export; override with a path or URL.
DATA_SOURCE: str = os.getenv(
    "OVERDOSE_DATA_SOURCE", str(REPO_ROOT / "data" / "overdoseRates.csv")
)

DATASET_CATALOG_URL: str = (
    "https://catalog.data.gov/dataset/"
    "provisional-drug-overdose-death-counts-for-specific-drugs"
)

YEAR_COL: str = "Year"
MONTH_COL: str = "Month"
INDICATOR_COL: str = "Indicator"
VALUE_COL: str = "Data Value"
PREDICTED_COL: str = "Predicted Value"

REQUIRED_COLUMNS: Tuple[str, ...] = (YEAR_COL, MONTH_COL, INDICATOR_COL, VALUE_COL)

MONTHS: Tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

# ======================================================
#  VOTE STORE
# ======================================================
VOTE_COLLECTION: str = "votes"
VOTE_DOCUMENT: str = "position"

# Settings name -> environment variable
FIREBASE_ENV: Dict[str, str] = {
    "api_key": "FIREBASE_API_KEY",
    "auth_domain": "FIREBASE_AUTH_DOMAIN",
    "project_id": "FIREBASE_PROJECT_ID",
    "app_id": "FIREBASE_APP_ID",
    "storage_bucket": "FIREBASE_STORAGE_BUCKET",
    "messaging_sender_id": "FIREBASE_MESSAGING_SENDER_ID",
}

FIREBASE_REQUIRED: List[str] = ["api_key", "auth_domain", "project_id", "app_id"]

# ======================================================
#  UI DEFAULTS
# ======================================================
PAGE_TITLE: str = "Why You Should Vote Mayer for Mayor"
VALUE_LABEL: str = "Total Overdose Deaths"
DEFAULT_EXPORT_NAME: str = "monthly_totals.csv"


@dataclass(frozen=True)
class FirebaseSettings:
    """Named string settings for the hosted vote store."""

    api_key: str = ""
    auth_domain: str = ""
    project_id: str = ""
    app_id: str = ""
    storage_bucket: str = ""
    messaging_sender_id: str = ""
    missing: List[str] = field(default_factory=list)

    @property
    def configured(self) -> bool:
        return not self.missing


def _get_env(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    return value.strip() if isinstance(value, str) and value.strip() else ""


def load_firebase_settings(
    environ: Optional[Mapping[str, str]] = None,
) -> FirebaseSettings:
    """Read the Firebase settings from the environment.

    Blank values count as missing.  ``FirebaseSettings.missing`` lists the
    environment variable names of every absent required setting, so the UI
    can tell the operator what to add.
    """
    env = os.environ if environ is None else environ
    values = {key: _get_env(env, var) for key, var in FIREBASE_ENV.items()}
    missing = [FIREBASE_ENV[key] for key in FIREBASE_REQUIRED if not values[key]]
    return FirebaseSettings(**values, missing=missing)
