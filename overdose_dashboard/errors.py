"""Exception types raised by the dashboard pipeline and the vote tally."""

from typing import Optional, Sequence


class DashboardError(Exception):
    """Base class for errors surfaced to the user."""


class SchemaError(DashboardError):
    """The header is empty or lacks a required column."""

    def __init__(self, message: str, found_columns: Sequence[str] = ()) -> None:
        self.found_columns = list(found_columns)
        if self.found_columns:
            message = f"{message} Found headers: {', '.join(self.found_columns)}"
        super().__init__(message)


class FetchError(DashboardError):
    """The raw dataset could not be retrieved."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransactionError(DashboardError):
    """A vote read-modify-write did not commit."""
