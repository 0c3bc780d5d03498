from __future__ import annotations


class TripLedgerError(Exception):
    """Base class for recoverable ledger errors; none of them is fatal."""


class ValidationError(TripLedgerError, ValueError):
    """A draft is missing a required field or carries a malformed value."""


class NotFoundError(TripLedgerError, KeyError):
    def __init__(self, event_id: str) -> None:
        super().__init__(event_id)
        self.event_id = event_id

    def __str__(self) -> str:
        return f"No event with id {self.event_id!r}"


class ExtractionError(TripLedgerError, ValueError):
    """No parseable structure was found in a block of text."""

    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(message)
        self.text = text


class FormatError(TripLedgerError, ValueError):
    """Text parsed fine but is not a usable backup document."""
