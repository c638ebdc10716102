"""Exceptions raised by the ingestion pipeline."""
from __future__ import annotations


class IngestValidationError(ValueError):
    """Submission rejected before any record or blob is created."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class UnsupportedFormatError(ValueError):
    """No converter is registered for the given file extension."""


class InvalidTransitionError(RuntimeError):
    """A status change that would violate the ingest state machine."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move ingest status from {current} to {target}")
        self.current = current
        self.target = target


ERROR_MAX_LENGTH = 1000


def sanitize_error(message: object) -> str:
    """Strip NUL bytes and cap the stored error text."""

    text = str(message or "").replace("\x00", "").strip()
    return text[:ERROR_MAX_LENGTH] or "Unknown error"
