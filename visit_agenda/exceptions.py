"""
Domain errors raised by the agenda engine.

Collaborator failures are converted into these (or into typed results) at the
component boundary that observes them.
"""

from typing import Optional


class AgendaError(Exception):
    """Base exception for agenda operations."""

    retryable: bool = False

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ExtractionUnavailable(AgendaError):
    """
    The raw text extractor was unreachable or answered something unusable.

    Never fatal: the draft builder turns it into a warning.
    """

    retryable = True


class DirectoryUnavailable(AgendaError):
    """The contact directory could not be fetched."""

    retryable = True


class EventNotFound(AgendaError):
    """
    The target of an update/cancel could not be identified.

    Causes:
    - Neither an event id nor a match query was supplied
    - The lookup service found no event
    - The lookup service found several distinct events
    - The lookup service failed

    Fatal for the operation; the caller keeps its draft for correction.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        candidates: Optional[list] = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, original_error=original_error)
        self.candidates = candidates or []


class DeadlineExceeded(AgendaError):
    """The overall request deadline ran out before a collaborator answered."""

    retryable = True
