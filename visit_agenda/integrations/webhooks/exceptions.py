"""
Custom exceptions for webhook collaborator calls.

Provides structured error handling with retryable flags.
"""

from typing import Optional


class WebhookError(Exception):
    """Base exception for webhook collaborator calls."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.original_error = original_error


class WebhookTimeoutError(WebhookError):
    """
    The collaborator did not answer within the configured timeout.

    Retryable for idempotent reads only.
    """

    retryable = True


class WebhookConnectionError(WebhookError):
    """
    The collaborator could not be reached.

    Causes:
    - DNS or TLS failure
    - Connection refused or reset
    """

    retryable = True


class WebhookHTTPError(WebhookError):
    """
    Non-2xx answer from the collaborator.

    Retryable only for gateway errors (502, 503, 504).
    """

    retryable = False


class WebhookServerError(WebhookHTTPError):
    """Transient upstream failure (502, 503, 504)."""

    retryable = True


class WebhookRateLimitError(WebhookHTTPError):
    """
    Rate limit hit (429 response).

    Retryable after exponential backoff.
    """

    retryable = True


class WebhookPayloadError(WebhookError):
    """
    The collaborator answered 2xx with a body we cannot use.

    Causes:
    - Invalid JSON where JSON is required
    - Missing identifier in a creation answer
    """

    retryable = False
