"""
Webhook HTTP client with retry and error handling.

Thin wrapper over an httpx.AsyncClient owned by the caller (one per
request). Read-only calls are retried with exponential backoff on
transient failures; mutations are sent exactly once.
"""

import logging
from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from visit_agenda.config import Settings, get_settings
from visit_agenda.integrations.webhooks.exceptions import (
    WebhookConnectionError,
    WebhookError,
    WebhookHTTPError,
    WebhookRateLimitError,
    WebhookServerError,
    WebhookTimeoutError,
)

logger = logging.getLogger(__name__)

MAX_BODY_EXCERPT = 500


def _is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger a retry."""
    if isinstance(exception, WebhookError):
        return exception.retryable
    return False


def _handle_http_error(response: httpx.Response) -> None:
    """Convert a non-2xx response to the matching WebhookError."""
    status = response.status_code
    body = response.text[:MAX_BODY_EXCERPT]

    if status == 429:
        raise WebhookRateLimitError(
            "Rate limit exceeded - too many requests",
            status_code=status,
            body=body,
        )
    elif status in (502, 503, 504):
        raise WebhookServerError(
            f"Webhook temporarily unavailable ({status})",
            status_code=status,
            body=body,
        )
    else:
        raise WebhookHTTPError(
            f"Webhook error ({status})",
            status_code=status,
            body=body,
        )


def _decode(response: httpx.Response) -> Any:
    """JSON body when possible, raw text otherwise, None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class WebhookClient:
    """
    Calls the agenda webhooks.

    Provides:
    - Timeout/connection/HTTP error mapping to WebhookError subclasses
    - Retry with exponential backoff for read calls only
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        settings: Optional[Settings] = None,
        read_wait: Any = None,
    ):
        """
        Initialize the client.

        Args:
            http: Request-scoped HTTP client (closed by its owner)
            settings: Webhook URLs, timeout and retry budget
            read_wait: tenacity wait strategy for read retries
        """
        self.http = http
        self.settings = settings or get_settings()
        self.read_wait = read_wait or wait_exponential(multiplier=1, min=1, max=10)

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        url = self.settings.webhook_url(path)
        try:
            response = await self.http.request(
                method,
                url,
                json=payload,
                timeout=self.settings.webhook_timeout,
            )
        except httpx.TimeoutException as e:
            raise WebhookTimeoutError(f"Webhook timed out: {url}", original_error=e) from e
        except httpx.RequestError as e:
            raise WebhookConnectionError(f"Webhook unreachable: {url} ({e})", original_error=e) from e

        if response.status_code >= 400:
            _handle_http_error(response)

        return _decode(response)

    async def read(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        """
        Idempotent call, retried on transient failures.

        Raises:
            WebhookError: After the last attempt
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.webhook_read_retries),
            wait=self.read_wait,
            retry=retry_if_exception(_is_retryable_error),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(f"Retrying {method} {path} (attempt {attempt.retry_state.attempt_number})")
                return await self._request(method, path, payload)

    async def send(self, path: str, payload: dict) -> Any:
        """
        Single POST, never retried.

        Raises:
            WebhookError: On any failure
        """
        return await self._request("POST", path, payload)
