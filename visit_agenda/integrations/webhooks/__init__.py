"""
Webhook integration for the Visit Agenda engine.

Reaches the extractor, contact directory, availability, lookup and calendar
services exposed by the automation server.
"""

from visit_agenda.integrations.webhooks.adapter import WebhookAdapter
from visit_agenda.integrations.webhooks.client import WebhookClient
from visit_agenda.integrations.webhooks.exceptions import (
    WebhookConnectionError,
    WebhookError,
    WebhookHTTPError,
    WebhookPayloadError,
    WebhookRateLimitError,
    WebhookServerError,
    WebhookTimeoutError,
)
from visit_agenda.integrations.webhooks.repository import WebhookAgendaRepository

__all__ = [
    "WebhookAdapter",
    "WebhookClient",
    "WebhookError",
    "WebhookConnectionError",
    "WebhookHTTPError",
    "WebhookPayloadError",
    "WebhookRateLimitError",
    "WebhookServerError",
    "WebhookTimeoutError",
    "WebhookAgendaRepository",
]
