"""Exceptions raised by the webhook dispatch engine."""

from typing import Any, Dict, Optional


class WebhookError(Exception):
    """Base exception for webhook dispatch errors."""

    def __init__(
        self, message: str, code: str = "webhook_error", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class WebhookSigningError(WebhookError):
    """The application could not sign a webhook payload."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, code="signing_failed", details=details)
        self.original_error = original_error


class QueueError(WebhookError):
    """Misuse of a queue driver (double acknowledgement, enqueue after stop)."""


class WebhookPayloadError(WebhookError):
    """A webhook payload cannot be serialized as strict JSON."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="invalid_payload", details=details)
