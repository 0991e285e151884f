"""
Webhook payload signing.

Stamps the send time onto a payload, serializes it once and has the
application sign those exact bytes. The same body and headers are then
shared by every endpoint that receives the event.
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Union

import structlog

from .. import __version__
from ..apps import Application
from ..errors import WebhookPayloadError, WebhookSigningError
from .events import ClientEventData

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SignedPayload:
    """A stamped payload, its serialized body and the headers signing it."""

    payload: Dict[str, Any]
    body: str
    headers: Dict[str, str]
    time_ms: int

    @property
    def signature(self) -> str:
        return next(v for k, v in self.headers.items() if k.endswith("-Signature"))


def serialize_payload(payload: Dict[str, Any]) -> str:
    """
    Compact JSON, byte-for-byte what a JSON.stringify receiver produces.

    Raises:
        ValueError: If the payload holds NaN or an infinity
    """
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def verify_signature(secret: str, body: Union[str, bytes], signature: str) -> bool:
    """Check a received signature against the raw request body."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


class WebhookSigner:
    """
    Builds the signed body and headers for one logical event.

    The clock is injectable so tests can pin ``time_ms``.
    """

    def __init__(
        self,
        process_id: str,
        clock: Callable[[], float] = time.time,
        product: str = "Pusher",
    ):
        """
        Initialize the signer.

        Args:
            process_id: Identifier of this process, embedded in the User-Agent
            clock: Returns the current epoch time in seconds
            product: Prefix used for the key and signature headers
        """
        self.process_id = process_id
        self.clock = clock
        self.product = product

    @property
    def user_agent(self) -> str:
        return f"RealtimeWebhooksClient/{__version__} (Process: {self.process_id})"

    def sign(self, app: Application, payload: ClientEventData) -> SignedPayload:
        """
        Stamp, serialize and sign a payload for an application.

        Raises:
            WebhookPayloadError: If the payload is not representable as JSON
            WebhookSigningError: If the application cannot sign the body
        """
        time_ms = int(self.clock() * 1000)
        stamped = {**payload.to_dict(), "time_ms": time_ms}

        try:
            body = serialize_payload(stamped)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Webhook payload is not valid JSON",
                app_key=app.key,
                event_type=payload.name.value,
                channel=payload.channel,
                error=str(e),
            )
            raise WebhookPayloadError(
                f"Cannot serialize {payload.name.value} webhook: {e}",
                details={"app_key": app.key, "event_type": payload.name.value},
            ) from e

        try:
            signature = app.create_webhook_hmac(body)
        except Exception as e:
            logger.error(
                "Failed to sign webhook payload",
                app_key=app.key,
                event_type=payload.name.value,
                channel=payload.channel,
                error=str(e),
                exc_info=True,
            )
            raise WebhookSigningError(
                f"Could not sign {payload.name.value} webhook for app {app.key}",
                details={"app_key": app.key, "event_type": payload.name.value},
                original_error=e,
            ) from e

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            f"X-{self.product}-Key": app.key,
            f"X-{self.product}-Signature": signature,
        }

        return SignedPayload(payload=stamped, body=body, headers=headers, time_ms=time_ms)
