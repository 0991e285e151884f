"""
Webhook dispatch engine.

Formats server events, signs them for the owning application and delivers
them to subscribed endpoints through a background queue.
"""

from .delivery import DeliveryJob, DeliveryResult, DeliveryStatus, WebhookDelivery
from .events import ClientEventData, WebhookEventType
from .policy import BestEffortPolicy, DeliveryPolicy, RetryPolicy, build_policy
from .sender import WebhookSender, interested_endpoints
from .signing import SignedPayload, WebhookSigner, verify_signature

__all__ = [
    "ClientEventData",
    "WebhookEventType",
    "WebhookSigner",
    "SignedPayload",
    "verify_signature",
    "WebhookSender",
    "interested_endpoints",
    "WebhookDelivery",
    "DeliveryJob",
    "DeliveryResult",
    "DeliveryStatus",
    "DeliveryPolicy",
    "BestEffortPolicy",
    "RetryPolicy",
    "build_policy",
]
