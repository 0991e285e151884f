"""
Webhook sender.

Entry point for the rest of the server: formats an event, signs it once,
fans it out to the interested endpoints as queued delivery jobs and
consumes those jobs in the background.
"""

from typing import Any, Dict, List, Mapping, Optional

import structlog

from ..apps import Application, WebhookEndpoint
from ..queue.base import Done, Job, QueueDriver
from .delivery import DeliveryJob, WebhookDelivery
from .events import (
    ClientEventData,
    format_channel_occupied,
    format_channel_vacated,
    format_client_event,
    format_member_added,
    format_member_removed,
)
from .policy import BestEffortPolicy, DeliveryPolicy
from .signing import WebhookSigner

logger = structlog.get_logger(__name__)

WEBHOOKS_QUEUE = "webhooks"


def interested_endpoints(app: Application, event_name: str) -> List[WebhookEndpoint]:
    """Endpoints of the app subscribed to the given event kind."""
    return [endpoint for endpoint in app.webhooks if endpoint.matches(event_name)]


class WebhookSender:
    """
    Dispatches webhook events for applications.

    The ``notify_*`` methods only sign and enqueue; delivery happens in the
    queue's workers through the configured delivery policy.
    """

    def __init__(
        self,
        queue: QueueDriver,
        signer: WebhookSigner,
        delivery: Optional[WebhookDelivery] = None,
        policy: Optional[DeliveryPolicy] = None,
        queue_name: str = WEBHOOKS_QUEUE,
        concurrency: Optional[int] = None,
    ):
        """
        Initialize the sender and subscribe its consumer to the queue.

        Args:
            queue: Queue driver jobs are placed on
            signer: Signs payloads and builds request headers
            delivery: HTTP delivery engine (creates default if None)
            policy: Retry decision for failed deliveries (best effort if None)
            queue_name: Name of the delivery queue
            concurrency: Number of consumer workers (driver default if None)
        """
        self.queue = queue
        self.signer = signer
        self.delivery = delivery or WebhookDelivery()
        self.policy = policy or BestEffortPolicy()
        self.queue_name = queue_name

        self._events_sent = 0
        self._jobs_enqueued = 0

        self.queue.process_queue(self.queue_name, self._process_job, concurrency=concurrency)

    def notify_client_event(
        self,
        app: Application,
        channel: str,
        event: str,
        data: Optional[Mapping[str, Any]],
        socket_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Send a webhook for a client event."""
        self.send(app, format_client_event(channel, event, data, socket_id, user_id))

    def notify_member_added(self, app: Application, channel: str, user_id: str) -> None:
        """Send a member_added event."""
        self.send(app, format_member_added(channel, user_id))

    def notify_member_removed(self, app: Application, channel: str, user_id: str) -> None:
        """Send a member_removed event."""
        self.send(app, format_member_removed(channel, user_id))

    def notify_channel_vacated(self, app: Application, channel: str) -> None:
        """Send a channel_vacated event."""
        self.send(app, format_channel_vacated(channel))

    def notify_channel_occupied(self, app: Application, channel: str) -> None:
        """Send a channel_occupied event."""
        self.send(app, format_channel_occupied(channel))

    def send(self, app: Application, payload: ClientEventData) -> List[DeliveryJob]:
        """
        Sign a payload once and enqueue a delivery job per interested endpoint.

        Returns:
            The jobs that were enqueued

        Raises:
            WebhookPayloadError: If the payload is not representable as JSON
            WebhookSigningError: If the app cannot sign the payload
        """
        endpoints = interested_endpoints(app, payload.name.value)
        if not endpoints:
            logger.debug(
                "No matching webhooks for event",
                app_key=app.key,
                event_type=payload.name.value,
                channel=payload.channel,
            )
            return []

        signed = self.signer.sign(app, payload)

        jobs = []
        for endpoint in endpoints:
            job = DeliveryJob(
                endpoint=endpoint,
                headers=dict(signed.headers),
                payload=signed.payload,
                body=signed.body,
            )
            self.queue.add_to_queue(self.queue_name, job)
            jobs.append(job)

        self._events_sent += 1
        self._jobs_enqueued += len(jobs)

        logger.debug(
            "Webhook queued for delivery",
            app_key=app.key,
            event_type=payload.name.value,
            channel=payload.channel,
            time_ms=signed.time_ms,
            webhook_count=len(jobs),
        )
        return jobs

    async def _process_job(self, job: Job, done: Done) -> None:
        """Deliver a queued job, then acknowledge it whatever the outcome."""
        delivery_job = job.data
        if isinstance(delivery_job, dict):
            delivery_job = DeliveryJob.from_dict(delivery_job)

        try:
            await self.policy.run(self.delivery, delivery_job)
        except Exception as e:
            logger.error(
                "Webhook delivery raised unexpectedly",
                url=delivery_job.endpoint.url,
                event_type=delivery_job.event_type,
                error=str(e),
                exc_info=True,
            )
        finally:
            done()

    def get_stats(self) -> Dict[str, Any]:
        """Get sender statistics."""
        return {
            "queue_name": self.queue_name,
            "events_sent": self._events_sent,
            "jobs_enqueued": self._jobs_enqueued,
            "delivery_stats": self.delivery.get_delivery_stats(),
        }
