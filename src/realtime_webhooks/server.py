"""
Webhook service wiring.

Builds the application registry, queue driver and webhook sender from
configuration and manages their lifecycle.
"""

import time
from typing import Any, Callable, Dict, Optional

import structlog

from .apps import AppManager
from .config.settings import Config
from .queue.base import Done, Job, QueueDriver
from .queue.memory import MemoryQueueDriver
from .webhooks.delivery import WebhookDelivery
from .webhooks.policy import build_policy
from .webhooks.sender import WebhookSender
from .webhooks.signing import WebhookSigner

logger = structlog.get_logger(__name__)


class WebhookServer:
    """
    Coordinates the webhook dispatch components.

    The real-time server calls ``server.webhooks.notify_*``; delivery runs
    in the queue workers between ``start`` and ``stop``.
    """

    def __init__(
        self,
        config: Config,
        queue: Optional[QueueDriver] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the webhook server.

        Args:
            config: Service configuration
            queue: Queue driver (in-memory driver if None)
            clock: Time source for webhook timestamps
        """
        self.config = config
        self._running = False
        self._dead_letters = 0

        self.apps = AppManager.from_config(config.apps)
        self.queue = queue or MemoryQueueDriver(concurrency=config.webhooks.concurrency)

        self.webhooks: Optional[WebhookSender] = None
        if config.webhooks.enabled:
            self.webhooks = WebhookSender(
                queue=self.queue,
                signer=WebhookSigner(
                    process_id=config.instance.process_id,
                    clock=clock,
                    product=config.webhooks.product,
                ),
                delivery=WebhookDelivery(timeout_seconds=config.webhooks.timeout_seconds),
                policy=build_policy(config.webhooks, self.queue),
                queue_name=config.webhooks.queue_name,
                concurrency=config.webhooks.concurrency,
            )

        self.dead_letter_queue: Optional[str] = None
        if self.webhooks and config.webhooks.retry_enabled and config.webhooks.dead_letter_queue:
            self.dead_letter_queue = config.webhooks.dead_letter_queue
            self.queue.process_queue(self.dead_letter_queue, self._process_dead_letter)

    async def start(self) -> None:
        """Start consuming the delivery queue."""
        if self._running:
            return

        await self.queue.start()
        self._running = True

        logger.info(
            "Webhook server started",
            process_id=self.config.instance.process_id,
            apps=len(self.apps),
            webhooks_enabled=self.webhooks is not None,
            retry_enabled=self.config.webhooks.retry_enabled,
        )

    async def drain(self) -> None:
        """Wait for every queued delivery to finish."""
        await self.queue.join(self.config.webhooks.queue_name)
        if self.dead_letter_queue:
            await self.queue.join(self.dead_letter_queue)

    async def _process_dead_letter(self, job: Job, done: Done) -> None:
        """Record a delivery that exhausted its retries, then drop it."""
        entry = job.data
        self._dead_letters += 1
        try:
            result = entry["result"]
            logger.error(
                "Webhook delivery dead-lettered",
                url=result["url"],
                event_type=result["event_type"],
                time_ms=result["time_ms"],
                attempt_count=result["attempt_count"],
                last_error=result["attempts"][-1]["error"] if result["attempts"] else None,
            )
        finally:
            done()

    async def stop(self) -> None:
        """Stop the queue workers. Undelivered jobs are dropped."""
        if not self._running:
            return

        self._running = False
        await self.queue.stop()
        logger.info("Webhook server stopped")

    async def __aenter__(self) -> "WebhookServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        """Check if server is running."""
        return self._running

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "running": self._running,
            "apps": len(self.apps),
            "dead_letters": self._dead_letters,
        }
        if isinstance(self.queue, MemoryQueueDriver):
            stats["queue_stats"] = self.queue.get_stats()
        if self.webhooks:
            stats["webhook_stats"] = self.webhooks.get_stats()
        return stats
