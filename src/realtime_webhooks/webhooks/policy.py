"""
Delivery policies.

A policy decides what happens around delivery attempts for one job: how many
attempts are made, how long to wait between them and where a job goes once
it is given up on. The queue job is acknowledged afterwards either way.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

import structlog

from .delivery import DeliveryJob, DeliveryResult, DeliveryStatus, WebhookDelivery

logger = structlog.get_logger(__name__)

DeadLetter = Callable[[DeliveryJob, DeliveryResult], None]
Sleep = Callable[[float], Awaitable[None]]


class DeliveryPolicy(ABC):
    """Runs delivery attempts for a job and returns the final result."""

    @abstractmethod
    async def run(self, delivery: WebhookDelivery, job: DeliveryJob) -> DeliveryResult:
        ...


class BestEffortPolicy(DeliveryPolicy):
    """
    One attempt, no retries.

    A failed delivery is logged and dropped: at-most-once semantics.
    """

    async def run(self, delivery: WebhookDelivery, job: DeliveryJob) -> DeliveryResult:
        result = await delivery.deliver(job)

        if not result.is_successful:
            last = result.attempts[-1] if result.attempts else None
            logger.warning(
                "Dropping undelivered webhook",
                url=job.endpoint.url,
                event_type=job.event_type,
                final_status=result.final_status.value,
                status_code=last.status_code if last else None,
                error=last.error if last else None,
            )

        return result


class RetryPolicy(DeliveryPolicy):
    """
    Retry failed deliveries with exponential backoff.

    Endpoints that reject a webhook with a 4xx are not retried. Jobs that
    still fail after ``max_retries`` retries go to the dead letter callback.
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 60.0,
        backoff_multiplier: float = 2.0,
        dead_letter: Optional[DeadLetter] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize retry policy.

        Args:
            max_retries: Maximum number of retry attempts after the first
            initial_backoff_seconds: Delay before the first retry
            max_backoff_seconds: Maximum backoff delay
            backoff_multiplier: Backoff multiplier for exponential backoff
            dead_letter: Receives jobs that exhausted their retries
            sleep: Coroutine used to wait between attempts
        """
        self.max_retries = max_retries
        self.initial_backoff_seconds = initial_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.backoff_multiplier = backoff_multiplier
        self.dead_letter = dead_letter
        self._sleep = sleep

    def backoff_delay(self, attempt_num: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return min(
            self.initial_backoff_seconds * (self.backoff_multiplier ** (attempt_num - 1)),
            self.max_backoff_seconds,
        )

    async def run(self, delivery: WebhookDelivery, job: DeliveryJob) -> DeliveryResult:
        result = delivery.new_result(job)

        for attempt_num in range(1, self.max_retries + 2):  # +1 for initial attempt
            await delivery.attempt(job, result)

            if not result.is_retryable or attempt_num > self.max_retries:
                break

            backoff_delay = self.backoff_delay(attempt_num)
            logger.debug(
                "Retrying webhook delivery",
                url=job.endpoint.url,
                attempt=attempt_num,
                next_attempt_in_seconds=backoff_delay,
            )
            await self._sleep(backoff_delay)

        delivery.finish(result)

        if result.final_status == DeliveryStatus.FAILED and self.dead_letter is not None:
            logger.error(
                "Webhook retries exhausted",
                url=job.endpoint.url,
                event_type=job.event_type,
                attempt_count=result.attempt_count,
            )
            self.dead_letter(job, result)

        return result


def build_policy(webhook_config: Any, queue: Any = None) -> DeliveryPolicy:
    """
    Create the delivery policy described by a ``WebhookConfig``.

    With retries enabled and a queue given, exhausted jobs are enqueued
    onto the configured dead letter queue.
    """
    if not webhook_config.retry_enabled:
        return BestEffortPolicy()

    dead_letter = None
    if queue is not None and webhook_config.dead_letter_queue:

        def dead_letter(job: DeliveryJob, result: DeliveryResult) -> None:
            queue.add_to_queue(
                webhook_config.dead_letter_queue,
                {"job": job.to_dict(), "result": result.to_dict()},
            )

    return RetryPolicy(
        max_retries=webhook_config.max_retries,
        initial_backoff_seconds=webhook_config.initial_backoff_seconds,
        max_backoff_seconds=webhook_config.max_backoff_seconds,
        backoff_multiplier=webhook_config.backoff_multiplier,
        dead_letter=dead_letter,
    )
