"""
Webhook delivery over HTTP.

Performs a single POST of a signed webhook body to one endpoint and reports
the outcome. Retries are decided by the delivery policy, not here.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import structlog

from ..apps import WebhookEndpoint

logger = structlog.get_logger(__name__)


class DeliveryStatus(str, Enum):
    """Status of webhook delivery attempts."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class DeliveryJob:
    """
    Everything needed to deliver one event to one endpoint.

    ``body`` is the exact text that was signed; it is sent as-is.
    """

    endpoint: WebhookEndpoint
    headers: Dict[str, str]
    payload: Dict[str, Any]
    body: str

    @property
    def event_type(self) -> str:
        return self.payload.get("name", "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint.to_dict(),
            "headers": dict(self.headers),
            "payload": self.payload,
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeliveryJob":
        return cls(
            endpoint=WebhookEndpoint.from_dict(data["endpoint"]),
            headers=dict(data["headers"]),
            payload=data["payload"],
            body=data["body"],
        )


@dataclass
class DeliveryAttempt:
    """Record of a single delivery attempt."""

    attempt_number: int
    timestamp: float
    status_code: Optional[int] = None
    response_time_ms: float = 0.0
    error: Optional[str] = None
    response_body: Optional[str] = None


@dataclass
class DeliveryResult:
    """Result of webhook delivery including all attempts."""

    url: str
    event_type: str
    time_ms: Optional[int]
    final_status: DeliveryStatus = DeliveryStatus.PENDING
    attempts: List[DeliveryAttempt] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None

    @property
    def attempt_count(self) -> int:
        """Number of delivery attempts."""
        return len(self.attempts)

    @property
    def is_successful(self) -> bool:
        """Whether delivery was successful."""
        return self.final_status == DeliveryStatus.SUCCESS

    @property
    def is_retryable(self) -> bool:
        """Failed for a reason worth trying again (not a 4xx rejection)."""
        return self.final_status == DeliveryStatus.FAILED

    @property
    def total_duration_ms(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.created_at) * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "url": self.url,
            "event_type": self.event_type,
            "time_ms": self.time_ms,
            "final_status": self.final_status.value,
            "attempt_count": self.attempt_count,
            "total_duration_ms": self.total_duration_ms,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "attempts": [
                {
                    "attempt_number": attempt.attempt_number,
                    "timestamp": attempt.timestamp,
                    "status_code": attempt.status_code,
                    "response_time_ms": attempt.response_time_ms,
                    "error": attempt.error,
                    "response_body": attempt.response_body[:500] if attempt.response_body else None,
                }
                for attempt in self.attempts
            ],
        }


class WebhookDelivery:
    """
    HTTP transport for webhook jobs.

    Each call to ``attempt`` performs exactly one POST. Transport errors,
    timeouts and non-2xx responses are recorded on the result, never raised.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        max_history_size: int = 10000,
    ):
        """
        Initialize webhook delivery.

        Args:
            timeout_seconds: HTTP request timeout
            max_history_size: Number of finished results kept for stats
        """
        self.timeout_seconds = timeout_seconds
        self._delivery_history: List[DeliveryResult] = []
        self._max_history_size = max_history_size

    def new_result(self, job: DeliveryJob) -> DeliveryResult:
        return DeliveryResult(
            url=job.endpoint.url,
            event_type=job.event_type,
            time_ms=job.payload.get("time_ms"),
        )

    async def deliver(self, job: DeliveryJob) -> DeliveryResult:
        """Deliver a job with a single attempt and record the result."""
        result = self.new_result(job)
        await self.attempt(job, result)
        self.finish(result)
        return result

    async def attempt(self, job: DeliveryJob, result: DeliveryResult) -> DeliveryAttempt:
        """Perform one POST for the job and append the attempt to ``result``."""
        attempt_number = result.attempt_count + 1
        attempt_start = time.time()

        try:
            status_code, response_body = await self._post(job.endpoint.url, job.body, job.headers)
            attempt = DeliveryAttempt(
                attempt_number=attempt_number,
                timestamp=attempt_start,
                status_code=status_code,
                response_time_ms=(time.time() - attempt_start) * 1000,
                response_body=response_body[:1000] if response_body else None,
            )

            if 200 <= status_code < 300:
                result.final_status = DeliveryStatus.SUCCESS
                logger.debug(
                    "Webhook delivery successful",
                    url=job.endpoint.url,
                    event_type=job.event_type,
                    attempt=attempt_number,
                    status_code=status_code,
                    response_time_ms=attempt.response_time_ms,
                )
            elif 400 <= status_code < 500:
                result.final_status = DeliveryStatus.ABANDONED
                logger.warning(
                    "Webhook rejected by endpoint",
                    url=job.endpoint.url,
                    event_type=job.event_type,
                    attempt=attempt_number,
                    status_code=status_code,
                )
            else:
                result.final_status = DeliveryStatus.FAILED
                logger.warning(
                    "Webhook delivery failed",
                    url=job.endpoint.url,
                    event_type=job.event_type,
                    attempt=attempt_number,
                    status_code=status_code,
                )

        except asyncio.TimeoutError:
            attempt = DeliveryAttempt(
                attempt_number=attempt_number,
                timestamp=attempt_start,
                response_time_ms=(time.time() - attempt_start) * 1000,
                error="Request timeout",
            )
            result.final_status = DeliveryStatus.FAILED
            logger.warning(
                "Webhook delivery timed out",
                url=job.endpoint.url,
                event_type=job.event_type,
                attempt=attempt_number,
                timeout_seconds=self.timeout_seconds,
            )

        except aiohttp.ClientError as e:
            attempt = DeliveryAttempt(
                attempt_number=attempt_number,
                timestamp=attempt_start,
                response_time_ms=(time.time() - attempt_start) * 1000,
                error=str(e) or type(e).__name__,
            )
            result.final_status = DeliveryStatus.FAILED
            logger.warning(
                "Webhook delivery attempt failed",
                url=job.endpoint.url,
                event_type=job.event_type,
                attempt=attempt_number,
                error=attempt.error,
            )

        except Exception as e:
            attempt = DeliveryAttempt(
                attempt_number=attempt_number,
                timestamp=attempt_start,
                response_time_ms=(time.time() - attempt_start) * 1000,
                error=str(e) or type(e).__name__,
            )
            result.final_status = DeliveryStatus.FAILED
            logger.error(
                "Webhook delivery failed with exception",
                url=job.endpoint.url,
                event_type=job.event_type,
                attempt=attempt_number,
                error=attempt.error,
                exc_info=True,
            )

        result.attempts.append(attempt)
        return attempt

    async def _post(self, url: str, body: str, headers: Dict[str, str]) -> Tuple[int, str]:
        """POST the raw body and return (status code, response text)."""
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
        ) as session:
            async with session.post(url, data=body.encode("utf-8"), headers=headers) as response:
                return response.status, await response.text()

    def finish(self, result: DeliveryResult) -> None:
        """Mark a result complete and add it to history."""
        result.completed_at = time.time()
        self._delivery_history.append(result)

        if len(self._delivery_history) > self._max_history_size:
            self._delivery_history = self._delivery_history[-self._max_history_size :]

        logger.info(
            "Webhook delivery completed",
            url=result.url,
            event_type=result.event_type,
            final_status=result.final_status.value,
            attempt_count=result.attempt_count,
            total_duration_ms=result.total_duration_ms,
        )

    def get_delivery_stats(self) -> Dict[str, Any]:
        """Get delivery statistics and metrics."""
        if not self._delivery_history:
            return {
                "total_deliveries": 0,
                "success_rate": 0.0,
                "average_response_time_ms": 0.0,
            }

        total_deliveries = len(self._delivery_history)
        successful_deliveries = sum(1 for result in self._delivery_history if result.is_successful)

        successful_attempts = [
            attempt
            for result in self._delivery_history
            if result.is_successful
            for attempt in result.attempts
            if attempt.status_code and 200 <= attempt.status_code < 300
        ]

        avg_response_time = (
            (
                sum(attempt.response_time_ms for attempt in successful_attempts)
                / len(successful_attempts)
            )
            if successful_attempts
            else 0.0
        )

        return {
            "total_deliveries": total_deliveries,
            "successful_deliveries": successful_deliveries,
            "failed_deliveries": total_deliveries - successful_deliveries,
            "success_rate": (successful_deliveries / total_deliveries) * 100,
            "average_response_time_ms": avg_response_time,
            "configuration": {
                "timeout_seconds": self.timeout_seconds,
            },
        }

    def get_recent_deliveries(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get recent delivery history."""
        recent = self._delivery_history[-limit:] if self._delivery_history else []
        return [result.to_dict() for result in reversed(recent)]
