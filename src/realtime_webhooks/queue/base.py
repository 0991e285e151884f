"""
Queue driver interface.

A queue driver accepts jobs on named queues and hands each job to the
handler registered for that queue. Handlers acknowledge a job by calling
the ``done`` callback they receive.
"""

import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

Done = Callable[[], None]
JobHandler = Callable[["Job", Done], Awaitable[None]]


@dataclass
class Job:
    """A unit of work on a named queue."""

    queue: str
    data: Any
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    enqueued_at: float = field(default_factory=time.time)


class QueueDriver(ABC):
    """Named-queue enqueue and consume primitive."""

    @abstractmethod
    def add_to_queue(self, queue_name: str, data: Any) -> Job:
        """Enqueue a job without waiting for it to be processed."""

    @abstractmethod
    def process_queue(
        self, queue_name: str, handler: JobHandler, concurrency: Optional[int] = None
    ) -> None:
        """Register the handler that consumes a queue."""

    @abstractmethod
    async def start(self) -> None:
        """Start consuming registered queues."""

    @abstractmethod
    async def join(self, queue_name: Optional[str] = None) -> None:
        """Wait until every job on consumed queues has been acknowledged."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop consuming and release resources."""
