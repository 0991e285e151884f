"""
In-process queue driver backed by asyncio queues.

Jobs live only in memory; each registered queue is consumed by a pool of
asyncio worker tasks.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..errors import QueueError
from .base import Job, JobHandler, QueueDriver

logger = structlog.get_logger(__name__)


class MemoryQueueDriver(QueueDriver):
    """
    asyncio-based queue driver.

    Enqueueing never blocks. Each queue registered with ``process_queue``
    gets ``concurrency`` workers once the driver is started.
    """

    def __init__(self, concurrency: int = 1):
        """
        Initialize the driver.

        Args:
            concurrency: Default number of workers per queue
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency

        self._queues: Dict[str, asyncio.Queue] = {}
        self._handlers: Dict[str, Tuple[JobHandler, int]] = {}
        self._workers: Dict[str, List[asyncio.Task]] = {}
        self._is_running = False
        self._is_stopped = False

        # Statistics
        self._jobs_enqueued = 0
        self._jobs_processed = 0
        self._jobs_errored = 0

    @property
    def is_running(self) -> bool:
        return self._is_running

    def _queue(self, queue_name: str) -> asyncio.Queue:
        if queue_name not in self._queues:
            self._queues[queue_name] = asyncio.Queue()
        return self._queues[queue_name]

    def add_to_queue(self, queue_name: str, data: Any) -> Job:
        """Enqueue a job; returns immediately."""
        if self._is_stopped:
            raise QueueError(f"Queue driver stopped, cannot enqueue onto {queue_name}", code="queue_stopped")

        job = Job(queue=queue_name, data=data)
        queue = self._queue(queue_name)
        queue.put_nowait(job)
        self._jobs_enqueued += 1

        logger.debug(
            "Job queued",
            queue=queue_name,
            job_id=job.job_id,
            queue_size=queue.qsize(),
        )
        return job

    def process_queue(
        self, queue_name: str, handler: JobHandler, concurrency: Optional[int] = None
    ) -> None:
        """Register the consumer of a queue, starting workers if already running."""
        if queue_name in self._handlers:
            raise ValueError(f"Queue {queue_name} already has a handler")

        self._handlers[queue_name] = (handler, concurrency or self.concurrency)
        self._queue(queue_name)

        if self._is_running:
            self._spawn_workers(queue_name)

    async def start(self) -> None:
        if self._is_running:
            return
        if self._is_stopped:
            raise QueueError("Queue driver cannot be restarted", code="queue_stopped")

        self._is_running = True
        for queue_name in self._handlers:
            self._spawn_workers(queue_name)

        logger.info(
            "Queue driver started",
            queues=list(self._handlers),
            concurrency=self.concurrency,
        )

    def _spawn_workers(self, queue_name: str) -> None:
        _, concurrency = self._handlers[queue_name]
        self._workers[queue_name] = [
            asyncio.create_task(self._work(queue_name, worker_id))
            for worker_id in range(concurrency)
        ]

    async def _work(self, queue_name: str, worker_id: int) -> None:
        """Worker loop: take a job, run the handler, make sure it is acked."""
        handler, _ = self._handlers[queue_name]
        queue = self._queue(queue_name)

        while True:
            job = await queue.get()
            acked = False

            def done() -> None:
                nonlocal acked
                if acked:
                    raise QueueError(f"Job {job.job_id} acknowledged twice", code="double_ack")
                acked = True
                self._jobs_processed += 1
                queue.task_done()

            try:
                await handler(job, done)
                if not acked:
                    logger.warning(
                        "Handler returned without acknowledging job",
                        queue=queue_name,
                        job_id=job.job_id,
                    )
            except asyncio.CancelledError:
                if not acked:
                    done()
                raise
            except Exception as e:
                self._jobs_errored += 1
                logger.error(
                    "Queue handler failed",
                    queue=queue_name,
                    job_id=job.job_id,
                    worker_id=worker_id,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                if not acked:
                    done()

    async def join(self, queue_name: Optional[str] = None) -> None:
        """
        Wait until queued jobs have all been acknowledged.

        Without a queue name, waits on every queue that has a handler. Jobs
        on queues nobody consumes are never acknowledged.
        """
        names = [queue_name] if queue_name else list(self._handlers)
        for name in names:
            await self._queue(name).join()

    async def stop(self) -> None:
        if self._is_stopped:
            return

        self._is_running = False
        self._is_stopped = True

        workers = [task for tasks in self._workers.values() for task in tasks]
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()

        pending = sum(queue.qsize() for queue in self._queues.values())
        logger.info(
            "Queue driver stopped",
            jobs_processed=self._jobs_processed,
            jobs_dropped=pending,
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "is_running": self._is_running,
            "jobs_enqueued": self._jobs_enqueued,
            "jobs_processed": self._jobs_processed,
            "jobs_errored": self._jobs_errored,
            "queues": {name: queue.qsize() for name, queue in self._queues.items()},
        }
