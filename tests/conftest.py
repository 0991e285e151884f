"""
Pytest configuration and fixtures for Realtime Webhooks tests.
"""

from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from realtime_webhooks.apps import App, WebhookEndpoint
from realtime_webhooks.queue.base import Job, JobHandler, QueueDriver
from realtime_webhooks.webhooks.sender import WebhookSender
from realtime_webhooks.webhooks.signing import WebhookSigner


class FakeClock:
    """Clock returning a fixed time, optionally advancing on every read."""

    def __init__(self, now: float = 1700000000.0, step: float = 0.0):
        self.now = now
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


class RecordingQueue(QueueDriver):
    """Queue driver that only records what was enqueued."""

    def __init__(self):
        self.jobs: List[Job] = []
        self.handlers: Dict[str, JobHandler] = {}

    def add_to_queue(self, queue_name: str, data: Any) -> Job:
        job = Job(queue=queue_name, data=data)
        self.jobs.append(job)
        return job

    def process_queue(
        self, queue_name: str, handler: JobHandler, concurrency: Optional[int] = None
    ) -> None:
        self.handlers[queue_name] = handler

    async def start(self) -> None:
        pass

    async def join(self, queue_name: Optional[str] = None) -> None:
        pass

    async def stop(self) -> None:
        pass

    def jobs_on(self, queue_name: str) -> List[Any]:
        return [job.data for job in self.jobs if job.queue == queue_name]


class WebhookReceiver:
    """Records webhook requests; responds with the status code in the path."""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.server: Optional[TestServer] = None

    async def handle(self, request: web.Request) -> web.Response:
        self.requests.append(
            {
                "path": request.path,
                "headers": dict(request.headers),
                "body": await request.text(),
            }
        )
        return web.Response(status=int(request.match_info["status"]), text="ok")

    def url(self, status: int = 200) -> str:
        return str(self.server.make_url(f"/{status}"))


@pytest.fixture
def clock():
    """Clock pinned to 2023-11-14T22:13:20Z."""
    return FakeClock()


@pytest.fixture
def signer(clock):
    return WebhookSigner(process_id="proc-1", clock=clock)


@pytest.fixture
def recording_queue():
    return RecordingQueue()


@pytest.fixture
def sender(recording_queue, signer):
    return WebhookSender(queue=recording_queue, signer=signer)


@pytest.fixture
def test_app():
    """App with one channel_occupied and one member_added endpoint."""
    return App(
        id="1",
        key="app-key",
        secret="app-secret",
        webhooks=[
            WebhookEndpoint(url="https://a", event_types=frozenset({"channel_occupied"})),
            WebhookEndpoint(url="https://b", event_types=frozenset({"member_added"})),
        ],
    )


@pytest_asyncio.fixture
async def webhook_receiver():
    """Local HTTP server collecting webhook deliveries."""
    receiver = WebhookReceiver()
    app = web.Application()
    app.router.add_post("/{status}", receiver.handle)

    receiver.server = TestServer(app)
    await receiver.server.start_server()
    yield receiver
    await receiver.server.close()
