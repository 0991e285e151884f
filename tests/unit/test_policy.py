"""
Unit tests for delivery policies.
"""

import asyncio

import aiohttp
import pytest

from realtime_webhooks.apps import WebhookEndpoint
from realtime_webhooks.config.settings import WebhookConfig
from realtime_webhooks.webhooks.delivery import DeliveryJob, DeliveryStatus, WebhookDelivery
from realtime_webhooks.webhooks.policy import BestEffortPolicy, RetryPolicy, build_policy


class ScriptedDelivery(WebhookDelivery):
    """Delivery whose POSTs return scripted status codes or raise."""

    def __init__(self, responses):
        super().__init__()
        self.responses = list(responses)
        self.calls = 0

    async def _post(self, url, body, headers):
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response, ""


@pytest.fixture
def job():
    return DeliveryJob(
        endpoint=WebhookEndpoint("https://a", frozenset({"channel_occupied"})),
        headers={"X-Pusher-Key": "app-key"},
        payload={"name": "channel_occupied", "channel": "room", "time_ms": 1},
        body='{"name":"channel_occupied","channel":"room","time_ms":1}',
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def sleep(delay):
        sleeps.append(delay)

    return sleep


class TestBestEffortPolicy:
    """Test the default at-most-once policy."""

    @pytest.mark.asyncio
    async def test_single_attempt_on_failure(self, job):
        delivery = ScriptedDelivery([500])

        result = await BestEffortPolicy().run(delivery, job)

        assert result.final_status == DeliveryStatus.FAILED
        assert delivery.calls == 1
        assert delivery.get_delivery_stats()["total_deliveries"] == 1

    @pytest.mark.asyncio
    async def test_transport_error(self, job):
        delivery = ScriptedDelivery([aiohttp.ClientConnectionError("refused")])

        result = await BestEffortPolicy().run(delivery, job)

        assert result.final_status == DeliveryStatus.FAILED
        assert result.attempts[0].error == "refused"

    @pytest.mark.asyncio
    async def test_success(self, job):
        result = await BestEffortPolicy().run(ScriptedDelivery([204]), job)

        assert result.is_successful


class TestRetryPolicy:
    """Test retries with exponential backoff."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self, job, sleeps, fake_sleep):
        delivery = ScriptedDelivery([500, asyncio.TimeoutError(), 200])
        policy = RetryPolicy(max_retries=3, sleep=fake_sleep)

        result = await policy.run(delivery, job)

        assert result.is_successful
        assert result.attempt_count == 3
        assert [a.attempt_number for a in result.attempts] == [1, 2, 3]
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, job, sleeps, fake_sleep):
        dead = []
        delivery = ScriptedDelivery([410])
        policy = RetryPolicy(
            max_retries=3, sleep=fake_sleep, dead_letter=lambda j, r: dead.append(j)
        )

        result = await policy.run(delivery, job)

        assert result.final_status == DeliveryStatus.ABANDONED
        assert delivery.calls == 1
        assert sleeps == []
        assert dead == []

    @pytest.mark.asyncio
    async def test_exhausted_retries_go_to_dead_letter(self, job, sleeps, fake_sleep):
        dead = []
        delivery = ScriptedDelivery([500, 502, 503, 504])
        policy = RetryPolicy(
            max_retries=3,
            sleep=fake_sleep,
            dead_letter=lambda j, r: dead.append((j, r)),
        )

        result = await policy.run(delivery, job)

        assert result.final_status == DeliveryStatus.FAILED
        assert delivery.calls == 4
        assert sleeps == [1.0, 2.0, 4.0]
        assert len(dead) == 1
        assert dead[0][0] is job
        assert dead[0][1] is result

    @pytest.mark.asyncio
    async def test_unexpected_error_is_retried_and_recorded(self, job, sleeps, fake_sleep):
        delivery = ScriptedDelivery([ValueError("bad header"), 200])

        result = await RetryPolicy(max_retries=1, sleep=fake_sleep).run(delivery, job)

        assert result.is_successful
        assert result.attempts[0].error == "bad header"
        assert delivery.get_delivery_stats()["total_deliveries"] == 1

    @pytest.mark.asyncio
    async def test_zero_retries(self, job, sleeps, fake_sleep):
        delivery = ScriptedDelivery([500])

        result = await RetryPolicy(max_retries=0, sleep=fake_sleep).run(delivery, job)

        assert result.final_status == DeliveryStatus.FAILED
        assert delivery.calls == 1
        assert sleeps == []

    def test_backoff_is_capped(self):
        policy = RetryPolicy(
            initial_backoff_seconds=1.0, backoff_multiplier=10.0, max_backoff_seconds=5.0
        )

        assert [policy.backoff_delay(n) for n in (1, 2, 3)] == [1.0, 5.0, 5.0]


class TestBuildPolicy:
    """Test policy selection from configuration."""

    def test_best_effort_by_default(self):
        assert isinstance(build_policy(WebhookConfig()), BestEffortPolicy)

    def test_retry_policy_from_config(self):
        config = WebhookConfig(retry_enabled=True, max_retries=5, initial_backoff_seconds=0.5)

        policy = build_policy(config)

        assert isinstance(policy, RetryPolicy)
        assert policy.max_retries == 5
        assert policy.initial_backoff_seconds == 0.5
        assert policy.dead_letter is None

    def test_dead_letter_enqueues(self, recording_queue, job):
        config = WebhookConfig(retry_enabled=True)
        policy = build_policy(config, recording_queue)
        result = WebhookDelivery().new_result(job)

        policy.dead_letter(job, result)

        (entry,) = recording_queue.jobs_on("webhooks-dead-letter")
        assert entry["job"] == job.to_dict()
        assert entry["result"]["url"] == "https://a"
