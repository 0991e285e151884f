#!/usr/bin/env python3
"""
Basic usage example for Realtime Webhooks.

Starts a local receiver that verifies webhook signatures, then pushes one
event of each kind through the dispatch pipeline.
"""

import asyncio

from aiohttp import web

from realtime_webhooks.config.settings import Config
from realtime_webhooks.server import WebhookServer
from realtime_webhooks.utils.logging import setup_logging
from realtime_webhooks.webhooks.signing import verify_signature

SECRET = "example-secret"
PORT = 8089


async def receive(request: web.Request) -> web.Response:
    body = await request.read()
    valid = verify_signature(SECRET, body, request.headers["X-Pusher-Signature"])
    print(f"   {'✅' if valid else '❌'} {body.decode('utf-8')}")
    return web.Response(status=200 if valid else 401)


async def main():
    """Run the example."""
    print("🚀 Starting Realtime Webhooks example")
    setup_logging("WARNING")

    receiver = web.Application()
    receiver.router.add_post("/webhooks", receive)
    runner = web.AppRunner(receiver)
    await runner.setup()
    await web.TCPSite(runner, "127.0.0.1", PORT).start()

    config = Config(
        instance={"process_id": "example"},
        apps=[
            {
                "id": "app-id",
                "key": "app-key",
                "secret": SECRET,
                "webhooks": [
                    {
                        "url": f"http://127.0.0.1:{PORT}/webhooks",
                        "event_types": [
                            "client_event",
                            "member_added",
                            "member_removed",
                            "channel_occupied",
                            "channel_vacated",
                        ],
                    }
                ],
            }
        ],
    )
    server = WebhookServer(config)
    app = server.apps.find_by_id("app-id")

    try:
        async with server:
            webhooks = server.webhooks
            webhooks.notify_channel_occupied(app, "presence-lobby")
            webhooks.notify_member_added(app, "presence-lobby", "user-1")
            webhooks.notify_client_event(
                app, "presence-lobby", "client-typing", {"typing": True}, "123.456", "user-1"
            )
            webhooks.notify_member_removed(app, "presence-lobby", "user-1")
            webhooks.notify_channel_vacated(app, "presence-lobby")
            await server.drain()

        stats = server.webhooks.get_stats()["delivery_stats"]
        print(f"\n🎉 Delivered {stats['successful_deliveries']}/{stats['total_deliveries']} webhooks")
    finally:
        await runner.cleanup()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n🛑 Example interrupted by user")
