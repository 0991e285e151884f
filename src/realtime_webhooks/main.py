"""
Command-line interface for Realtime Webhooks.

Provides commands to create a configuration file, push a test event through
the full dispatch pipeline and verify webhook signatures.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import structlog

from .config.settings import create_default_config, load_config
from .errors import WebhookError
from .server import WebhookServer
from .utils.logging import setup_logging
from .webhooks.events import WebhookEventType
from .webhooks.signing import verify_signature


@click.group()
@click.version_option()
def cli() -> None:
    """Realtime Webhooks CLI."""
    pass


@cli.command(name="init")
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    help="Path to save configuration file",
)
def init_config(config: Optional[Path] = None) -> None:
    """Initialize a configuration file with default settings."""
    config_path = config or Path("config.json")

    if config_path.exists():
        click.echo(f"Configuration file already exists: {config_path}")
        if not click.confirm("Overwrite?"):
            return

    try:
        create_default_config(config_path)
        click.echo(f"Created configuration file: {config_path}")
        click.echo("\nNext steps:")
        click.echo("1. Set environment variables:")
        click.echo("   export APP_SECRET='your-app-secret'")
        click.echo("2. Send a test webhook:")
        click.echo(
            f"   realtime-webhooks send -c {config_path} --app-id app-id "
            "--event channel_occupied --channel presence-room"
        )
    except OSError as e:
        click.echo(f"Failed to create configuration file: {e}", err=True)
        sys.exit(1)


@cli.command(name="send")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--app-id", required=True, help="Application to send the webhook for")
@click.option(
    "--event",
    "event_type",
    required=True,
    type=click.Choice([et.value for et in WebhookEventType]),
    help="Webhook event kind",
)
@click.option("--channel", required=True, help="Channel name")
@click.option("--user-id", help="Member user id (member events, presence client events)")
@click.option("--socket-id", help="Originating socket id (client events)")
@click.option("--client-event", default="client-event", help="Client event name")
@click.option("--data", "data_json", default="{}", help="Client event data as JSON")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level",
)
def send(
    config: Optional[Path],
    app_id: str,
    event_type: str,
    channel: str,
    user_id: Optional[str],
    socket_id: Optional[str],
    client_event: str,
    data_json: str,
    log_level: Optional[str],
) -> None:
    """Send one webhook event and wait for its deliveries to finish."""
    config_data = load_config(config_path=config)
    if log_level:
        config_data.server.log_level = log_level.upper()

    setup_logging(config_data.server.log_level)
    logger = structlog.get_logger()

    try:
        data = json.loads(data_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--data")
    if not isinstance(data, dict):
        raise click.BadParameter("Client event data must be a JSON object", param_hint="--data")

    if event_type in (WebhookEventType.MEMBER_ADDED.value, WebhookEventType.MEMBER_REMOVED.value):
        if not user_id:
            raise click.UsageError(f"--user-id is required for {event_type}")

    server = WebhookServer(config_data)
    app = server.apps.find_by_id(app_id)
    if app is None:
        click.echo(f"Unknown app: {app_id}", err=True)
        sys.exit(1)
    if server.webhooks is None:
        click.echo("Webhooks are disabled in configuration", err=True)
        sys.exit(1)

    async def run() -> List[Dict[str, Any]]:
        async with server:
            _notify(server, app, event_type, channel, user_id, socket_id, client_event, data)
            await server.drain()
        return server.webhooks.delivery.get_recent_deliveries()

    logger.info("Sending webhook", app_id=app_id, event_type=event_type, channel=channel)
    try:
        deliveries = asyncio.run(run())
    except WebhookError as e:
        click.echo(f"Failed to send webhook: {e.message}", err=True)
        sys.exit(1)
    click.echo(json.dumps(deliveries, indent=2))


def _notify(
    server: WebhookServer,
    app: Any,
    event_type: str,
    channel: str,
    user_id: Optional[str],
    socket_id: Optional[str],
    client_event: str,
    data: Dict[str, Any],
) -> None:
    sender = server.webhooks
    kind = WebhookEventType(event_type)

    if kind == WebhookEventType.CLIENT_EVENT:
        sender.notify_client_event(app, channel, client_event, data, socket_id, user_id)
    elif kind == WebhookEventType.MEMBER_ADDED:
        sender.notify_member_added(app, channel, user_id)
    elif kind == WebhookEventType.MEMBER_REMOVED:
        sender.notify_member_removed(app, channel, user_id)
    elif kind == WebhookEventType.CHANNEL_VACATED:
        sender.notify_channel_vacated(app, channel)
    else:
        sender.notify_channel_occupied(app, channel)


@cli.command(name="verify")
@click.option("--secret", required=True, envvar="APP_SECRET", help="Application secret")
@click.option("--signature", required=True, help="Value of the X-*-Signature header")
@click.argument("body_file", type=click.File("rb"))
def verify(secret: str, signature: str, body_file: Any) -> None:
    """Verify a received webhook body against its signature."""
    body = body_file.read()
    if verify_signature(secret, body, signature):
        click.echo("Signature valid")
    else:
        click.echo("Signature mismatch", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
