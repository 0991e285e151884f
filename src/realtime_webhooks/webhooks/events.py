"""
Event definitions for webhook payloads.

Defines the webhook event kinds and the payload record sent to endpoints,
with one constructor per event kind.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..utils.channels import is_presence_channel


class WebhookEventType(str, Enum):
    """Event kinds an endpoint can subscribe to."""

    CLIENT_EVENT = "client_event"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"
    CHANNEL_VACATED = "channel_vacated"
    CHANNEL_OCCUPIED = "channel_occupied"


@dataclass(frozen=True)
class ClientEventData:
    """
    Payload for a single webhook event.

    Only the fields relevant to the event kind are set; unset fields are
    left out of the serialized payload entirely.
    """

    name: WebhookEventType
    channel: str
    event: Optional[str] = None
    data: Optional[Mapping[str, Any]] = None
    socket_id: Optional[str] = None
    user_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.channel:
            raise ValueError("Webhook payload requires a channel")
        object.__setattr__(self, "name", WebhookEventType(self.name))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format, omitting unset fields."""
        payload: Dict[str, Any] = {
            "name": self.name.value,
            "channel": self.channel,
        }
        if self.event is not None:
            payload["event"] = self.event
        if self.data is not None:
            payload["data"] = dict(self.data)
        if self.socket_id is not None:
            payload["socket_id"] = self.socket_id
        if self.user_id is not None:
            payload["user_id"] = self.user_id
        return payload


def format_client_event(
    channel: str,
    event_name: str,
    data: Optional[Mapping[str, Any]],
    socket_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> ClientEventData:
    """
    Create a client event payload.

    The user id is only attached on presence channels, even when the caller
    knows it for a private or public channel.
    """
    return ClientEventData(
        name=WebhookEventType.CLIENT_EVENT,
        channel=channel,
        event=event_name,
        data=data if data is not None else {},
        socket_id=socket_id or None,
        user_id=user_id if user_id and is_presence_channel(channel) else None,
    )


def format_member_added(channel: str, user_id: str) -> ClientEventData:
    """Create a member_added payload."""
    return ClientEventData(name=WebhookEventType.MEMBER_ADDED, channel=channel, user_id=user_id)


def format_member_removed(channel: str, user_id: str) -> ClientEventData:
    """Create a member_removed payload."""
    return ClientEventData(name=WebhookEventType.MEMBER_REMOVED, channel=channel, user_id=user_id)


def format_channel_vacated(channel: str) -> ClientEventData:
    return ClientEventData(name=WebhookEventType.CHANNEL_VACATED, channel=channel)


def format_channel_occupied(channel: str) -> ClientEventData:
    return ClientEventData(name=WebhookEventType.CHANNEL_OCCUPIED, channel=channel)
