"""
Unit tests for webhook payload formatting.
"""

import pytest

from realtime_webhooks.webhooks.events import (
    ClientEventData,
    WebhookEventType,
    format_channel_occupied,
    format_channel_vacated,
    format_client_event,
    format_member_added,
    format_member_removed,
)


class TestFormatClientEvent:
    """Test client event payloads."""

    def test_presence_channel_includes_user_id(self):
        payload = format_client_event(
            "presence-room", "client-typing", {"foo": 1}, socket_id="s1", user_id="u1"
        )

        assert payload.to_dict() == {
            "name": "client_event",
            "channel": "presence-room",
            "event": "client-typing",
            "data": {"foo": 1},
            "socket_id": "s1",
            "user_id": "u1",
        }

    @pytest.mark.parametrize("channel", ["room", "private-room", "private-encrypted-room"])
    def test_non_presence_channel_omits_user_id(self, channel):
        payload = format_client_event(channel, "client-typing", {"foo": 1}, "s1", "u1")

        assert "user_id" not in payload.to_dict()
        assert payload.user_id is None

    def test_socket_id_omitted_when_not_given(self):
        payload = format_client_event("presence-room", "client-typing", {"foo": 1})

        data = payload.to_dict()
        assert "socket_id" not in data
        assert "user_id" not in data

    def test_empty_socket_id_is_omitted(self):
        payload = format_client_event("room", "client-typing", {}, socket_id="")

        assert "socket_id" not in payload.to_dict()

    def test_event_and_data_always_set(self):
        payload = format_client_event("room", "client-ping", None)

        assert payload.to_dict() == {
            "name": "client_event",
            "channel": "room",
            "event": "client-ping",
            "data": {},
        }


class TestChannelAndMemberEvents:
    """Test member and channel lifecycle payloads."""

    def test_member_added(self):
        payload = format_member_added("presence-room", "u1")

        assert payload.to_dict() == {
            "name": "member_added",
            "channel": "presence-room",
            "user_id": "u1",
        }

    def test_member_removed(self):
        payload = format_member_removed("presence-room", "u1")

        assert payload.to_dict() == {
            "name": "member_removed",
            "channel": "presence-room",
            "user_id": "u1",
        }

    @pytest.mark.parametrize(
        "formatter,name",
        [
            (format_channel_occupied, "channel_occupied"),
            (format_channel_vacated, "channel_vacated"),
        ],
    )
    def test_channel_events_carry_channel_only(self, formatter, name):
        assert formatter("room").to_dict() == {"name": name, "channel": "room"}

    def test_lifecycle_payloads_never_have_client_fields(self):
        payloads = [
            format_member_added("presence-room", "u1"),
            format_member_removed("presence-room", "u1"),
            format_channel_occupied("presence-room"),
            format_channel_vacated("presence-room"),
        ]

        for payload in payloads:
            data = payload.to_dict()
            assert "event" not in data
            assert "data" not in data
            assert "socket_id" not in data


class TestClientEventData:
    """Test the payload record itself."""

    def test_channel_is_required(self):
        with pytest.raises(ValueError):
            ClientEventData(name=WebhookEventType.CHANNEL_OCCUPIED, channel="")

    def test_name_accepts_string(self):
        payload = ClientEventData(name="channel_vacated", channel="room")

        assert payload.name is WebhookEventType.CHANNEL_VACATED

    def test_unknown_name_rejected(self):
        with pytest.raises(ValueError):
            ClientEventData(name="channel_exploded", channel="room")

    def test_key_order(self):
        payload = format_client_event("presence-room", "client-a", {"x": 1}, "s1", "u1")

        assert list(payload.to_dict()) == ["name", "channel", "event", "data", "socket_id", "user_id"]
