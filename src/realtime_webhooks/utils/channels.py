"""Channel name classification."""

PRIVATE_PREFIX = "private-"
ENCRYPTED_PRIVATE_PREFIX = "private-encrypted-"
PRESENCE_PREFIX = "presence-"


def is_private_channel(channel: str) -> bool:
    """Private channels, encrypted ones included."""
    return channel.startswith(PRIVATE_PREFIX)


def is_encrypted_private_channel(channel: str) -> bool:
    return channel.startswith(ENCRYPTED_PRIVATE_PREFIX)


def is_presence_channel(channel: str) -> bool:
    """Presence channels carry per-member identity."""
    return channel.startswith(PRESENCE_PREFIX)


def is_public_channel(channel: str) -> bool:
    return not (is_private_channel(channel) or is_presence_channel(channel))
