"""Utility modules."""

from .channels import (
    is_encrypted_private_channel,
    is_presence_channel,
    is_private_channel,
    is_public_channel,
)
from .logging import setup_logging

__all__ = [
    "setup_logging",
    "is_presence_channel",
    "is_private_channel",
    "is_encrypted_private_channel",
    "is_public_channel",
]
