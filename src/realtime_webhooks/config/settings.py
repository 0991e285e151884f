"""
Configuration management for Realtime Webhooks.

Handles loading, validation, and management of configuration from files and
environment variables.
"""

import json
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from ..webhooks.events import WebhookEventType


def _resolve_env_reference(v: Optional[str]) -> Optional[str]:
    """Resolve ``${ENV_VAR}`` references to the variable's value."""
    if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
        return os.getenv(v[2:-1])
    return v


def _default_process_id() -> str:
    return os.getenv("REALTIME_WEBHOOKS_PROCESS_ID") or str(uuid.uuid4())


class ServerConfig(BaseModel):
    """Configuration for process behavior."""

    log_level: str = Field(default="INFO", description="Logging level")

    @validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper


class InstanceConfig(BaseModel):
    """Identity of this server process."""

    process_id: str = Field(
        default_factory=_default_process_id,
        description="Process identifier sent in the webhook User-Agent",
    )

    @validator("process_id", pre=True)
    def resolve_process_id(cls, v: Optional[str]) -> str:
        """Resolve process ID from environment variable if needed."""
        v = _resolve_env_reference(v)
        return v or _default_process_id()


class WebhookConfig(BaseModel):
    """Configuration for webhook dispatch and delivery."""

    enabled: bool = Field(default=True, description="Enable webhook notifications")
    queue_name: str = Field(default="webhooks", description="Delivery queue name")
    dead_letter_queue: Optional[str] = Field(
        default="webhooks-dead-letter", description="Queue for jobs that exhausted retries"
    )
    concurrency: int = Field(default=1, ge=1, description="Delivery workers")
    timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP request timeout")
    product: str = Field(default="Pusher", description="Prefix of the X-*-Key/Signature headers")
    retry_enabled: bool = Field(default=False, description="Retry failed deliveries")
    max_retries: int = Field(default=3, ge=0, description="Maximum delivery retries")
    initial_backoff_seconds: float = Field(default=1.0, description="Initial retry backoff")
    max_backoff_seconds: float = Field(default=60.0, description="Maximum retry backoff")
    backoff_multiplier: float = Field(default=2.0, description="Backoff multiplier")


class WebhookEndpointConfig(BaseModel):
    """A webhook endpoint registered for an app."""

    url: str
    event_types: List[str] = Field(default_factory=list)

    @validator("url")
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Invalid webhook URL - must start with http:// or https://")
        return v

    @validator("event_types")
    def validate_event_types(cls, v: List[str]) -> List[str]:
        valid_types = [et.value for et in WebhookEventType]
        for event_type in v:
            if event_type not in valid_types:
                raise ValueError(f"Invalid event type: {event_type}. Must be one of {valid_types}")
        return v


class AppConfig(BaseModel):
    """Application credentials and webhooks."""

    id: str
    key: str
    secret: Optional[str] = None
    enabled: bool = True
    webhooks: List[WebhookEndpointConfig] = Field(default_factory=list)

    @validator("secret", pre=True)
    def resolve_secret(cls, v: str) -> Optional[str]:
        """Resolve app secret from environment variable if needed."""
        return _resolve_env_reference(v)


class Config(BaseModel):
    """Main configuration object."""

    version: str = Field(default="1.0.0", description="Configuration version")
    server: ServerConfig = Field(default_factory=ServerConfig)
    instance: InstanceConfig = Field(default_factory=InstanceConfig)
    webhooks: WebhookConfig = Field(default_factory=WebhookConfig)
    apps: List[AppConfig] = Field(default_factory=list)

    class Config:
        extra = "forbid"  # Don't allow extra fields


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment variables.

    Args:
        config_path: Path to configuration file. If None, looks for
                    REALTIME_WEBHOOKS_CONFIG_PATH environment variable.

    Returns:
        Loaded and validated configuration

    Raises:
        FileNotFoundError: If config file specified but not found
        ValueError: If configuration is invalid
    """
    if config_path is None:
        env_path = os.getenv("REALTIME_WEBHOOKS_CONFIG_PATH")
        if env_path:
            config_path = Path(env_path)

    config_data: Dict[str, Any] = {}
    if config_path and config_path.exists():
        with open(config_path, "r") as f:
            config_data = json.load(f)
    elif config_path:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    env_overrides: Dict[str, Any] = {}

    log_level = os.getenv("REALTIME_WEBHOOKS_LOG_LEVEL")
    if log_level:
        env_overrides.setdefault("server", {})["log_level"] = log_level

    if os.getenv("REALTIME_WEBHOOKS_RETRY_ENABLED", "").lower() in ("1", "true", "yes"):
        env_overrides.setdefault("webhooks", {})["retry_enabled"] = True

    if env_overrides:
        config_data = _deep_merge(config_data, env_overrides)

    return Config(**config_data)


def create_default_config(config_path: Path) -> None:
    """
    Create a default configuration file.

    Args:
        config_path: Path where to create the configuration file
    """
    default_config = {
        "version": "1.0.0",
        "server": {
            "log_level": "INFO",
        },
        "instance": {
            "process_id": "${REALTIME_WEBHOOKS_PROCESS_ID}",
        },
        "webhooks": {
            "enabled": True,
            "queue_name": "webhooks",
            "dead_letter_queue": "webhooks-dead-letter",
            "concurrency": 1,
            "timeout_seconds": 10.0,
            "product": "Pusher",
            "retry_enabled": False,
            "max_retries": 3,
            "initial_backoff_seconds": 1.0,
            "max_backoff_seconds": 60.0,
            "backoff_multiplier": 2.0,
        },
        "apps": [
            {
                "id": "app-id",
                "key": "app-key",
                "secret": "${APP_SECRET}",
                "webhooks": [
                    {
                        "url": "https://example.com/webhooks",
                        "event_types": [et.value for et in WebhookEventType],
                    }
                ],
            }
        ],
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(default_config, f, indent=2)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result
