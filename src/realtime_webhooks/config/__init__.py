"""Configuration management."""

from .settings import AppConfig, Config, WebhookConfig, create_default_config, load_config

__all__ = ["Config", "AppConfig", "WebhookConfig", "load_config", "create_default_config"]
