"""
Realtime Webhooks

Webhook dispatch engine for a real-time messaging server: formats channel and
client events, signs them with the application secret and delivers them to
registered endpoints through a background queue.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .apps import App, AppManager, WebhookEndpoint
from .config.settings import Config, load_config
from .queue import MemoryQueueDriver
from .webhooks import WebhookEventType, WebhookSender, WebhookSigner

__all__ = [
    "App",
    "AppManager",
    "WebhookEndpoint",
    "Config",
    "load_config",
    "MemoryQueueDriver",
    "WebhookEventType",
    "WebhookSender",
    "WebhookSigner",
    "__version__",
    "__license__",
]
