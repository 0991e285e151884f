"""
Application registry.

Applications own a key/secret pair and the webhook endpoints registered for
them. The dispatch engine only reads them through the ``Application`` protocol.
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WebhookEndpoint:
    """A registered destination URL and the event kinds it receives."""

    url: str
    event_types: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.url or not self.url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid webhook URL - must start with http:// or https://: {self.url!r}")
        # Accept any iterable of strings
        object.__setattr__(self, "event_types", frozenset(str(et) for et in self.event_types))

    def matches(self, event_name: str) -> bool:
        """Check if this endpoint subscribes to the event kind."""
        return event_name in self.event_types

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebhookEndpoint":
        return cls(url=data["url"], event_types=frozenset(data.get("event_types", [])))

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "event_types": sorted(self.event_types)}


class Application(Protocol):
    """What the dispatch engine needs from an application."""

    key: str
    webhooks: List[WebhookEndpoint]

    def create_webhook_hmac(self, data: str) -> str:
        ...


@dataclass
class App:
    """Tenant configuration: credentials plus registered webhook endpoints."""

    id: str
    key: str
    secret: Optional[str]
    webhooks: List[WebhookEndpoint] = field(default_factory=list)
    enabled: bool = True

    def create_webhook_hmac(self, data: str) -> str:
        """HMAC-SHA256 hex digest of a webhook body, keyed by the app secret."""
        if not self.secret:
            raise ValueError(f"App {self.id} has no secret configured")
        return hmac.new(self.secret.encode(), data.encode("utf-8"), hashlib.sha256).hexdigest()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "App":
        return cls(
            id=str(data["id"]),
            key=data["key"],
            secret=data.get("secret"),
            webhooks=[
                endpoint if isinstance(endpoint, WebhookEndpoint) else WebhookEndpoint.from_dict(endpoint)
                for endpoint in data.get("webhooks", [])
            ],
            enabled=data.get("enabled", True),
        )


class AppManager:
    """In-memory application registry, looked up by id or key."""

    def __init__(self, apps: Optional[Iterable[App]] = None):
        self._apps: Dict[str, App] = {}
        for app in apps or []:
            self.add(app)

    def add(self, app: App) -> None:
        if app.id in self._apps:
            raise ValueError(f"Duplicate app id: {app.id}")
        self._apps[app.id] = app
        logger.debug("App registered", app_id=app.id, webhook_count=len(app.webhooks))

    def find_by_id(self, app_id: str) -> Optional[App]:
        app = self._apps.get(app_id)
        return app if app and app.enabled else None

    def find_by_key(self, key: str) -> Optional[App]:
        for app in self._apps.values():
            if app.key == key and app.enabled:
                return app
        return None

    def __len__(self) -> int:
        return len(self._apps)

    @classmethod
    def from_config(cls, app_configs: Iterable[Any]) -> "AppManager":
        """Build a registry from ``AppConfig`` models or plain dicts."""
        apps = []
        for app_config in app_configs:
            data = app_config.dict() if hasattr(app_config, "dict") else dict(app_config)
            apps.append(App.from_dict(data))
        return cls(apps)
