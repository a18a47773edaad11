"""Client configuration: service identity, retry policy, file/env loading."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

from .constants import ChannelId, REQUIRED_IDENTITY_KEYS
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Config file search paths (in order of precedence, last wins)
CONFIG_SEARCH_PATHS = [
    Path.home() / ".livechat" / "client.yaml",  # User-level defaults
    Path(".livechat.yaml"),  # Project-level overrides
]

# Wire (camelCase) spelling -> attribute name
_IDENTITY_ALIASES = {
    "orgUrl": "org_url",
    "orgId": "org_id",
    "widgetId": "widget_id",
    "channelId": "channel_id",
}

_RETRY_ALIASES = {
    "getChatTokenRetryCount": "max_attempts",
    "getChatTokenTimeBetweenRetriesOnFailure": "backoff_millis",
    "getChatTokenRetryOn429": "retry_on_rate_limit",
    "maxRequestRetriesOnFailure": "max_transport_retries",
}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ServiceIdentity:
    """
    Coordinates of one live chat widget on the service.

    Validated once at construction and never mutated afterwards.
    """
    org_url: str
    org_id: str
    widget_id: str
    channel_id: str

    def __post_init__(self) -> None:
        for wire_key, attr in _IDENTITY_ALIASES.items():
            if not getattr(self, attr):
                raise ConfigurationError(f"Missing '{wire_key}' in service identity")

        channel = self.channel_id.value if isinstance(self.channel_id, ChannelId) else self.channel_id
        if channel not in {c.value for c in ChannelId}:
            raise ConfigurationError("Invalid channelId")
        object.__setattr__(self, "channel_id", channel)
        object.__setattr__(self, "org_url", self.org_url.rstrip("/"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServiceIdentity:
        """Create an identity from snake_case or camelCase keys."""
        if not isinstance(data, Mapping):
            raise ConfigurationError("Service identity must be a mapping")

        values: dict[str, Any] = {}
        for wire_key in REQUIRED_IDENTITY_KEYS:
            attr = _IDENTITY_ALIASES[wire_key]
            value = data.get(attr, data.get(wire_key))
            if value is None or value == "":
                raise ConfigurationError(f"Missing '{wire_key}' in service identity")
            values[attr] = value
        return cls(**values)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behavior for chat token acquisition and the transport below it."""

    # Application-level attempts for get_chat_token (including the first)
    max_attempts: int = 10
    # Wait between application-level attempts
    backoff_millis: int = 10000
    # Treat 429 as retryable instead of terminal
    retry_on_rate_limit: bool = False
    # Connectivity retries inside a single attempt
    max_transport_retries: int = 3

    def __post_init__(self) -> None:
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be a positive integer, got {self.max_attempts!r}")
        if not isinstance(self.backoff_millis, int) or self.backoff_millis < 0:
            raise ConfigurationError(f"backoff_millis must be >= 0, got {self.backoff_millis!r}")
        if not isinstance(self.max_transport_retries, int) or self.max_transport_retries < 0:
            raise ConfigurationError(
                f"max_transport_retries must be >= 0, got {self.max_transport_retries!r}"
            )

    @property
    def backoff_seconds(self) -> float:
        return self.backoff_millis / 1000.0

    @classmethod
    def from_value(cls, value: Any) -> RetryPolicy:
        """
        Build a policy from caller-supplied configuration.

        None, an empty mapping or anything that is not a mapping yields the
        default policy. A partial mapping is completed field by field.
        """
        if isinstance(value, RetryPolicy):
            return value
        if not isinstance(value, Mapping) or not value:
            if value is not None:
                logger.debug("Ignoring retry configuration %r; using defaults", value)
            return cls()

        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, raw in value.items():
            attr = _RETRY_ALIASES.get(key, key)
            if attr not in known:
                continue
            if attr == "retry_on_rate_limit":
                kwargs[attr] = _env_bool(raw) if isinstance(raw, str) else bool(raw)
            else:
                try:
                    kwargs[attr] = int(raw)
                except (TypeError, ValueError):
                    raise ConfigurationError(f"Invalid value for {key}: {raw!r}") from None
        return cls(**kwargs)


@dataclass
class ClientConfig:
    """
    Configuration for the live chat client.

    Precedence (lowest to highest):
    1. Defaults
    2. ~/.livechat/client.yaml
    3. .livechat.yaml (project root)
    4. Explicit config file
    5. Environment variables (LIVECHAT_*)
    """
    identity: ServiceIdentity
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    # Per-request timeout (seconds)
    timeout: float = field(
        default_factory=lambda: float(os.environ.get("LIVECHAT_TIMEOUT", "30"))
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Create config from dictionary, letting LIVECHAT_* variables win."""
        identity_data = dict(data.get("identity") or {})
        for attr, env in (
            ("org_url", "LIVECHAT_ORG_URL"),
            ("org_id", "LIVECHAT_ORG_ID"),
            ("widget_id", "LIVECHAT_WIDGET_ID"),
            ("channel_id", "LIVECHAT_CHANNEL_ID"),
        ):
            if os.environ.get(env):
                identity_data[attr] = os.environ[env]

        retry_data = dict(data.get("retry") or {})
        for attr, env in (
            ("max_attempts", "LIVECHAT_RETRY_MAX_ATTEMPTS"),
            ("backoff_millis", "LIVECHAT_RETRY_BACKOFF_MILLIS"),
            ("retry_on_rate_limit", "LIVECHAT_RETRY_ON_429"),
            ("max_transport_retries", "LIVECHAT_MAX_TRANSPORT_RETRIES"),
        ):
            if env in os.environ:
                retry_data[attr] = os.environ[env]

        return cls(
            identity=ServiceIdentity.from_dict(identity_data),
            retry=RetryPolicy.from_value(retry_data),
            timeout=float(os.environ.get("LIVECHAT_TIMEOUT", data.get("timeout", "30"))),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> ClientConfig:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def load(cls, config_file: str | Path | None = None) -> ClientConfig:
        """
        Load config with auto-discovery.

        Search order (last wins):
        1. ~/.livechat/client.yaml
        2. .livechat.yaml
        3. Explicit config_file argument
        4. Environment variables always override file values
        """
        import yaml

        merged: dict[str, Any] = {}
        paths = [p for p in CONFIG_SEARCH_PATHS if p.exists()]
        # An explicit file must exist
        if config_file:
            paths.append(Path(config_file))

        for path in paths:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            for section in ("identity", "retry"):
                if section in data:
                    merged.setdefault(section, {}).update(data.pop(section) or {})
            merged.update(data)

        return cls.from_dict(merged)
