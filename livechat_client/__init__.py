"""Client for negotiating live chat sessions with retry and version awareness."""

from .client import LiveChatClient
from .config import ClientConfig, RetryPolicy, ServiceIdentity
from .constants import ChannelId, ProtocolVersion
from .environment import HeadlessEnvironment, UserAgentEnvironment
from .errors import (
    ConfigurationError,
    LiveChatError,
    LiveChatHTTPError,
    RateLimitError,
    RecordNotFoundError,
    RetryBudgetExceededError,
    TerminalEmptyResultError,
    TransientNetworkError,
    ValidationError,
)
from .models import (
    CallOptions,
    ChatToken,
    InitContext,
    QueueAvailability,
    ReconnectAvailability,
    ReconnectMappingRecord,
)
from .telemetry import LogLevel, NullChatLogger, StandardChatLogger, TelemetryEvent

__all__ = [
    "LiveChatClient",
    "ClientConfig",
    "RetryPolicy",
    "ServiceIdentity",
    "ChannelId",
    "ProtocolVersion",
    "HeadlessEnvironment",
    "UserAgentEnvironment",
    "ConfigurationError",
    "LiveChatError",
    "LiveChatHTTPError",
    "RateLimitError",
    "RecordNotFoundError",
    "RetryBudgetExceededError",
    "TerminalEmptyResultError",
    "TransientNetworkError",
    "ValidationError",
    "CallOptions",
    "ChatToken",
    "InitContext",
    "QueueAvailability",
    "ReconnectAvailability",
    "ReconnectMappingRecord",
    "LogLevel",
    "NullChatLogger",
    "StandardChatLogger",
    "TelemetryEvent",
]
