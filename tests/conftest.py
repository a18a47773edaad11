"""Shared pytest fixtures for livechat_client tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from livechat_client import LiveChatClient, RetryPolicy, ServiceIdentity
from livechat_client.telemetry import LogLevel, TelemetryEvent
from livechat_client.transport import HttpTransport

ORG_URL = "https://org.example.com"
ORG_ID = "org-123"
WIDGET_ID = "widget-456"


@dataclass
class RecordingChatLogger:
    """ChatLogger that keeps every event for assertions."""

    records: list[tuple[LogLevel, TelemetryEvent, dict[str, Any], str]] = field(default_factory=list)

    def log(self, level, event, custom_data, description) -> None:
        self.records.append((level, event, custom_data, description))

    def events(self) -> list[TelemetryEvent]:
        return [r[1] for r in self.records]

    def find(self, event: TelemetryEvent) -> list[dict[str, Any]]:
        return [r[2] for r in self.records if r[1] == event]


@dataclass
class FakeSleep:
    """Async sleep replacement that records delays instead of waiting."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def identity() -> ServiceIdentity:
    return ServiceIdentity(org_url=ORG_URL, org_id=ORG_ID, widget_id=WIDGET_ID, channel_id="lcw")


@pytest.fixture
def chat_logger() -> RecordingChatLogger:
    return RecordingChatLogger()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def make_client(identity, chat_logger, fake_sleep):
    """Factory fixture: client wired to a mock service, fake sleep and recorder."""
    def _factory(service, policy: RetryPolicy | dict | None = None, **kwargs) -> LiveChatClient:
        resolved_policy = RetryPolicy.from_value(policy)
        transport = HttpTransport(
            max_retries=resolved_policy.max_transport_retries,
            transport=service.get_transport(),
            sleep=fake_sleep,
        )
        return LiveChatClient(
            identity,
            resolved_policy,
            chat_logger,
            transport=transport,
            sleep=fake_sleep,
            **kwargs,
        )
    return _factory
