"""Tests for the chat token retry engine."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from livechat_client import CallOptions, ChatToken, ProtocolVersion
from livechat_client.errors import RateLimitError, RetryBudgetExceededError, TransientNetworkError, ValidationError
from livechat_client.telemetry import LogLevel, TelemetryEvent

from tests.fixtures.mock_service import CHAT_TOKEN_BODY, MockLiveChatService, raise_connect_error

TOKEN_ROUTE = r"getchattoken/"


def _failing_then_ok(failures: int, status: int = 500) -> MockLiveChatService:
    svc = MockLiveChatService()
    responses = [(status, {"error": "boom"}, None)] * failures + [(200, CHAT_TOKEN_BODY, None)]
    svc.add_sequence(TOKEN_ROUTE, responses)
    return svc


class TestRetryUntilSuccess:

    @pytest.mark.parametrize("failures", [0, 1, 3])
    def test_k_failures_then_success(self, make_client, fake_sleep, failures):
        svc = _failing_then_ok(failures)
        client = make_client(svc, {"max_attempts": 5, "backoff_millis": 250})

        token = asyncio.run(client.get_chat_token("req-1"))

        assert isinstance(token, ChatToken)
        assert token.request_id == "req-1"
        assert token.raw["requestId"] == "req-1"
        assert token.chat_id == CHAT_TOKEN_BODY["ChatId"]
        assert len(svc.call_log) == failures + 1
        assert fake_sleep.delays == [0.25] * failures

    def test_same_request_id_on_every_attempt(self, make_client):
        svc = _failing_then_ok(2)
        client = make_client(svc, {"max_attempts": 5, "backoff_millis": 0})

        asyncio.run(client.get_chat_token("req-same"))

        urls = {url for _, url, _, _ in svc.call_log}
        assert len(urls) == 1
        assert "/req-same?" in urls.pop()

    def test_generated_request_id_reused(self, make_client):
        svc = _failing_then_ok(1)
        client = make_client(svc, {"max_attempts": 3, "backoff_millis": 0})

        token = asyncio.run(client.get_chat_token())

        assert token.request_id
        assert all(f"/{token.request_id}?" in url for _, url, _, _ in svc.call_log)

    @pytest.mark.parametrize("body", [{}, []])
    def test_empty_json_container_succeeds_first_time(self, make_client, fake_sleep, body):
        svc = MockLiveChatService()
        svc.add_route(TOKEN_ROUTE, 200, body)
        client = make_client(svc, {"max_attempts": 3, "backoff_millis": 0})

        token = asyncio.run(client.get_chat_token("req-1"))

        assert isinstance(token, ChatToken)
        assert token.request_id == "req-1"
        assert len(svc.call_log) == 1
        assert fake_sleep.delays == []

    def test_each_attempt_logged(self, make_client, chat_logger):
        svc = _failing_then_ok(2)
        client = make_client(svc, {"max_attempts": 5, "backoff_millis": 0})

        asyncio.run(client.get_chat_token("req-1"))

        assert chat_logger.events() == [
            TelemetryEvent.GET_CHAT_TOKEN_STARTED,
            TelemetryEvent.GET_CHAT_TOKEN_FAILED,
            TelemetryEvent.GET_CHAT_TOKEN_STARTED,
            TelemetryEvent.GET_CHAT_TOKEN_FAILED,
            TelemetryEvent.GET_CHAT_TOKEN_STARTED,
            TelemetryEvent.GET_CHAT_TOKEN_SUCCEEDED,
        ]
        succeeded = chat_logger.find(TelemetryEvent.GET_CHAT_TOKEN_SUCCEEDED)[0]
        assert succeeded["RequestId"] == "req-1"
        assert succeeded["Region"] == "westus"
        assert succeeded["AttemptNumber"] == 2
        assert "ElapsedTimeInMilliseconds" in succeeded


class TestRetryBudget:

    @pytest.mark.parametrize("max_attempts", [1, 2, 4])
    def test_exactly_n_attempts_then_exhausted(self, make_client, fake_sleep, max_attempts):
        svc = MockLiveChatService()
        svc.add_route(TOKEN_ROUTE, 503, {"error": "unavailable"})
        client = make_client(svc, {"max_attempts": max_attempts, "backoff_millis": 10})

        with pytest.raises(RetryBudgetExceededError) as exc_info:
            asyncio.run(client.get_chat_token("req-1"))

        assert len(svc.call_log) == max_attempts
        assert len(fake_sleep.delays) == max_attempts - 1
        assert exc_info.value.max_attempts == max_attempts
        assert str(max_attempts) in str(exc_info.value)
        assert exc_info.value.last_error.status_code == 503

    def test_empty_body_without_reconnect_is_retried(self, make_client):
        svc = MockLiveChatService()
        svc.add_sequence(TOKEN_ROUTE, [(204, None, None), (200, CHAT_TOKEN_BODY, None)])
        client = make_client(svc, {"max_attempts": 3, "backoff_millis": 0})

        token = asyncio.run(client.get_chat_token("req-1"))

        assert token is not None
        assert len(svc.call_log) == 2

    def test_start_attempt_counts_against_budget(self, make_client):
        svc = MockLiveChatService()
        svc.add_route(TOKEN_ROUTE, 500, {})
        client = make_client(svc, {"max_attempts": 3, "backoff_millis": 0})

        with pytest.raises(RetryBudgetExceededError):
            asyncio.run(client.get_chat_token("req-1", current_retry_count=2))

        assert len(svc.call_log) == 1

    def test_negative_retry_count_rejected_before_io(self, make_client):
        svc = MockLiveChatService()
        client = make_client(svc)

        with pytest.raises(ValidationError):
            asyncio.run(client.get_chat_token("req-1", current_retry_count=-1))

        assert svc.call_log == []


class TestTwoRetryLayers:

    def test_connect_errors_exhaust_both_budgets(self, make_client, fake_sleep):
        svc = MockLiveChatService()
        svc.add_handler(TOKEN_ROUTE, raise_connect_error)
        client = make_client(svc, {"max_attempts": 3, "backoff_millis": 100, "max_transport_retries": 2})

        with pytest.raises(RetryBudgetExceededError) as exc_info:
            asyncio.run(client.get_chat_token("req-1"))

        assert len(svc.call_log) == 3 * (2 + 1)
        assert {url for _, url, _, _ in svc.call_log} == {svc.call_log[0][1]}
        assert "/req-1?" in svc.call_log[0][1]
        assert isinstance(exc_info.value.last_error, TransientNetworkError)
        assert exc_info.value.last_error.status_code is None
        # 2 transport sleeps per attempt, 0.1s between attempts
        assert len(fake_sleep.delays) == 3 * 2 + 2
        assert fake_sleep.delays.count(0.1) >= 2

    def test_undecodable_body_logged_and_retried(self, make_client, chat_logger):
        svc = MockLiveChatService()
        svc.add_handler(
            TOKEN_ROUTE,
            lambda request: httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"notgzip"),
        )
        client = make_client(svc, {"max_attempts": 2, "backoff_millis": 0})

        with pytest.raises(RetryBudgetExceededError):
            asyncio.run(client.get_chat_token("req-1"))

        assert len(svc.call_log) == 2
        assert chat_logger.events() == [
            TelemetryEvent.GET_CHAT_TOKEN_STARTED,
            TelemetryEvent.GET_CHAT_TOKEN_FAILED,
            TelemetryEvent.GET_CHAT_TOKEN_STARTED,
            TelemetryEvent.GET_CHAT_TOKEN_FAILED,
        ]


class TestRateLimit:

    def test_429_terminal_by_default(self, make_client, fake_sleep):
        svc = _failing_then_ok(1, status=429)
        client = make_client(svc, {"max_attempts": 5, "backoff_millis": 0})

        with pytest.raises(RateLimitError):
            asyncio.run(client.get_chat_token("req-1"))

        assert len(svc.call_log) == 1
        assert fake_sleep.delays == []

    def test_429_retried_when_policy_opts_in(self, make_client):
        svc = _failing_then_ok(2, status=429)
        client = make_client(svc, {"max_attempts": 5, "backoff_millis": 0, "retry_on_rate_limit": True})

        token = asyncio.run(client.get_chat_token("req-1"))

        assert token is not None
        assert len(svc.call_log) == 3

    def test_rate_limit_failure_logged_with_status(self, make_client, chat_logger):
        svc = _failing_then_ok(1, status=429)
        client = make_client(svc, {"max_attempts": 5})

        with pytest.raises(RateLimitError):
            asyncio.run(client.get_chat_token("req-1", CallOptions(auth_token="secret-jwt")))

        failed = chat_logger.find(TelemetryEvent.GET_CHAT_TOKEN_FAILED)
        assert len(failed) == 1
        assert failed[0]["ResponseStatusCode"] == 429
        assert "secret-jwt" not in repr(failed[0])


class TestReconnect:

    def test_no_content_on_reconnect_resolves_none(self, make_client, chat_logger, fake_sleep):
        svc = MockLiveChatService()
        svc.add_route(TOKEN_ROUTE, 204)
        client = make_client(svc, {"max_attempts": 5, "backoff_millis": 0})

        result = asyncio.run(client.get_chat_token("req-1", CallOptions(reconnect_id="R")))

        assert result is None
        assert len(svc.call_log) == 1
        assert "/req-1/R?" in svc.call_log[0][1]
        assert fake_sleep.delays == []
        level = [r[0] for r in chat_logger.records if r[1] == TelemetryEvent.GET_CHAT_TOKEN_FAILED]
        assert level == [LogLevel.WARN]


class TestVersionSelection:

    def test_override_forces_v2_without_mutating_client(self, make_client):
        svc = MockLiveChatService()
        svc.add_route(TOKEN_ROUTE, 200, CHAT_TOKEN_BODY)
        client = make_client(svc)

        asyncio.run(client.get_chat_token("r", CallOptions(protocol_version=ProtocolVersion.V2)))
        asyncio.run(client.get_chat_token("r"))

        assert "/livechatconnector/v2/getchattoken/" in svc.call_log[0][1]
        assert "/livechatconnector/getchattoken/" in svc.call_log[1][1]
        assert client.protocol_version == ProtocolVersion.V1

    def test_authenticated_header_sent(self, make_client):
        svc = MockLiveChatService()
        svc.add_route(TOKEN_ROUTE, 200, CHAT_TOKEN_BODY)
        client = make_client(svc)

        asyncio.run(client.get_chat_token("r", CallOptions(auth_token="jwt")))

        _, url, headers, _ = svc.call_log[0]
        assert "/auth/getchattoken/" in url
        assert headers["authenticatedusertoken"] == "jwt"
