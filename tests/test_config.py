"""Tests for service identity, retry policy and config loading."""

from __future__ import annotations

import pytest

from livechat_client.config import ClientConfig, RetryPolicy, ServiceIdentity
from livechat_client.errors import ConfigurationError


class TestServiceIdentity:

    def test_from_camel_case(self):
        identity = ServiceIdentity.from_dict({
            "orgUrl": "https://org.example.com/",
            "orgId": "o",
            "widgetId": "w",
            "channelId": "lcw",
        })

        assert identity.org_url == "https://org.example.com"
        assert identity.channel_id == "lcw"

    @pytest.mark.parametrize("missing", ["orgUrl", "orgId", "widgetId", "channelId"])
    def test_missing_field_raises(self, missing):
        data = {"orgUrl": "https://x", "orgId": "o", "widgetId": "w", "channelId": "lcw"}
        del data[missing]

        with pytest.raises(ConfigurationError, match=missing):
            ServiceIdentity.from_dict(data)

    def test_channel_id_is_required(self):
        with pytest.raises(TypeError):
            ServiceIdentity(org_url="https://x", org_id="o", widget_id="w")
        with pytest.raises(ConfigurationError, match="channelId"):
            ServiceIdentity(org_url="https://x", org_id="o", widget_id="w", channel_id="")

    def test_invalid_channel_raises(self):
        with pytest.raises(ConfigurationError, match="Invalid channelId"):
            ServiceIdentity(org_url="https://x", org_id="o", widget_id="w", channel_id="sms")

    def test_immutable(self, identity):
        with pytest.raises(Exception):
            identity.org_id = "other"


class TestRetryPolicy:

    @pytest.mark.parametrize("value", [None, {}, [], "fast", 42])
    def test_malformed_falls_back_to_default(self, value):
        assert RetryPolicy.from_value(value) == RetryPolicy()

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 10
        assert policy.backoff_millis == 10000
        assert policy.retry_on_rate_limit is False
        assert policy.max_transport_retries == 3

    def test_partial_filled_field_by_field(self):
        policy = RetryPolicy.from_value({"max_attempts": 2})

        assert policy.max_attempts == 2
        assert policy.backoff_millis == 10000

    def test_wire_aliases(self):
        policy = RetryPolicy.from_value({
            "getChatTokenRetryCount": 4,
            "getChatTokenTimeBetweenRetriesOnFailure": 50,
            "getChatTokenRetryOn429": True,
            "maxRequestRetriesOnFailure": 0,
            "unknown": "ignored",
        })

        assert policy == RetryPolicy(4, 50, True, 0)

    def test_invalid_values_raise(self):
        with pytest.raises(ConfigurationError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ConfigurationError):
            RetryPolicy.from_value({"backoff_millis": "soon"})


class TestClientConfig:

    def test_from_yaml(self, tmp_path, monkeypatch):
        for var in ("LIVECHAT_ORG_URL", "LIVECHAT_ORG_ID", "LIVECHAT_WIDGET_ID", "LIVECHAT_CHANNEL_ID",
                    "LIVECHAT_TIMEOUT", "LIVECHAT_RETRY_MAX_ATTEMPTS", "LIVECHAT_RETRY_BACKOFF_MILLIS",
                    "LIVECHAT_RETRY_ON_429", "LIVECHAT_MAX_TRANSPORT_RETRIES"):
            monkeypatch.delenv(var, raising=False)
        config_file = tmp_path / "client.yaml"
        config_file.write_text(
            "identity:\n"
            "  org_url: https://org.example.com\n"
            "  org_id: o\n"
            "  widget_id: w\n"
            "  channel_id: lcw\n"
            "retry:\n"
            "  max_attempts: 5\n"
            "timeout: 12\n"
        )

        config = ClientConfig.from_yaml(config_file)

        assert config.identity.widget_id == "w"
        assert config.identity.channel_id == "lcw"
        assert config.retry.max_attempts == 5
        assert config.timeout == 12.0

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LIVECHAT_ORG_ID", "env-org")
        monkeypatch.setenv("LIVECHAT_RETRY_ON_429", "true")
        config_file = tmp_path / "explicit.yaml"
        config_file.write_text(
            "identity:\n  org_url: https://o\n  org_id: file-org\n  widget_id: w\n  channel_id: lcw\n"
        )

        config = ClientConfig.load(config_file)

        assert config.identity.org_id == "env-org"
        assert config.retry.retry_on_rate_limit is True

    def test_missing_channel_id_rejected(self, monkeypatch):
        monkeypatch.delenv("LIVECHAT_CHANNEL_ID", raising=False)

        with pytest.raises(ConfigurationError, match="channelId"):
            ClientConfig.from_dict({"identity": {"org_url": "https://o", "org_id": "o", "widget_id": "w"}})

    def test_channel_id_from_env(self, monkeypatch):
        monkeypatch.setenv("LIVECHAT_CHANNEL_ID", "lcw")

        config = ClientConfig.from_dict({"identity": {"org_url": "https://o", "org_id": "o", "widget_id": "w"}})

        assert config.identity.channel_id == "lcw"

    def test_missing_explicit_file_raises(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(FileNotFoundError):
            ClientConfig.load(tmp_path / "absent.yaml")
