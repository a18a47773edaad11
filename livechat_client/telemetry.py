"""Structured telemetry for live chat operations."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Protocol

from .constants import Headers
from .sanitizer import sanitize_error, sanitize_payload


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class TelemetryEvent(str, Enum):
    GET_CHAT_CONFIG_STARTED = "GETCHATCONFIGSTARTED"
    GET_CHAT_CONFIG_SUCCEEDED = "GETCHATCONFIGSUCCEEDED"
    GET_CHAT_CONFIG_FAILED = "GETCHATCONFIGFAILED"
    GET_LWI_DETAILS_STARTED = "GETLWISTATUSSTARTED"
    GET_LWI_DETAILS_SUCCEEDED = "GETLWISTATUSSUCCEEDED"
    GET_LWI_DETAILS_FAILED = "GETLWISTATUSFAILED"
    GET_CHAT_TOKEN_STARTED = "GETCHATTOKENSTARTED"
    GET_CHAT_TOKEN_SUCCEEDED = "GETCHATTOKENSUCCEEDED"
    GET_CHAT_TOKEN_FAILED = "GETCHATTOKENFAILED"
    GET_RECONNECTABLE_CHATS_STARTED = "GETRECONNECTABLECHATSSTARTED"
    GET_RECONNECTABLE_CHATS_SUCCEEDED = "GETRECONNECTABLECHATSSUCCEEDED"
    GET_RECONNECTABLE_CHATS_FAILED = "GETRECONNECTABLECHATSFAILED"
    GET_RECONNECT_AVAILABILITY_STARTED = "GETRECONNECTAVAILABILITYSTARTED"
    GET_RECONNECT_AVAILABILITY_SUCCEEDED = "GETRECONNECTAVAILABILITYSUCCEEDED"
    GET_RECONNECT_AVAILABILITY_FAILED = "GETRECONNECTAVAILABILITYFAILED"
    GET_AGENT_AVAILABILITY_STARTED = "GETAGENTAVAILABILITYSTARTED"
    GET_AGENT_AVAILABILITY_SUCCEEDED = "GETAGENTAVAILABILITYSUCCEEDED"
    GET_AGENT_AVAILABILITY_FAILED = "GETAGENTAVAILABILITYFAILED"
    SESSION_INIT_STARTED = "SESSIONINITSTARTED"
    SESSION_INIT_SUCCEEDED = "SESSIONINITSUCCEEDED"
    SESSION_INIT_FAILED = "SESSIONINITFAILED"
    SESSION_CLOSE_STARTED = "SESSIONCLOSESTARTED"
    SESSION_CLOSE_SUCCEEDED = "SESSIONCLOSESUCCEEDED"
    SESSION_CLOSE_FAILED = "SESSIONCLOSEFAILED"
    VALIDATE_AUTH_CHAT_RECORD_STARTED = "VALIDATEAUTHCHATRECORDSTARTED"
    VALIDATE_AUTH_CHAT_RECORD_SUCCEEDED = "VALIDATEAUTHCHATRECORDSUCCEEDED"
    VALIDATE_AUTH_CHAT_RECORD_FAILED = "VALIDATEAUTHCHATRECORDFAILED"
    SUBMIT_POST_CHAT_STARTED = "SUBMITPOSTCHATSTARTED"
    SUBMIT_POST_CHAT_SUCCEEDED = "SUBMITPOSTCHATSUCCEEDED"
    SUBMIT_POST_CHAT_FAILED = "SUBMITPOSTCHATFAILED"
    GET_SURVEY_INVITE_LINK_STARTED = "GETSURVEYINVITELINKSTARTED"
    GET_SURVEY_INVITE_LINK_SUCCEEDED = "GETSURVEYINVITELINKSUCCEEDED"
    GET_SURVEY_INVITE_LINK_FAILED = "GETSURVEYINVITELINKFAILED"
    GET_CHAT_TRANSCRIPT_STARTED = "GETCHATTRANSCRIPTSTARTED"
    GET_CHAT_TRANSCRIPT_SUCCEEDED = "GETCHATTRANSCRIPTSUCCEEDED"
    GET_CHAT_TRANSCRIPT_FAILED = "GETCHATTRANSCRIPTFAILED"
    EMAIL_TRANSCRIPT_STARTED = "EMAILTRANSCRIPTSTARTED"
    EMAIL_TRANSCRIPT_SUCCEEDED = "EMAILTRANSCRIPTSUCCEEDED"
    EMAIL_TRANSCRIPT_FAILED = "EMAILTRANSCRIPTFAILED"
    FETCH_DATA_MASKING_STARTED = "FETCHDATAMASKINGSTARTED"
    FETCH_DATA_MASKING_SUCCEEDED = "FETCHDATAMASKINGSUCCEEDED"
    FETCH_DATA_MASKING_FAILED = "FETCHDATAMASKINGFAILED"
    SECONDARY_CHANNEL_EVENT_STARTED = "SECONDARYCHANNELEVENTREQUESTSTARTED"
    SECONDARY_CHANNEL_EVENT_SUCCEEDED = "SECONDARYCHANNELEVENTREQUESTSUCCEEDED"
    SECONDARY_CHANNEL_EVENT_FAILED = "SECONDARYCHANNELEVENTREQUESTFAILED"
    SEND_TYPING_INDICATOR_STARTED = "SENDTYPINGINDICATORSTARTED"
    SEND_TYPING_INDICATOR_SUCCEEDED = "SENDTYPINGINDICATORSUCCEEDED"
    SEND_TYPING_INDICATOR_FAILED = "SENDTYPINGINDICATORFAILED"


class ChatLogger(Protocol):
    """Sink for structured telemetry events."""

    def log(
        self,
        level: LogLevel,
        event: TelemetryEvent,
        custom_data: dict[str, Any],
        description: str,
    ) -> None: ...


class NullChatLogger:
    """Default sink: discards everything."""

    def log(
        self,
        level: LogLevel,
        event: TelemetryEvent,
        custom_data: dict[str, Any],
        description: str,
    ) -> None:
        return None


_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class StandardChatLogger:
    """Forward telemetry events to a stdlib logger; fields go in ``extra``."""

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger("livechat_client.telemetry")

    def log(
        self,
        level: LogLevel,
        event: TelemetryEvent,
        custom_data: dict[str, Any],
        description: str,
    ) -> None:
        self._logger.log(
            _STDLIB_LEVELS.get(LogLevel(level), logging.INFO),
            "%s: %s",
            event.value,
            description,
            extra={"event": event.value, "custom_data": custom_data},
        )


def _region(response: Any) -> Any:
    body = getattr(response, "body", None)
    if isinstance(body, dict):
        return body.get("Region")
    return None


class OperationTelemetry:
    """
    Start/success/failure events for one attempt of one operation.

    Every attempt should emit ``started`` once and then exactly one of
    ``succeeded`` or ``failed``.
    """

    def __init__(
        self,
        logger: ChatLogger,
        started_event: TelemetryEvent,
        succeeded_event: TelemetryEvent,
        failed_event: TelemetryEvent,
        label: str,
        base_fields: dict[str, Any] | None = None,
    ):
        self._logger = logger
        self.started_event = started_event
        self.succeeded_event = succeeded_event
        self.failed_event = failed_event
        self.label = label
        self.base_fields = dict(base_fields or {})
        self._start = time.perf_counter()

    @property
    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)

    def started(self) -> None:
        self._start = time.perf_counter()
        self._logger.log(LogLevel.INFO, self.started_event, dict(self.base_fields), f"{self.label} Started")

    def succeeded(
        self,
        response: Any = None,
        description: str | None = None,
        payload: dict[str, Any] | None = None,
        **fields: Any,
    ) -> None:
        custom_data = dict(self.base_fields)
        custom_data["ElapsedTimeInMilliseconds"] = self.elapsed_ms
        if response is not None:
            custom_data["Region"] = _region(response)
            custom_data["TransactionId"] = getattr(response, "headers", {}).get(Headers.TRANSACTION_ID)
            custom_data["ResponseStatusCode"] = getattr(response, "status_code", None)
        if payload is not None:
            custom_data["RequestPayload"] = sanitize_payload(payload)
        custom_data.update(fields)
        self._logger.log(
            LogLevel.INFO, self.succeeded_event, custom_data, description or f"{self.label} Succeeded"
        )

    def failed(
        self,
        error: BaseException | None = None,
        description: str | None = None,
        level: LogLevel = LogLevel.ERROR,
        payload: dict[str, Any] | None = None,
        **fields: Any,
    ) -> None:
        # Redact first, whether or not a real logger is attached
        custom_data = dict(self.base_fields)
        custom_data["ElapsedTimeInMilliseconds"] = self.elapsed_ms
        if error is not None:
            custom_data["ExceptionDetails"] = sanitize_error(error)
            custom_data["ResponseStatusCode"] = getattr(error, "status_code", None)
        if payload is not None:
            custom_data["RequestPayload"] = sanitize_payload(payload)
        custom_data.update(fields)
        self._logger.log(level, self.failed_event, custom_data, description or f"{self.label} Failed")
