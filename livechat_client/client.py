"""Live chat client: session negotiation operations against the chat service."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from .builder import build_init_payload, build_request
from .config import ClientConfig, RetryPolicy, ServiceIdentity
from .constants import (
    BYPASS_CACHE_HEADERS,
    NOT_FOUND_STATUS_CODE,
    Headers,
    ProtocolVersion,
)
from .dispatch import AttemptState, RetryingDispatcher, dispatch
from .endpoints import Operation, Paths, ResolvedEndpoint, build_path, resolve_endpoint
from .environment import EnvironmentProbe, HeadlessEnvironment
from .errors import (
    LiveChatHTTPError,
    RecordNotFoundError,
    TerminalEmptyResultError,
)
from .models import (
    CallOptions,
    ChatToken,
    QueueAvailability,
    ReconnectAvailability,
    ReconnectMappingRecord,
)
from .telemetry import ChatLogger, LogLevel, NullChatLogger, OperationTelemetry, TelemetryEvent
from .transport import HttpTransport, Sleep

logger = logging.getLogger(__name__)

_NO_OPTIONS = CallOptions()

# operation -> (started, succeeded, failed, label)
_EVENTS: dict[str, tuple[TelemetryEvent, TelemetryEvent, TelemetryEvent, str]] = {
    "chat_config": (
        TelemetryEvent.GET_CHAT_CONFIG_STARTED,
        TelemetryEvent.GET_CHAT_CONFIG_SUCCEEDED,
        TelemetryEvent.GET_CHAT_CONFIG_FAILED,
        "Get Chat Config",
    ),
    "lwi_details": (
        TelemetryEvent.GET_LWI_DETAILS_STARTED,
        TelemetryEvent.GET_LWI_DETAILS_SUCCEEDED,
        TelemetryEvent.GET_LWI_DETAILS_FAILED,
        "Get LWI Details",
    ),
    "chat_token": (
        TelemetryEvent.GET_CHAT_TOKEN_STARTED,
        TelemetryEvent.GET_CHAT_TOKEN_SUCCEEDED,
        TelemetryEvent.GET_CHAT_TOKEN_FAILED,
        "Get Chat Token",
    ),
    "reconnectable_chats": (
        TelemetryEvent.GET_RECONNECTABLE_CHATS_STARTED,
        TelemetryEvent.GET_RECONNECTABLE_CHATS_SUCCEEDED,
        TelemetryEvent.GET_RECONNECTABLE_CHATS_FAILED,
        "Get Reconnectable Chats",
    ),
    "reconnect_availability": (
        TelemetryEvent.GET_RECONNECT_AVAILABILITY_STARTED,
        TelemetryEvent.GET_RECONNECT_AVAILABILITY_SUCCEEDED,
        TelemetryEvent.GET_RECONNECT_AVAILABILITY_FAILED,
        "Get Reconnect Availability",
    ),
    "agent_availability": (
        TelemetryEvent.GET_AGENT_AVAILABILITY_STARTED,
        TelemetryEvent.GET_AGENT_AVAILABILITY_SUCCEEDED,
        TelemetryEvent.GET_AGENT_AVAILABILITY_FAILED,
        "Get Agent Availability",
    ),
    "session_init": (
        TelemetryEvent.SESSION_INIT_STARTED,
        TelemetryEvent.SESSION_INIT_SUCCEEDED,
        TelemetryEvent.SESSION_INIT_FAILED,
        "Session Init",
    ),
    "session_close": (
        TelemetryEvent.SESSION_CLOSE_STARTED,
        TelemetryEvent.SESSION_CLOSE_SUCCEEDED,
        TelemetryEvent.SESSION_CLOSE_FAILED,
        "Session Close",
    ),
    "validate_auth_chat_record": (
        TelemetryEvent.VALIDATE_AUTH_CHAT_RECORD_STARTED,
        TelemetryEvent.VALIDATE_AUTH_CHAT_RECORD_SUCCEEDED,
        TelemetryEvent.VALIDATE_AUTH_CHAT_RECORD_FAILED,
        "Validate Auth Chat Record",
    ),
    "submit_post_chat": (
        TelemetryEvent.SUBMIT_POST_CHAT_STARTED,
        TelemetryEvent.SUBMIT_POST_CHAT_SUCCEEDED,
        TelemetryEvent.SUBMIT_POST_CHAT_FAILED,
        "Submit Post Chat",
    ),
    "survey_invite_link": (
        TelemetryEvent.GET_SURVEY_INVITE_LINK_STARTED,
        TelemetryEvent.GET_SURVEY_INVITE_LINK_SUCCEEDED,
        TelemetryEvent.GET_SURVEY_INVITE_LINK_FAILED,
        "Get Survey Invite Link",
    ),
    "chat_transcripts": (
        TelemetryEvent.GET_CHAT_TRANSCRIPT_STARTED,
        TelemetryEvent.GET_CHAT_TRANSCRIPT_SUCCEEDED,
        TelemetryEvent.GET_CHAT_TRANSCRIPT_FAILED,
        "Get Chat Transcript",
    ),
    "email_transcript": (
        TelemetryEvent.EMAIL_TRANSCRIPT_STARTED,
        TelemetryEvent.EMAIL_TRANSCRIPT_SUCCEEDED,
        TelemetryEvent.EMAIL_TRANSCRIPT_FAILED,
        "Email Transcript",
    ),
    "data_masking": (
        TelemetryEvent.FETCH_DATA_MASKING_STARTED,
        TelemetryEvent.FETCH_DATA_MASKING_SUCCEEDED,
        TelemetryEvent.FETCH_DATA_MASKING_FAILED,
        "Fetch Data Masking",
    ),
    "secondary_channel_event": (
        TelemetryEvent.SECONDARY_CHANNEL_EVENT_STARTED,
        TelemetryEvent.SECONDARY_CHANNEL_EVENT_SUCCEEDED,
        TelemetryEvent.SECONDARY_CHANNEL_EVENT_FAILED,
        "Secondary Channel Event Request",
    ),
    "typing_indicator": (
        TelemetryEvent.SEND_TYPING_INDICATOR_STARTED,
        TelemetryEvent.SEND_TYPING_INDICATOR_SUCCEEDED,
        TelemetryEvent.SEND_TYPING_INDICATOR_FAILED,
        "Send Typing Indicator",
    ),
}


def _new_request_id() -> str:
    return str(uuid.uuid4())


class LiveChatClient:
    """
    Client for negotiating live chat sessions.

    Usage:
        client = LiveChatClient(ServiceIdentity(
            org_url="https://org.crm.omnichannelengagementhub.com",
            org_id="00000000-0000-0000-0000-000000000000",
            widget_id="11111111-1111-1111-1111-111111111111",
            channel_id="lcw",
        ))
        config = await client.get_chat_config()
        token = await client.get_chat_token(request_id)
        await client.session_init(request_id)

    Every operation is a coroutine. Calls share nothing but the protocol
    version, which only ever moves from V1 to V2.
    """

    def __init__(
        self,
        identity: ServiceIdentity | dict[str, Any],
        policy: RetryPolicy | dict[str, Any] | None = None,
        logger: ChatLogger | None = None,
        *,
        timeout: float = 30.0,
        transport: HttpTransport | None = None,
        environment: EnvironmentProbe | None = None,
        sleep: Sleep | None = None,
    ):
        if not isinstance(identity, ServiceIdentity):
            identity = ServiceIdentity.from_dict(identity)
        self.identity = identity
        self.policy = RetryPolicy.from_value(policy)
        self.logger: ChatLogger = logger or NullChatLogger()
        self.environment: EnvironmentProbe = environment or HeadlessEnvironment()
        self.transport = transport or HttpTransport(
            timeout=timeout,
            max_retries=self.policy.max_transport_retries,
            sleep=sleep,
        )
        self._retrying = RetryingDispatcher(self.transport, self.policy, sleep=sleep)
        self._protocol_version = ProtocolVersion.V1

    @classmethod
    def from_config(cls, config: ClientConfig, logger: ChatLogger | None = None, **kwargs: Any) -> LiveChatClient:
        return cls(config.identity, config.retry, logger, timeout=config.timeout, **kwargs)

    # ------------------------------------------------------------------
    # Protocol version
    # ------------------------------------------------------------------

    @property
    def protocol_version(self) -> ProtocolVersion:
        return self._protocol_version

    def upgrade_protocol_version(self, version: int | ProtocolVersion) -> ProtocolVersion:
        """Raise the client-wide version. Never downgrades."""
        try:
            version = ProtocolVersion(version)
        except ValueError:
            return self._protocol_version
        if version > self._protocol_version:
            logger.info(f"Live chat protocol upgraded to {version.name}")
            self._protocol_version = version
        return self._protocol_version

    def _effective_version(self, override: ProtocolVersion | None) -> ProtocolVersion:
        if override is not None and ProtocolVersion(override) == ProtocolVersion.V2:
            return ProtocolVersion.V2
        return self._protocol_version

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _telemetry(self, operation: str, **base_fields: Any) -> OperationTelemetry:
        started, succeeded, failed, label = _EVENTS[operation]
        return OperationTelemetry(self.logger, started, succeeded, failed, label, base_fields)

    def _endpoint(
        self,
        prefix: str,
        segments: list[str],
        auth_token: str | None = None,
        query: dict[str, str] | None = None,
    ) -> ResolvedEndpoint:
        headers: dict[str, str] = {}
        if auth_token:
            headers[Headers.AUTHENTICATED_USER_TOKEN] = auth_token
        return ResolvedEndpoint(path=build_path(prefix, segments, query), headers=headers)

    def _widget_segments(self, *rest: str) -> list[str]:
        return [self.identity.org_id, self.identity.widget_id, *rest]

    @property
    def _channel_query(self) -> dict[str, str]:
        return {"channelId": self.identity.channel_id}

    # ------------------------------------------------------------------
    # Chat token (retrying)
    # ------------------------------------------------------------------

    async def get_chat_token(
        self,
        request_id: str | None = None,
        options: CallOptions = _NO_OPTIONS,
        current_retry_count: int = 0,
    ) -> ChatToken | None:
        """
        Fetch the chat token used to join the conversation thread.

        Retries transient failures up to ``policy.max_attempts`` with
        ``policy.backoff_millis`` between attempts, reusing the same request id.

        Returns:
            ChatToken tagged with the request id, or None when a reconnect
            request finds nothing to reconnect to.

        Raises:
            ValidationError: negative current_retry_count
            RateLimitError: 429 and the policy does not retry on it
            RetryBudgetExceededError: all attempts failed
        """
        request_id = request_id or _new_request_id()
        endpoint = resolve_endpoint(
            Operation.CHAT_TOKEN,
            self._effective_version(options.protocol_version),
            self._widget_segments(request_id),
            self.identity.channel_id,
            auth_token=options.auth_token,
            reconnect_id=options.reconnect_id,
        )
        request = build_request(self.identity, endpoint, "GET")

        def telemetry_factory(state: AttemptState) -> OperationTelemetry:
            return self._telemetry("chat_token", RequestId=request_id, AttemptNumber=state.attempt_number)

        try:
            response = await self._retrying.run(
                request,
                telemetry_factory,
                is_reconnect=bool(options.reconnect_id),
                start_attempt=current_retry_count,
            )
        except TerminalEmptyResultError:
            return None

        return ChatToken.from_dict(response.body if isinstance(response.body, dict) else {}, request_id)

    # ------------------------------------------------------------------
    # Single-attempt operations
    # ------------------------------------------------------------------

    async def get_chat_config(self, request_id: str | None = None, bypass_cache: bool = False) -> dict[str, Any]:
        """
        Fetch the widget's chat configuration.

        A config declaring ``LiveChatVersion == 2`` upgrades the client to V2.
        """
        request_id = request_id or _new_request_id()
        endpoint = self._endpoint(
            Paths.CONFIG,
            self._widget_segments(),
            query={"requestId": request_id, **self._channel_query},
        )
        request = build_request(
            self.identity, endpoint, "GET",
            extra_headers=BYPASS_CACHE_HEADERS if bypass_cache else None,
        )
        response = await dispatch(self.transport, request, self._telemetry("chat_config", RequestId=request_id))

        data = dict(response.body) if isinstance(response.body, dict) else {}
        if data.get("LiveChatVersion") == ProtocolVersion.V2:
            self.upgrade_protocol_version(ProtocolVersion.V2)
        data["headers"] = {}
        if Headers.DATE in response.headers:
            data["headers"][Headers.DATE] = response.headers[Headers.DATE]
        return data

    async def get_lwi_details(self, request_id: str | None = None, options: CallOptions = _NO_OPTIONS) -> Any:
        """Fetch live work item details for a (possibly reconnecting) chat."""
        request_id = request_id or _new_request_id()
        prefix = Paths.AUTH_LWI_DETAILS if options.auth_token else Paths.LWI_DETAILS
        segments = self._widget_segments(request_id)
        if options.reconnect_id:
            segments.append(options.reconnect_id)
        endpoint = self._endpoint(prefix, segments, options.auth_token, self._channel_query)
        request = build_request(self.identity, endpoint, "GET")
        response = await dispatch(self.transport, request, self._telemetry("lwi_details", RequestId=request_id))
        return response.body

    async def get_reconnectable_chats(self, auth_token: str) -> ReconnectMappingRecord | None:
        """Previous session of the authenticated user, or None if there is none."""
        endpoint = self._endpoint(
            Paths.RECONNECTABLE_CHATS,
            self._widget_segments(self.identity.org_id),
            auth_token,
            self._channel_query,
        )
        request = build_request(self.identity, endpoint, "GET")
        response = await dispatch(self.transport, request, self._telemetry("reconnectable_chats"))
        if isinstance(response.body, dict) and response.body:
            return ReconnectMappingRecord.from_dict(response.body)
        return None

    async def get_reconnect_availability(self, reconnect_id: str) -> ReconnectAvailability | None:
        endpoint = self._endpoint(Paths.RECONNECT_AVAILABILITY, self._widget_segments(reconnect_id))
        request = build_request(self.identity, endpoint, "GET")
        telemetry = self._telemetry("reconnect_availability")
        response = await dispatch(self.transport, request, telemetry)
        if isinstance(response.body, dict) and response.body:
            return ReconnectAvailability.from_dict(response.body)
        logger.warning("Reconnect availability response carried no data")
        return None

    async def get_agent_availability(
        self,
        request_id: str | None = None,
        options: CallOptions = _NO_OPTIONS,
    ) -> QueueAvailability | None:
        """
        Check whether agents are available for the widget's queue.

        The request body always carries a cache key derived from the org,
        the widget and the custom context.
        """
        request_id = request_id or _new_request_id()
        payload = build_init_payload(
            self.identity,
            options.init_context,
            get_context=options.get_context,
            environment=self.environment,
            with_cache_key=True,
        )
        endpoint = self._endpoint(
            Paths.AGENT_AVAILABILITY,
            self._widget_segments(request_id),
            options.auth_token,
            self._channel_query,
        )
        request = build_request(self.identity, endpoint, "POST", body=payload)
        response = await dispatch(
            self.transport, request, self._telemetry("agent_availability", RequestId=request_id), payload=payload
        )
        if isinstance(response.body, dict) and response.body:
            return QueueAvailability.from_dict(response.body)
        return None

    async def session_init(self, request_id: str, options: CallOptions = _NO_OPTIONS) -> None:
        """Start a session. The payload is validated before anything is sent."""
        payload = build_init_payload(
            self.identity,
            options.init_context,
            get_context=options.get_context,
            environment=self.environment,
        )
        prefix = Paths.AUTH_SESSION_INIT if options.auth_token else Paths.SESSION_INIT
        segments = self._widget_segments(request_id)
        if options.reconnect_id:
            segments.append(options.reconnect_id)
        endpoint = self._endpoint(prefix, segments, options.auth_token, self._channel_query)
        request = build_request(self.identity, endpoint, "POST", body=payload)
        await dispatch(self.transport, request, self._telemetry("session_init", RequestId=request_id), payload=payload)

    async def session_close(self, request_id: str, options: CallOptions = _NO_OPTIONS) -> None:
        """Close the session started with the same request id."""
        prefix = Paths.AUTH_SESSION_CLOSE if options.auth_token else Paths.SESSION_CLOSE
        query = dict(self._channel_query)
        if options.is_reconnect_chat:
            query["isReconnectChat"] = "true"
        if options.is_persistent_chat:
            query["isPersistentChat"] = "true"
        endpoint = self._endpoint(prefix, self._widget_segments(request_id), options.auth_token, query)
        request = build_request(self.identity, endpoint, "POST", body={"chatId": options.chat_id})
        await dispatch(self.transport, request, self._telemetry("session_close", RequestId=request_id))

    async def validate_auth_chat_record(
        self,
        request_id: str,
        chat_id: str,
        auth_token: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Check that an authenticated chat record exists.

        Returns the record, or None when the service answers 404.

        Raises:
            RecordNotFoundError: the service answered without ``authChatExist``
        """
        endpoint = self._endpoint(
            Paths.VALIDATE_AUTH_CHAT_RECORD,
            self._widget_segments(chat_id, request_id),
            auth_token,
            self._channel_query,
        )
        request = build_request(self.identity, endpoint, "GET")
        telemetry = self._telemetry("validate_auth_chat_record", RequestId=request_id)
        telemetry.started()
        try:
            response = await self.transport.send(request)
        except LiveChatHTTPError as e:
            if e.status_code == NOT_FOUND_STATUS_CODE:
                telemetry.failed(e, level=LogLevel.WARN)
                return None
            telemetry.failed(e)
            raise

        body = response.body if isinstance(response.body, dict) else {}
        if body.get("authChatExist") is True:
            telemetry.succeeded(response)
            return body

        message = "Validate Auth Chat Record Failed. Record is not found or request is not authorized"
        telemetry.failed(description=message, level=LogLevel.INFO, ErrorCode=response.status_code)
        raise RecordNotFoundError(message)

    async def submit_post_chat_response(
        self,
        request_id: str,
        post_chat_response: dict[str, Any],
        auth_token: str | None = None,
    ) -> None:
        prefix = Paths.AUTH_SUBMIT_POST_CHAT if auth_token else Paths.SUBMIT_POST_CHAT
        endpoint = self._endpoint(prefix, self._widget_segments(request_id), auth_token, self._channel_query)
        request = build_request(self.identity, endpoint, "POST", body=post_chat_response)
        await dispatch(self.transport, request, self._telemetry("submit_post_chat", RequestId=request_id))

    async def get_survey_invite_link(
        self,
        survey_owner_id: str,
        survey_invite_body: dict[str, Any],
        auth_token: str | None = None,
        request_id: str | None = None,
    ) -> Any:
        prefix = Paths.AUTH_SURVEY_INVITE_LINK if auth_token else Paths.SURVEY_INVITE_LINK
        endpoint = self._endpoint(prefix, [self.identity.org_id, survey_owner_id], auth_token)
        extra_headers: dict[str, str] = {}
        if auth_token:
            extra_headers[Headers.WIDGET_APP_ID] = self.identity.widget_id
        if request_id:
            extra_headers[Headers.REQUEST_ID] = request_id
        request = build_request(self.identity, endpoint, "POST", body=survey_invite_body, extra_headers=extra_headers)
        telemetry = self._telemetry("survey_invite_link", SurveyOwnerId=survey_owner_id)
        response = await dispatch(self.transport, request, telemetry)
        return response.body

    async def get_chat_transcripts(
        self,
        request_id: str,
        chat_id: str,
        token: str,
        options: CallOptions = _NO_OPTIONS,
    ) -> Any:
        """Fetch the transcript of a chat. Version-aware like get_chat_token."""
        endpoint = resolve_endpoint(
            Operation.TRANSCRIPT,
            self._effective_version(options.protocol_version),
            [chat_id, request_id],
            self.identity.channel_id,
            auth_token=options.auth_token,
        )
        request = build_request(self.identity, endpoint, "GET", extra_headers={
            Headers.ORGANIZATION_ID: self.identity.org_id,
            Headers.WIDGET_APP_ID: self.identity.widget_id,
            Headers.AUTHORIZATION: token,
        })
        response = await dispatch(self.transport, request, self._telemetry("chat_transcripts", RequestId=request_id))
        return response.body

    async def email_transcript(
        self,
        request_id: str,
        token: str,
        email_request_body: dict[str, Any],
        auth_token: str | None = None,
    ) -> None:
        prefix = Paths.AUTH_EMAIL_TRANSCRIPT if auth_token else Paths.EMAIL_TRANSCRIPT
        endpoint = self._endpoint(prefix, [request_id], query=self._channel_query)
        request = build_request(self.identity, endpoint, "POST", body=email_request_body, extra_headers={
            Headers.ORGANIZATION_ID: self.identity.org_id,
            Headers.WIDGET_APP_ID: self.identity.widget_id,
            Headers.AUTHORIZATION: token,
        })
        await dispatch(self.transport, request, self._telemetry("email_transcript", RequestId=request_id))

    async def fetch_data_masking_info(self, request_id: str | None = None) -> Any:
        """Fetch the org's data masking rules."""
        request_id = request_id or _new_request_id()
        endpoint = self._endpoint(Paths.DATA_MASKING, [self.identity.org_id])
        request = build_request(self.identity, endpoint, "GET", extra_headers={
            Headers.ORGANIZATION_ID: self.identity.org_id,
            Headers.REQUEST_ID: request_id,
        })
        response = await dispatch(self.transport, request, self._telemetry("data_masking", RequestId=request_id))
        return response.body

    async def make_secondary_channel_event_request(
        self,
        request_id: str,
        event_body: dict[str, Any],
        auth_token: str | None = None,
    ) -> None:
        prefix = Paths.AUTH_SECONDARY_CHANNEL_EVENT if auth_token else Paths.SECONDARY_CHANNEL_EVENT
        endpoint = self._endpoint(prefix, self._widget_segments(request_id), auth_token, self._channel_query)
        request = build_request(self.identity, endpoint, "POST", body=event_body, extra_headers={
            Headers.ORGANIZATION_ID: self.identity.org_id,
        })
        await dispatch(self.transport, request, self._telemetry("secondary_channel_event", RequestId=request_id))

    async def send_typing_indicator(
        self,
        request_id: str,
        protocol_version: int | ProtocolVersion | None,
        customer_display_name: str | None = None,
    ) -> None:
        """Typing indicators only exist on V2; other versions are a no-op."""
        if protocol_version != ProtocolVersion.V2:
            return None
        endpoint = self._endpoint(Paths.TYPING_INDICATOR, [request_id])
        extra_headers = {Headers.ORGANIZATION_ID: self.identity.org_id}
        if customer_display_name:
            extra_headers[Headers.CUSTOMER_DISPLAY_NAME] = customer_display_name
        request = build_request(self.identity, endpoint, "POST", extra_headers=extra_headers)
        await dispatch(self.transport, request, self._telemetry("typing_indicator", RequestId=request_id))
