"""Endpoint paths and version/auth-aware path resolution."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode

from .constants import Headers, ProtocolVersion


class Paths:
    """Path prefixes of the live chat connector API."""
    CONFIG = "livechatconnector/config"
    GET_CHAT_TOKEN = "livechatconnector/getchattoken"
    AUTH_GET_CHAT_TOKEN = "livechatconnector/auth/getchattoken"
    V2_GET_CHAT_TOKEN = "livechatconnector/v2/getchattoken"
    V2_AUTH_GET_CHAT_TOKEN = "livechatconnector/v2/auth/getchattoken"
    TRANSCRIPT = "livechatconnector/transcript"
    AUTH_TRANSCRIPT = "livechatconnector/auth/transcript"
    V2_TRANSCRIPT = "livechatconnector/v2/transcript"
    V2_AUTH_TRANSCRIPT = "livechatconnector/v2/auth/transcript"
    LWI_DETAILS = "livechatconnector/lwicontexts"
    AUTH_LWI_DETAILS = "livechatconnector/auth/lwicontexts"
    SESSION_INIT = "livechatconnector/sessioninit"
    AUTH_SESSION_INIT = "livechatconnector/auth/sessioninit"
    SESSION_CLOSE = "livechatconnector/sessionclose"
    AUTH_SESSION_CLOSE = "livechatconnector/auth/sessionclose"
    RECONNECTABLE_CHATS = "livechatconnector/auth/reconnectablechats"
    RECONNECT_AVAILABILITY = "livechatconnector/reconnectavailability"
    AGENT_AVAILABILITY = "livechatconnector/auth/agentavailability"
    VALIDATE_AUTH_CHAT_RECORD = "livechatconnector/auth/validateauthchatmaprecord"
    SUBMIT_POST_CHAT = "livechatconnector/postchat/submit"
    AUTH_SUBMIT_POST_CHAT = "livechatconnector/auth/postchat/submit"
    SURVEY_INVITE_LINK = "livechatconnector/surveyinvitelink"
    AUTH_SURVEY_INVITE_LINK = "livechatconnector/auth/surveyinvitelink"
    EMAIL_TRANSCRIPT = "livechatconnector/createemailrequest"
    AUTH_EMAIL_TRANSCRIPT = "livechatconnector/auth/createemailrequest"
    DATA_MASKING = "livechatconnector/getdatamaskingrules"
    SECONDARY_CHANNEL_EVENT = "livechatconnector/secondaryChannelEvents"
    AUTH_SECONDARY_CHANNEL_EVENT = "livechatconnector/auth/secondaryChannelEvents"
    TYPING_INDICATOR = "livechatconnector/typingindicator"


class Operation(str, Enum):
    """Logical operations whose path depends on version and auth mode."""
    CHAT_TOKEN = "chat_token"
    TRANSCRIPT = "transcript"


# (operation, version, authenticated) -> path prefix
_VERSIONED_PATHS: dict[tuple[Operation, ProtocolVersion, bool], str] = {
    (Operation.CHAT_TOKEN, ProtocolVersion.V1, False): Paths.GET_CHAT_TOKEN,
    (Operation.CHAT_TOKEN, ProtocolVersion.V1, True): Paths.AUTH_GET_CHAT_TOKEN,
    (Operation.CHAT_TOKEN, ProtocolVersion.V2, False): Paths.V2_GET_CHAT_TOKEN,
    (Operation.CHAT_TOKEN, ProtocolVersion.V2, True): Paths.V2_AUTH_GET_CHAT_TOKEN,
    (Operation.TRANSCRIPT, ProtocolVersion.V1, False): Paths.TRANSCRIPT,
    (Operation.TRANSCRIPT, ProtocolVersion.V1, True): Paths.AUTH_TRANSCRIPT,
    (Operation.TRANSCRIPT, ProtocolVersion.V2, False): Paths.V2_TRANSCRIPT,
    (Operation.TRANSCRIPT, ProtocolVersion.V2, True): Paths.V2_AUTH_TRANSCRIPT,
}


@dataclass(frozen=True)
class ResolvedEndpoint:
    """A request path (with query string) plus headers implied by auth mode."""
    path: str
    headers: dict[str, str]

    def url(self, org_url: str) -> str:
        return f"{org_url}{self.path}"


def select_path(operation: Operation, version: ProtocolVersion, authenticated: bool) -> str:
    """Pick the path prefix for an operation. Total over the enum domain."""
    return _VERSIONED_PATHS[(operation, ProtocolVersion(version), bool(authenticated))]


def build_path(
    prefix: str,
    segments: list[str],
    query: dict[str, str] | None = None,
) -> str:
    """Join a prefix and path segments into '/prefix/a/b?query'."""
    path = "/" + "/".join([prefix, *[str(s) for s in segments]])
    if query:
        path += "?" + urlencode(query)
    return path


def resolve_endpoint(
    operation: Operation,
    version: ProtocolVersion,
    segments: list[str],
    channel_id: str,
    auth_token: str | None = None,
    reconnect_id: str | None = None,
) -> ResolvedEndpoint:
    """
    Resolve the path for a versioned operation.

    The reconnect id, when given, becomes the last path segment whatever the
    version or auth branch. The channel id is always sent as a query parameter.
    """
    prefix = select_path(operation, version, bool(auth_token))

    headers: dict[str, str] = {}
    if auth_token:
        headers[Headers.AUTHENTICATED_USER_TOKEN] = auth_token

    parts = list(segments)
    if reconnect_id:
        parts.append(reconnect_id)

    return ResolvedEndpoint(
        path=build_path(prefix, parts, {"channelId": channel_id}),
        headers=headers,
    )
