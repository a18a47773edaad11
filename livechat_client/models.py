"""Request options and response models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import ProtocolVersion


@dataclass
class InitContext:
    """
    Initialization payload for session init and availability lookups.

    ``custom_context`` maps a key to either a plain value or
    ``{"value": ..., "isDisplayable": bool}``.
    """
    locale: str | None = None
    custom_context: dict[str, Any] = field(default_factory=dict)
    pre_chat_response: dict[str, Any] | None = None
    latitude: float | None = None
    longitude: float | None = None
    portal_contact_id: str | None = None
    is_proactive_chat: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Wire representation; unset fields are left out."""
        payload: dict[str, Any] = dict(self.extra)
        if self.locale:
            payload["locale"] = self.locale
        if self.custom_context:
            payload["customContextData"] = dict(self.custom_context)
        if self.pre_chat_response is not None:
            payload["preChatResponse"] = dict(self.pre_chat_response)
        if self.latitude is not None:
            payload["latitude"] = self.latitude
        if self.longitude is not None:
            payload["longitude"] = self.longitude
        if self.portal_contact_id:
            payload["portalcontactid"] = self.portal_contact_id
        if self.is_proactive_chat is not None:
            payload["isProactiveChat"] = self.is_proactive_chat
        return payload


@dataclass(frozen=True)
class CallOptions:
    """
    Optional parameters recognised by the client operations.

    auth_token: adds the authenticated-user header and switches to the
        authenticated path family.
    reconnect_id: appended as the last path segment (reconnect flow).
    protocol_version: forces a version for this call only.
    init_context: session payload (locale, custom context, geolocation).
    get_context: enrich the payload with browser/device/OS/page URL.
    """
    auth_token: str | None = None
    reconnect_id: str | None = None
    protocol_version: ProtocolVersion | None = None
    init_context: InitContext | None = None
    get_context: bool = False
    is_reconnect_chat: bool = False
    is_persistent_chat: bool = False
    chat_id: str | None = None


@dataclass
class ChatToken:
    """Chat token returned by get_chat_token, tagged with its request id."""
    request_id: str
    chat_id: str | None = None
    token: str | None = None
    region_gtms: dict[str, Any] | None = None
    expires_in: str | None = None
    visitor_id: str | None = None
    voice_video_calling_token: str | None = None
    acs_endpoint: str | None = None
    attachment_configuration: dict[str, Any] | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any], request_id: str) -> ChatToken:
        return cls(
            request_id=request_id,
            chat_id=data.get("ChatId"),
            token=data.get("Token"),
            region_gtms=data.get("RegionGtms"),
            expires_in=data.get("ExpiresIn"),
            visitor_id=data.get("VisitorId"),
            voice_video_calling_token=data.get("VoiceVideoCallingToken"),
            acs_endpoint=data.get("ACSEndpoint"),
            attachment_configuration=data.get("AttachmentConfiguration"),
            raw={**data, "requestId": request_id},
        )


@dataclass
class QueueAvailability:
    queue_id: str | None = None
    is_queue_available: bool | None = None
    start_of_business_hours: str | None = None
    end_of_business_hours: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueueAvailability:
        return cls(
            queue_id=data.get("queueId"),
            is_queue_available=data.get("isQueueAvailable"),
            start_of_business_hours=data.get("StartofBusinessHours"),
            end_of_business_hours=data.get("EndofBusinessHours"),
            raw=dict(data),
        )


@dataclass
class ReconnectAvailability:
    is_reconnect_available: bool | None = None
    reconnect_redirection_url: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReconnectAvailability:
        return cls(
            is_reconnect_available=data.get("isReconnectAvailable"),
            reconnect_redirection_url=data.get("reconnectRedirectionURL"),
            raw=dict(data),
        )


@dataclass
class ReconnectMappingRecord:
    reconnect_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReconnectMappingRecord:
        return cls(
            reconnect_id=data.get("reconnectid") or data.get("reconnectId"),
            raw=dict(data),
        )
