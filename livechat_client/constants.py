"""Wire-level constants shared by the live chat client."""

from __future__ import annotations

from enum import Enum, IntEnum


class ChannelId(str, Enum):
    LCW = "lcw"


class ProtocolVersion(IntEnum):
    """Endpoint family generation. V2 is sticky once discovered."""
    V1 = 1
    V2 = 2


class Headers:
    """HTTP header names understood by the live chat service."""
    AUTHENTICATED_USER_TOKEN = "AuthenticatedUserToken"
    AUTHORIZATION = "authorization"
    ORGANIZATION_ID = "organizationId"
    WIDGET_APP_ID = "widgetAppId"
    REQUEST_ID = "RequestId"
    CUSTOMER_DISPLAY_NAME = "customerDisplayName"
    TRANSACTION_ID = "transaction-id"
    DATE = "date"


DEFAULT_HEADERS: dict[str, str] = {"Content-Type": "application/json"}
BYPASS_CACHE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

NO_CONTENT_STATUS_CODE = 204
NOT_FOUND_STATUS_CODE = 404
TOO_MANY_REQUESTS_STATUS_CODE = 429

DEFAULT_LOCALE = "en-us"

SUPPORTED_LOCALES: frozenset[str] = frozenset({
    "ar-sa", "bg-bg", "ca-es", "cs-cz", "da-dk", "de-de", "el-gr", "en-us",
    "es-es", "et-ee", "eu-es", "fi-fi", "fr-fr", "gl-es", "he-il", "hi-in",
    "hr-hr", "hu-hu", "id-id", "it-it", "ja-jp", "kk-kz", "ko-kr", "lt-lt",
    "lv-lv", "ms-my", "nb-no", "nl-nl", "pl-pl", "pt-br", "pt-pt", "ro-ro",
    "ru-ru", "sk-sk", "sl-si", "sr-cyrl-cs", "sr-latn-cs", "sv-se", "th-th",
    "tr-tr", "uk-ua", "vi-vn", "zh-cn", "zh-hk", "zh-tw",
})

# Service identity keys that must be present, in their wire spelling
REQUIRED_IDENTITY_KEYS = ("orgUrl", "orgId", "widgetId", "channelId")
