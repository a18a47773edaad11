"""Strip sensitive values from errors and payloads before they are logged.

Nothing here mutates its input: every function returns a sanitized copy,
so the caller's request body and the exception it receives stay intact.
"""

from __future__ import annotations

import copy
from typing import Any

from .errors import LiveChatHTTPError

# Field names removed wherever they appear (compared case-insensitively)
SENSITIVE_FIELDS: frozenset[str] = frozenset({
    "authenticatedusertoken",
    "authorization",
    "token",
    "chattoken",
    "voicevideocallingtoken",
    "visitorid",
    "regiongtms",
    "acsendpoint",
    "cookie",
    "set-cookie",
})

GEOLOCATION_FIELDS: frozenset[str] = frozenset({"latitude", "longitude"})


def _strip_fields(value: Any, denied: frozenset[str]) -> Any:
    if isinstance(value, dict):
        return {
            k: _strip_fields(v, denied)
            for k, v in value.items()
            if not (isinstance(k, str) and k.lower() in denied)
        }
    if isinstance(value, list):
        return [_strip_fields(v, denied) for v in value]
    return value


def strip_sensitive_fields(value: Any) -> Any:
    """Drop denylisted fields at any depth."""
    return _strip_fields(value, SENSITIVE_FIELDS)


def strip_geolocation(payload: dict[str, Any]) -> dict[str, Any]:
    """Drop raw latitude/longitude from a payload."""
    return _strip_fields(payload, GEOLOCATION_FIELDS)


def strip_custom_context_values(custom_context: dict[str, Any]) -> dict[str, Any]:
    """
    Keep custom context keys, blank their values.

    Entries are either plain values or ``{"value": ..., "isDisplayable": ...}``.
    """
    stripped: dict[str, Any] = {}
    for key, entry in custom_context.items():
        if isinstance(entry, dict):
            entry = dict(entry)
            entry["value"] = ""
            stripped[key] = entry
        else:
            stripped[key] = ""
    return stripped


def strip_pre_chat_response(pre_chat_response: dict[str, Any]) -> dict[str, Any]:
    """Keep question ids, blank the visitor's answers."""
    return {key: "" for key in pre_chat_response}


def sanitize_payload(payload: dict[str, Any] | None) -> dict[str, Any] | None:
    """Redact an outgoing request payload for logging."""
    if payload is None:
        return None
    sanitized = copy.deepcopy(payload)
    if isinstance(sanitized.get("customContextData"), dict):
        sanitized["customContextData"] = strip_custom_context_values(sanitized["customContextData"])
    if isinstance(sanitized.get("preChatResponse"), dict):
        sanitized["preChatResponse"] = strip_pre_chat_response(sanitized["preChatResponse"])
    sanitized = strip_geolocation(sanitized)
    return strip_sensitive_fields(sanitized)


def sanitize_error(error: BaseException) -> dict[str, Any]:
    """
    Structured, redacted view of an exception.

    Request/response headers lose auth material; response bodies lose both
    denylisted and geolocation fields. Status codes and other plain fields
    are kept.
    """
    details: dict[str, Any] = {
        "type": type(error).__name__,
        "message": str(error),
    }
    if isinstance(error, LiveChatHTTPError):
        body = error.response_body
        if isinstance(body, (dict, list)):
            body = strip_geolocation(strip_sensitive_fields(copy.deepcopy(body)))
        details.update({
            "method": error.method,
            "url": error.url,
            "status_code": error.status_code,
            "request_headers": strip_sensitive_fields(dict(error.request_headers)),
            "response_headers": strip_sensitive_fields(dict(error.response_headers)),
            "response_body": body,
        })
    last_error = getattr(error, "last_error", None)
    if isinstance(last_error, BaseException):
        details["last_error"] = sanitize_error(last_error)
    return details
