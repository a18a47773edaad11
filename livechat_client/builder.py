"""Assemble wire requests: headers, URL, JSON body."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any

from .config import ServiceIdentity
from .constants import DEFAULT_HEADERS, DEFAULT_LOCALE, SUPPORTED_LOCALES, Headers
from .endpoints import ResolvedEndpoint
from .environment import EnvironmentProbe
from .errors import ValidationError
from .models import InitContext


@dataclass(frozen=True)
class PreparedRequest:
    """A request ready for the transport."""
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def has_body(self) -> bool:
        return self.body is not None


def default_headers(auth_token: str | None = None) -> dict[str, str]:
    """Fresh copy of the default headers, plus the auth header when given."""
    headers = dict(DEFAULT_HEADERS)
    if auth_token:
        headers[Headers.AUTHENTICATED_USER_TOKEN] = auth_token
    return headers


def build_request(
    identity: ServiceIdentity,
    endpoint: ResolvedEndpoint,
    method: str = "GET",
    body: Any = None,
    extra_headers: dict[str, str] | None = None,
) -> PreparedRequest:
    headers = default_headers()
    headers.update(endpoint.headers)
    if extra_headers:
        headers.update(extra_headers)
    return PreparedRequest(
        method=method,
        url=endpoint.url(identity.org_url),
        headers=headers,
        body=body,
    )


def sorted_custom_context(custom_context: dict[str, Any]) -> list[list[Any]]:
    """Custom context as [key, value] pairs ordered by key."""
    return [[key, custom_context[key]] for key in sorted(custom_context)]


def compute_cache_key(
    identity: ServiceIdentity,
    custom_context: dict[str, Any] | None = None,
    portal_contact_id: str | None = None,
) -> str:
    """
    SHA-256 digest identifying an availability lookup.

    Custom context entries are sorted by key first, so insertion order never
    changes the digest.
    """
    key_source: dict[str, Any] = {
        "orgId": identity.org_id,
        "widgetId": identity.widget_id,
    }
    if custom_context:
        key_source["customContext"] = sorted_custom_context(custom_context)
    if portal_contact_id:
        key_source["portalcontactid"] = portal_contact_id
    encoded = json.dumps(key_source, separators=(",", ":"), sort_keys=False, ensure_ascii=False, default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def validate_locale(locale: str | None) -> str:
    """Return the effective locale: the default when unset, else a supported one."""
    if not locale:
        return DEFAULT_LOCALE
    if locale not in SUPPORTED_LOCALES:
        raise ValidationError(f"Unsupported locale: '{locale}'")
    return locale


def build_init_payload(
    identity: ServiceIdentity,
    init_context: InitContext | None,
    get_context: bool = False,
    environment: EnvironmentProbe | None = None,
    with_cache_key: bool = False,
) -> dict[str, Any]:
    """
    Build the JSON body for operations that take an initialization context.

    Raises ValidationError (before any I/O) for an unsupported locale or for
    environment enrichment requested where no browser context is available.
    """
    context = init_context or InitContext()
    payload = context.to_payload()

    if get_context:
        if environment is None or not environment.is_available():
            raise ValidationError("getContext is only supported on web browsers")
        payload["browser"] = environment.browser_name()
        payload["device"] = environment.device_type()
        payload["originurl"] = environment.page_url()
        payload["os"] = environment.os_type()

    payload["locale"] = validate_locale(context.locale)

    if with_cache_key or context.custom_context or context.portal_contact_id:
        payload["cacheKey"] = compute_cache_key(
            identity, context.custom_context, context.portal_contact_id
        )

    return payload
