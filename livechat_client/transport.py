"""HTTP transport with connectivity-level retry."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from .builder import PreparedRequest
from .constants import TOO_MANY_REQUESTS_STATUS_CODE
from .errors import LiveChatHTTPError, RateLimitError, TransientNetworkError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class TransportResponse:
    """Status, headers and decoded body of a successful response."""
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    text: str = ""

    @property
    def has_body(self) -> bool:
        return self.body is not None and self.body != ""


@dataclass
class TransportRetryConfig:
    """Backoff for connectivity failures inside one attempt."""
    max_retries: int = 3
    base_delay_seconds: float = 0.1
    max_delay_seconds: float = 2.0
    exponential_base: float = 2.0


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text


def _error_from_response(request: PreparedRequest, response: httpx.Response) -> LiveChatHTTPError:
    error_cls = RateLimitError if response.status_code == TOO_MANY_REQUESTS_STATUS_CODE else TransientNetworkError
    return error_cls(
        f"Request failed with status code {response.status_code}",
        method=request.method,
        url=request.url,
        request_headers=request.headers,
        status_code=response.status_code,
        response_headers=dict(response.headers),
        response_body=_decode_body(response),
    )


class HttpTransport:
    """
    Sends PreparedRequests with httpx.

    A new AsyncClient is opened per request. Connect/read/timeout failures are
    retried up to ``max_retries`` times; HTTP error statuses are not retried
    here and surface as RateLimitError (429) or TransientNetworkError. Other
    request errors (undecodable body, redirect loop) surface as
    TransientNetworkError without a transport-level retry.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep | None = None,
        retry_config: TransportRetryConfig | None = None,
    ):
        self.timeout = timeout
        self.retry_config = retry_config or TransportRetryConfig(max_retries=max_retries)
        self._transport = transport
        self._sleep = sleep or asyncio.sleep

    async def _send_once(self, request: PreparedRequest) -> httpx.Response:
        kwargs: dict[str, Any] = {"headers": request.headers}
        if request.body is not None:
            if isinstance(request.body, (str, bytes)):
                kwargs["content"] = request.body
            else:
                kwargs["json"] = request.body

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.request(request.method, request.url, **kwargs)

    async def send(self, request: PreparedRequest) -> TransportResponse:
        config = self.retry_config
        last_exception: Exception | None = None

        for attempt in range(config.max_retries + 1):
            try:
                response = await self._send_once(request)
            except httpx.TransportError as e:
                last_exception = e
                if attempt == config.max_retries:
                    break

                delay = min(
                    config.base_delay_seconds * (config.exponential_base ** attempt),
                    config.max_delay_seconds,
                )
                # Add jitter (up to 25% of delay)
                delay *= (0.75 + random.random() * 0.5)

                logger.warning(
                    f"Transport retry {attempt + 1}/{config.max_retries} "
                    f"for {request.method} {request.url} after {delay:.2f}s: {e}"
                )
                await self._sleep(delay)
                continue
            except httpx.RequestError as e:
                raise TransientNetworkError(
                    f"Request failed: {e}",
                    method=request.method,
                    url=request.url,
                    request_headers=request.headers,
                ) from e

            if not response.is_success:
                raise _error_from_response(request, response)

            return TransportResponse(
                status_code=response.status_code,
                headers=dict(response.headers),
                body=_decode_body(response),
                text=response.text,
            )

        raise TransientNetworkError(
            f"Connection failed after {config.max_retries + 1} attempts: {last_exception}",
            method=request.method,
            url=request.url,
            request_headers=request.headers,
        ) from last_exception
