"""Request dispatch: single attempts with telemetry, and the bounded retry loop.

Retry states per logical call:

    Attempting -> Succeeded            2xx with a usable body
    Attempting -> FailedTerminal       no content on a reconnect request, or
                                       429 when the policy does not retry it
    Attempting -> FailedRetryable      anything else
    FailedRetryable -> Attempting      after backoff, while attempts remain
    FailedRetryable -> BudgetExhausted otherwise
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .builder import PreparedRequest
from .config import RetryPolicy
from .constants import NO_CONTENT_STATUS_CODE
from .errors import (
    LiveChatError,
    RateLimitError,
    RetryBudgetExceededError,
    TerminalEmptyResultError,
    TransientNetworkError,
    ValidationError,
)
from .telemetry import LogLevel, OperationTelemetry
from .transport import HttpTransport, Sleep, TransportResponse

logger = logging.getLogger(__name__)


class AttemptOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED_TERMINAL = "failed_terminal"
    FAILED_RETRYABLE = "failed_retryable"
    RETRY_BUDGET_EXHAUSTED = "retry_budget_exhausted"


@dataclass
class AttemptState:
    """Per-call retry bookkeeping. Never shared between calls."""
    attempt_number: int = 0
    start_time: float = field(default_factory=time.perf_counter)


async def dispatch(
    transport: HttpTransport,
    request: PreparedRequest,
    telemetry: OperationTelemetry,
    payload: dict[str, Any] | None = None,
) -> TransportResponse:
    """
    One attempt with started/succeeded/failed telemetry.

    Transport errors are logged (redacted) and re-raised unchanged.
    """
    telemetry.started()
    try:
        response = await transport.send(request)
    except LiveChatError as e:
        telemetry.failed(
            e,
            payload=payload,
            RequestPath=request.url,
            RequestMethod=request.method,
        )
        raise
    telemetry.succeeded(
        response,
        payload=payload,
        RequestPath=request.url,
        RequestMethod=request.method,
    )
    return response


class RetryingDispatcher:
    """
    Runs a request until it succeeds, fails terminally or runs out of attempts.

    The same PreparedRequest (and therefore the same request id in its path)
    is sent on every attempt so the service can deduplicate.
    """

    def __init__(
        self,
        transport: HttpTransport,
        policy: RetryPolicy,
        sleep: Sleep | None = None,
    ):
        self.transport = transport
        self.policy = policy
        self._sleep = sleep or asyncio.sleep

    def classify(self, error: Exception) -> AttemptOutcome:
        if isinstance(error, TerminalEmptyResultError):
            return AttemptOutcome.FAILED_TERMINAL
        if isinstance(error, RateLimitError) and not self.policy.retry_on_rate_limit:
            return AttemptOutcome.FAILED_TERMINAL
        return AttemptOutcome.FAILED_RETRYABLE

    async def _attempt(
        self,
        request: PreparedRequest,
        telemetry: OperationTelemetry,
        is_reconnect: bool,
    ) -> TransportResponse:
        telemetry.started()
        fields = {"RequestPath": request.url, "RequestMethod": request.method}
        try:
            response = await self.transport.send(request)
        except LiveChatError as e:
            telemetry.failed(e, **fields)
            raise

        if response.has_body:
            telemetry.succeeded(response, **fields)
            return response

        if is_reconnect and response.status_code == NO_CONTENT_STATUS_CODE:
            telemetry.failed(
                description=f"{telemetry.label} returned no content for reconnect",
                level=LogLevel.WARN,
                ResponseStatusCode=response.status_code,
                **fields,
            )
            raise TerminalEmptyResultError(
                "No content for reconnect request", status_code=response.status_code
            )

        error = TransientNetworkError(
            f"Response with status code {response.status_code} carried no body",
            method=request.method,
            url=request.url,
            request_headers=request.headers,
            status_code=response.status_code,
            response_headers=response.headers,
        )
        telemetry.failed(error, **fields)
        raise error

    async def run(
        self,
        request: PreparedRequest,
        telemetry_factory: Callable[[AttemptState], OperationTelemetry],
        is_reconnect: bool = False,
        start_attempt: int = 0,
    ) -> TransportResponse:
        """
        Dispatch with application-level retry.

        Raises:
            ValidationError: start_attempt is negative
            TerminalEmptyResultError: reconnect request answered with no content
            RateLimitError: 429 and the policy does not retry it
            RetryBudgetExceededError: max_attempts reached
        """
        if start_attempt < 0:
            raise ValidationError(f"Invalid retry count: {start_attempt}")

        max_attempts = self.policy.max_attempts
        state = AttemptState(attempt_number=start_attempt)
        last_error: Exception | None = None

        while True:
            telemetry = telemetry_factory(state)
            try:
                return await self._attempt(request, telemetry, is_reconnect)
            except LiveChatError as e:
                last_error = e
                if self.classify(e) is AttemptOutcome.FAILED_TERMINAL:
                    raise

            if state.attempt_number + 1 >= max_attempts:
                raise RetryBudgetExceededError(
                    f"The retry for {telemetry.label.lower()} has exceeded its max value of {max_attempts}",
                    max_attempts=max_attempts,
                    last_error=last_error,
                )

            logger.warning(
                f"Retry {state.attempt_number + 1}/{max_attempts - 1} of {request.method} "
                f"{request.url} after {self.policy.backoff_seconds:.1f}s: {last_error}"
            )
            await self._sleep(self.policy.backoff_seconds)
            state = AttemptState(attempt_number=state.attempt_number + 1)
