"""Bounded exponential backoff for upstream HTTP calls, built on tenacity."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import UpstreamClientError, UpstreamServerError, error_for_status

logger = logging.getLogger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]


def _always(_: BaseException) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class RetryOptions:
    """Backoff knobs; delays are expressed in seconds."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable: Callable[[BaseException], bool] = field(default=_always)


class RetryPolicy:
    """Run an async operation, retrying failures the predicate accepts.

    The operation is attempted at most ``max_retries + 1`` times. Between
    attempts the policy sleeps ``initial_delay`` seconds, multiplying the delay
    by ``backoff_multiplier`` after each sleep and capping it at ``max_delay``.
    No sleep follows the final attempt, and cancellation is never retried.
    """

    def __init__(self, options: RetryOptions | None = None, *, sleep: SleepFn = asyncio.sleep) -> None:
        self.options = options or RetryOptions()
        self._sleep = sleep

    def _should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, asyncio.CancelledError):
            return False
        return bool(self.options.retryable(exc))

    def _retrying(self) -> AsyncRetrying:
        options = self.options
        return AsyncRetrying(
            stop=stop_after_attempt(max(options.max_retries, 0) + 1),
            wait=wait_exponential(
                multiplier=options.initial_delay,
                exp_base=options.backoff_multiplier,
                min=0,
                max=options.max_delay,
            ),
            retry=retry_if_exception(self._should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        async for attempt in self._retrying():
            with attempt:
                return await operation()
        raise AssertionError("unreachable: tenacity re-raises the final failure")  # pragma: no cover


def is_retryable_http_error(exc: BaseException) -> bool:
    """5xx/429 responses and transport failures are transient; everything else is final."""

    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, UpstreamServerError):
        return True
    if isinstance(exc, UpstreamClientError):
        return False
    return isinstance(exc, httpx.TransportError)


def http_retry_policy(
    *,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_multiplier: float = 2.0,
    sleep: SleepFn = asyncio.sleep,
) -> RetryPolicy:
    """Return a policy that retries only transient HTTP failures."""

    options = RetryOptions(
        max_retries=max_retries,
        initial_delay=initial_delay,
        max_delay=max_delay,
        backoff_multiplier=backoff_multiplier,
        retryable=is_retryable_http_error,
    )
    return RetryPolicy(options, sleep=sleep)


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    policy: RetryPolicy,
    headers: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> httpx.Response:
    """GET ``url`` through ``policy``.

    Server errors (5xx and 429) raise :class:`UpstreamServerError` so the policy
    can retry them; any other response, including 4xx, is returned untouched.
    """

    async def attempt() -> httpx.Response:
        request_kwargs = {"headers": dict(headers or {})}
        if timeout is not None:
            request_kwargs["timeout"] = timeout
        response = await client.get(url, **request_kwargs)
        if response.status_code >= 500 or response.status_code == 429:
            raise error_for_status(
                response.status_code,
                url,
                reason=response.reason_phrase,
                body=response.text,
            )
        return response

    return await policy.run(attempt)
