"""
Bounded HTTP fetches for provider adapters.

Every request gets a per-attempt timeout that cancels the in-flight call, and
transient failures (transport errors, timeouts, 5xx, 429) are retried with a
linearly increasing delay: base_delay after the first failure, 2 x base_delay
after the second, and so on. When attempts run out the caller gets a
ProviderUnreachableError; the adapter decides nothing about retries itself.
"""

import asyncio
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from contest_scout.config import settings
from contest_scout.errors import ProviderUnreachableError
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class RetryableStatusError(Exception):
    """Raised for HTTP statuses worth another attempt (5xx, 429)."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}")


def _is_retryable_error(exc: BaseException) -> bool:
    return isinstance(exc, (httpx.TransportError, asyncio.TimeoutError, RetryableStatusError))


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class RetryingFetcher:
    """HTTP JSON fetcher with timeout and retry, composed into each adapter."""

    def __init__(
        self,
        provider: str,
        *,
        timeout: float | None = None,
        attempts: int | None = None,
        base_delay: float | None = None,
        headers: dict[str, str] | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.provider = provider
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.attempts = attempts if attempts is not None else settings.http_retry_attempts
        self.base_delay = (
            base_delay if base_delay is not None else settings.http_retry_delay_seconds
        )
        self.headers = {
            "User-Agent": settings.http_user_agent,
            "Accept": "application/json",
            **(headers or {}),
        }
        self._sleep = sleep

    async def get_json(self, url: str, params: dict | None = None) -> Any:
        """GET ``url`` and return the decoded JSON body, or None if it is not JSON."""

        async def call(client: httpx.AsyncClient) -> httpx.Response:
            return await client.get(url, params=params)

        return await self._fetch(url, call)

    async def post_json(self, url: str, body: dict) -> Any:
        async def call(client: httpx.AsyncClient) -> httpx.Response:
            return await client.post(url, json=body)

        return await self._fetch(url, call)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "provider_fetch_retry",
            provider=self.provider,
            attempt=retry_state.attempt_number,
            max_attempts=self.attempts,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=repr(exc),
        )

    async def _fetch(self, url: str, call) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_incrementing(start=self.base_delay, increment=self.base_delay),
            retry=retry_if_exception(_is_retryable_error),
            before_sleep=self._log_retry,
            sleep=self._sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._request_once(
                        url, call, attempt.retry_state.attempt_number
                    )
        except RetryError as exc:
            last = exc.last_attempt.exception()
            logger.error(
                "provider_unreachable",
                provider=self.provider,
                url=url,
                attempts=exc.last_attempt.attempt_number,
                error=repr(last),
            )
            raise ProviderUnreachableError(
                self.provider, exc.last_attempt.attempt_number, repr(last)
            ) from last

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("provider_invalid_json", provider=self.provider, url=url, error=str(exc))
            return None

    async def _request_once(self, url: str, call, attempt_number: int) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            response = await asyncio.wait_for(call(client), timeout=self.timeout)

        status = response.status_code
        if _is_retryable_status(status):
            raise RetryableStatusError(status)
        if status >= 400:
            logger.warning("provider_api_error", provider=self.provider, url=url, status_code=status)
            raise ProviderUnreachableError(self.provider, attempt_number, f"HTTP {status}")
        return response
