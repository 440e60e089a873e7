"""Retry, timeout and backoff behaviour of the shared provider fetcher."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest


def _mock_response(data=None, status_code: int = 200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data if data is not None else {}
    return response


def _mock_client(mock_client_class, get):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.get = get
    mock_client_class.return_value = mock_client
    return mock_client


def _make_fetcher(sleeps: list, attempts: int = 3, timeout: float = 5.0):
    from contest_scout.adapters.http import RetryingFetcher

    async def record_sleep(seconds):
        sleeps.append(seconds)

    return RetryingFetcher(
        "codeforces", attempts=attempts, base_delay=1.0, timeout=timeout, sleep=record_sleep
    )


@pytest.mark.asyncio
async def test_retries_server_errors_with_linear_backoff():
    sleeps: list = []
    fetcher = _make_fetcher(sleeps)
    get = AsyncMock(
        side_effect=[
            _mock_response(status_code=502),
            _mock_response(status_code=503),
            _mock_response({"status": "OK"}),
        ]
    )
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, get)
        data = await fetcher.get_json("https://example.com/api")

    assert data == {"status": "OK"}
    assert get.await_count == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_attempts_raise_provider_unreachable():
    from contest_scout.errors import ProviderUnreachableError

    sleeps: list = []
    fetcher = _make_fetcher(sleeps)
    get = AsyncMock(return_value=_mock_response(status_code=500))
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, get)
        with pytest.raises(ProviderUnreachableError) as exc_info:
            await fetcher.get_json("https://example.com/api")

    assert exc_info.value.provider == "codeforces"
    assert exc_info.value.attempts == 3
    assert get.await_count == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_rate_limit_is_retried():
    sleeps: list = []
    fetcher = _make_fetcher(sleeps)
    get = AsyncMock(side_effect=[_mock_response(status_code=429), _mock_response([1, 2])])
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, get)
        data = await fetcher.get_json("https://example.com/api")

    assert data == [1, 2]
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    from contest_scout.errors import ProviderUnreachableError

    sleeps: list = []
    fetcher = _make_fetcher(sleeps)
    get = AsyncMock(return_value=_mock_response(status_code=404))
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, get)
        with pytest.raises(ProviderUnreachableError) as exc_info:
            await fetcher.get_json("https://example.com/api")

    assert exc_info.value.attempts == 1
    assert get.await_count == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_transport_errors_are_retried():
    sleeps: list = []
    fetcher = _make_fetcher(sleeps)
    get = AsyncMock(side_effect=[httpx.ConnectError("connection refused"), _mock_response({"ok": 1})])
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, get)
        data = await fetcher.get_json("https://example.com/api")

    assert data == {"ok": 1}
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_attempt_timeout_cancels_request():
    from contest_scout.errors import ProviderUnreachableError

    sleeps: list = []
    fetcher = _make_fetcher(sleeps, attempts=2, timeout=0.05)
    cancelled = []

    async def hang(*args, **kwargs):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, hang)
        with pytest.raises(ProviderUnreachableError) as exc_info:
            await fetcher.get_json("https://example.com/api")

    assert exc_info.value.attempts == 2
    assert cancelled == [True, True]
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_invalid_json_returns_none():
    sleeps: list = []
    fetcher = _make_fetcher(sleeps)
    response = _mock_response()
    response.json.side_effect = ValueError("Expecting value")
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, AsyncMock(return_value=response))
        data = await fetcher.get_json("https://example.com/api")

    assert data is None
