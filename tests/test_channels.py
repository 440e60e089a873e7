from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from contest_scout.models import (
    Channel,
    ContestSummary,
    NotificationKind,
    NotificationPayload,
    Provider,
)


def _mock_response(data, status_code: int = 200, text: str = ""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data
    response.text = text
    return response


def _mock_client(mock_client_class, response=None, error: Exception | None = None):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    if error is not None:
        mock_client.post = AsyncMock(side_effect=error)
    else:
        mock_client.post = AsyncMock(return_value=response)
    mock_client_class.return_value = mock_client
    return mock_client


@pytest.fixture
def payload(now):
    summary = ContestSummary(
        contest_id="c1",
        name="Codeforces Round <912>",
        provider=Provider.CODEFORCES,
        start_time=now + timedelta(hours=3),
        hours_until_start=3.0,
        website_url="https://codeforces.com/contest/1900",
    )
    return NotificationPayload(
        kind=NotificationKind.CONTEST_REMINDER,
        title="Codeforces Round <912> starts in 3 hours",
        message="Codeforces Round <912> on Codeforces starts in 3 hours.",
        subscriber_id="user-1",
        contest_id="c1",
        contests=[summary],
    )


@pytest.mark.asyncio
async def test_email_sends_through_resend(payload):
    from contest_scout.channels.email import EmailChannel

    channel = EmailChannel(api_key="re_test", sender="Scout <scout@example.com>")
    with patch("httpx.AsyncClient") as mock_client_class:
        client = _mock_client(mock_client_class, _mock_response({"id": "email-123"}))
        result = await channel.send("a@example.com", payload)

    assert result.success is True
    assert result.channel == Channel.EMAIL
    assert result.message_id == "email-123"
    url = client.post.call_args.args[0]
    body = client.post.call_args.kwargs["json"]
    headers = client.post.call_args.kwargs["headers"]
    assert url == "https://api.resend.com/emails"
    assert body["to"] == ["a@example.com"]
    assert body["subject"] == payload.title
    assert "&lt;912&gt;" in body["html"]
    assert headers["Authorization"] == "Bearer re_test"


@pytest.mark.asyncio
async def test_email_without_key_is_not_configured(payload):
    from contest_scout.channels.email import EmailChannel

    channel = EmailChannel(api_key="")
    with patch("httpx.AsyncClient") as mock_client_class:
        result = await channel.send("a@example.com", payload)

    assert channel.is_enabled() is False
    assert result.success is False
    assert result.error == "email channel not configured"
    mock_client_class.assert_not_called()


@pytest.mark.asyncio
async def test_email_http_error_becomes_failed_result(payload):
    from contest_scout.channels.email import EmailChannel

    channel = EmailChannel(api_key="re_test")
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, _mock_response({}, status_code=422, text="invalid from"))
        result = await channel.send("a@example.com", payload)

    assert result.success is False
    assert result.error == "HTTP 422: invalid from"


@pytest.mark.asyncio
async def test_transport_exception_never_raises(payload):
    from contest_scout.channels.whatsapp import WhatsAppChannel

    channel = WhatsAppChannel(api_key="token", phone_id="12345")
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, error=httpx.ConnectTimeout("timed out"))
        result = await channel.send("+15550001111", payload)

    assert result.success is False
    assert result.channel == Channel.WHATSAPP
    assert "timed out" in result.error


@pytest.mark.asyncio
async def test_whatsapp_posts_text_message(payload):
    from contest_scout.channels.whatsapp import WhatsAppChannel

    channel = WhatsAppChannel(api_key="token", phone_id="12345", api_version="v18.0")
    response = _mock_response({"messages": [{"id": "wamid.abc"}]})
    with patch("httpx.AsyncClient") as mock_client_class:
        client = _mock_client(mock_client_class, response)
        result = await channel.send("+15550001111", payload)

    assert result.success is True
    assert result.message_id == "wamid.abc"
    assert client.post.call_args.args[0] == "https://graph.facebook.com/v18.0/12345/messages"
    body = client.post.call_args.kwargs["json"]
    assert body["to"] == "15550001111"
    assert body["type"] == "text"
    assert "https://codeforces.com/contest/1900" in body["text"]["body"]


def test_whatsapp_needs_key_and_phone_id():
    from contest_scout.channels.whatsapp import WhatsAppChannel

    assert WhatsAppChannel(api_key="token", phone_id="").is_enabled() is False
    assert WhatsAppChannel(api_key="", phone_id="1").is_enabled() is False


@pytest.mark.asyncio
async def test_push_sends_to_device_token(payload):
    from contest_scout.channels.push import PushChannel

    channel = PushChannel(server_key="fcm-key")
    response = _mock_response({"success": 1, "failure": 0, "results": [{"message_id": "0:1"}]})
    with patch("httpx.AsyncClient") as mock_client_class:
        client = _mock_client(mock_client_class, response)
        result = await channel.send("device-token", payload)

    assert result.success is True
    assert result.message_id == "0:1"
    body = client.post.call_args.kwargs["json"]
    assert body["to"] == "device-token"
    assert body["data"] == {"kind": "CONTEST_REMINDER", "contest_id": "c1"}
    assert client.post.call_args.kwargs["headers"]["Authorization"] == "key=fcm-key"


@pytest.mark.asyncio
async def test_push_rejected_token(payload):
    from contest_scout.channels.push import PushChannel

    channel = PushChannel(server_key="fcm-key")
    response = _mock_response({"success": 0, "failure": 1, "results": [{"error": "NotRegistered"}]})
    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, response)
        result = await channel.send("stale-token", payload)

    assert result.success is False
    assert result.error == "NotRegistered"


@pytest.mark.asyncio
async def test_health_check_reflects_configuration():
    from contest_scout.channels.push import PushChannel

    assert await PushChannel(server_key="k").health_check() is True
    assert await PushChannel(server_key="").health_check() is False
