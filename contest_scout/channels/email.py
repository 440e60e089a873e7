import httpx

from contest_scout.channels.base import NotificationChannel
from contest_scout.config import settings
from contest_scout.models import Channel, DeliveryResult, NotificationPayload
from contest_scout.templates import render_email_html

_RESEND_URL = "https://api.resend.com/emails"


class EmailChannel(NotificationChannel):
    """Transactional email through the Resend HTTP API."""

    channel = Channel.EMAIL

    def __init__(
        self,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: float | None = None,
    ):
        self.api_key = settings.resend_api_key if api_key is None else api_key
        self.sender = sender or settings.email_from
        self.timeout = timeout or settings.channel_timeout_seconds

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    async def _deliver(self, destination: str, payload: NotificationPayload) -> DeliveryResult:
        body = {
            "from": self.sender,
            "to": [destination],
            "subject": payload.title,
            "html": render_email_html(payload),
            "text": payload.message,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(_RESEND_URL, json=body, headers=headers)

        if response.status_code not in (200, 201, 202):
            return self._http_failure(response)
        return DeliveryResult(
            success=True, channel=self.channel, message_id=(response.json() or {}).get("id")
        )
