import httpx

from contest_scout.channels.base import NotificationChannel
from contest_scout.config import settings
from contest_scout.models import Channel, DeliveryResult, NotificationPayload
from contest_scout.templates import render_whatsapp_text

_GRAPH_URL = "https://graph.facebook.com/{version}/{phone_id}/messages"


class WhatsAppChannel(NotificationChannel):
    """Text messages through the WhatsApp Business Cloud API."""

    channel = Channel.WHATSAPP

    def __init__(
        self,
        api_key: str | None = None,
        phone_id: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
    ):
        self.api_key = settings.whatsapp_api_key if api_key is None else api_key
        self.phone_id = settings.whatsapp_phone_id if phone_id is None else phone_id
        self.api_version = api_version or settings.whatsapp_api_version
        self.timeout = timeout or settings.channel_timeout_seconds

    def is_enabled(self) -> bool:
        return bool(self.api_key and self.phone_id)

    async def _deliver(self, destination: str, payload: NotificationPayload) -> DeliveryResult:
        url = _GRAPH_URL.format(version=self.api_version, phone_id=self.phone_id)
        body = {
            "messaging_product": "whatsapp",
            "to": destination.lstrip("+"),
            "type": "text",
            "text": {"preview_url": True, "body": render_whatsapp_text(payload)},
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(url, json=body, headers=headers)

        if response.status_code != 200:
            return self._http_failure(response)
        messages = (response.json() or {}).get("messages") or [{}]
        return DeliveryResult(success=True, channel=self.channel, message_id=messages[0].get("id"))
