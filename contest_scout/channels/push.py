import httpx

from contest_scout.channels.base import NotificationChannel
from contest_scout.config import settings
from contest_scout.models import Channel, DeliveryResult, NotificationPayload
from contest_scout.templates import render_push

_FCM_URL = "https://fcm.googleapis.com/fcm/send"


class PushChannel(NotificationChannel):
    """Mobile/web push through Firebase Cloud Messaging. Destination is a device token."""

    channel = Channel.PUSH

    def __init__(self, server_key: str | None = None, timeout: float | None = None):
        self.server_key = settings.fcm_server_key if server_key is None else server_key
        self.timeout = timeout or settings.channel_timeout_seconds

    def is_enabled(self) -> bool:
        return bool(self.server_key)

    async def _deliver(self, destination: str, payload: NotificationPayload) -> DeliveryResult:
        title, body = render_push(payload)
        message = {
            "to": destination,
            "notification": {"title": title, "body": body},
            "data": {
                "kind": payload.kind.value,
                "contest_id": payload.contest_id or "",
            },
        }
        headers = {"Authorization": f"key={self.server_key}"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(_FCM_URL, json=message, headers=headers)

        if response.status_code != 200:
            return self._http_failure(response)

        data = response.json() or {}
        result = (data.get("results") or [{}])[0]
        if data.get("failure") or "error" in result:
            return DeliveryResult(
                success=False, channel=self.channel, error=result.get("error", "FCM rejected message")
            )
        return DeliveryResult(success=True, channel=self.channel, message_id=result.get("message_id"))
