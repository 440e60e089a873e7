from abc import ABC, abstractmethod

from contest_scout.models import Channel, DeliveryResult, NotificationPayload
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationChannel(ABC):
    """
    One delivery mechanism.

    ``send`` never raises: a channel that is not configured, or whose
    transport fails, answers with ``DeliveryResult(success=False, ...)``.
    """

    channel: Channel

    @abstractmethod
    def is_enabled(self) -> bool: ...

    @abstractmethod
    async def _deliver(self, destination: str, payload: NotificationPayload) -> DeliveryResult: ...

    async def send(self, destination: str, payload: NotificationPayload) -> DeliveryResult:
        if not self.is_enabled():
            return DeliveryResult(
                success=False,
                channel=self.channel,
                error=f"{self.channel.value} channel not configured",
            )
        try:
            result = await self._deliver(destination, payload)
        except Exception as exc:
            logger.warning(
                "channel_send_exception",
                channel=self.channel.value,
                subscriber_id=payload.subscriber_id,
                error=repr(exc),
            )
            return DeliveryResult(success=False, channel=self.channel, error=str(exc) or repr(exc))

        if result.success:
            logger.info(
                "channel_send_ok",
                channel=self.channel.value,
                subscriber_id=payload.subscriber_id,
                message_id=result.message_id,
            )
        else:
            logger.warning(
                "channel_send_failed",
                channel=self.channel.value,
                subscriber_id=payload.subscriber_id,
                error=result.error,
            )
        return result

    async def health_check(self) -> bool:
        return self.is_enabled()

    def _http_failure(self, response) -> DeliveryResult:
        return DeliveryResult(
            success=False,
            channel=self.channel,
            error=f"HTTP {response.status_code}: {response.text[:200]}",
        )
