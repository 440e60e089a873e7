"""
Multi-channel fan-out.

One record per notification: written PENDING before any send, then updated
once with every channel's outcome after all sends resolve. A failing channel
never affects its siblings.
"""

import asyncio
from datetime import datetime
from typing import Callable, Iterable

from contest_scout.channels.base import NotificationChannel
from contest_scout.models import (
    Channel,
    DeliveryResult,
    NotificationPayload,
    NotificationRecord,
    NotificationStatus,
    SubscriberPreference,
    utcnow,
)
from contest_scout.store.base import Store
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)


class ChannelDispatcher:
    def __init__(
        self,
        store: Store,
        channels: Iterable[NotificationChannel],
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.channels: dict[Channel, NotificationChannel] = {c.channel: c for c in channels}
        self.clock = clock

    def select_channels(
        self, subscriber: SubscriberPreference, only: set[Channel] | None = None
    ) -> list[tuple[NotificationChannel, str]]:
        """Enabled channels with a contact and a configured backend, in a stable order."""
        selected = []
        for name, channel in self.channels.items():
            if only is not None and name not in only:
                continue
            if not subscriber.wants_channel(name):
                continue
            if not channel.is_enabled():
                logger.debug("channel_not_configured", channel=name.value)
                continue
            selected.append((channel, subscriber.contact_for(name)))
        return selected

    async def dispatch(
        self,
        subscriber: SubscriberPreference,
        payload: NotificationPayload,
        only: set[Channel] | None = None,
        record: NotificationRecord | None = None,
    ) -> NotificationRecord | None:
        """
        Send ``payload`` on every selected channel concurrently.

        Returns the finalized record, or None when no channel could be selected
        (nothing is written in that case). Pass ``record`` to re-deliver an
        existing notification instead of creating a new one.
        """
        selected = self.select_channels(subscriber, only)
        if not selected:
            logger.info(
                "notification_no_channels",
                subscriber_id=subscriber.subscriber_id,
                kind=payload.kind.value,
            )
            return None

        attempted = [channel.channel for channel, _ in selected]
        if record is None:
            record = NotificationRecord(
                subscriber_id=subscriber.subscriber_id,
                contest_id=payload.contest_id,
                kind=payload.kind,
                title=payload.title,
                message=payload.message,
                payload=payload.to_dict(),
                channels=attempted,
                created_at=self.clock(),
            )
            await self.store.insert_notification(record)
        else:
            record.channels = attempted

        results = await asyncio.gather(
            *(self._send(channel, destination, payload) for channel, destination in selected)
        )

        record.record_results(list(results), self.clock())
        await self.store.update_notification(record)

        log = logger.info if record.status == NotificationStatus.SENT else logger.warning
        log(
            "notification_dispatched",
            notification_id=record.id,
            subscriber_id=record.subscriber_id,
            contest_id=record.contest_id,
            kind=record.kind.value,
            status=record.status.value,
            channels={d.channel.value: d.status.value for d in record.deliveries},
        )
        return record

    async def _send(
        self, channel: NotificationChannel, destination: str, payload: NotificationPayload
    ) -> DeliveryResult:
        try:
            return await channel.send(destination, payload)
        except Exception as exc:
            # send() should not raise, but one misbehaving channel must not sink the rest
            logger.error("channel_send_raised", channel=channel.channel.value, error=repr(exc))
            return DeliveryResult(success=False, channel=channel.channel, error=str(exc) or repr(exc))

    async def health_check(self) -> dict[str, bool]:
        return {name.value: await channel.health_check() for name, channel in self.channels.items()}
