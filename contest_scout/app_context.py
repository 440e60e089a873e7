from dataclasses import dataclass

from contest_scout.adapters.registry import AdapterRegistry, build_registry
from contest_scout.channels.email import EmailChannel
from contest_scout.channels.push import PushChannel
from contest_scout.channels.whatsapp import WhatsAppChannel
from contest_scout.config import Settings
from contest_scout.dedup import DedupGuard
from contest_scout.models import AlertCadence
from contest_scout.notifier import ChannelDispatcher
from contest_scout.pipeline import NotificationPipeline
from contest_scout.store.base import Store
from contest_scout.store.factory import get_store
from contest_scout.sync import SyncEngine


@dataclass
class AppContext:
    """Every wired service, built once at startup and shared by the scheduler and the API."""
    settings: Settings
    store: Store
    registry: AdapterRegistry
    sync_engine: SyncEngine
    dispatcher: ChannelDispatcher
    pipeline: NotificationPipeline

    @classmethod
    def build(cls, settings: Settings, store: Store | None = None) -> "AppContext":
        store = store or get_store(settings)
        registry = build_registry(settings)
        dispatcher = ChannelDispatcher(store, [EmailChannel(), WhatsAppChannel(), PushChannel()])
        pipeline = NotificationPipeline(
            store,
            dispatcher,
            DedupGuard(store, window_hours=settings.dedup_window_hours),
            digest_horizons={
                AlertCadence.DAILY: settings.daily_digest_hours,
                AlertCadence.WEEKLY: settings.weekly_digest_hours,
            },
        )
        return cls(
            settings=settings,
            store=store,
            registry=registry,
            sync_engine=SyncEngine(registry, store),
            dispatcher=dispatcher,
            pipeline=pipeline,
        )
