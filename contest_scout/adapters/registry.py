from typing import Iterable, Iterator

from contest_scout.adapters.atcoder import AtCoderAdapter
from contest_scout.adapters.base import ProviderAdapter
from contest_scout.adapters.codechef import CodeChefAdapter
from contest_scout.adapters.codeforces import CodeforcesAdapter
from contest_scout.adapters.leetcode import LeetCodeAdapter
from contest_scout.config import Settings
from contest_scout.errors import AdapterNotRegisteredError
from contest_scout.models import Provider
from contest_scout.utils.logging import get_logger

logger = get_logger(__name__)


class AdapterRegistry:
    """Read-only provider -> adapter lookup, fixed at startup."""

    def __init__(self, adapters: Iterable[ProviderAdapter]):
        self._adapters: dict[Provider, ProviderAdapter] = {}
        for adapter in adapters:
            if adapter.provider in self._adapters:
                raise ValueError(f"duplicate adapter for provider '{adapter.provider.value}'")
            self._adapters[adapter.provider] = adapter

    def get(self, provider: Provider | str) -> ProviderAdapter:
        try:
            return self._adapters[Provider(provider)]
        except (KeyError, ValueError):
            raise AdapterNotRegisteredError(str(getattr(provider, "value", provider))) from None

    @property
    def providers(self) -> list[Provider]:
        return list(self._adapters)

    def __contains__(self, provider: object) -> bool:
        try:
            return Provider(provider) in self._adapters
        except ValueError:
            return False

    def __iter__(self) -> Iterator[ProviderAdapter]:
        return iter(self._adapters.values())

    def __len__(self) -> int:
        return len(self._adapters)


def build_registry(settings: Settings) -> AdapterRegistry:
    """Instantiate every adapter whose provider is enabled in settings."""
    candidates = [
        (settings.codeforces_enabled, CodeforcesAdapter),
        (settings.codechef_enabled, CodeChefAdapter),
        (settings.atcoder_enabled, AtCoderAdapter),
        (settings.leetcode_enabled, LeetCodeAdapter),
    ]
    registry = AdapterRegistry(adapter_cls() for enabled, adapter_cls in candidates if enabled)
    logger.info("adapter_registry_built", providers=[p.value for p in registry.providers])
    return registry
