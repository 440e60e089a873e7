import pytest

from contest_scout.models import Provider


class _Adapter:
    def __init__(self, provider):
        self.provider = provider


def test_lookup_and_iteration():
    from contest_scout.adapters.registry import AdapterRegistry

    cf, lc = _Adapter(Provider.CODEFORCES), _Adapter(Provider.LEETCODE)
    registry = AdapterRegistry([cf, lc])

    assert registry.get(Provider.CODEFORCES) is cf
    assert registry.get("leetcode") is lc
    assert registry.providers == [Provider.CODEFORCES, Provider.LEETCODE]
    assert list(registry) == [cf, lc]
    assert len(registry) == 2
    assert "codeforces" in registry
    assert "atcoder" not in registry
    assert "topcoder" not in registry


def test_unknown_provider_raises():
    from contest_scout.adapters.registry import AdapterRegistry
    from contest_scout.errors import AdapterNotRegisteredError

    registry = AdapterRegistry([_Adapter(Provider.CODEFORCES)])

    with pytest.raises(AdapterNotRegisteredError):
        registry.get("atcoder")
    with pytest.raises(AdapterNotRegisteredError):
        registry.get("topcoder")


def test_duplicate_provider_rejected():
    from contest_scout.adapters.registry import AdapterRegistry

    with pytest.raises(ValueError):
        AdapterRegistry([_Adapter(Provider.CODEFORCES), _Adapter(Provider.CODEFORCES)])


def test_build_registry_honours_enable_flags():
    from contest_scout.adapters.registry import build_registry
    from contest_scout.config import Settings

    registry = build_registry(Settings(codechef_enabled=False, atcoder_enabled=False))

    assert registry.providers == [Provider.CODEFORCES, Provider.LEETCODE]


def test_build_registry_all_enabled():
    from contest_scout.adapters.atcoder import AtCoderAdapter
    from contest_scout.adapters.registry import build_registry
    from contest_scout.config import Settings

    registry = build_registry(Settings())

    assert len(registry) == 4
    assert isinstance(registry.get("atcoder"), AtCoderAdapter)
