"""Tests for the analysis result cache."""

import json

import pytest

from catalogai.cache import AnalysisCache, make_cache_key
from catalogai.config import CacheConfig
from catalogai.models import AnalysisResult, AnalysisType, PackageUpdateInfo, Recommendation


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _result(context, provider="claude", summary="cached analysis") -> AnalysisResult:
    return AnalysisResult(
        provider=provider,
        analysis_type=context.analysis_type,
        recommendations=[
            Recommendation(
                package=pkg.name,
                current_version=pkg.current_version,
                target_version=pkg.target_version,
                action="update",
                reason="fine",
                risk_level="low",
            )
            for pkg in context.packages
        ],
        summary=summary,
        confidence=0.9,
    )


class TestCacheKey:
    def test_equal_content_gives_equal_key(self, make_context, patch_update):
        copy_of_patch = PackageUpdateInfo("lodash", "4.17.20", "4.17.21", "patch", catalog_name="default")

        assert make_cache_key(make_context([patch_update]), "claude") == make_cache_key(
            make_context([copy_of_patch]), "claude"
        )

    def test_key_depends_on_provider_type_and_order(self, make_context, patch_update, major_update):
        base = make_cache_key(make_context([patch_update, major_update]), "claude")

        assert base != make_cache_key(make_context([patch_update, major_update]), "gemini")
        assert base != make_cache_key(make_context([patch_update, major_update], AnalysisType.SECURITY), "claude")
        assert base != make_cache_key(make_context([major_update, patch_update]), "claude")


class TestAnalysisCache:
    def test_miss_then_hit(self, clock, make_context, sample_packages):
        cache = AnalysisCache(clock=clock)
        context = make_context(sample_packages)

        assert cache.get(context, "claude") is None
        cache.set(context, "claude", _result(context))
        assert cache.get(context, "claude").summary == "cached analysis"

        stats = cache.get_stats()
        assert (stats.hits, stats.misses, stats.total_entries) == (1, 1, 1)
        assert stats.hit_rate == pytest.approx(0.5)
        assert stats.oldest_entry == stats.newest_entry == clock.now

    def test_returns_copies(self, clock, make_context, patch_update):
        cache = AnalysisCache(clock=clock)
        context = make_context([patch_update])
        original = _result(context)
        cache.set(context, "claude", original)

        original.summary = "mutated after set"
        fetched = cache.get(context, "claude")
        fetched.recommendations.clear()

        again = cache.get(context, "claude")
        assert again.summary == "cached analysis"
        assert len(again.recommendations) == 1

    def test_entries_expire(self, clock, make_context, patch_update):
        cache = AnalysisCache(ttl=60, clock=clock)
        context = make_context([patch_update])
        cache.set(context, "claude", _result(context))

        clock.advance(60)
        assert cache.get(context, "claude") is not None
        clock.advance(1)
        assert cache.get(context, "claude") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, clock, make_context, patch_update):
        cache = AnalysisCache(ttl=3600, clock=clock)
        context = make_context([patch_update])
        cache.set(context, "claude", _result(context), ttl=5)

        clock.advance(10)
        assert cache.get(context, "claude") is None

    def test_invalidate_for_packages(self, clock, make_context, patch_update, major_update, minor_update):
        cache = AnalysisCache(clock=clock)
        for packages in ([patch_update], [patch_update, major_update], [minor_update]):
            context = make_context(packages)
            cache.set(context, "claude", _result(context))

        assert cache.invalidate_for_packages(["lodash"]) == 2
        assert len(cache) == 1
        assert cache.invalidate_for_packages(["not-cached"]) == 0

    def test_clear_resets_stats(self, clock, make_context, patch_update):
        cache = AnalysisCache(clock=clock)
        context = make_context([patch_update])
        cache.set(context, "claude", _result(context))
        cache.get(context, "claude")

        cache.clear()

        stats = cache.get_stats()
        assert (stats.total_entries, stats.hits, stats.misses) == (0, 0, 0)
        assert stats.hit_rate == 0.0
        assert stats.oldest_entry is None

    def test_oldest_entries_evicted(self, clock, make_context):
        cache = AnalysisCache(max_entries=2, clock=clock)
        contexts = [make_context([PackageUpdateInfo(f"pkg-{i}", "1.0.0", "1.0.1", "patch")]) for i in range(3)]
        for context in contexts:
            cache.set(context, "claude", _result(context))
            clock.advance(1)

        assert len(cache) == 2
        assert cache.get(contexts[0], "claude") is None
        assert cache.get(contexts[2], "claude") is not None

    def test_from_config(self, temp_dir):
        cache = AnalysisCache.from_config(CacheConfig(ttl=120, max_entries=7, persist=True, cache_dir=temp_dir))

        assert cache.ttl == 120
        assert cache.max_entries == 7
        assert cache.persist
        assert cache.cache_dir == temp_dir


class TestPersistence:
    def test_entries_survive_restart(self, temp_dir, clock, make_context, sample_packages):
        context = make_context(sample_packages)
        AnalysisCache(persist=True, cache_dir=temp_dir, clock=clock).set(context, "gemini", _result(context, "gemini"))

        files = list(temp_dir.glob("*.json"))
        assert len(files) == 1
        payload = json.loads(files[0].read_text())
        assert payload["packages"] == ["lodash", "react", "axios"]
        assert payload["value"]["provider"] == "gemini"

        restored = AnalysisCache(persist=True, cache_dir=temp_dir, clock=clock).get(context, "gemini")
        assert restored.provider == "gemini"
        assert restored.recommendations == _result(context, "gemini").recommendations

    def test_expired_files_are_removed_on_load(self, temp_dir, clock, make_context, patch_update):
        context = make_context([patch_update])
        AnalysisCache(ttl=10, persist=True, cache_dir=temp_dir, clock=clock).set(context, "claude", _result(context))

        clock.advance(11)
        cache = AnalysisCache(persist=True, cache_dir=temp_dir, clock=clock)

        assert len(cache) == 0
        assert list(temp_dir.glob("*.json")) == []

    def test_corrupt_files_are_skipped(self, temp_dir, clock, make_context, patch_update):
        (temp_dir / "garbage.json").write_text("{not json")
        context = make_context([patch_update])
        cache = AnalysisCache(persist=True, cache_dir=temp_dir, clock=clock)

        assert cache.get(context, "claude") is None
        cache.set(context, "claude", _result(context))
        assert len(cache) == 1

    def test_invalidate_deletes_files(self, temp_dir, clock, make_context, patch_update):
        context = make_context([patch_update])
        cache = AnalysisCache(persist=True, cache_dir=temp_dir, clock=clock)
        cache.set(context, "claude", _result(context))

        cache.invalidate_for_packages(["lodash"])
        assert list(temp_dir.glob("*.json")) == []

    def test_in_memory_cache_writes_nothing(self, temp_dir, clock, make_context, patch_update):
        context = make_context([patch_update])
        AnalysisCache(cache_dir=temp_dir, clock=clock).set(context, "claude", _result(context))

        assert list(temp_dir.iterdir()) == []
