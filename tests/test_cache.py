"""Unit tests for the file cache and the settings store."""

import pytest

from constants import API_TOKEN_KEY, PRIORITY_FILTER_KEY
from models import PriorityFilter
import settings as settings_module
from settings import SettingsStore


class TestFileCache:

    def test_get_missing_is_none(self, cache):
        assert cache.get("Alien (1979)") is None

    def test_set_then_get(self, cache):
        assert cache.set("Alien (1979)", {"id": 348, "complete": True})
        assert cache.get("Alien (1979)") == {"id": 348, "complete": True}

    def test_values_persist_across_instances(self, cache):
        cache.set("person_1", {"id": 1})
        from cache import FileCache
        assert FileCache(str(cache.cache_dir)).get("person_1") == {"id": 1}

    def test_corrupt_entry_reads_as_miss_and_is_removed(self, cache):
        cache.set("person_1", {"id": 1})
        path = cache._get_cache_path("person_1")
        path.write_text("{not json")

        assert cache.get("person_1") is None
        assert not path.exists()

    def test_clear_preserves_allow_list(self, cache):
        cache.set(API_TOKEN_KEY, "eyJtoken")
        cache.set(PRIORITY_FILTER_KEY, {"genres": ["Horror"], "decade": None})
        cache.set("Alien (1979)", {"id": 348})
        cache.set("person_1", {"id": 1})

        removed = cache.clear(preserve=(API_TOKEN_KEY, PRIORITY_FILTER_KEY))

        assert removed == 2
        assert cache.keys() == sorted([API_TOKEN_KEY, PRIORITY_FILTER_KEY])
        assert cache.get(API_TOKEN_KEY) == "eyJtoken"

    def test_delete(self, cache):
        cache.set("person_1", {"id": 1})
        assert cache.delete("person_1")
        assert not cache.delete("person_1")

    def test_stats_by_kind(self, cache):
        cache.set("Alien (1979)", {"id": 348})
        cache.set("person_1", {"id": 1})
        cache.set(API_TOKEN_KEY, "eyJtoken")

        stats = cache.stats()

        assert stats["total_entries"] == 3
        assert stats["movie_entries"] == 1
        assert stats["person_entries"] == 1
        assert stats["other_entries"] == 1


class TestSettingsStore:

    def test_token_round_trip_and_mask(self, cache):
        settings = SettingsStore(cache)
        settings.set_api_token("  eyJhbGciOiJIUzI1NiJ9.payload.signature  ")

        assert settings.api_token == "eyJhbGciOiJIUzI1NiJ9.payload.signature"
        assert settings.masked_token == "eyJhbGciOiJIUzI1NiJ9..."

    @pytest.mark.parametrize("bad", ["", "   ", "eyJhbGciOiJIUzI1NiJ9...", "0123456789abcdef"])
    def test_rejects_invalid_tokens(self, cache, bad):
        with pytest.raises(ValueError):
            SettingsStore(cache).set_api_token(bad)
        assert cache.get(API_TOKEN_KEY) is None

    def test_token_falls_back_to_environment(self, cache, monkeypatch):
        settings = SettingsStore(cache)
        assert settings.api_token is None

        monkeypatch.setattr(settings_module, "TMDB_API_TOKEN", "eyJfromenv")
        assert settings.api_token == "eyJfromenv"

    def test_priority_filter(self, cache):
        settings = SettingsStore(cache)
        assert settings.get_priority_filter().is_empty

        settings.set_priority_filter(PriorityFilter(genres=("Horror",), decade=1980))
        assert settings.get_priority_filter() == PriorityFilter(genres=("Horror",), decade=1980)

        settings.clear_priority_filter()
        assert settings.get_priority_filter().is_empty

    def test_clear_cache_keeps_token_and_filter(self, cache):
        settings = SettingsStore(cache)
        settings.set_api_token("eyJtoken")
        settings.set_priority_filter(PriorityFilter(decade=1990))
        cache.set("Alien (1979)", {"id": 348})

        settings.clear_cache()

        assert cache.get("Alien (1979)") is None
        assert settings.api_token == "eyJtoken"
        assert settings.get_priority_filter().decade == 1990
