"""
Tests for sentiment configuration.

============================================================
PURPOSE
============================================================
- Defaults and sanitization (validate_config)
- ConfigManager mutations and persistence
- YAML and environment sources

TEST PRINCIPLES:
- Loading never raises
- Mutations naming unknown providers do raise

============================================================
"""

import json

import pytest

from sentiment import (
    API_KEYS_STORAGE_KEY,
    CONFIG_STORAGE_KEY,
    ConfigManager,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    RetryStrategyConfig,
    UnknownProviderError,
    apply_env_overrides,
    default_config,
    get_config_manager,
    load_yaml_config,
    validate_config,
)


class BrokenStore(KeyValueStore):
    """Store whose backend is unavailable."""

    def get(self, key):
        raise OSError("disk unavailable")

    def set(self, key, value):
        raise OSError("disk unavailable")


# ============================================================
# DEFAULTS AND VALIDATION
# ============================================================

class TestDefaults:
    """Tests for the default configuration."""

    def test_all_providers_disabled_with_default_weights(self, config_manager):
        config = config_manager.get_config()

        assert config.enabled_providers() == []
        assert config.providers["twitter"].weight == 0.4
        assert config.providers["reddit"].weight == 0.3
        assert config.providers["news"].weight == 0.3
        assert config.min_confidence == 0.6
        assert config.update_interval == 1800
        assert config.cache_timeout == 3600

    def test_twitter_retries_harder(self, config_manager):
        retry = config_manager.get_provider_config("twitter").retry_strategy

        assert retry == RetryStrategyConfig(attempts=5, base_delay=2.0, max_delay=30.0, timeout=10.0)

    def test_get_config_returns_copy(self, config_manager):
        config = config_manager.get_config()
        config.providers["twitter"].enabled = True
        config.providers["twitter"].api_keys.append("leaked")

        fresh = config_manager.get_config()
        assert fresh.providers["twitter"].enabled is False
        assert fresh.providers["twitter"].api_keys == []


class TestValidateConfig:
    """Tests for validate_config."""

    @pytest.fixture
    def messy(self):
        return {
            "providers": {
                "Twitter": {
                    "enabled": "yes",
                    "weight": 5,
                    "api_keys": ["a", " a ", 3, "", "b"],
                    "retry_strategy": {"attempts": 0, "max_delay": 1.0},
                },
                "myspace": {"enabled": True},
                "news": {"enabled": True, "weight": 0.5, "retry_strategy": None},
            },
            "min_confidence": 2,
            "update_interval": -5,
        }

    def test_repairs_invalid_fields(self, messy):
        issues = []
        config = validate_config(messy, issues)

        twitter = config.providers["twitter"]
        assert twitter.enabled is False
        assert twitter.weight == 0.4
        assert twitter.api_keys == ["a", "b"]
        assert twitter.retry_strategy.attempts == 5
        assert twitter.retry_strategy.base_delay == 2.0
        assert twitter.retry_strategy.max_delay == 2.0

        assert config.providers["news"].enabled is True
        assert config.providers["news"].weight == 0.5
        assert config.providers["news"].retry_strategy is None

        assert config.min_confidence == 0.6
        assert config.update_interval == 1800
        assert "unknown provider dropped: myspace" in issues

    def test_unknown_providers_dropped(self, messy):
        config = validate_config(messy)
        assert set(config.providers) == {"twitter", "reddit", "news"}

    def test_idempotent(self, messy):
        once = validate_config(messy)
        assert validate_config(once) == once
        assert validate_config(once.to_dict()) == once

    @pytest.mark.parametrize("raw", [None, "garbage", 42, ["twitter"]])
    def test_non_mapping_yields_defaults(self, raw):
        assert validate_config(raw) == default_config()

    def test_validation_does_not_mutate_input(self, messy):
        before = json.dumps(messy, sort_keys=True)
        validate_config(messy)
        assert json.dumps(messy, sort_keys=True) == before


# ============================================================
# CONFIG MANAGER
# ============================================================

class TestConfigManager:
    """Tests for ConfigManager mutations."""

    def test_set_provider_config_merges(self, config_manager):
        updated = config_manager.set_provider_config("reddit", enabled=True, weight=0.5)

        assert updated.enabled is True
        assert updated.weight == 0.5
        assert config_manager.is_enabled("reddit")
        assert not config_manager.is_enabled("news")

    def test_retry_strategy_merged_field_by_field(self, config_manager):
        config_manager.set_provider_config("twitter", retry_strategy={"attempts": 2})

        retry = config_manager.get_provider_config("twitter").retry_strategy
        assert retry.attempts == 2
        assert retry.base_delay == 2.0
        assert retry.max_delay == 30.0

    def test_retry_strategy_can_be_removed(self, config_manager):
        config_manager.set_provider_config("news", retry_strategy=None)
        assert config_manager.get_provider_config("news").retry_strategy is None

    def test_unknown_provider_rejected(self, config_manager):
        with pytest.raises(UnknownProviderError) as exc_info:
            config_manager.set_provider_config("myspace", enabled=True)

        assert str(exc_info.value) == "Unknown provider: myspace"
        with pytest.raises(UnknownProviderError):
            config_manager.add_api_key("myspace", "key")

    def test_invalid_update_is_sanitized(self, config_manager):
        updated = config_manager.set_provider_config("news", weight=1.5)
        assert updated.weight == 0.3

    def test_update_config_merges_per_provider(self, config_manager):
        config = config_manager.update_config(
            min_confidence=0.8,
            providers={"news": {"enabled": True}},
        )

        assert config.min_confidence == 0.8
        assert config.providers["news"].enabled is True
        assert config.providers["news"].weight == 0.3
        assert config.providers["twitter"].enabled is False

    def test_add_api_key_is_idempotent(self, config_manager):
        config_manager.add_api_key("twitter", "k1")
        config_manager.add_api_key("twitter", " k1 ")
        config_manager.add_api_key("twitter", "k2")

        assert config_manager.get_provider_config("twitter").api_keys == ["k1", "k2"]

    def test_remove_api_key_is_idempotent(self, config_manager):
        config_manager.add_api_key("news", "k1")
        config_manager.remove_api_key("news", "k1")
        config_manager.remove_api_key("news", "k1")

        assert config_manager.get_provider_config("news").api_keys == []

    def test_get_provider_config_unknown_is_none(self, config_manager):
        assert config_manager.get_provider_config("myspace") is None
        assert config_manager.is_enabled("myspace") is False


# ============================================================
# PERSISTENCE
# ============================================================

class TestPersistence:
    """Tests for storage round trips."""

    def test_api_keys_stored_separately(self, config_manager, memory_store):
        config_manager.set_provider_config("twitter", enabled=True)
        config_manager.add_api_key("twitter", "k1")

        settings = memory_store.get(CONFIG_STORAGE_KEY)
        assert "api_keys" not in settings["providers"]["twitter"]
        assert settings["providers"]["twitter"]["enabled"] is True
        assert memory_store.get(API_KEYS_STORAGE_KEY) == {"twitter": ["k1"]}

    def test_reload_restores_settings_and_keys(self, config_manager, memory_store):
        config_manager.set_provider_config("reddit", enabled=True)
        config_manager.add_api_key("reddit", "id:secret")

        reloaded = ConfigManager(store=memory_store)

        reddit = reloaded.get_provider_config("reddit")
        assert reddit.enabled is True
        assert reddit.api_keys == ["id:secret"]

    def test_corrupt_settings_tolerated(self):
        store = MemoryStore({
            CONFIG_STORAGE_KEY: "garbage",
            API_KEYS_STORAGE_KEY: {"reddit": ["id:secret"], "myspace": ["x"]},
        })

        manager = ConfigManager(store=store)

        config = manager.get_config()
        assert config.providers["reddit"].api_keys == ["id:secret"]
        assert config.enabled_providers() == []
        assert "myspace" not in config.providers

    def test_broken_store_never_raises(self):
        manager = ConfigManager(store=BrokenStore())

        assert manager.get_config() == default_config()
        manager.add_api_key("news", "k1")
        assert manager.get_provider_config("news").api_keys == ["k1"]

    def test_json_file_store_round_trip(self, tmp_path):
        manager = ConfigManager(store=JsonFileStore(tmp_path))
        manager.set_provider_config("news", enabled=True)
        manager.add_api_key("news", "news-key")

        assert (tmp_path / "sentiment-config.json").exists()
        reloaded = ConfigManager(store=JsonFileStore(tmp_path))
        assert reloaded.get_provider_config("news").api_keys == ["news-key"]
        assert reloaded.is_enabled("news")

    def test_corrupt_json_file_reads_as_absent(self, tmp_path):
        (tmp_path / "sentiment-config.json").write_text("{not json", encoding="utf-8")

        assert JsonFileStore(tmp_path).get(CONFIG_STORAGE_KEY) is None
        assert ConfigManager(store=JsonFileStore(tmp_path)).get_config() == default_config()

    def test_global_manager_uses_config_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SENTIMENT_CONFIG_DIR", str(tmp_path))

        manager = get_config_manager()
        manager.add_api_key("twitter", "k1")

        assert get_config_manager() is manager
        stored = json.loads((tmp_path / "sentiment-api-keys.json").read_text(encoding="utf-8"))
        assert stored == {"twitter": ["k1"]}


# ============================================================
# YAML AND ENVIRONMENT
# ============================================================

class TestYamlConfig:
    """Tests for load_yaml_config."""

    def test_loads_and_sanitizes(self, tmp_path):
        path = tmp_path / "sentiment.yaml"
        path.write_text(
            "providers:\n"
            "  twitter:\n"
            "    enabled: true\n"
            "    weight: 0.5\n"
            "    api_keys: [k1, k2]\n"
            "  news:\n"
            "    weight: 7\n"
            "min_confidence: 0.4\n",
            encoding="utf-8",
        )

        config = load_yaml_config(path)

        assert config.providers["twitter"].enabled is True
        assert config.providers["twitter"].api_keys == ["k1", "k2"]
        assert config.providers["news"].weight == 0.3
        assert config.min_confidence == 0.4

    def test_missing_file_yields_defaults(self, tmp_path):
        assert load_yaml_config(tmp_path / "absent.yaml") == default_config()

    def test_malformed_yaml_yields_defaults(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("providers: [\n", encoding="utf-8")

        assert load_yaml_config(path) == default_config()

    def test_manager_from_yaml(self, tmp_path):
        path = tmp_path / "sentiment.yaml"
        path.write_text("providers:\n  reddit:\n    enabled: true\n", encoding="utf-8")

        manager = ConfigManager.from_yaml(path, store=MemoryStore())

        assert manager.is_enabled("reddit")


class TestEnvOverrides:
    """Tests for apply_env_overrides."""

    def test_keys_and_enabled_flags(self):
        env = {
            "SENTIMENT_TWITTER_API_KEYS": "a, b,,c",
            "SENTIMENT_NEWS_ENABLED": "true",
            "SENTIMENT_REDDIT_ENABLED": "maybe",
        }

        config = apply_env_overrides(default_config(), env)

        assert config.providers["twitter"].api_keys == ["a", "b", "c"]
        assert config.providers["news"].enabled is True
        assert config.providers["reddit"].enabled is False

    def test_manager_overrides_are_not_persisted(self, config_manager, memory_store):
        config_manager.apply_env_overrides({"SENTIMENT_NEWS_API_KEYS": "env-key"})

        assert config_manager.get_provider_config("news").api_keys == ["env-key"]
        assert memory_store.get(API_KEYS_STORAGE_KEY) is None
