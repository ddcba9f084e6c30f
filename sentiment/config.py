"""
Sentiment Configuration - Provider settings store.

============================================================
RESPONSIBILITY
============================================================

- Holds per-provider settings (enabled, weight, API keys, retry)
- Sanitizes anything loaded from storage, YAML or environment
- Persists settings and API keys under separate keys

Loading never raises: corrupt or partial input is repaired
field by field against the defaults. Mutations that name an
unknown provider raise UnknownProviderError.

============================================================
SOURCES
============================================================

1. Defaults (DEFAULT_CONFIG)
2. KeyValueStore ("sentiment-config" + "sentiment-api-keys")
3. YAML seed file (load_yaml_config)
4. Environment (apply_env_overrides):
   - SENTIMENT_<PROVIDER>_API_KEYS  comma separated
   - SENTIMENT_<PROVIDER>_ENABLED   true/false

============================================================
"""

import copy
import logging
import math
import os
import threading
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from .exceptions import UnknownProviderError
from .models import (
    PROVIDER_NAMES,
    ProviderConfig,
    RetryStrategyConfig,
    SentimentConfig,
)
from .storage import KeyValueStore, JsonFileStore, MemoryStore


logger = logging.getLogger(__name__)


CONFIG_STORAGE_KEY = "sentiment-config"
API_KEYS_STORAGE_KEY = "sentiment-api-keys"


DEFAULT_CONFIG = SentimentConfig(
    providers={
        "twitter": ProviderConfig(
            enabled=False,
            api_keys=[],
            weight=0.4,
            retry_strategy=RetryStrategyConfig(
                attempts=5,
                base_delay=2.0,
                max_delay=30.0,
                timeout=10.0,
            ),
        ),
        "reddit": ProviderConfig(
            enabled=False,
            api_keys=[],
            weight=0.3,
            retry_strategy=RetryStrategyConfig(
                attempts=3,
                base_delay=1.0,
                max_delay=15.0,
                timeout=10.0,
            ),
        ),
        "news": ProviderConfig(
            enabled=False,
            api_keys=[],
            weight=0.3,
            retry_strategy=RetryStrategyConfig(
                attempts=3,
                base_delay=1.0,
                max_delay=15.0,
                timeout=10.0,
            ),
        ),
    },
    update_interval=1800.0,  # 30 minutes
    min_confidence=0.6,
    cache_timeout=3600.0,  # 1 hour
)


def default_config() -> SentimentConfig:
    """Fresh copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


# ─────────────────────────────────────────────────────────────
# Sanitization
# ─────────────────────────────────────────────────────────────


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _find_entry(providers: Mapping[str, Any], name: str) -> Any:
    """Look a provider up by name, falling back to a case-insensitive match."""
    if name in providers:
        return providers[name]
    for key, value in providers.items():
        if isinstance(key, str) and key.lower() == name:
            return value
    return None


def _sanitize_keys(raw: Any, issues: list[str], name: str) -> list[str]:
    if not isinstance(raw, (list, tuple)):
        if raw is not None:
            issues.append(f"{name}.api_keys is not a list")
        return []

    keys: list[str] = []
    for key in raw:
        if not isinstance(key, str) or not key.strip():
            issues.append(f"{name}.api_keys contains an invalid entry")
            continue
        key = key.strip()
        if key not in keys:
            keys.append(key)
    return keys


def _sanitize_retry(
    raw: Any,
    default: Optional[RetryStrategyConfig],
    issues: list[str],
    name: str,
) -> Optional[RetryStrategyConfig]:
    fallback = default or RetryStrategyConfig()

    if not isinstance(raw, Mapping):
        issues.append(f"{name}.retry_strategy is not a mapping")
        return copy.deepcopy(default)

    attempts = raw.get("attempts")
    if not (isinstance(attempts, int) and not isinstance(attempts, bool) and attempts >= 1):
        issues.append(f"{name}.retry_strategy.attempts reset")
        attempts = fallback.attempts

    base_delay = raw.get("base_delay")
    if not (_is_number(base_delay) and base_delay >= 0):
        issues.append(f"{name}.retry_strategy.base_delay reset")
        base_delay = fallback.base_delay

    max_delay = raw.get("max_delay")
    if not (_is_number(max_delay) and max_delay >= 0):
        issues.append(f"{name}.retry_strategy.max_delay reset")
        max_delay = fallback.max_delay

    timeout = raw.get("timeout")
    if not (_is_number(timeout) and timeout > 0):
        issues.append(f"{name}.retry_strategy.timeout reset")
        timeout = fallback.timeout

    if max_delay < base_delay:
        issues.append(f"{name}.retry_strategy.max_delay raised to base_delay")
        max_delay = base_delay

    return RetryStrategyConfig(
        attempts=attempts,
        base_delay=float(base_delay),
        max_delay=float(max_delay),
        timeout=float(timeout),
    )


def _sanitize_provider(name: str, raw: Any, issues: list[str]) -> ProviderConfig:
    default = DEFAULT_CONFIG.providers[name]

    if not isinstance(raw, Mapping):
        if raw is not None:
            issues.append(f"{name} is not a mapping")
        return copy.deepcopy(default)

    enabled = raw.get("enabled", default.enabled)
    if not isinstance(enabled, bool):
        issues.append(f"{name}.enabled is not a bool")
        enabled = default.enabled

    weight = raw.get("weight", default.weight)
    if not (_is_number(weight) and 0.0 <= weight <= 1.0):
        issues.append(f"{name}.weight out of range")
        weight = default.weight

    if "retry_strategy" not in raw:
        retry = copy.deepcopy(default.retry_strategy)
    elif raw["retry_strategy"] is None:
        retry = None
    else:
        retry = _sanitize_retry(raw["retry_strategy"], default.retry_strategy, issues, name)

    return ProviderConfig(
        enabled=enabled,
        api_keys=_sanitize_keys(raw.get("api_keys"), issues, name),
        weight=float(weight),
        retry_strategy=retry,
    )


def validate_config(
    raw: Union[Mapping[str, Any], SentimentConfig, Any],
    issues: Optional[list[str]] = None,
) -> SentimentConfig:
    """
    Sanitize arbitrary input into a valid SentimentConfig.

    Pure and idempotent: validate_config(validate_config(x))
    equals validate_config(x). Never raises.

    Args:
        raw: Mapping (as stored), SentimentConfig, or anything else
        issues: Optional list that receives a note per repaired field

    Returns:
        A new, valid configuration
    """
    if issues is None:
        issues = []

    if isinstance(raw, SentimentConfig):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        issues.append("config is not a mapping")
        return default_config()

    providers_raw = raw.get("providers")
    if not isinstance(providers_raw, Mapping):
        if providers_raw is not None:
            issues.append("providers is not a mapping")
        providers_raw = {}

    for key in providers_raw:
        if not isinstance(key, str) or key.lower() not in PROVIDER_NAMES:
            issues.append(f"unknown provider dropped: {key}")

    providers = {
        name: _sanitize_provider(name, _find_entry(providers_raw, name), issues)
        for name in PROVIDER_NAMES
    }

    update_interval = raw.get("update_interval", DEFAULT_CONFIG.update_interval)
    if not (_is_number(update_interval) and update_interval > 0):
        issues.append("update_interval reset")
        update_interval = DEFAULT_CONFIG.update_interval

    min_confidence = raw.get("min_confidence", DEFAULT_CONFIG.min_confidence)
    if not (_is_number(min_confidence) and 0.0 <= min_confidence <= 1.0):
        issues.append("min_confidence reset")
        min_confidence = DEFAULT_CONFIG.min_confidence

    cache_timeout = raw.get("cache_timeout", DEFAULT_CONFIG.cache_timeout)
    if not (_is_number(cache_timeout) and cache_timeout > 0):
        issues.append("cache_timeout reset")
        cache_timeout = DEFAULT_CONFIG.cache_timeout

    return SentimentConfig(
        providers=providers,
        update_interval=float(update_interval),
        min_confidence=float(min_confidence),
        cache_timeout=float(cache_timeout),
    )


def _merge_provider(current: dict[str, Any], partial: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(current)
    for key, value in partial.items():
        if isinstance(value, RetryStrategyConfig):
            value = value.to_dict()
        if (
            key == "retry_strategy"
            and isinstance(value, Mapping)
            and isinstance(merged.get("retry_strategy"), Mapping)
        ):
            value = {**merged["retry_strategy"], **value}
        merged[key] = value
    return merged


# ─────────────────────────────────────────────────────────────
# YAML / environment sources
# ─────────────────────────────────────────────────────────────


def load_yaml_config(path: Union[str, Path]) -> SentimentConfig:
    """
    Load and sanitize a YAML configuration file.

    Unreadable or malformed files yield the defaults.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load sentiment config from {path}: {e}")
        return default_config()

    issues: list[str] = []
    config = validate_config(data, issues)
    for issue in issues:
        logger.warning(f"Sentiment config {path}: {issue}")
    return config


_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def apply_env_overrides(
    config: SentimentConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> SentimentConfig:
    """
    Return a copy of ``config`` with environment overrides applied.

    Reads SENTIMENT_<PROVIDER>_API_KEYS and SENTIMENT_<PROVIDER>_ENABLED.
    """
    env = os.environ if environ is None else environ
    data = config.to_dict()

    for name in PROVIDER_NAMES:
        provider = data["providers"].setdefault(name, {})
        prefix = f"SENTIMENT_{name.upper()}"

        keys = env.get(f"{prefix}_API_KEYS")
        if keys:
            provider["api_keys"] = [k.strip() for k in keys.split(",") if k.strip()]

        enabled = env.get(f"{prefix}_ENABLED")
        if enabled is not None:
            value = enabled.strip().lower()
            if value in _TRUE_VALUES:
                provider["enabled"] = True
            elif value in _FALSE_VALUES:
                provider["enabled"] = False
            else:
                logger.warning(f"Ignoring {prefix}_ENABLED={enabled!r}")

    return validate_config(data)


# ─────────────────────────────────────────────────────────────
# Config manager
# ─────────────────────────────────────────────────────────────


class ConfigManager:
    """
    Live sentiment configuration with persistence.

    Reads return copies; every mutation re-sanitizes and saves.
    API keys are persisted apart from the rest of the settings.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        initial: Optional[Union[Mapping[str, Any], SentimentConfig]] = None,
    ) -> None:
        self._store = store or MemoryStore()
        self._lock = threading.RLock()
        if initial is not None:
            self._config = validate_config(initial)
        else:
            self._config = self._load()

    @classmethod
    def from_yaml(
        cls,
        path: Union[str, Path],
        store: Optional[KeyValueStore] = None,
    ) -> "ConfigManager":
        return cls(store=store, initial=load_yaml_config(path))

    # ─────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────

    def get_config(self) -> SentimentConfig:
        """Defensive copy of the current configuration."""
        with self._lock:
            return copy.deepcopy(self._config)

    def get_provider_config(self, provider: str) -> Optional[ProviderConfig]:
        with self._lock:
            cfg = self._config.providers.get(provider)
            return copy.deepcopy(cfg) if cfg else None

    def is_enabled(self, provider: str) -> bool:
        with self._lock:
            cfg = self._config.providers.get(provider)
            return bool(cfg and cfg.enabled)

    # ─────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────

    def update_config(
        self,
        partial: Optional[Mapping[str, Any]] = None,
        **fields: Any,
    ) -> SentimentConfig:
        """Merge top-level fields (providers merged per provider) and re-validate."""
        changes = {**(partial or {}), **fields}
        with self._lock:
            merged = self._config.to_dict()
            for key, value in changes.items():
                if key == "providers" and isinstance(value, Mapping):
                    for name, provider in value.items():
                        current = merged["providers"].get(name, {})
                        if isinstance(provider, Mapping):
                            merged["providers"][name] = _merge_provider(current, provider)
                        else:
                            merged["providers"][name] = provider
                else:
                    merged[key] = value

            issues: list[str] = []
            self._config = validate_config(merged, issues)
            for issue in issues:
                logger.warning(f"Sentiment config update: {issue}")
            self.save()
            return copy.deepcopy(self._config)

    def set_provider_config(
        self,
        provider: str,
        partial: Optional[Mapping[str, Any]] = None,
        **fields: Any,
    ) -> ProviderConfig:
        """
        Merge settings into one provider's config.

        Raises:
            UnknownProviderError: Provider is not part of the schema
        """
        changes = {**(partial or {}), **fields}
        with self._lock:
            current = self._require(provider)
            merged = _merge_provider(current.to_dict(), changes)

            issues: list[str] = []
            updated = _sanitize_provider(provider, merged, issues)
            for issue in issues:
                logger.warning(f"[{provider}] Provider config: {issue}")

            self._config.providers[provider] = updated
            self.save()

        logger.info(f"[{provider}] Provider config updated")
        return copy.deepcopy(updated)

    def add_api_key(self, provider: str, api_key: str) -> None:
        """Append a key unless already present."""
        with self._lock:
            cfg = self._require(provider)
            api_key = api_key.strip()
            if api_key and api_key not in cfg.api_keys:
                cfg.api_keys.append(api_key)
                self.save()

    def remove_api_key(self, provider: str, api_key: str) -> None:
        """Remove a key if present."""
        with self._lock:
            cfg = self._require(provider)
            api_key = api_key.strip()
            if api_key in cfg.api_keys:
                cfg.api_keys.remove(api_key)
                self.save()

    def apply_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Apply environment overrides in memory (not persisted)."""
        with self._lock:
            self._config = apply_env_overrides(self._config, environ)

    # ─────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────

    def save(self) -> None:
        """Persist settings and API keys. Failures are logged, not raised."""
        with self._lock:
            settings = self._config.to_dict(include_keys=False)
            api_keys = {
                name: list(cfg.api_keys)
                for name, cfg in self._config.providers.items()
                if cfg.api_keys
            }
        try:
            self._store.set(CONFIG_STORAGE_KEY, settings)
            self._store.set(API_KEYS_STORAGE_KEY, api_keys)
        except Exception as e:
            logger.error(f"Failed to save sentiment config: {e}")

    def _load(self) -> SentimentConfig:
        try:
            stored = self._store.get(CONFIG_STORAGE_KEY)
            stored_keys = self._store.get(API_KEYS_STORAGE_KEY)
        except Exception as e:
            logger.warning(f"Failed to load sentiment config: {e}")
            return default_config()

        if stored is None and stored_keys is None:
            return default_config()

        raw: dict[str, Any] = copy.deepcopy(dict(stored)) if isinstance(stored, Mapping) else {}
        if not isinstance(raw.get("providers"), Mapping):
            raw["providers"] = {}
        else:
            raw["providers"] = dict(raw["providers"])

        if isinstance(stored_keys, Mapping):
            for name, keys in stored_keys.items():
                entry = raw["providers"].get(name)
                if isinstance(entry, Mapping):
                    raw["providers"][name] = {**entry, "api_keys": keys}
                elif entry is None:
                    raw["providers"][name] = {"api_keys": keys}

        issues: list[str] = []
        config = validate_config(raw, issues)
        for issue in issues:
            logger.warning(f"Stored sentiment config sanitized: {issue}")
        return config

    def _require(self, provider: str) -> ProviderConfig:
        cfg = self._config.providers.get(provider)
        if cfg is None:
            raise UnknownProviderError(provider, list(self._config.providers))
        return cfg


# ─────────────────────────────────────────────────────────────
# Global instance
# ─────────────────────────────────────────────────────────────


_default_manager: Optional[ConfigManager] = None
_manager_lock = threading.Lock()


def get_config_manager() -> ConfigManager:
    """
    Get the global config manager.

    Persists to SENTIMENT_CONFIG_DIR when set, otherwise in memory.
    """
    global _default_manager

    with _manager_lock:
        if _default_manager is None:
            config_dir = os.getenv("SENTIMENT_CONFIG_DIR")
            store: KeyValueStore = JsonFileStore(config_dir) if config_dir else MemoryStore()
            _default_manager = ConfigManager(store=store)
        return _default_manager


def set_config_manager(manager: ConfigManager) -> None:
    """Set the global config manager."""
    global _default_manager

    with _manager_lock:
        _default_manager = manager


def reset_config_manager() -> None:
    """Drop the global config manager (used by tests)."""
    global _default_manager

    with _manager_lock:
        _default_manager = None
