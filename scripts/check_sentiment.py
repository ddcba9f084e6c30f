"""
Live check for the Sentiment Aggregation Layer.

Validates:
1. Configuration (YAML seed + environment overrides)
2. Per-provider connectivity
3. Aggregated sentiment for each symbol
4. Provider health summary

Usage:
    python scripts/check_sentiment.py BTC ETH

Environment (.env supported):
    SENTIMENT_TWITTER_API_KEYS=key1,key2
    SENTIMENT_REDDIT_API_KEYS=client_id:client_secret
    SENTIMENT_NEWS_API_KEYS=newsapi-key
    SENTIMENT_<PROVIDER>_ENABLED=true
    SENTIMENT_CONFIG_FILE=config/sentiment.yaml   (optional)
"""

import asyncio
import logging
import os
import sys
import time
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Add parent to path
sys.path.insert(0, ".")

from data_source_health import get_health_monitor
from sentiment import (
    ConfigManager,
    NoSentimentDataError,
    SentimentAnalyzer,
    get_config_manager,
    mask_key,
    set_config_manager,
)


def print_header(text: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {text}")
    print('='*60)


def print_success(text: str) -> None:
    print(f"  [OK] {text}")


def print_warning(text: str) -> None:
    print(f"  [WARN] {text}")


def print_error(text: str) -> None:
    print(f"  [FAIL] {text}")


def load_config() -> ConfigManager:
    """Seed from YAML when configured, then apply environment overrides."""
    print_header("Step 1: Configuration")

    config_file = os.getenv("SENTIMENT_CONFIG_FILE")
    if config_file:
        manager = ConfigManager.from_yaml(config_file)
        set_config_manager(manager)
        print(f"  Loaded {config_file}")
    else:
        manager = get_config_manager()
        print("  Using defaults (set SENTIMENT_CONFIG_FILE for a YAML seed)")

    manager.apply_env_overrides()
    config = manager.get_config()

    for name, cfg in config.providers.items():
        keys = ", ".join(mask_key(k) for k in cfg.api_keys) or "<none>"
        state = "enabled" if cfg.enabled else "disabled"
        print(f"  {name:<8} {state:<9} weight={cfg.weight:.2f} keys={keys}")

    if not config.enabled_providers():
        print_warning("No providers enabled (set SENTIMENT_<PROVIDER>_ENABLED=true)")
    return manager


async def check_providers(analyzer: SentimentAnalyzer, manager: ConfigManager, symbol: str) -> bool:
    """Query each enabled provider on its own."""
    print_header(f"Step 2: Provider Connectivity ({symbol})")

    config = manager.get_config()
    await analyzer.initialize_providers()

    ok = True
    for name in config.enabled_providers():
        provider = analyzer.providers.get(name)
        if provider is None:
            print_error(f"{name}: no adapter registered")
            ok = False
            continue

        start = time.time()
        try:
            result = await provider.get_score(symbol)
        except Exception as e:
            print_error(f"{name}: {e}")
            ok = False
            continue

        elapsed = time.time() - start
        print_success(
            f"{name}: score={result.score:+.3f} "
            f"confidence={result.confidence:.3f} ({elapsed:.2f}s)"
        )
    return ok


async def check_aggregation(analyzer: SentimentAnalyzer, symbols: list[str]) -> bool:
    """Aggregate sentiment for every symbol."""
    print_header("Step 3: Aggregated Sentiment")

    ok = True
    for symbol in symbols:
        try:
            result = await analyzer.get_sentiment(symbol)
        except NoSentimentDataError as e:
            print_error(f"{symbol}: {e}")
            for provider, reason in e.failures.items():
                print(f"    {provider}: {reason}")
            ok = False
            continue

        sources = ", ".join(s.name for s in result.sources)
        print_success(
            f"{symbol}: score={result.score:+.3f} "
            f"confidence={result.confidence:.3f} sources=[{sources}]"
        )
    return ok


def show_health(analyzer: SentimentAnalyzer) -> bool:
    """Print health records and circuit states."""
    print_header("Step 4: Provider Health")

    summary = get_health_monitor().get_health_summary()
    circuits = analyzer.get_provider_health()

    for name, record in summary["providers"].items():
        latency = record["latency"]
        print(
            f"  {name:<8} {record['status']:<9} errors={record['error_count']} "
            f"avg_latency={latency['avg']:.0f}ms circuit={circuits.get(name, '-')}"
        )
        if record["last_error"]:
            print(f"           last error: {record['last_error']}")

    print(f"  Healthy providers: {summary['healthy_providers']}")
    print(f"  Total errors: {summary['total_errors']}")

    if summary["is_system_healthy"]:
        print_success("System healthy")
    else:
        print_warning("System degraded")
    return summary["is_system_healthy"]


async def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    symbols = [s.upper() for s in sys.argv[1:]] or ["BTC"]

    print("\n" + "="*60)
    print("  SENTIMENT AGGREGATION LAYER - LIVE CHECK")
    print("="*60)

    manager = load_config()
    analyzer = SentimentAnalyzer(config_manager=manager)

    results = []
    try:
        results.append(("Providers", await check_providers(analyzer, manager, symbols[0])))
        results.append(("Aggregation", await check_aggregation(analyzer, symbols)))
        results.append(("Health", show_health(analyzer)))
    finally:
        await analyzer.close()

    print_header("Summary")
    for name, passed in results:
        status = "[OK]" if passed else "[FAIL]"
        print(f"  {status} {name}")

    return 0 if all(passed for _, passed in results) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
