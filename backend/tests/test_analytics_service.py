from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from app.services.analytics_service import (
    AnalyticsService,
    ShareTrade,
    aggregate_trades,
    fallback_analytics,
    filter_time_range,
    volume_change,
)
from app.schemas import VolumePoint
from app.services.cache import ResponseCache

from conftest import BUYER, make_event

DAY_MS = 24 * 60 * 60 * 1000


def _ms(days_ago: float, *, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    return int((now - timedelta(days=days_ago)).timestamp() * 1000)


def _point(volume: int) -> VolumePoint:
    return VolumePoint(date="2024-01-01", timestamp=0, volume=volume, trades=1)


def test_aggregate_trades_builds_cumulative_daily_prices():
    base = int(datetime(2024, 3, 1, 12, tzinfo=timezone.utc).timestamp() * 1000)
    trades = [
        ShareTrade(timestamp_ms=base, is_option_a=True, amount=300),
        ShareTrade(timestamp_ms=base + 1000, is_option_a=False, amount=100),
        ShareTrade(timestamp_ms=base + DAY_MS, is_option_a=False, amount=400),
    ]

    analytics = aggregate_trades(trades)

    assert analytics is not None
    assert [point.date for point in analytics.price_history] == ["2024-03-01", "2024-03-02"]
    first, second = analytics.price_history
    assert (first.option_a, first.option_b) == (0.75, 0.25)
    assert (second.option_a, second.option_b) == (0.375, 0.625)
    assert first.trades == 2 and first.volume == 400
    assert analytics.total_volume == 800
    assert analytics.total_trades == 3
    assert analytics.price_change_24h == pytest.approx(-0.375)
    assert analytics.volume_change_24h == pytest.approx(0.0)


def test_aggregate_trades_prices_stay_normalised():
    rng = random.Random(7)
    base = int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
    trades = [
        ShareTrade(
            timestamp_ms=base + rng.randint(0, 20 * DAY_MS),
            is_option_a=rng.random() < 0.4,
            amount=rng.randint(1, 10**20),
        )
        for _ in range(200)
    ]

    analytics = aggregate_trades(trades)

    assert analytics is not None
    for point in analytics.price_history:
        assert 0 <= point.option_a <= 1
        assert 0 <= point.option_b <= 1
        assert abs(point.option_a + point.option_b - 1) <= 0.001


def test_aggregate_trades_returns_none_without_trades():
    assert aggregate_trades([]) is None


def test_volume_change_conventions():
    assert volume_change([_point(10)]) == 0.0
    assert volume_change([_point(0), _point(5)]) == 1.0
    assert volume_change([_point(0), _point(0)]) == 0.0
    assert volume_change([_point(100), _point(150)]) == pytest.approx(0.5)


def test_fallback_analytics_has_seven_days():
    analytics = fallback_analytics(random.Random(1))

    assert len(analytics.price_history) == 7
    assert len(analytics.volume_history) == 7
    for point in analytics.price_history:
        assert 0.05 <= point.option_a <= 0.95
        assert abs(point.option_a + point.option_b - 1) <= 0.001
    assert analytics.total_volume == sum(point.volume for point in analytics.volume_history)


def test_filter_time_range_keeps_recent_buckets_only():
    now = datetime(2024, 6, 30, tzinfo=timezone.utc)
    now_ms = int(now.timestamp() * 1000)
    trades = [
        ShareTrade(timestamp_ms=_ms(40, now=now), is_option_a=True, amount=1),
        ShareTrade(timestamp_ms=_ms(10, now=now), is_option_a=True, amount=1),
        ShareTrade(timestamp_ms=_ms(0.5, now=now), is_option_a=False, amount=1),
    ]
    analytics = aggregate_trades(trades)

    assert len(filter_time_range(analytics, "all", now_ms=now_ms).price_history) == 3
    assert len(filter_time_range(analytics, "30d", now_ms=now_ms).price_history) == 2
    assert len(filter_time_range(analytics, "7d", now_ms=now_ms).price_history) == 1
    day = filter_time_range(analytics, "24h", now_ms=now_ms)
    assert len(day.volume_history) == 1
    assert day.total_trades == 3


def _purchase(market_id: int, *, is_option_a: bool, amount: int, timestamp: int):
    return make_event(
        "SharesPurchased",
        {"marketId": market_id, "buyer": BUYER, "isOptionA": is_option_a, "amount": amount},
        block_timestamp=timestamp,
    )


def test_service_caches_per_market_and_range(contract_client):
    now_s = int(datetime.now(timezone.utc).timestamp())
    contract_client.get_events.return_value = [
        _purchase(3, is_option_a=True, amount=5, timestamp=now_s - 60),
    ]
    service = AnalyticsService(contract_client, ResponseCache(ttl_seconds=300))

    first = service.get_analytics(3, "7d")
    second = service.get_analytics(3, "7d")

    assert first is second
    contract_client.get_events.assert_called_once_with("SharesPurchased", market_id=3)
    assert first.price_history[0].option_a == 1.0


def test_service_invalidate_only_clears_that_market(contract_client):
    contract_client.get_events.return_value = []
    cache = ResponseCache(ttl_seconds=300)
    service = AnalyticsService(contract_client, cache, rng=random.Random(3))

    service.get_analytics(1, "7d")
    service.get_analytics(1, "all")
    service.get_analytics(12, "7d")

    assert service.invalidate(1) == 2
    assert cache.get("12:7d") is not None
    assert cache.get("1:7d") is None


def test_service_serves_uncached_fallback_on_upstream_failure(contract_client):
    contract_client.get_events.side_effect = ConnectionError("rpc down")
    cache = ResponseCache(ttl_seconds=300)
    service = AnalyticsService(contract_client, cache, rng=random.Random(5))

    analytics = service.get_analytics(9, "7d")

    assert len(analytics.price_history) == 7
    assert len(cache) == 0
