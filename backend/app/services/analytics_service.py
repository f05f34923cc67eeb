"""Daily price/volume series folded from ``SharesPurchased`` logs."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

from loguru import logger

from app.domain import DecodedEvent
from app.schemas import MarketAnalytics, PricePoint, VolumePoint

from .cache import ResponseCache
from .contract_client import ContractClient

TRADE_EVENT = "SharesPurchased"
FALLBACK_DAYS = 7
DAY_MS = 24 * 60 * 60 * 1000
TIME_RANGES_MS: dict[str, int | None] = {
    "24h": DAY_MS,
    "7d": 7 * DAY_MS,
    "30d": 30 * DAY_MS,
    "all": None,
}
DEFAULT_TIME_RANGE = "7d"


@dataclass(slots=True, frozen=True)
class ShareTrade:
    """A single share purchase reduced to the fields the series need."""

    timestamp_ms: int
    is_option_a: bool
    amount: int
    buyer: str | None = None

    @classmethod
    def from_event(cls, event: DecodedEvent) -> "ShareTrade":
        return cls(
            timestamp_ms=event.block_timestamp * 1000,
            is_option_a=bool(event.args["isOptionA"]),
            amount=int(event.args["amount"]),
            buyer=event.args.get("buyer"),
        )


@dataclass(slots=True)
class _DailyBucket:
    timestamp: int
    option_a_volume: int = 0
    option_b_volume: int = 0
    trades: int = 0

    @property
    def total_volume(self) -> int:
        return self.option_a_volume + self.option_b_volume


def _utc_date(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _isoformat_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def price_change(history: Sequence[PricePoint]) -> float:
    if len(history) < 2:
        return 0.0
    return round(history[-1].option_a - history[-2].option_a, 3)


def volume_change(history: Sequence[VolumePoint]) -> float:
    if len(history) < 2:
        return 0.0
    latest, previous = history[-1], history[-2]
    if previous.volume == 0:
        return 1.0 if latest.volume > 0 else 0.0
    return (latest.volume - previous.volume) / previous.volume


def aggregate_trades(trades: Sequence[ShareTrade]) -> MarketAnalytics | None:
    """Fold trades into daily buckets with cumulative implied probabilities.

    Returns ``None`` when there is nothing to aggregate so callers can switch
    to the synthetic series.
    """

    if not trades:
        return None

    buckets: dict[str, _DailyBucket] = {}
    for trade in sorted(trades, key=lambda item: item.timestamp_ms):
        day = _utc_date(trade.timestamp_ms)
        bucket = buckets.get(day)
        if bucket is None:
            bucket = buckets[day] = _DailyBucket(timestamp=trade.timestamp_ms)
        if trade.is_option_a:
            bucket.option_a_volume += trade.amount
        else:
            bucket.option_b_volume += trade.amount
        bucket.trades += 1

    running_a = 0
    running_b = 0
    price_history: list[PricePoint] = []
    volume_history: list[VolumePoint] = []
    for day, bucket in buckets.items():
        running_a += bucket.option_a_volume
        running_b += bucket.option_b_volume
        running_total = running_a + running_b
        option_a = running_a / running_total if running_total > 0 else 0.5
        option_b = running_b / running_total if running_total > 0 else 0.5
        price_history.append(
            PricePoint(
                date=day,
                timestamp=bucket.timestamp,
                option_a=round(option_a, 3),
                option_b=round(option_b, 3),
                volume=bucket.total_volume,
                trades=bucket.trades,
            )
        )
        volume_history.append(
            VolumePoint(
                date=day,
                timestamp=bucket.timestamp,
                volume=bucket.total_volume,
                trades=bucket.trades,
            )
        )

    return MarketAnalytics(
        price_history=price_history,
        volume_history=volume_history,
        total_volume=sum(trade.amount for trade in trades),
        total_trades=len(trades),
        price_change_24h=price_change(price_history),
        volume_change_24h=volume_change(volume_history),
        last_updated=_isoformat_now(),
    )


def fallback_analytics(rng: random.Random | None = None) -> MarketAnalytics:
    """Synthetic seven-day series with the same shape as real analytics."""

    rng = rng or random.Random()
    today = datetime.now(timezone.utc)
    price_a = 0.5
    price_history: list[PricePoint] = []
    volume_history: list[VolumePoint] = []

    for offset in range(FALLBACK_DAYS - 1, -1, -1):
        moment = today - timedelta(days=offset)
        price_a = max(0.05, min(0.95, price_a + (rng.random() - 0.5) * 0.1))
        volume = rng.randint(100, 1099)
        trades = rng.randint(10, 59)
        option_a = round(price_a, 3)
        timestamp = int(moment.timestamp() * 1000)
        price_history.append(
            PricePoint(
                date=moment.date().isoformat(),
                timestamp=timestamp,
                option_a=option_a,
                option_b=round(1 - option_a, 3),
                volume=volume,
                trades=trades,
            )
        )
        volume_history.append(
            VolumePoint(
                date=moment.date().isoformat(),
                timestamp=timestamp,
                volume=volume,
                trades=trades,
            )
        )

    return MarketAnalytics(
        price_history=price_history,
        volume_history=volume_history,
        total_volume=sum(point.volume for point in price_history),
        total_trades=sum(point.trades for point in price_history),
        price_change_24h=(rng.random() - 0.5) * 0.2,
        volume_change_24h=(rng.random() - 0.5) * 2,
        last_updated=_isoformat_now(),
    )


def filter_time_range(
    analytics: MarketAnalytics, time_range: str, *, now_ms: int | None = None
) -> MarketAnalytics:
    window = TIME_RANGES_MS.get(time_range)
    if window is None:
        return analytics
    cutoff = (now_ms if now_ms is not None else _now_ms()) - window
    return analytics.model_copy(
        update={
            "price_history": [p for p in analytics.price_history if p.timestamp >= cutoff],
            "volume_history": [v for v in analytics.volume_history if v.timestamp >= cutoff],
        }
    )


def analytics_cache_key(market_id: int, time_range: str) -> str:
    return f"{market_id}:{time_range}"


class AnalyticsService:
    """Compute, filter and cache per-market analytics."""

    def __init__(
        self,
        client: ContractClient,
        cache: ResponseCache[MarketAnalytics],
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._rng = rng or random.Random()

    def load_trades(self, market_id: int) -> list[ShareTrade]:
        events = self._client.get_events(TRADE_EVENT, market_id=market_id)
        return [ShareTrade.from_event(event) for event in events]

    def get_analytics(self, market_id: int, time_range: str = DEFAULT_TIME_RANGE) -> MarketAnalytics:
        cache_key = analytics_cache_key(market_id, time_range)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            trades = self.load_trades(market_id)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to load trades for market {}; serving fallback analytics", market_id)
            return fallback_analytics(self._rng)

        analytics = aggregate_trades(trades)
        if analytics is None:
            logger.info("Market {} has no trades yet; serving synthetic analytics", market_id)
            analytics = fallback_analytics(self._rng)

        filtered = filter_time_range(analytics, time_range)
        self._cache.set(cache_key, filtered)
        return filtered

    def invalidate(self, market_id: int) -> int:
        removed = self._cache.invalidate(f"{market_id}:")
        logger.info("Cleared {} cached analytics entries for market {}", removed, market_id)
        return removed


__all__ = [
    "AnalyticsService",
    "ShareTrade",
    "aggregate_trades",
    "fallback_analytics",
    "filter_time_range",
]
