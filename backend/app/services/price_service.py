"""Current implied prices derived from cumulative share purchases."""

from __future__ import annotations

import random
import time
from typing import Sequence

from loguru import logger

from app.schemas import CurrentPrice, LastTrade

from .analytics_service import ShareTrade, TRADE_EVENT
from .cache import ResponseCache
from .contract_client import ContractClient


def _now_ms() -> int:
    return int(time.time() * 1000)


def current_price_from_trades(trades: Sequence[ShareTrade]) -> CurrentPrice:
    volume_a = sum(trade.amount for trade in trades if trade.is_option_a)
    volume_b = sum(trade.amount for trade in trades if not trade.is_option_a)
    total = volume_a + volume_b
    price_a = round(volume_a / total, 3) if total > 0 else 0.5
    price_b = round(volume_b / total, 3) if total > 0 else 0.5

    last_trade = None
    if trades:
        latest = max(trades, key=lambda trade: trade.timestamp_ms)
        last_trade = LastTrade(
            timestamp=latest.timestamp_ms,
            option="A" if latest.is_option_a else "B",
            amount=latest.amount,
            price=price_a if latest.is_option_a else price_b,
        )

    return CurrentPrice(
        current_price_a=price_a,
        current_price_b=price_b,
        total_shares=total,
        last_trade=last_trade,
        timestamp=_now_ms(),
    )


def mock_current_price(rng: random.Random | None = None) -> CurrentPrice:
    rng = rng or random.Random()
    price_a = round(0.3 + rng.random() * 0.4, 3)
    price_b = round(1 - price_a, 3)
    now = _now_ms()
    return CurrentPrice(
        current_price_a=price_a,
        current_price_b=price_b,
        total_shares=rng.randint(1000, 10999),
        last_trade=LastTrade(
            timestamp=now - rng.randint(0, 60_000),
            option="A" if rng.random() > 0.5 else "B",
            amount=rng.randint(100, 1099),
            # independent of the option pick
            price=price_a if rng.random() > 0.5 else price_b,
        ),
        timestamp=now,
    )


class PriceService:
    def __init__(
        self,
        client: ContractClient,
        cache: ResponseCache[CurrentPrice],
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._rng = rng or random.Random()

    def get_current_price(self, market_id: int) -> CurrentPrice:
        cache_key = str(market_id)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            events = self._client.get_events(TRADE_EVENT, market_id=market_id)
            trades = [ShareTrade.from_event(event) for event in events]
        except Exception:  # noqa: BLE001
            logger.exception("Failed to read trades for market {}; serving mock price", market_id)
            return mock_current_price(self._rng)

        price = current_price_from_trades(trades)
        self._cache.set(cache_key, price)
        return price


__all__ = ["PriceService", "current_price_from_trades", "mock_current_price"]
