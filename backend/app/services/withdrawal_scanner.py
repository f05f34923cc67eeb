"""Discover unclaimed amounts an address can withdraw from the market contract."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Literal

from loguru import logger

from app.core.config import Settings
from app.domain import MarketInfo, MarketNotFoundError
from app.schemas import (
    AdminDiscoverResponse,
    WithdrawalCandidate,
    WithdrawalGroups,
    WithdrawalTotals,
)

from .contract_client import ContractClient

WithdrawalType = Literal["adminLiquidity", "prizePool", "lpRewards"]
DESCRIPTION_CHARS = 30


@dataclass(slots=True, frozen=True)
class Withdrawal:
    market_id: int
    amount: int
    type: WithdrawalType
    description: str


def _short_question(info: MarketInfo) -> str:
    return info.question[:DESCRIPTION_CHARS]


def market_batches(count: int, batch_size: int) -> list[range]:
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    return [range(start, min(start + batch_size, count)) for start in range(0, count, batch_size)]


class WithdrawalScanner:
    """Walk every market in bounded batches and collect withdrawal candidates."""

    def __init__(
        self,
        client: ContractClient,
        *,
        batch_size: int = 10,
        max_workers: int = 4,
        batch_delay_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.batch_delay_seconds = batch_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, client: ContractClient, settings: Settings) -> "WithdrawalScanner":
        return cls(
            client,
            batch_size=settings.scan_batch_size,
            max_workers=settings.scan_max_workers,
            batch_delay_seconds=settings.scan_batch_delay_seconds,
        )

    def _admin_liquidity(self, market_id: int, info: MarketInfo) -> Withdrawal | None:
        financials = self._client.get_market_financials(market_id)
        if financials.admin_initial_liquidity <= 0 or financials.admin_liquidity_claimed:
            return None
        return Withdrawal(
            market_id=market_id,
            amount=financials.admin_initial_liquidity,
            type="adminLiquidity",
            description=f'Admin liquidity for market "{_short_question(info)}..."',
        )

    def _prize_pool(self, market_id: int, info: MarketInfo) -> Withdrawal | None:
        unused = self._client.get_free_market_info(market_id).unused_prize_pool()
        if unused <= 0:
            return None
        return Withdrawal(
            market_id=market_id,
            amount=unused,
            type="prizePool",
            description=f'Unused prize pool for free market "{_short_question(info)}..."',
        )

    def _lp_rewards(self, market_id: int, info: MarketInfo, user_address: str) -> Withdrawal | None:
        lp_info = self._client.get_lp_info(market_id, user_address)
        if lp_info.estimated_rewards <= 0 or lp_info.rewards_claimed:
            return None
        return Withdrawal(
            market_id=market_id,
            amount=lp_info.estimated_rewards,
            type="lpRewards",
            description=f'LP rewards for market "{_short_question(info)}..."',
        )

    def check_market(self, market_id: int, user_address: str) -> list[Withdrawal]:
        """Return the candidates one market owes ``user_address``.

        Categories are evaluated independently, so a single market can yield
        up to three entries. A failing category read is skipped; only a
        failing ``getMarketInfo`` propagates.
        """

        info = self._client.get_market_info(market_id)
        checks: list[tuple[WithdrawalType, Callable[[], Withdrawal | None]]] = []
        if info.is_created_by(user_address):
            checks.append(("adminLiquidity", lambda: self._admin_liquidity(market_id, info)))
            if info.is_free_market and info.resolved:
                checks.append(("prizePool", lambda: self._prize_pool(market_id, info)))
        checks.append(("lpRewards", lambda: self._lp_rewards(market_id, info, user_address)))

        found: list[Withdrawal] = []
        for category, check in checks:
            try:
                candidate = check()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Skipping {} check for market {}: {}", category, market_id, exc)
                continue
            if candidate is not None:
                found.append(candidate)
        return found

    def _safe_check(self, market_id: int, user_address: str) -> list[Withdrawal]:
        try:
            return self.check_market(market_id, user_address)
        except MarketNotFoundError:
            logger.debug("Market {} does not exist; skipping", market_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Skipping market {} during withdrawal scan: {}", market_id, exc)
        return []

    def scan(self, user_address: str) -> list[Withdrawal]:
        count = self._client.market_count()
        if count == 0:
            logger.info("No markets deployed; nothing to scan for {}", user_address)
            return []

        batches = market_batches(count, self.batch_size)
        logger.info(
            "Scanning {} markets for {} in {} batches", count, user_address, len(batches)
        )
        results: list[Withdrawal] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for index, batch in enumerate(batches):
                for found in executor.map(lambda market_id: self._safe_check(market_id, user_address), batch):
                    results.extend(found)
                if index < len(batches) - 1 and self.batch_delay_seconds > 0:
                    self._sleep(self.batch_delay_seconds)
        logger.info("Found {} withdrawal candidates for {}", len(results), user_address)
        return results


def build_discover_response(withdrawals: Iterable[Withdrawal]) -> AdminDiscoverResponse:
    groups: dict[str, list[WithdrawalCandidate]] = {
        "adminLiquidity": [],
        "prizePool": [],
        "lpRewards": [],
    }
    sums = {key: 0 for key in groups}
    for item in withdrawals:
        groups[item.type].append(
            WithdrawalCandidate(
                market_id=item.market_id,
                amount=str(item.amount),
                type=item.type,
                description=item.description,
            )
        )
        sums[item.type] += item.amount

    return AdminDiscoverResponse(
        withdrawals=WithdrawalGroups(
            admin_liquidity=groups["adminLiquidity"],
            prize_pool=groups["prizePool"],
            lp_rewards=groups["lpRewards"],
        ),
        totals=WithdrawalTotals(
            admin_liquidity=str(sums["adminLiquidity"]),
            prize_pool=str(sums["prizePool"]),
            lp_rewards=str(sums["lpRewards"]),
            total=str(sum(sums.values())),
        ),
        total_count=sum(len(items) for items in groups.values()),
    )


__all__ = ["Withdrawal", "WithdrawalScanner", "build_discover_response", "market_batches"]
