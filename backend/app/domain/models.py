"""Typed records decoded from contract reads and event logs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from .errors import ContractDecodeError

FREE_MARKET_TYPE = 1


def _check_value(function_name: str, field_name: str, value: Any, expected: type) -> Any:
    # bool is an int subclass; an int slot must not silently accept a flag.
    if expected is int and isinstance(value, bool):
        raise ContractDecodeError(function_name, f"{field_name} expected int, got bool")
    if expected is list:
        if not isinstance(value, (list, tuple)):
            raise ContractDecodeError(
                function_name, f"{field_name} expected array, got {type(value).__name__}"
            )
        return list(value)
    if not isinstance(value, expected):
        raise ContractDecodeError(
            function_name,
            f"{field_name} expected {expected.__name__}, got {type(value).__name__}",
        )
    return value


def _decode_tuple(
    function_name: str,
    values: Any,
    layout: Sequence[tuple[str, type]],
) -> dict[str, Any]:
    if not isinstance(values, (list, tuple)):
        raise ContractDecodeError(
            function_name, f"expected a {len(layout)}-tuple, got {type(values).__name__}"
        )
    if len(values) != len(layout):
        raise ContractDecodeError(
            function_name, f"expected {len(layout)} fields, got {len(values)}"
        )
    return {
        name: _check_value(function_name, name, value, expected)
        for (name, expected), value in zip(layout, values)
    }


@dataclass(slots=True, frozen=True)
class MarketInfo:
    """Snapshot returned by ``getMarketInfo``."""

    question: str
    description: str
    end_time: int
    category: int
    option_count: int
    resolved: bool
    disputed: bool
    market_type: int
    invalidated: bool
    winning_option_id: int
    creator: str

    LAYOUT = (
        ("question", str),
        ("description", str),
        ("end_time", int),
        ("category", int),
        ("option_count", int),
        ("resolved", bool),
        ("disputed", bool),
        ("market_type", int),
        ("invalidated", bool),
        ("winning_option_id", int),
        ("creator", str),
    )

    @classmethod
    def decode(cls, values: Any) -> "MarketInfo":
        return cls(**_decode_tuple("getMarketInfo", values, cls.LAYOUT))

    @property
    def is_free_market(self) -> bool:
        return self.market_type == FREE_MARKET_TYPE

    def is_created_by(self, address: str) -> bool:
        return self.creator.lower() == address.lower()


@dataclass(slots=True, frozen=True)
class MarketFinancials:
    """Liquidity and fee accounting returned by ``getMarketFinancials``."""

    admin_initial_liquidity: int
    user_liquidity: int
    platform_fees_collected: int
    amm_fees_collected: int
    admin_liquidity_claimed: bool

    LAYOUT = (
        ("admin_initial_liquidity", int),
        ("user_liquidity", int),
        ("platform_fees_collected", int),
        ("amm_fees_collected", int),
        ("admin_liquidity_claimed", bool),
    )

    @classmethod
    def decode(cls, values: Any) -> "MarketFinancials":
        return cls(**_decode_tuple("getMarketFinancials", values, cls.LAYOUT))


@dataclass(slots=True, frozen=True)
class FreeMarketInfo:
    """Prize pool configuration returned by ``getFreeMarketInfo``."""

    max_free_participants: int
    tokens_per_participant: int
    current_free_participants: int
    total_prize_pool: int
    prize_pool_withdrawn: bool

    LAYOUT = (
        ("max_free_participants", int),
        ("tokens_per_participant", int),
        ("current_free_participants", int),
        ("total_prize_pool", int),
        ("prize_pool_withdrawn", bool),
    )

    @classmethod
    def decode(cls, values: Any) -> "FreeMarketInfo":
        return cls(**_decode_tuple("getFreeMarketInfo", values, cls.LAYOUT))

    def unused_prize_pool(self) -> int:
        """Tokens reserved for participant slots that were never claimed."""

        if self.prize_pool_withdrawn:
            return 0
        max_pool = self.max_free_participants * self.tokens_per_participant
        used_pool = self.current_free_participants * self.tokens_per_participant
        return max(max_pool - used_pool, 0)


@dataclass(slots=True, frozen=True)
class LPInfo:
    """Liquidity provider position returned by ``getLPInfo``."""

    contribution: int
    rewards_claimed: bool
    estimated_rewards: int

    LAYOUT = (
        ("contribution", int),
        ("rewards_claimed", bool),
        ("estimated_rewards", int),
    )

    @classmethod
    def decode(cls, values: Any) -> "LPInfo":
        return cls(**_decode_tuple("getLPInfo", values, cls.LAYOUT))


@dataclass(slots=True, frozen=True)
class EligibleWinners:
    """Winners and payouts returned by ``getEligibleWinners``."""

    recipients: list[str]
    amounts: list[int]

    LAYOUT = (
        ("recipients", list),
        ("amounts", list),
    )

    @classmethod
    def decode(cls, values: Any) -> "EligibleWinners":
        decoded = _decode_tuple("getEligibleWinners", values, cls.LAYOUT)
        recipients = [
            _check_value("getEligibleWinners", "recipients[]", item, str)
            for item in decoded["recipients"]
        ]
        amounts = [
            _check_value("getEligibleWinners", "amounts[]", item, int)
            for item in decoded["amounts"]
        ]
        if len(recipients) != len(amounts):
            raise ContractDecodeError(
                "getEligibleWinners",
                f"{len(recipients)} recipients but {len(amounts)} amounts",
            )
        return cls(recipients=recipients, amounts=amounts)


@dataclass(slots=True)
class DecodedEvent:
    """One decoded log plus the envelope fields the indexer stamps on rows."""

    name: str
    args: dict[str, Any]
    transaction_hash: str
    log_index: int
    block_number: int
    block_timestamp: int
    address: str | None = None
