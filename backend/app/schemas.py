from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema emitting camelCase keys while accepting snake_case input."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class PricePoint(CamelModel):
    date: str
    timestamp: int
    option_a: float
    option_b: float
    volume: int
    trades: int


class VolumePoint(CamelModel):
    date: str
    timestamp: int
    volume: int
    trades: int


class MarketAnalytics(CamelModel):
    price_history: list[PricePoint] = Field(default_factory=list)
    volume_history: list[VolumePoint] = Field(default_factory=list)
    total_volume: int
    total_trades: int
    price_change_24h: float
    volume_change_24h: float
    last_updated: str


class LastTrade(CamelModel):
    timestamp: int
    option: Literal["A", "B"]
    amount: int
    price: float


class CurrentPrice(CamelModel):
    current_price_a: float
    current_price_b: float
    total_shares: int
    last_trade: LastTrade | None = None
    timestamp: int


class MarketIdRequest(CamelModel):
    market_id: int | None = Field(default=None, ge=0)


class CacheCleared(CamelModel):
    success: bool
    message: str


class AdminDiscoverRequest(CamelModel):
    user_address: str | None = None

    @field_validator("user_address")
    @classmethod
    def _validate_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        candidate = value.strip()
        if not candidate:
            return None
        if not candidate.startswith("0x") or len(candidate) != 42:
            raise ValueError("userAddress must be a 0x-prefixed 20-byte hex string")
        try:
            int(candidate[2:], 16)
        except ValueError as exc:
            raise ValueError("userAddress must contain only hex digits") from exc
        return candidate


class WithdrawalCandidate(CamelModel):
    market_id: int
    amount: str
    type: Literal["adminLiquidity", "prizePool", "lpRewards"]
    description: str


class WithdrawalGroups(CamelModel):
    admin_liquidity: list[WithdrawalCandidate] = Field(default_factory=list)
    prize_pool: list[WithdrawalCandidate] = Field(default_factory=list)
    lp_rewards: list[WithdrawalCandidate] = Field(default_factory=list)


class WithdrawalTotals(CamelModel):
    admin_liquidity: str = "0"
    prize_pool: str = "0"
    lp_rewards: str = "0"
    total: str = "0"


class AdminDiscoverResponse(CamelModel):
    withdrawals: WithdrawalGroups
    totals: WithdrawalTotals
    total_count: int


class DistributionPreview(CamelModel):
    recipients: list[str] = Field(default_factory=list)
    amounts: list[str] = Field(default_factory=list)
    total_participants: int = 0
    eligible_count: int = 0
    message: str | None = None


class IndexedEventList(BaseModel):
    total: int
    items: list[dict[str, Any]]
