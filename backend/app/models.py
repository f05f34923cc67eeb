from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EvmInteger(TypeDecorator):
    """Store uint256/int256 values losslessly as decimal text."""

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> str | None:
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value: Any, dialect) -> int | None:
        if value is None:
            return None
        return int(value)


# Parameter kinds understood by the event mapper.
UINT = "uint"
INT = "int"
ADDRESS = "address"
BOOL = "bool"
STRING = "string"
BYTES32 = "bytes32"
UINT_ARRAY = "uint[]"
STRING_ARRAY = "string[]"


class IndexedEvent:
    """Columns shared by every event row: identity plus the log envelope.

    Subclasses declare ``__event_name__`` (the Solidity event name) and
    ``__event_params__`` mapping each event parameter to its column attribute
    and parameter kind.
    """

    id: Mapped[str] = mapped_column(String(74), primary_key=True)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    block_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)


class AdminLiquidityWithdrawn(IndexedEvent, Base):
    __tablename__ = "admin_liquidity_withdrawn"
    __event_name__ = "AdminLiquidityWithdrawn"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "creator": ("creator", ADDRESS),
        "amount": ("amount", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    creator: Mapped[str] = mapped_column(String(42), nullable=False)
    amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class BComputed(IndexedEvent, Base):
    __tablename__ = "b_computed"
    __event_name__ = "BComputed"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "bValue": ("b_value", UINT),
        "coverageRatioNum": ("coverage_ratio_num", UINT),
        "coverageRatioDen": ("coverage_ratio_den", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    b_value: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    coverage_ratio_num: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    coverage_ratio_den: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class BatchWinningsDistributed(IndexedEvent, Base):
    __tablename__ = "batch_winnings_distributed"
    __event_name__ = "BatchWinningsDistributed"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "totalDistributed": ("total_distributed", UINT),
        "recipientCount": ("recipient_count", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    total_distributed: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    recipient_count: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class BettingTokenUpdated(IndexedEvent, Base):
    __tablename__ = "betting_token_updated"
    __event_name__ = "BettingTokenUpdated"
    __event_params__ = {
        "oldToken": ("old_token", ADDRESS),
        "newToken": ("new_token", ADDRESS),
        "timestamp": ("timestamp", UINT),
    }

    old_token: Mapped[str] = mapped_column(String(42), nullable=False)
    new_token: Mapped[str] = mapped_column(String(42), nullable=False)
    timestamp: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class Claimed(IndexedEvent, Base):
    __tablename__ = "claimed"
    __event_name__ = "Claimed"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "user": ("user", ADDRESS),
        "amount": ("amount", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    user: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class FeeAccrued(IndexedEvent, Base):
    __tablename__ = "fee_accrued"
    __event_name__ = "FeeAccrued"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "optionId": ("option_id", UINT),
        "isBuy": ("is_buy", BOOL),
        "rawAmount": ("raw_amount", UINT),
        "fee": ("fee", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    option_id: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    is_buy: Mapped[bool] = mapped_column(Boolean, nullable=False)
    raw_amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    fee: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class FeeCollected(IndexedEvent, Base):
    __tablename__ = "fee_collected"
    __event_name__ = "FeeCollected"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "amount": ("amount", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class FeeCollectorUpdated(IndexedEvent, Base):
    __tablename__ = "fee_collector_updated"
    __event_name__ = "FeeCollectorUpdated"
    __event_params__ = {
        "oldCollector": ("old_collector", ADDRESS),
        "newCollector": ("new_collector", ADDRESS),
    }

    old_collector: Mapped[str] = mapped_column(String(42), nullable=False)
    new_collector: Mapped[str] = mapped_column(String(42), nullable=False)


class FeesUnlocked(IndexedEvent, Base):
    __tablename__ = "fees_unlocked"
    __event_name__ = "FeesUnlocked"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "amount": ("amount", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class FreeMarketConfigSet(IndexedEvent, Base):
    __tablename__ = "free_market_config_set"
    __event_name__ = "FreeMarketConfigSet"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "maxFreeParticipants": ("max_free_participants", UINT),
        "tokensPerParticipant": ("tokens_per_participant", UINT),
        "totalPrizePool": ("total_prize_pool", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    max_free_participants: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    tokens_per_participant: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    total_prize_pool: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class FreeTokensClaimed(IndexedEvent, Base):
    __tablename__ = "free_tokens_claimed"
    __event_name__ = "FreeTokensClaimed"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "user": ("user", ADDRESS),
        "tokens": ("tokens", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    user: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    tokens: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class LiquidityAdded(IndexedEvent, Base):
    __tablename__ = "liquidity_added"
    __event_name__ = "LiquidityAdded"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "provider": ("provider", ADDRESS),
        "amount": ("amount", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class MarketCreated(IndexedEvent, Base):
    __tablename__ = "market_created"
    __event_name__ = "MarketCreated"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "question": ("question", STRING),
        "options": ("options", STRING_ARRAY),
        "endTime": ("end_time", UINT),
        "category": ("category", UINT),
        "marketType": ("market_type", UINT),
        "creator": ("creator", ADDRESS),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    end_time: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    category: Mapped[int] = mapped_column(Integer, nullable=False)
    market_type: Mapped[int] = mapped_column(Integer, nullable=False)
    creator: Mapped[str] = mapped_column(String(42), nullable=False, index=True)


class MarketDisputed(IndexedEvent, Base):
    __tablename__ = "market_disputed"
    __event_name__ = "MarketDisputed"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "disputer": ("disputer", ADDRESS),
        "reason": ("reason", STRING),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    disputer: Mapped[str] = mapped_column(String(42), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)


class MarketInvalidated(IndexedEvent, Base):
    __tablename__ = "market_invalidated"
    __event_name__ = "MarketInvalidated"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "validator": ("validator", ADDRESS),
        "refundedAmount": ("refunded_amount", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    validator: Mapped[str] = mapped_column(String(42), nullable=False)
    refunded_amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class MarketPaused(IndexedEvent, Base):
    __tablename__ = "market_paused"
    __event_name__ = "MarketPaused"
    __event_params__ = {"marketId": ("market_id", UINT)}

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)


class MarketResolved(IndexedEvent, Base):
    __tablename__ = "market_resolved"
    __event_name__ = "MarketResolved"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "winningOptionId": ("winning_option_id", UINT),
        "resolver": ("resolver", ADDRESS),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    winning_option_id: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    resolver: Mapped[str] = mapped_column(String(42), nullable=False)


class MarketValidated(IndexedEvent, Base):
    __tablename__ = "market_validated"
    __event_name__ = "MarketValidated"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "validator": ("validator", ADDRESS),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    validator: Mapped[str] = mapped_column(String(42), nullable=False)


class OwnershipTransferred(IndexedEvent, Base):
    __tablename__ = "ownership_transferred"
    __event_name__ = "OwnershipTransferred"
    __event_params__ = {
        "previousOwner": ("previous_owner", ADDRESS),
        "newOwner": ("new_owner", ADDRESS),
    }

    previous_owner: Mapped[str] = mapped_column(String(42), nullable=False)
    new_owner: Mapped[str] = mapped_column(String(42), nullable=False)


class Paused(IndexedEvent, Base):
    __tablename__ = "paused"
    __event_name__ = "Paused"
    __event_params__ = {"account": ("account", ADDRESS)}

    account: Mapped[str] = mapped_column(String(42), nullable=False)


class PlatformFeesWithdrawn(IndexedEvent, Base):
    __tablename__ = "platform_fees_withdrawn"
    __event_name__ = "PlatformFeesWithdrawn"
    __event_params__ = {
        "collector": ("collector", ADDRESS),
        "amount": ("amount", UINT),
    }

    collector: Mapped[str] = mapped_column(String(42), nullable=False)
    amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class PricesUpdated(IndexedEvent, Base):
    __tablename__ = "prices_updated"
    __event_name__ = "PricesUpdated"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "prices": ("prices", UINT_ARRAY),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    # uint256 values serialised as decimal strings
    prices: Mapped[list[str]] = mapped_column(JSON, nullable=False)


class RoleAdminChanged(IndexedEvent, Base):
    __tablename__ = "role_admin_changed"
    __event_name__ = "RoleAdminChanged"
    __event_params__ = {
        "role": ("role", BYTES32),
        "previousAdminRole": ("previous_admin_role", BYTES32),
        "newAdminRole": ("new_admin_role", BYTES32),
    }

    role: Mapped[str] = mapped_column(String(66), nullable=False)
    previous_admin_role: Mapped[str] = mapped_column(String(66), nullable=False)
    new_admin_role: Mapped[str] = mapped_column(String(66), nullable=False)


class RoleGranted(IndexedEvent, Base):
    __tablename__ = "role_granted"
    __event_name__ = "RoleGranted"
    __event_params__ = {
        "role": ("role", BYTES32),
        "account": ("account", ADDRESS),
        "sender": ("sender", ADDRESS),
    }

    role: Mapped[str] = mapped_column(String(66), nullable=False)
    account: Mapped[str] = mapped_column(String(42), nullable=False)
    sender: Mapped[str] = mapped_column(String(42), nullable=False)


class RoleRevoked(IndexedEvent, Base):
    __tablename__ = "role_revoked"
    __event_name__ = "RoleRevoked"
    __event_params__ = {
        "role": ("role", BYTES32),
        "account": ("account", ADDRESS),
        "sender": ("sender", ADDRESS),
    }

    role: Mapped[str] = mapped_column(String(66), nullable=False)
    account: Mapped[str] = mapped_column(String(42), nullable=False)
    sender: Mapped[str] = mapped_column(String(42), nullable=False)


class SharesSold(IndexedEvent, Base):
    __tablename__ = "shares_sold"
    __event_name__ = "SharesSold"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "optionId": ("option_id", UINT),
        "seller": ("seller", ADDRESS),
        "quantity": ("quantity", UINT),
        "price": ("price", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    option_id: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    seller: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    price: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class SlippageProtect(IndexedEvent, Base):
    __tablename__ = "slippage_protect"
    __event_name__ = "SlippageProtect"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "optionId": ("option_id", UINT),
        "isBuy": ("is_buy", BOOL),
        "quantity": ("quantity", UINT),
        "bound": ("bound", UINT),
        "actualTotal": ("actual_total", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    option_id: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    is_buy: Mapped[bool] = mapped_column(Boolean, nullable=False)
    quantity: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    bound: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    actual_total: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class TradeExecuted(IndexedEvent, Base):
    __tablename__ = "trade_executed"
    __event_name__ = "TradeExecuted"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "optionId": ("option_id", UINT),
        "buyer": ("buyer", ADDRESS),
        "seller": ("seller", ADDRESS),
        "price": ("price", UINT),
        "quantity": ("quantity", UINT),
        "tradeId": ("trade_id", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    option_id: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    buyer: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    seller: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    price: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    trade_id: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class Unpaused(IndexedEvent, Base):
    __tablename__ = "unpaused"
    __event_name__ = "Unpaused"
    __event_params__ = {"account": ("account", ADDRESS)}

    account: Mapped[str] = mapped_column(String(42), nullable=False)


class UserPortfolioUpdated(IndexedEvent, Base):
    __tablename__ = "user_portfolio_updated"
    __event_name__ = "UserPortfolioUpdated"
    __event_params__ = {
        "user": ("user", ADDRESS),
        "totalInvested": ("total_invested", UINT),
        "totalWinnings": ("total_winnings", UINT),
        "unrealizedPnL": ("unrealized_pnl", INT),
        "realizedPnL": ("realized_pnl", INT),
        "tradeCount": ("trade_count", UINT),
    }

    user: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    total_invested: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    total_winnings: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    unrealized_pnl: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    realized_pnl: Mapped[int] = mapped_column(EvmInteger, nullable=False)
    trade_count: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class WinningsDistributedToUser(IndexedEvent, Base):
    __tablename__ = "winnings_distributed_to_user"
    __event_name__ = "WinningsDistributedToUser"
    __event_params__ = {
        "marketId": ("market_id", UINT),
        "user": ("user", ADDRESS),
        "amount": ("amount", UINT),
    }

    market_id: Mapped[int] = mapped_column(EvmInteger, nullable=False, index=True)
    user: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(EvmInteger, nullable=False)


class IndexerCursor(Base):
    __tablename__ = "indexer_cursors"

    contract_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    last_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


EVENT_MODELS: tuple[type[IndexedEvent], ...] = (
    AdminLiquidityWithdrawn,
    BComputed,
    BatchWinningsDistributed,
    BettingTokenUpdated,
    Claimed,
    FeeAccrued,
    FeeCollected,
    FeeCollectorUpdated,
    FeesUnlocked,
    FreeMarketConfigSet,
    FreeTokensClaimed,
    LiquidityAdded,
    MarketCreated,
    MarketDisputed,
    MarketInvalidated,
    MarketPaused,
    MarketResolved,
    MarketValidated,
    OwnershipTransferred,
    Paused,
    PlatformFeesWithdrawn,
    PricesUpdated,
    RoleAdminChanged,
    RoleGranted,
    RoleRevoked,
    SharesSold,
    SlippageProtect,
    TradeExecuted,
    Unpaused,
    UserPortfolioUpdated,
    WinningsDistributedToUser,
)

EVENT_MODELS_BY_NAME: dict[str, type[IndexedEvent]] = {
    model.__event_name__: model for model in EVENT_MODELS
}
