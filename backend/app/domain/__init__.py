"""Domain records decoded from the market contract."""

from .errors import (
    ContractCallError,
    ContractDecodeError,
    EventSchemaError,
    MarketNotFoundError,
)
from .models import (
    DecodedEvent,
    EligibleWinners,
    FreeMarketInfo,
    LPInfo,
    MarketFinancials,
    MarketInfo,
)

__all__ = [
    "ContractCallError",
    "ContractDecodeError",
    "DecodedEvent",
    "EligibleWinners",
    "EventSchemaError",
    "FreeMarketInfo",
    "LPInfo",
    "MarketFinancials",
    "MarketInfo",
    "MarketNotFoundError",
]
