"""Errors raised while reading or decoding contract data."""

from __future__ import annotations


class ContractCallError(RuntimeError):
    """A contract view call reverted."""

    def __init__(self, function_name: str, message: str) -> None:
        super().__init__(f"{function_name} reverted: {message}")
        self.function_name = function_name


class MarketNotFoundError(ContractCallError):
    """The contract rejected the market id with ``InvalidMarket``."""

    def __init__(self, function_name: str, market_id: int) -> None:
        super().__init__(function_name, f"InvalidMarket({market_id})")
        self.market_id = market_id


class ContractDecodeError(ValueError):
    """A contract return value did not match the pinned ABI layout."""

    def __init__(self, function_name: str, message: str) -> None:
        super().__init__(f"Unexpected {function_name} result: {message}")
        self.function_name = function_name


class EventSchemaError(ValueError):
    """A decoded event is missing parameters or has no mapped table."""
