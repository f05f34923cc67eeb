"""Read-only access to the deployed Policast market contract."""

from __future__ import annotations

import json
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence, TypeVar

from cachetools import LRUCache
from loguru import logger
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from app.core.config import Settings, get_settings
from app.domain import (
    ContractCallError,
    ContractDecodeError,
    DecodedEvent,
    EligibleWinners,
    FreeMarketInfo,
    LPInfo,
    MarketFinancials,
    MarketInfo,
    MarketNotFoundError,
)

ABI_PATH = Path(__file__).resolve().parents[1] / "abi" / "policast_market_v3.json"
INVALID_MARKET_SELECTOR = Web3.to_hex(Web3.keccak(text="InvalidMarket()"))[:10]

T = TypeVar("T")


@lru_cache(maxsize=1)
def load_contract_abi() -> list[dict[str, Any]]:
    """Return the pinned contract ABI bundled with the package."""

    return json.loads(ABI_PATH.read_text(encoding="utf-8"))


def _event_abis(abi: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    return {entry["name"]: entry for entry in abi if entry.get("type") == "event"}


def _event_topic(event_abi: dict[str, Any]) -> str:
    types = ",".join(item["type"] for item in event_abi["inputs"])
    return Web3.to_hex(Web3.keccak(text=f"{event_abi['name']}({types})"))


def _uint_topic(value: int) -> str:
    return "0x" + int(value).to_bytes(32, "big").hex()


def _is_invalid_market(exc: ContractLogicError) -> bool:
    data = getattr(exc, "data", None)
    if isinstance(data, str) and data.lower().startswith(INVALID_MARKET_SELECTOR):
        return True
    return "InvalidMarket" in str(exc)


class ContractClient:
    """Thin wrapper around the market contract's view functions and logs."""

    def __init__(
        self,
        *,
        rpc_url: str,
        contract_address: str,
        timeout: float = 20.0,
        web3: Web3 | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.web3 = web3 or Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
        )
        self.address = Web3.to_checksum_address(contract_address)
        self.abi = load_contract_abi()
        self.contract = self.web3.eth.contract(address=self.address, abi=self.abi)
        self._event_abis = _event_abis(self.abi)
        self._block_timestamps: LRUCache[int, int] = LRUCache(maxsize=4096)
        self._timestamps_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContractClient":
        return cls(
            rpc_url=str(settings.rpc_url),
            contract_address=settings.contract_address,
            timeout=settings.rpc_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # View functions

    def _call(
        self,
        function_name: str,
        *args: Any,
        decode: Callable[[Any], T],
        market_id: int | None = None,
    ) -> T:
        function = getattr(self.contract.functions, function_name)
        try:
            raw = function(*args).call()
        except ContractLogicError as exc:
            if market_id is not None and _is_invalid_market(exc):
                raise MarketNotFoundError(function_name, market_id) from exc
            raise ContractCallError(function_name, str(exc)) from exc
        except BadFunctionCallOutput as exc:
            raise ContractDecodeError(function_name, str(exc)) from exc
        return decode(raw)

    def market_count(self) -> int:
        def _decode(raw: Any) -> int:
            if isinstance(raw, bool) or not isinstance(raw, int):
                raise ContractDecodeError("marketCount", f"expected uint256, got {raw!r}")
            return raw

        return self._call("marketCount", decode=_decode)

    def get_market_info(self, market_id: int) -> MarketInfo:
        return self._call(
            "getMarketInfo", market_id, decode=MarketInfo.decode, market_id=market_id
        )

    def get_market_financials(self, market_id: int) -> MarketFinancials:
        return self._call(
            "getMarketFinancials",
            market_id,
            decode=MarketFinancials.decode,
            market_id=market_id,
        )

    def get_free_market_info(self, market_id: int) -> FreeMarketInfo:
        return self._call(
            "getFreeMarketInfo",
            market_id,
            decode=FreeMarketInfo.decode,
            market_id=market_id,
        )

    def get_lp_info(self, market_id: int, user: str) -> LPInfo:
        return self._call(
            "getLPInfo",
            market_id,
            Web3.to_checksum_address(user),
            decode=LPInfo.decode,
            market_id=market_id,
        )

    def get_eligible_winners(
        self, market_id: int, participants: Sequence[str]
    ) -> EligibleWinners:
        checksummed = [Web3.to_checksum_address(address) for address in participants]
        return self._call(
            "getEligibleWinners",
            market_id,
            checksummed,
            decode=EligibleWinners.decode,
            market_id=market_id,
        )

    # ------------------------------------------------------------------
    # Logs

    def latest_block(self) -> int:
        return int(self.web3.eth.block_number)

    def block_timestamp(self, block_number: int) -> int:
        with self._timestamps_lock:
            cached = self._block_timestamps.get(block_number)
        if cached is not None:
            return cached
        block = self.web3.eth.get_block(block_number)
        timestamp = int(block["timestamp"])
        with self._timestamps_lock:
            self._block_timestamps[block_number] = timestamp
        return timestamp

    def get_events(
        self,
        event_name: str,
        *,
        from_block: int = 0,
        to_block: int | str = "latest",
        market_id: int | None = None,
    ) -> list[DecodedEvent]:
        """Fetch and decode every ``event_name`` log in the block range.

        When ``market_id`` is given the query filters on the first indexed
        topic, which every market-scoped event declares as ``marketId``.
        """

        event_abi = self._event_abis.get(event_name)
        if event_abi is None:
            raise ValueError(f"Event {event_name} is not part of the contract ABI")

        topics: list[str | None] = [_event_topic(event_abi)]
        if market_id is not None:
            first_input = event_abi["inputs"][0] if event_abi["inputs"] else {}
            if first_input.get("name") != "marketId" or not first_input.get("indexed"):
                raise ValueError(f"Event {event_name} cannot be filtered by marketId")
            topics.append(_uint_topic(market_id))

        params = {
            "address": self.address,
            "fromBlock": from_block,
            "toBlock": to_block,
            "topics": topics,
        }
        logger.debug("eth_getLogs {} params={}", event_name, params)
        raw_logs = self.web3.eth.get_logs(params)

        event = getattr(self.contract.events, event_name)()
        decoded: list[DecodedEvent] = []
        for raw_log in raw_logs:
            entry = event.process_log(raw_log)
            block_number = int(entry["blockNumber"])
            decoded.append(
                DecodedEvent(
                    name=event_name,
                    args=dict(entry["args"]),
                    transaction_hash=Web3.to_hex(entry["transactionHash"]),
                    log_index=int(entry["logIndex"]),
                    block_number=block_number,
                    block_timestamp=self.block_timestamp(block_number),
                    address=str(entry["address"]),
                )
            )
        decoded.sort(key=lambda item: (item.block_number, item.log_index))
        return decoded


@lru_cache(maxsize=1)
def get_contract_client() -> ContractClient:
    """Build or reuse the process-wide contract client."""

    return ContractClient.from_settings(get_settings())


__all__ = ["ContractClient", "get_contract_client", "load_contract_abi"]
