"""Turn decoded contract logs into append-only event rows."""

from __future__ import annotations

from typing import Any, Callable

from app.domain import DecodedEvent, EventSchemaError
from app.models import (
    ADDRESS,
    BOOL,
    BYTES32,
    EVENT_MODELS_BY_NAME,
    INT,
    STRING,
    STRING_ARRAY,
    UINT,
    UINT_ARRAY,
    IndexedEvent,
)

LOG_INDEX_BYTES = 4


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def event_row_id(transaction_hash: str | bytes, log_index: int) -> str:
    """``transactionHash ++ logIndex`` with the index as 4 big-endian bytes."""

    if isinstance(transaction_hash, (bytes, bytearray)):
        hash_hex = bytes(transaction_hash).hex()
    else:
        hash_hex = _strip_0x(str(transaction_hash)).lower()
    if len(hash_hex) != 64:
        raise EventSchemaError(f"transaction hash must be 32 bytes, got {transaction_hash!r}")
    if log_index < 0 or log_index >= 1 << (8 * LOG_INDEX_BYTES):
        raise EventSchemaError(f"log index {log_index} does not fit in {LOG_INDEX_BYTES} bytes")
    return "0x" + hash_hex + log_index.to_bytes(LOG_INDEX_BYTES, "big").hex()


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected integer, got {type(value).__name__}")
    return value


def _as_uint(value: Any) -> int:
    number = _as_int(value)
    if number < 0:
        raise ValueError(f"expected unsigned integer, got {number}")
    return number


def _as_address(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected address string, got {type(value).__name__}")
    body = _strip_0x(value)
    if len(body) != 40:
        raise ValueError(f"expected 20-byte address, got {value!r}")
    int(body, 16)
    return "0x" + body.lower()


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, got {type(value).__name__}")
    return value


def _as_string(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected string, got {type(value).__name__}")
    return value


def _as_bytes32(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        raw = bytes.fromhex(_strip_0x(value))
    else:
        raise TypeError(f"expected bytes32, got {type(value).__name__}")
    if len(raw) != 32:
        raise ValueError(f"expected 32 bytes, got {len(raw)}")
    return "0x" + raw.hex()


def _as_list(value: Any) -> list[Any]:
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"expected array, got {type(value).__name__}")
    return list(value)


ENCODERS: dict[str, Callable[[Any], Any]] = {
    UINT: _as_uint,
    INT: _as_int,
    ADDRESS: _as_address,
    BOOL: _as_bool,
    STRING: _as_string,
    BYTES32: _as_bytes32,
    # JSON columns hold uint256 arrays as decimal strings
    UINT_ARRAY: lambda value: [str(_as_uint(item)) for item in _as_list(value)],
    STRING_ARRAY: lambda value: [_as_string(item) for item in _as_list(value)],
}


def map_event(event: DecodedEvent) -> IndexedEvent:
    """Build the row for one decoded log.

    Every declared parameter is copied into its column; nothing is derived
    or correlated with other events.
    """

    model = EVENT_MODELS_BY_NAME.get(event.name)
    if model is None:
        raise EventSchemaError(f"No entity mapping for event {event.name}")

    values: dict[str, Any] = {}
    for param, (attribute, kind) in model.__event_params__.items():
        if param not in event.args:
            raise EventSchemaError(f"{event.name} log is missing parameter {param}")
        try:
            values[attribute] = ENCODERS[kind](event.args[param])
        except (TypeError, ValueError) as exc:
            raise EventSchemaError(f"{event.name}.{param}: {exc}") from exc

    return model(
        id=event_row_id(event.transaction_hash, event.log_index),
        block_number=event.block_number,
        block_timestamp=event.block_timestamp,
        transaction_hash="0x" + _strip_0x(event.transaction_hash).lower(),
        **values,
    )


__all__ = ["event_row_id", "map_event"]
