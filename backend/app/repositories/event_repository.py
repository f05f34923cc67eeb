"""Persistence for indexed contract events and the indexer cursor."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from app.models import EvmInteger, IndexedEvent, IndexerCursor

# Row ids are "0x" + 64 hex hash chars + 8 hex log-index chars; SQL substr is 1-based.
LOG_INDEX_START = 67


def event_to_dict(row: IndexedEvent) -> dict[str, Any]:
    """Column values keyed by attribute name; 256-bit integers as strings."""

    payload: dict[str, Any] = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(column.type, EvmInteger) and value is not None:
            value = str(value)
        payload[column.key] = value
    return payload


class EventRepository:
    """Append-only storage for event rows keyed by ``txHash ++ logIndex``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def save(self, row: IndexedEvent) -> IndexedEvent:
        # Re-processing a log yields an identical row, so merging on the
        # primary key keeps inserts idempotent.
        return self._session.merge(row)

    def save_all(self, rows: Iterable[IndexedEvent]) -> int:
        count = 0
        for row in rows:
            self.save(row)
            count += 1
        self._session.flush()
        return count

    def set_cursor(self, contract_address: str, last_block: int) -> IndexerCursor:
        key = contract_address.lower()
        cursor = self._session.get(IndexerCursor, key)
        if cursor is None:
            cursor = IndexerCursor(contract_address=key, last_block=last_block)
            self._session.add(cursor)
        else:
            cursor.last_block = last_block
        self._session.flush()
        return cursor

    # ------------------------------------------------------------------
    # Queries

    def get(self, model: type[IndexedEvent], row_id: str) -> IndexedEvent | None:
        return self._session.get(model, row_id)

    def get_cursor(self, contract_address: str) -> int | None:
        cursor = self._session.get(IndexerCursor, contract_address.lower())
        return cursor.last_block if cursor else None

    def list_events(
        self,
        model: type[IndexedEvent],
        *,
        market_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[int, list[IndexedEvent]]:
        stmt = select(model)
        count_stmt = select(func.count()).select_from(model)
        if market_id is not None:
            if not hasattr(model, "market_id"):
                raise ValueError(f"{model.__name__} rows are not scoped to a market")
            stmt = stmt.where(model.market_id == market_id)
            count_stmt = count_stmt.where(model.market_id == market_id)

        total = self._session.scalar(count_stmt) or 0
        # log indexes are unique within a block, so the fixed-width suffix gives chain order
        log_index = func.substr(model.id, LOG_INDEX_START)
        stmt = stmt.order_by(desc(model.block_number), desc(log_index)).offset(offset).limit(limit)
        rows = list(self._session.scalars(stmt))
        return total, rows


__all__ = ["EventRepository", "event_to_dict"]
