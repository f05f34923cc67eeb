from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.models import EVENT_MODELS_BY_NAME
from app.repositories import EventRepository
from app.services.contract_client import ContractClient

from .mapper import map_event


@contextmanager
def session_scope() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@dataclass
class IndexResult:
    from_block: int
    to_block: int
    chunks: int = 0
    per_event: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.per_event.values())


def block_chunks(from_block: int, to_block: int, chunk_size: int) -> Iterator[tuple[int, int]]:
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    start = from_block
    while start <= to_block:
        end = min(start + chunk_size - 1, to_block)
        yield start, end
        start = end + 1


def resolve_event_names(event_names: Sequence[str] | None) -> list[str]:
    if not event_names:
        return list(EVENT_MODELS_BY_NAME)
    unknown = sorted(set(event_names) - set(EVENT_MODELS_BY_NAME))
    if unknown:
        raise ValueError(f"Unknown event types: {', '.join(unknown)}")
    return list(dict.fromkeys(event_names))


def index_range(
    client: ContractClient,
    session: Session,
    *,
    from_block: int,
    to_block: int,
    chunk_size: int,
    event_names: Sequence[str] | None = None,
) -> IndexResult:
    """Index every mapped event in ``[from_block, to_block]``.

    The cursor advances after each chunk, so a failed run resumes from the
    last completed chunk.
    """

    names = resolve_event_names(event_names)
    repository = EventRepository(session)
    result = IndexResult(from_block=from_block, to_block=to_block)
    if from_block > to_block:
        logger.info("Nothing to index: from block {} is past to block {}", from_block, to_block)
        return result

    for start, end in block_chunks(from_block, to_block, chunk_size):
        for name in names:
            events = client.get_events(name, from_block=start, to_block=end)
            if not events:
                continue
            stored = repository.save_all(map_event(event) for event in events)
            result.per_event[name] = result.per_event.get(name, 0) + stored
        repository.set_cursor(client.address, end)
        session.commit()
        result.chunks += 1
        logger.info("Indexed blocks {}-{} ({} rows so far)", start, end, result.total)

    return result


def resume_block(session: Session, contract_address: str, default: int) -> int:
    last = EventRepository(session).get_cursor(contract_address)
    return default if last is None else last + 1


__all__ = ["IndexResult", "block_chunks", "index_range", "resume_block", "session_scope"]
