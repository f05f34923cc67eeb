from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.db import Base
from app.domain import DecodedEvent, MarketInfo
from app.services.contract_client import ContractClient

CREATOR = "0x1111111111111111111111111111111111111111"
BUYER = "0x2222222222222222222222222222222222222222"
SELLER = "0x3333333333333333333333333333333333333333"
TX_HASH = "0x" + "ab" * 32


def make_event(
    name: str,
    args: dict[str, object],
    *,
    transaction_hash: str = TX_HASH,
    log_index: int = 0,
    block_number: int = 100,
    block_timestamp: int = 1_700_000_000,
) -> DecodedEvent:
    return DecodedEvent(
        name=name,
        args=args,
        transaction_hash=transaction_hash,
        log_index=log_index,
        block_number=block_number,
        block_timestamp=block_timestamp,
    )


def make_market_info(**overrides) -> MarketInfo:
    values = {
        "question": "Will the bridge open before the end of the year?",
        "description": "Resolves YES if the bridge opens to traffic.",
        "end_time": 1_800_000_000,
        "category": 0,
        "option_count": 2,
        "resolved": False,
        "disputed": False,
        "market_type": 0,
        "invalidated": False,
        "winning_option_id": 0,
        "creator": CREATOR,
    }
    values.update(overrides)
    return MarketInfo(**values)


@pytest.fixture
def contract_client() -> MagicMock:
    client = MagicMock(spec=ContractClient)
    client.address = "0x00000000000000000000000000000000000000aa"
    return client


@pytest.fixture
def db_session():
    # one shared connection so TestClient worker threads see the same database
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=True, future=True)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()

