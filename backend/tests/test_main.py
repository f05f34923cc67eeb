from __future__ import annotations

import random
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.domain import (
    ContractCallError,
    EligibleWinners,
    LPInfo,
    MarketFinancials,
    MarketNotFoundError,
)
from app.main import (
    _analytics_service,
    _contract_client,
    _event_repository,
    _price_service,
    analytics_cache,
    app,
    price_cache,
)
from app.repositories import EventRepository
from app.services.analytics_service import AnalyticsService, fallback_analytics
from app.services.cache import ResponseCache
from app.services.distribution_service import DISPUTED_MESSAGE
from indexer.mapper import map_event

from conftest import BUYER, CREATOR, SELLER, make_event, make_market_info


@pytest.fixture
def client():
    """Test client that cleans up dependency overrides after each test."""
    yield TestClient(app)
    app.dependency_overrides.clear()
    analytics_cache().clear()
    price_cache().clear()


@pytest.fixture
def chain(contract_client, client):
    app.dependency_overrides[_contract_client] = lambda: contract_client
    return contract_client


def test_healthcheck(client):
    """Verify the healthcheck endpoint returns a successful response."""
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_admin_auto_discover_requires_address(client, chain):
    response = client.post("/api/admin-auto-discover", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "User address is required"


def test_admin_auto_discover_rejects_malformed_address(client, chain):
    response = client.post("/api/admin-auto-discover", json={"userAddress": "0x123"})
    assert response.status_code == 400
    chain.market_count.assert_not_called()


def test_admin_auto_discover_without_markets(client, chain):
    chain.market_count.return_value = 0

    response = client.post("/api/admin-auto-discover", json={"userAddress": CREATOR})

    assert response.status_code == 200
    assert response.json() == {
        "withdrawals": {"adminLiquidity": [], "prizePool": [], "lpRewards": []},
        "totals": {"adminLiquidity": "0", "prizePool": "0", "lpRewards": "0", "total": "0"},
        "totalCount": 0,
    }


def test_admin_auto_discover_serialises_amounts_as_strings(client, chain):
    chain.market_count.return_value = 1
    chain.get_market_info.return_value = make_market_info()
    chain.get_market_financials.return_value = MarketFinancials(
        admin_initial_liquidity=5 * 10**24,
        user_liquidity=0,
        platform_fees_collected=0,
        amm_fees_collected=0,
        admin_liquidity_claimed=False,
    )
    chain.get_lp_info.return_value = LPInfo(contribution=0, rewards_claimed=False, estimated_rewards=0)

    response = client.post("/api/admin-auto-discover", json={"userAddress": CREATOR})

    body = response.json()
    assert response.status_code == 200
    assert body["withdrawals"]["adminLiquidity"][0] == {
        "marketId": 0,
        "amount": str(5 * 10**24),
        "type": "adminLiquidity",
        "description": 'Admin liquidity for market "Will the bridge open before th..."',
    }
    assert body["totals"]["total"] == str(5 * 10**24)


def test_admin_auto_discover_reports_failures(client, chain):
    chain.market_count.side_effect = ContractCallError("marketCount", "boom")

    response = client.post("/api/admin-auto-discover", json={"userAddress": CREATOR})

    assert response.status_code == 500
    assert response.json()["detail"].startswith("Failed to auto-discover admin withdrawals:")


def test_analytics_requires_market_id(client, chain):
    response = client.get("/api/market/analytics")
    assert response.status_code == 400
    assert response.json()["detail"] == "Market ID is required"


def test_analytics_rejects_unknown_time_range(client, chain):
    response = client.get("/api/market/analytics", params={"marketId": 1, "timeRange": "1y"})
    assert response.status_code == 400


def test_analytics_accepts_market_zero(client):
    service = MagicMock()
    service.get_analytics.return_value = fallback_analytics(random.Random(2))
    app.dependency_overrides[_analytics_service] = lambda: service

    response = client.get("/api/market/analytics", params={"marketId": 0, "timeRange": "all"})

    assert response.status_code == 200
    body = response.json()
    assert len(body["priceHistory"]) == 7
    assert {"optionA", "optionB", "volume", "trades", "date", "timestamp"} <= set(body["priceHistory"][0])
    service.get_analytics.assert_called_once_with(0, "all")


def test_analytics_invalidation_clears_market_entries(client, chain):
    cache = ResponseCache(ttl_seconds=300)
    cache.set("4:7d", fallback_analytics())
    cache.set("44:7d", fallback_analytics())
    app.dependency_overrides[_analytics_service] = lambda: AnalyticsService(chain, cache)

    response = client.post("/api/market/analytics", json={"marketId": 4})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Cache cleared"}
    assert cache.get("4:7d") is None
    assert cache.get("44:7d") is not None


def test_analytics_invalidation_requires_market_id(client, chain):
    response = client.post("/api/market/analytics", json={})
    assert response.status_code == 400


def test_current_price(client, chain):
    chain.get_events.return_value = [
        make_event(
            "SharesPurchased",
            {"marketId": 5, "buyer": BUYER, "isOptionA": True, "amount": 3},
            block_timestamp=1_700_000_000,
        ),
        make_event(
            "SharesPurchased",
            {"marketId": 5, "buyer": BUYER, "isOptionA": False, "amount": 1},
            log_index=1,
            block_timestamp=1_700_000_100,
        ),
    ]

    response = client.get("/api/market/current-price", params={"marketId": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["currentPriceA"] == 0.75
    assert body["currentPriceB"] == 0.25
    assert body["totalShares"] == 4
    assert body["lastTrade"] == {
        "timestamp": 1_700_000_100_000,
        "option": "B",
        "amount": 1,
        "price": 0.25,
    }


def test_current_price_requires_market_id(client):
    service = MagicMock()
    app.dependency_overrides[_price_service] = lambda: service

    response = client.get("/api/market/current-price")

    assert response.status_code == 400
    service.get_current_price.assert_not_called()


def test_preview_distribution(client, chain):
    chain.get_market_info.return_value = make_market_info(resolved=True)

    def get_events(name, **_kwargs):
        if name != "TradeExecuted":
            return []
        return [
            make_event(
                "TradeExecuted",
                {
                    "marketId": 8,
                    "optionId": 0,
                    "buyer": BUYER,
                    "seller": SELLER,
                    "price": 1,
                    "quantity": 1,
                    "tradeId": 1,
                },
            )
        ]

    chain.get_events.side_effect = get_events
    chain.get_eligible_winners.return_value = EligibleWinners(recipients=[BUYER], amounts=[10**18])

    response = client.post("/api/auto-preview-batch-distribution", json={"marketId": 8})

    assert response.status_code == 200
    assert response.json() == {
        "recipients": [BUYER],
        "amounts": ["1"],
        "totalParticipants": 2,
        "eligibleCount": 1,
    }


def test_preview_distribution_disputed(client, chain):
    chain.get_market_info.return_value = make_market_info(resolved=True, disputed=True)

    response = client.post("/api/auto-preview-batch-distribution", json={"marketId": 8})

    assert response.status_code == 200
    assert response.json() == {
        "recipients": [],
        "amounts": [],
        "totalParticipants": 0,
        "eligibleCount": 0,
        "message": DISPUTED_MESSAGE,
    }
    chain.get_events.assert_not_called()


def test_preview_distribution_unknown_market(client, chain):
    chain.get_market_info.side_effect = MarketNotFoundError("getMarketInfo", 99)

    response = client.post("/api/auto-preview-batch-distribution", json={"marketId": 99})

    assert response.status_code == 404


def test_preview_distribution_upstream_failure(client, chain):
    chain.get_market_info.side_effect = ConnectionError("rpc unreachable")

    response = client.post("/api/auto-preview-batch-distribution", json={"marketId": 1})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to auto-preview distribution: rpc unreachable"


def test_preview_distribution_missing_body(client, chain):
    response = client.post("/api/auto-preview-batch-distribution")
    assert response.status_code == 400


def test_list_indexed_events(client, db_session):
    repository = EventRepository(db_session)
    repository.save(map_event(make_event("MarketPaused", {"marketId": 2}, block_number=7)))
    repository.save(map_event(make_event("MarketPaused", {"marketId": 3}, log_index=1, block_number=8)))
    db_session.commit()
    app.dependency_overrides[_event_repository] = lambda: repository

    response = client.get("/indexed/MarketPaused", params={"marketId": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["market_id"] == "2"
    assert body["items"][0]["block_number"] == 7


def test_list_indexed_events_unknown_type(client):
    app.dependency_overrides[_event_repository] = lambda: MagicMock()

    response = client.get("/indexed/NotAnEvent")

    assert response.status_code == 404


def test_list_indexed_events_market_filter_on_global_event(client):
    app.dependency_overrides[_event_repository] = lambda: MagicMock()

    response = client.get("/indexed/Paused", params={"marketId": 1})

    assert response.status_code == 400
