from __future__ import annotations

import pytest
from requests.exceptions import RequestException

from app.core.config import ZERO_ADDRESS, get_settings
from app.services.contract_client import ContractClient


@pytest.mark.network
def test_contract_client_live_reads_market_count():
    settings = get_settings()
    if settings.contract_address == ZERO_ADDRESS:
        pytest.skip("CONTRACT_ADDRESS is not configured")

    client = ContractClient.from_settings(settings)
    try:
        count = client.market_count()
    except RequestException as exc:
        pytest.skip(f"RPC endpoint unavailable: {exc}")

    assert count >= 0
    if count:
        info = client.get_market_info(0)
        assert info.question
