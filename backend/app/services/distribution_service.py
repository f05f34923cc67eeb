"""Preview who a resolved market would pay out to, without sending anything."""

from __future__ import annotations

from typing import Iterable

from loguru import logger

from app.core.config import ZERO_ADDRESS
from app.domain import DecodedEvent
from app.schemas import DistributionPreview

from .contract_client import ContractClient

NOT_RESOLVED_MESSAGE = "Market is not resolved yet. Cannot distribute winnings."
DISPUTED_MESSAGE = "Market is disputed. Cannot distribute winnings."
NO_EVENTS_MESSAGE = (
    "No trade or free token events found for this market. "
    "This could mean the market has no participants yet."
)
NO_PARTICIPANTS_MESSAGE = "No participants found for this market"

PARTICIPANT_EVENTS = {
    "TradeExecuted": ("buyer", "seller"),
    "FreeTokensClaimed": ("user",),
}


def format_units(value: int, decimals: int = 18) -> str:
    """Render an integer token amount as an exact decimal string."""

    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10**decimals)
    if fraction == 0:
        return f"{sign}{whole}"
    digits = str(fraction).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{digits}"


def collect_participants(events: Iterable[DecodedEvent]) -> list[str]:
    """Distinct lowercase participant addresses in first-seen order."""

    seen: dict[str, None] = {}
    for event in events:
        for field in PARTICIPANT_EVENTS.get(event.name, ()):
            address = event.args.get(field)
            if not address:
                continue
            normalized = str(address).lower()
            if normalized == ZERO_ADDRESS:
                continue
            seen.setdefault(normalized, None)
    return list(seen)


class DistributionPreviewer:
    def __init__(self, client: ContractClient, *, token_decimals: int = 18) -> None:
        self._client = client
        self.token_decimals = token_decimals

    def preview(self, market_id: int) -> DistributionPreview:
        info = self._client.get_market_info(market_id)
        if not info.resolved:
            return DistributionPreview(message=NOT_RESOLVED_MESSAGE)
        if info.disputed:
            return DistributionPreview(message=DISPUTED_MESSAGE)

        events: list[DecodedEvent] = []
        for event_name in PARTICIPANT_EVENTS:
            events.extend(self._client.get_events(event_name, market_id=market_id))
        logger.info("Market {} has {} participant events", market_id, len(events))
        if not events:
            return DistributionPreview(message=NO_EVENTS_MESSAGE)

        participants = collect_participants(events)
        if not participants:
            return DistributionPreview(message=NO_PARTICIPANTS_MESSAGE)

        winners = self._client.get_eligible_winners(market_id, participants)
        return DistributionPreview(
            recipients=winners.recipients,
            amounts=[format_units(amount, self.token_decimals) for amount in winners.amounts],
            total_participants=len(participants),
            eligible_count=len(winners.recipients),
        )


__all__ = ["DistributionPreviewer", "collect_participants", "format_units"]
