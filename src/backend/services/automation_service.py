"""
automation_service.py — Match status sync + automatic market resolution.

One cycle:
  1. sync_match_statuses()     — pull each open market's match status and
                                 move the market along its lifecycle
  2. resolve_finished_markets() — resolve every FINISHED, unresolved market
                                 from the final score

Error boundary: every market is handled in its own session and its own DB
transaction. A failing match fetch or a failing resolution is captured in
that market's result and logged; the rest of the batch carries on and
nothing already committed for other markets is rolled back.

Running the cycle twice with no external change is a no-op the second time:
statuses already match, and resolved markets no longer qualify.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from exceptions import MarketError
from models import MarketStatus, Prediction
from services import repository
from services.market_service import ResolutionResult, resolve_market
from services.match_data import MatchData, MatchDataClient

logger = logging.getLogger("automation")

# Markets whose match may still move; FINISHED is handled by resolution,
# RESOLVED and CANCELLED are terminal.
SYNCABLE_STATUSES = [MarketStatus.SCHEDULED, MarketStatus.LIVE, MarketStatus.POSTPONED]


@dataclass
class MarketStatusSyncResult:
    market_id: uuid.UUID
    match_id: int
    old_status: MarketStatus
    new_status: MarketStatus
    updated: bool
    error: Optional[str] = None


@dataclass
class AutomationCycleResult:
    status_sync_results: list[MarketStatusSyncResult]
    resolution_results: list[ResolutionResult]


def map_api_status(api_status: str) -> MarketStatus:
    """Map a football-data match status onto a market status.

    Total: anything unrecognized maps to SCHEDULED.
    """
    match api_status:
        case "SCHEDULED" | "TIMED":
            return MarketStatus.SCHEDULED
        case "LIVE" | "IN_PLAY" | "PAUSED":
            return MarketStatus.LIVE
        case "FINISHED" | "AWARDED":
            return MarketStatus.FINISHED
        case "POSTPONED":
            return MarketStatus.POSTPONED
        case "CANCELLED" | "SUSPENDED":
            return MarketStatus.CANCELLED
        case _:
            return MarketStatus.SCHEDULED


def determine_match_outcome(match: MatchData) -> Optional[Prediction]:
    """Home/Away/Draw from the full-time score; None when the score is missing."""
    home = match.score.full_time.home
    away = match.score.full_time.away
    if home is None or away is None:
        return None
    if home > away:
        return Prediction.HOME
    if away > home:
        return Prediction.AWAY
    return Prediction.DRAW


class AutomationService:
    """Stateless apart from its two collaborators."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        match_client: MatchDataClient,
    ) -> None:
        self.session_maker = session_maker
        self.match_client = match_client

    async def sync_match_statuses(self) -> list[MarketStatusSyncResult]:
        async with self.session_maker() as session:
            markets = await repository.list_markets(
                session=session,
                filters=repository.MarketFilters(statuses=SYNCABLE_STATUSES),
            )
            targets = [(m.id, m.match_id, m.status) for m in markets]

        results = []
        for market_id, match_id, old_status in targets:
            try:
                match = await self.match_client.get_match(match_id)
                new_status = map_api_status(match.status)
                updated = False
                if new_status != old_status:
                    updated = await self._apply_status(market_id, old_status, new_status)
                results.append(
                    MarketStatusSyncResult(
                        market_id=market_id,
                        match_id=match_id,
                        old_status=old_status,
                        new_status=new_status if updated else old_status,
                        updated=updated,
                    )
                )
            except Exception as exc:
                logger.warning(
                    "Status sync failed: market=%s match=%s: %s", market_id, match_id, exc
                )
                results.append(
                    MarketStatusSyncResult(
                        market_id=market_id,
                        match_id=match_id,
                        old_status=old_status,
                        new_status=old_status,
                        updated=False,
                        error=str(exc),
                    )
                )

        updated_count = sum(1 for r in results if r.updated)
        logger.info("Status sync: %d markets checked, %d updated", len(results), updated_count)
        return results

    async def _apply_status(
        self, market_id: uuid.UUID, expected: MarketStatus, new_status: MarketStatus
    ) -> bool:
        """Write the new status unless another writer moved the market first."""
        async with self.session_maker() as session:
            async with session.begin():
                market = await repository.get_market(
                    market_id=market_id, session=session, for_update=True
                )
                if market is None or market.status != expected:
                    return False
                await repository.update_market(market=market, session=session, status=new_status)

        logger.info("Market %s: %s -> %s", market_id, expected.value, new_status.value)
        return True

    async def resolve_finished_markets(self) -> list[ResolutionResult]:
        async with self.session_maker() as session:
            markets = await repository.list_markets(
                session=session,
                filters=repository.MarketFilters(
                    status=MarketStatus.FINISHED, unresolved_only=True
                ),
            )
            targets = [(m.id, m.match_id) for m in markets]

        results = []
        for market_id, match_id in targets:
            try:
                results.append(await self._resolve_one(market_id, match_id))
            except MarketError as exc:
                logger.warning("Auto-resolution skipped: market=%s: %s", market_id, exc)
                results.append(_failed_resolution(market_id, str(exc)))
            except Exception as exc:
                logger.error(
                    "Auto-resolution FAILED: market=%s: %s", market_id, exc, exc_info=True
                )
                results.append(_failed_resolution(market_id, str(exc)))

        logger.info(
            "Resolution: %d finished markets, %d resolved",
            len(results), sum(1 for r in results if r.success),
        )
        return results

    async def _resolve_one(self, market_id: uuid.UUID, match_id: int) -> ResolutionResult:
        match = await self.match_client.get_match(match_id)
        outcome = determine_match_outcome(match)
        if outcome is None:
            return _failed_resolution(market_id, "Match outcome could not be determined")

        async with self.session_maker() as session:
            async with session.begin():
                return await resolve_market(
                    market_id=market_id, outcome=outcome, session=session, automated=True
                )

    async def run_automation_cycle(self) -> AutomationCycleResult:
        """Sync first so a match that just finished resolves in the same cycle."""
        status_sync_results = await self.sync_match_statuses()
        resolution_results = await self.resolve_finished_markets()
        return AutomationCycleResult(
            status_sync_results=status_sync_results,
            resolution_results=resolution_results,
        )


def _failed_resolution(market_id: uuid.UUID, error: str) -> ResolutionResult:
    return ResolutionResult(market_id=market_id, outcome=None, success=False, error=error)
