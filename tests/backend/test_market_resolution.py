"""Tests for market resolution and payout accounting.

Proves:
  1. Winners split the participant pool; losers get exactly 0
  2. Transactions are written as [winnings..., creator_reward, platform_fee]
  3. Fees + winnings + undistributed remainder == total_pool
  4. A market resolves at most once
  5. Only FINISHED markets resolve
  6. Derived balance and portfolio follow the ledger
  7. The payout preview matches resolution and writes nothing
"""

import uuid
from decimal import Decimal

import pytest

from conftest import create_market, create_user, set_status
from exceptions import MarketNotFoundError, StateViolationError
from models import MarketStatus, Prediction, TransactionStatus, TransactionType
from services import market_service
from services.ledger_service import get_market_transactions


async def _finished_market(session, joins, entry_amount=Decimal("0.1")):
    """Create a market, join it with (name, prediction) pairs, mark it FINISHED."""
    creator = await create_user(session, "creator")
    market = await create_market(session, creator, entry_fee=entry_amount)
    users = {}
    for name, prediction in joins:
        user = users.get(name) or await create_user(session, name)
        users[name] = user
        await market_service.join_market(
            market_id=market.id,
            user_id=user.id,
            prediction=prediction,
            entry_amount=entry_amount,
            session=session,
        )
    await set_status(session, market, MarketStatus.FINISHED)
    return creator, market, users


class TestResolveMarket:
    async def test_two_winners_split_pool(self, session):
        creator, market, users = await _finished_market(
            session, [("alice", "Home"), ("bob", "Home"), ("carol", "Away")]
        )

        result = await market_service.resolve_market(
            market_id=market.id, outcome=Prediction.HOME, session=session
        )

        assert result.success is True
        assert result.outcome == "Home"
        assert result.winners_count == 2
        assert result.winnings_per_winner == Decimal("0.1425")
        assert result.total_winnings_distributed == Decimal("0.285")
        assert result.creator_reward == Decimal("0.006")
        assert result.platform_fee == Decimal("0.009")

        assert market.status == MarketStatus.RESOLVED
        assert market.resolution_outcome == Prediction.HOME

        by_user = {
            p.user_id: p
            for p in await market_service.get_market_participants(
                market_id=market.id, session=session
            )
        }
        assert by_user[users["alice"].id].actual_winnings == Decimal("0.1425")
        assert by_user[users["bob"].id].actual_winnings == Decimal("0.1425")
        assert by_user[users["carol"].id].actual_winnings == Decimal("0")

    async def test_transaction_order_and_status(self, session):
        creator, market, users = await _finished_market(
            session, [("alice", "Home"), ("bob", "Home"), ("carol", "Away")]
        )
        await market_service.resolve_market(
            market_id=market.id, outcome="HOME_WIN", session=session
        )

        entries = await get_market_transactions(market_id=market.id, session=session)
        payouts = [e for e in entries if e.type != TransactionType.MARKET_ENTRY]

        assert [e.type for e in payouts] == [
            TransactionType.WINNINGS,
            TransactionType.WINNINGS,
            TransactionType.CREATOR_REWARD,
            TransactionType.PLATFORM_FEE,
        ]
        assert {e.user_id for e in payouts[:2]} == {users["alice"].id, users["bob"].id}
        assert payouts[2].user_id == creator.id
        assert payouts[3].user_id == creator.id
        assert all(e.status == TransactionStatus.COMPLETED for e in payouts)
        assert all("completed_at" in e.metadata_json for e in payouts)
        assert payouts[0].description == "Winnings from market resolution: Home"
        assert payouts[0].metadata_json["automated_transfer"] is False

    async def test_payouts_never_exceed_pool(self, session):
        _, market, _ = await _finished_market(
            session,
            [("a", "Draw"), ("b", "Draw"), ("c", "Draw"), ("d", "Home")],
            entry_amount=Decimal("0.33333"),
        )
        result = await market_service.resolve_market(
            market_id=market.id, outcome="Draw", session=session
        )

        paid = result.total_winnings_distributed + result.creator_reward + result.platform_fee
        assert paid <= market.total_pool
        # Undistributed remainder is below one minor unit per winner
        assert market.total_pool - paid < Decimal("0.00003")

    async def test_no_winners(self, session):
        creator, market, _ = await _finished_market(
            session, [("alice", "Home"), ("bob", "Away")]
        )
        result = await market_service.resolve_market(
            market_id=market.id, outcome="Draw", session=session
        )

        assert result.winners_count == 0
        assert result.winnings_per_winner == Decimal("0")
        entries = await get_market_transactions(market_id=market.id, session=session)
        assert TransactionType.WINNINGS not in {e.type for e in entries}
        assert all(
            p.actual_winnings == Decimal("0")
            for p in await market_service.get_market_participants(
                market_id=market.id, session=session
            )
        )

    async def test_second_resolution_rejected(self, session):
        _, market, _ = await _finished_market(session, [("alice", "Home")])
        await market_service.resolve_market(market_id=market.id, outcome="Home", session=session)
        count = len(await get_market_transactions(market_id=market.id, session=session))

        with pytest.raises(StateViolationError) as exc_info:
            await market_service.resolve_market(
                market_id=market.id, outcome="Away", session=session
            )
        assert exc_info.value.reason == "Market has already been resolved"
        assert market.resolution_outcome == Prediction.HOME
        assert len(await get_market_transactions(market_id=market.id, session=session)) == count

    @pytest.mark.parametrize(
        "status", [MarketStatus.SCHEDULED, MarketStatus.LIVE, MarketStatus.CANCELLED]
    )
    async def test_only_finished_markets_resolve(self, session, status):
        creator = await create_user(session, "creator")
        market = await create_market(session, creator)
        await set_status(session, market, status)

        with pytest.raises(StateViolationError):
            await market_service.resolve_market(
                market_id=market.id, outcome="Home", session=session
            )
        assert market.resolution_outcome is None

    async def test_missing_market(self, session):
        with pytest.raises(MarketNotFoundError):
            await market_service.resolve_market(
                market_id=uuid.uuid4(), outcome="Home", session=session
            )

    async def test_only_creator_can_resolve(self, session):
        creator, market, users = await _finished_market(session, [("alice", "Home")])

        assert await market_service.can_user_resolve_market(
            market_id=market.id, user_id=creator.id, session=session
        )
        assert not await market_service.can_user_resolve_market(
            market_id=market.id, user_id=users["alice"].id, session=session
        )


class TestBalanceAndPortfolio:
    async def test_balance_after_resolution(self, session):
        creator, market, users = await _finished_market(
            session, [("alice", "Home"), ("bob", "Home"), ("carol", "Away")]
        )
        await market_service.resolve_market(market_id=market.id, outcome="Home", session=session)

        alice = await market_service.get_user_balance(user_id=users["alice"].id, session=session)
        carol = await market_service.get_user_balance(user_id=users["carol"].id, session=session)
        owner = await market_service.get_user_balance(user_id=creator.id, session=session)

        assert alice == Decimal("0.0425")
        assert carol == Decimal("-0.1")
        # Creator reward only; the platform fee is not the creator's money
        assert owner == Decimal("0.006")

    async def test_portfolio(self, session):
        creator, market, users = await _finished_market(
            session, [("alice", "Home"), ("alice", "Away")]
        )
        await market_service.resolve_market(market_id=market.id, outcome="Home", session=session)

        portfolio = await market_service.get_user_portfolio(
            user_id=users["alice"].id, session=session
        )
        assert portfolio.markets_participated == 2
        assert portfolio.markets_won == 1
        assert portfolio.win_rate == 50.0
        assert portfolio.active_markets == 0
        assert portfolio.total_spent == Decimal("0.2")
        assert portfolio.total_winnings == Decimal("0.19")
        assert portfolio.net_profit_loss == Decimal("-0.01")

    async def test_portfolio_counts_active_predictions(self, session):
        creator = await create_user(session, "creator")
        user = await create_user(session, "bob")
        market = await create_market(session, creator)
        await market_service.join_market(
            market_id=market.id, user_id=user.id, prediction="Draw",
            entry_amount=Decimal("0.1"), session=session,
        )

        portfolio = await market_service.get_user_portfolio(user_id=user.id, session=session)
        assert portfolio.active_markets == 1
        assert portfolio.win_rate == 0.0


class TestWinningsPreview:
    async def test_preview_matches_resolution_and_writes_nothing(self, session):
        _, market, users = await _finished_market(
            session, [("alice", "Home"), ("bob", "Home"), ("carol", "Away")]
        )
        before = len(await get_market_transactions(market_id=market.id, session=session))

        preview = await market_service.calculate_winnings(
            market_id=market.id, outcome="HOME_WIN", session=session
        )

        assert preview.outcome == Prediction.HOME
        assert preview.total_pool == Decimal("0.3")
        assert preview.platform_fee == Decimal("0.009")
        assert preview.creator_reward == Decimal("0.006")
        assert preview.participant_pool == Decimal("0.285")
        assert {p.user_id for p in preview.winners} == {users["alice"].id, users["bob"].id}
        assert preview.winnings_per_winner == Decimal("0.1425")

        assert market.status == MarketStatus.FINISHED
        assert market.resolution_outcome is None
        assert len(await get_market_transactions(market_id=market.id, session=session)) == before
        assert all(
            p.actual_winnings is None
            for p in await market_service.get_market_participants(
                market_id=market.id, session=session
            )
        )

        result = await market_service.resolve_market(
            market_id=market.id, outcome="Home", session=session
        )
        assert result.winnings_per_winner == preview.winnings_per_winner
        assert result.platform_fee == preview.platform_fee
        assert result.creator_reward == preview.creator_reward

    async def test_defaults_to_resolved_outcome(self, session):
        _, market, _ = await _finished_market(session, [("alice", "Away"), ("bob", "Home")])
        await market_service.resolve_market(market_id=market.id, outcome="Away", session=session)

        preview = await market_service.calculate_winnings(market_id=market.id, session=session)
        assert preview.outcome == Prediction.AWAY
        assert len(preview.winners) == 1

    async def test_unresolved_market_needs_outcome(self, session):
        _, market, _ = await _finished_market(session, [("alice", "Home")])
        with pytest.raises(ValueError):
            await market_service.calculate_winnings(market_id=market.id, session=session)

    async def test_missing_market(self, session):
        with pytest.raises(MarketNotFoundError):
            await market_service.calculate_winnings(
                market_id=uuid.uuid4(), outcome="Home", session=session
            )
