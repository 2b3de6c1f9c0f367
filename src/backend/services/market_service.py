"""
market_service.py — Market creation, participation, resolution and queries.

Follows the caller-manages-session pattern of ledger_service.py: every
function takes an AsyncSession and NOTHING here commits. A join or a
resolution is therefore exactly one database transaction owned by the
caller — if any write fails, the caller rolls back all of them.

Invariants enforced here:
  - total_pool == sum(participant.entry_amount) after every join
  - at most 3 predictions per (user, market), one per outcome
  - a market resolves at most once; resolution_outcome is the guard
  - platform_fee + creator_reward + participant_pool == total_pool
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import DEFAULT_CREATOR_REWARD_PERCENTAGE, DEFAULT_PLATFORM_FEE_PERCENTAGE
from exceptions import MarketNotFoundError, StateViolationError, UserNotFoundError
from models import (
    Market,
    MarketStatus,
    Participant,
    Prediction,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from services import repository
from services.fee_calculator import (
    calculate_fee_split,
    estimate_potential_winnings,
    from_minor_units,
    is_whole_minor_units,
    to_minor_units,
    winnings_per_winner,
)
from services.ledger_service import (
    append_transaction,
    complete_transaction,
    get_user_transactions,
)

logger = logging.getLogger("market_service")

MAX_PREDICTIONS_PER_USER = 3
OPEN_FOR_ENTRY = MarketStatus.SCHEDULED
RESOLVABLE = MarketStatus.FINISHED

# Smallest amount the payout arithmetic can represent (one minor unit).
MINIMUM_AMOUNT = from_minor_units(1)


@dataclass
class ResolutionResult:
    market_id: uuid.UUID
    outcome: Optional[str]
    winners_count: int = 0
    winnings_per_winner: Decimal = Decimal("0")
    total_winnings_distributed: Decimal = Decimal("0")
    creator_reward: Decimal = Decimal("0")
    platform_fee: Decimal = Decimal("0")
    transactions: list[Transaction] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None


@dataclass
class MarketStats:
    total_participants: int
    home_count: int
    draw_count: int
    away_count: int
    total_pool: Decimal


@dataclass
class WinningsPreview:
    market_id: uuid.UUID
    outcome: Prediction
    total_pool: Decimal
    platform_fee: Decimal
    creator_reward: Decimal
    participant_pool: Decimal
    winners: list[Participant]
    winnings_per_winner: Decimal


@dataclass
class Portfolio:
    total_winnings: Decimal
    total_spent: Decimal
    net_profit_loss: Decimal
    markets_participated: int
    markets_won: int
    win_rate: float
    active_markets: int


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def _config_percentage(key: str, default: str, session: AsyncSession) -> Decimal:
    entry = await repository.get_platform_config(key=key, session=session)
    if entry is None or entry.value in (None, ""):
        return Decimal(default)
    return Decimal(str(entry.value))


async def _require_market(
    market_id: uuid.UUID, session: AsyncSession, *, for_update: bool = False
) -> Market:
    market = await repository.get_market(
        market_id=market_id, session=session, for_update=for_update
    )
    if market is None:
        raise MarketNotFoundError(market_id)
    return market


# ---------------------------------------------------------------------------
# Creation & participation
# ---------------------------------------------------------------------------

async def create_market(
    *,
    creator_id: uuid.UUID,
    match_id: int,
    title: str,
    entry_fee: Decimal,
    end_time: datetime,
    session: AsyncSession,
    description: str = "",
    is_public: bool = True,
    home_team_id: Optional[int] = None,
    home_team_name: Optional[str] = None,
    away_team_id: Optional[int] = None,
    away_team_name: Optional[str] = None,
) -> Market:
    """Create a SCHEDULED market with an empty pool.

    Fee percentages are snapshotted from platform_config onto the market so
    later config changes never alter an existing market's payout.
    Writes a zero-amount market_entry transaction as the creation audit trail.
    """
    if entry_fee <= Decimal("0"):
        raise ValueError(f"Entry fee must be positive, got {entry_fee}")
    if not is_whole_minor_units(entry_fee):
        raise ValueError(f"Entry fee must be a multiple of {MINIMUM_AMOUNT}, got {entry_fee}")
    if await repository.get_user(user_id=creator_id, session=session) is None:
        raise UserNotFoundError(creator_id)

    platform_fee_percentage = await _config_percentage(
        "default_platform_fee_percentage", DEFAULT_PLATFORM_FEE_PERCENTAGE, session
    )
    creator_reward_percentage = await _config_percentage(
        "default_creator_reward_percentage", DEFAULT_CREATOR_REWARD_PERCENTAGE, session
    )

    market = await repository.create_market(
        session=session,
        creator_id=creator_id,
        match_id=match_id,
        home_team_id=home_team_id,
        home_team_name=home_team_name,
        away_team_id=away_team_id,
        away_team_name=away_team_name,
        title=title,
        description=description,
        entry_fee=entry_fee,
        end_time=_as_utc(end_time),
        is_public=is_public,
        status=MarketStatus.SCHEDULED,
        total_pool=Decimal("0"),
        platform_fee_percentage=platform_fee_percentage,
        creator_reward_percentage=creator_reward_percentage,
    )

    await append_transaction(
        user_id=creator_id,
        market_id=market.id,
        transaction_type=TransactionType.MARKET_ENTRY,
        amount=Decimal("0"),
        description=f"Created market: {title}",
        session=session,
    )

    logger.info("Market created: %s match=%d creator=%s", market.id, match_id, creator_id)
    return market


async def join_market(
    *,
    market_id: uuid.UUID,
    user_id: uuid.UUID,
    prediction: "Prediction | str",
    entry_amount: Decimal,
    session: AsyncSession,
) -> Participant:
    """Place a prediction on a market.

    Writes, in order: Participant row, market.total_pool increment,
    market_entry transaction. Does NOT commit.

    Raises MarketNotFoundError, UserNotFoundError, StateViolationError
    (closed, ended, duplicate prediction, prediction cap) or ValueError.
    """
    prediction = Prediction.from_input(prediction)
    if entry_amount <= Decimal("0"):
        raise ValueError(f"Entry amount must be positive, got {entry_amount}")
    if not is_whole_minor_units(entry_amount):
        raise ValueError(
            f"Entry amount must be a multiple of {MINIMUM_AMOUNT}, got {entry_amount}"
        )

    market = await _require_market(market_id, session, for_update=True)

    if market.status != OPEN_FOR_ENTRY:
        raise StateViolationError("Market is not active")
    if datetime.now(timezone.utc) >= _as_utc(market.end_time):
        raise StateViolationError("Market has ended")
    if await repository.get_user(user_id=user_id, session=session) is None:
        raise UserNotFoundError(user_id)

    participants = await repository.get_market_participants(market_id=market_id, session=session)
    user_predictions = [p for p in participants if p.user_id == user_id]

    if any(p.prediction == prediction for p in user_predictions):
        raise StateViolationError(
            f"User has already placed a {prediction.value} prediction on this market"
        )
    if len(user_predictions) >= MAX_PREDICTIONS_PER_USER:
        raise StateViolationError(
            f"User cannot place more than {MAX_PREDICTIONS_PER_USER} predictions per market"
        )

    new_total_pool = Decimal(market.total_pool) + entry_amount
    same_prediction_count = sum(1 for p in participants if p.prediction == prediction)
    potential = estimate_potential_winnings(
        to_minor_units(new_total_pool), same_prediction_count
    )

    try:
        participant = await repository.add_participant(
            session=session,
            market_id=market_id,
            user_id=user_id,
            prediction=prediction,
            entry_amount=entry_amount,
            potential_winnings=from_minor_units(potential),
        )
    except IntegrityError as exc:
        raise StateViolationError(
            f"User has already placed a {prediction.value} prediction on this market"
        ) from exc

    await repository.update_market(market=market, session=session, total_pool=new_total_pool)

    await append_transaction(
        user_id=user_id,
        market_id=market_id,
        transaction_type=TransactionType.MARKET_ENTRY,
        amount=entry_amount,
        description=f"Joined market with {prediction.value} prediction",
        session=session,
    )

    logger.info(
        "Market joined: market=%s user=%s prediction=%s amount=%s pool=%s",
        market_id, user_id, prediction.value, entry_amount, new_total_pool,
    )
    return participant


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

async def _record_payout(
    *,
    user_id: uuid.UUID,
    market_id: uuid.UUID,
    transaction_type: TransactionType,
    amount: Decimal,
    description: str,
    metadata: dict[str, Any],
    session: AsyncSession,
) -> Transaction:
    entry = await append_transaction(
        user_id=user_id,
        market_id=market_id,
        transaction_type=transaction_type,
        amount=amount,
        description=description,
        status=TransactionStatus.PENDING,
        metadata=metadata,
        session=session,
    )
    return await complete_transaction(entry, session=session)


async def resolve_market(
    *,
    market_id: uuid.UUID,
    outcome: "Prediction | str",
    session: AsyncSession,
    automated: bool = False,
) -> ResolutionResult:
    """Resolve a FINISHED market and distribute the pool.

    Locks the market row, rejects anything already resolved or not FINISHED,
    then writes participant winnings and transactions in the fixed order
    [winnings..., creator_reward, platform_fee] before marking the market
    RESOLVED. Does NOT commit — the caller's commit makes it all-or-nothing.
    """
    outcome = Prediction.from_input(outcome)
    market = await _require_market(market_id, session, for_update=True)

    if market.resolution_outcome is not None or market.status == MarketStatus.RESOLVED:
        raise StateViolationError("Market has already been resolved")
    if market.status != RESOLVABLE:
        raise StateViolationError(
            f"Market is {market.status.value}, only FINISHED markets can be resolved"
        )

    participants = await repository.get_market_participants(market_id=market_id, session=session)

    split = calculate_fee_split(
        to_minor_units(market.total_pool),
        market.platform_fee_percentage,
        market.creator_reward_percentage,
    )
    winners = [p for p in participants if p.prediction == outcome]
    per_winner = winnings_per_winner(split.participant_pool, len(winners))
    per_winner_amount = from_minor_units(per_winner)

    prefix = "Automated winnings" if automated else "Winnings"
    transactions: list[Transaction] = []

    for participant in participants:
        is_winner = participant.prediction == outcome
        participant.actual_winnings = per_winner_amount if is_winner else Decimal("0")

        if is_winner and per_winner > 0:
            transactions.append(
                await _record_payout(
                    user_id=participant.user_id,
                    market_id=market_id,
                    transaction_type=TransactionType.WINNINGS,
                    amount=per_winner_amount,
                    description=f"{prefix} from market resolution: {outcome.value}",
                    metadata={
                        "participant_id": str(participant.id),
                        "match_id": market.match_id,
                        "prediction": participant.prediction.value,
                        "entry_amount": str(participant.entry_amount),
                        "resolution_outcome": outcome.value,
                        "automated_transfer": automated,
                    },
                    session=session,
                )
            )

    if split.creator_reward > 0:
        transactions.append(
            await _record_payout(
                user_id=market.creator_id,
                market_id=market_id,
                transaction_type=TransactionType.CREATOR_REWARD,
                amount=from_minor_units(split.creator_reward),
                description="Creator reward from market resolution",
                metadata={
                    "match_id": market.match_id,
                    "total_pool": str(market.total_pool),
                    "reward_percentage": str(market.creator_reward_percentage),
                    "automated_transfer": automated,
                },
                session=session,
            )
        )

    # Booked against the creator: one fee payer of record per market.
    if split.platform_fee > 0:
        transactions.append(
            await _record_payout(
                user_id=market.creator_id,
                market_id=market_id,
                transaction_type=TransactionType.PLATFORM_FEE,
                amount=from_minor_units(split.platform_fee),
                description="Platform fee from market resolution",
                metadata={
                    "match_id": market.match_id,
                    "total_pool": str(market.total_pool),
                    "fee_percentage": str(market.platform_fee_percentage),
                    "automated_transfer": automated,
                },
                session=session,
            )
        )

    await repository.update_market(
        market=market,
        session=session,
        status=MarketStatus.RESOLVED,
        resolution_outcome=outcome,
    )

    logger.info(
        "Market resolved: %s outcome=%s winners=%d per_winner=%s creator_reward=%d platform_fee=%d",
        market_id, outcome.value, len(winners), per_winner_amount,
        split.creator_reward, split.platform_fee,
    )

    return ResolutionResult(
        market_id=market_id,
        outcome=outcome.value,
        winners_count=len(winners),
        winnings_per_winner=per_winner_amount,
        total_winnings_distributed=from_minor_units(per_winner * len(winners)),
        creator_reward=from_minor_units(split.creator_reward),
        platform_fee=from_minor_units(split.platform_fee),
        transactions=transactions,
    )


async def calculate_winnings(
    *,
    market_id: uuid.UUID,
    session: AsyncSession,
    outcome: "Prediction | str | None" = None,
) -> WinningsPreview:
    """Read-only payout preview using the same split as resolve_market.

    ``outcome`` defaults to the market's resolution_outcome. Writes nothing.
    """
    market = await _require_market(market_id, session)
    if outcome is None:
        outcome = market.resolution_outcome
    if outcome is None:
        raise ValueError("An outcome is required for an unresolved market")
    outcome = Prediction.from_input(outcome)

    participants = await repository.get_market_participants(market_id=market_id, session=session)
    split = calculate_fee_split(
        to_minor_units(market.total_pool),
        market.platform_fee_percentage,
        market.creator_reward_percentage,
    )
    winners = [p for p in participants if p.prediction == outcome]

    return WinningsPreview(
        market_id=market_id,
        outcome=outcome,
        total_pool=from_minor_units(split.total_pool),
        platform_fee=from_minor_units(split.platform_fee),
        creator_reward=from_minor_units(split.creator_reward),
        participant_pool=from_minor_units(split.participant_pool),
        winners=winners,
        winnings_per_winner=from_minor_units(
            winnings_per_winner(split.participant_pool, len(winners))
        ),
    )


async def can_user_resolve_market(
    *, market_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> bool:
    """Only the market creator may resolve manually."""
    market = await repository.get_market(market_id=market_id, session=session)
    if market is None:
        return False
    return market.creator_id == user_id


async def cancel_market(
    *, market_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Market:
    """Cancel a SCHEDULED market with no participants. Creator only."""
    market = await _require_market(market_id, session, for_update=True)

    if market.creator_id != user_id:
        raise StateViolationError("Only market creator can cancel")
    if market.status != OPEN_FOR_ENTRY:
        raise StateViolationError("Can only cancel active markets")

    participants = await repository.get_market_participants(market_id=market_id, session=session)
    if participants:
        raise StateViolationError("Cannot cancel market with participants")

    await repository.update_market(market=market, session=session, status=MarketStatus.CANCELLED)
    logger.info("Market cancelled: %s by %s", market_id, user_id)
    return market


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get_markets(
    *, session: AsyncSession, filters: Optional[repository.MarketFilters] = None
) -> list[Market]:
    return await repository.list_markets(session=session, filters=filters)


async def get_market_by_id(*, market_id: uuid.UUID, session: AsyncSession) -> Market:
    return await _require_market(market_id, session)


async def get_market_participants(
    *, market_id: uuid.UUID, session: AsyncSession
) -> list[Participant]:
    return await repository.get_market_participants(market_id=market_id, session=session)


async def get_user_created_markets(*, user_id: uuid.UUID, session: AsyncSession) -> list[Market]:
    return await repository.list_markets(
        session=session, filters=repository.MarketFilters(creator_id=user_id)
    )


async def get_user_participated_markets(
    *, user_id: uuid.UUID, session: AsyncSession
) -> list[tuple[Market, Participant]]:
    participation = await repository.get_user_participation(user_id=user_id, session=session)
    return [(market, participant) for participant, market in participation]


async def get_user_market_predictions(
    *, user_id: uuid.UUID, market_id: uuid.UUID, session: AsyncSession
) -> list[Participant]:
    return await repository.get_user_market_predictions(
        user_id=user_id, market_id=market_id, session=session
    )


async def get_market_stats(*, market_id: uuid.UUID, session: AsyncSession) -> MarketStats:
    participants = await repository.get_market_participants(market_id=market_id, session=session)
    return MarketStats(
        total_participants=len(participants),
        home_count=sum(1 for p in participants if p.prediction == Prediction.HOME),
        draw_count=sum(1 for p in participants if p.prediction == Prediction.DRAW),
        away_count=sum(1 for p in participants if p.prediction == Prediction.AWAY),
        total_pool=sum((Decimal(p.entry_amount) for p in participants), Decimal("0")),
    )


async def get_user_balance(*, user_id: uuid.UUID, session: AsyncSession) -> Decimal:
    """Derived balance: winnings + creator rewards - entries.

    Platform fees come out of the pool, not the user's balance, so they
    are ignored even though they are booked against the creator.
    """
    balance = Decimal("0")
    for entry in await get_user_transactions(user_id=user_id, session=session):
        if entry.type in (TransactionType.WINNINGS, TransactionType.CREATOR_REWARD):
            balance += Decimal(entry.amount)
        elif entry.type == TransactionType.MARKET_ENTRY:
            balance -= Decimal(entry.amount)
    return balance


async def get_user_portfolio(*, user_id: uuid.UUID, session: AsyncSession) -> Portfolio:
    total_winnings = Decimal("0")
    creator_rewards = Decimal("0")
    total_spent = Decimal("0")

    for entry in await get_user_transactions(user_id=user_id, session=session):
        if entry.type == TransactionType.WINNINGS:
            total_winnings += Decimal(entry.amount)
        elif entry.type == TransactionType.CREATOR_REWARD:
            creator_rewards += Decimal(entry.amount)
        elif entry.type == TransactionType.MARKET_ENTRY:
            total_spent += Decimal(entry.amount)

    participation = [p for p, _ in await repository.get_user_participation(
        user_id=user_id, session=session
    )]
    participated = len(participation)
    won = sum(1 for p in participation if p.actual_winnings is not None and p.actual_winnings > 0)
    active = sum(1 for p in participation if p.actual_winnings is None)

    return Portfolio(
        total_winnings=total_winnings + creator_rewards,
        total_spent=total_spent,
        net_profit_loss=total_winnings + creator_rewards - total_spent,
        markets_participated=participated,
        markets_won=won,
        win_rate=(won / participated) * 100 if participated else 0.0,
        active_markets=active,
    )
