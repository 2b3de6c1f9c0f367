"""
repository.py — Thin CRUD over users, markets, participants, platform_config.

Transactions (the ledger) live in ledger_service.py.
Follows the caller-manages-session pattern: nothing here commits.
Lookups return None when a row is missing; services decide whether that
is a NotFound error.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Market, MarketStatus, Participant, PlatformConfig, User


@dataclass
class MarketFilters:
    status: Optional[MarketStatus] = None
    statuses: Optional[list[MarketStatus]] = None
    creator_id: Optional[uuid.UUID] = None
    match_id: Optional[int] = None
    is_public: Optional[bool] = None
    unresolved_only: bool = False
    limit: Optional[int] = None
    offset: Optional[int] = None


# --- Users ---

async def create_user(*, session: AsyncSession, **fields: Any) -> User:
    user = User(**fields)
    session.add(user)
    await session.flush()
    return user


async def get_user(*, user_id: uuid.UUID, session: AsyncSession) -> Optional[User]:
    return await session.get(User, user_id)


async def get_user_by_email(*, email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_wallet_address(
    *, wallet_address: str, session: AsyncSession
) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.wallet_address == wallet_address)
    )
    return result.scalar_one_or_none()


async def update_user(*, user: User, session: AsyncSession, **updates: Any) -> User:
    for key, value in updates.items():
        setattr(user, key, value)
    await session.flush()
    return user


# --- Markets ---

async def create_market(*, session: AsyncSession, **fields: Any) -> Market:
    market = Market(**fields)
    session.add(market)
    await session.flush()
    return market


async def get_market(
    *,
    market_id: uuid.UUID,
    session: AsyncSession,
    for_update: bool = False,
) -> Optional[Market]:
    """Fetch a market; ``for_update`` takes a row lock (no-op on SQLite)."""
    query = select(Market).where(Market.id == market_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_markets(
    *,
    session: AsyncSession,
    filters: Optional[MarketFilters] = None,
) -> list[Market]:
    """Newest first, with optional status/creator/match/visibility filters."""
    filters = filters or MarketFilters()
    query = select(Market)

    if filters.status is not None:
        query = query.where(Market.status == filters.status)
    if filters.statuses:
        query = query.where(Market.status.in_(filters.statuses))
    if filters.creator_id is not None:
        query = query.where(Market.creator_id == filters.creator_id)
    if filters.match_id is not None:
        query = query.where(Market.match_id == filters.match_id)
    if filters.is_public is not None:
        query = query.where(Market.is_public == filters.is_public)
    if filters.unresolved_only:
        query = query.where(Market.resolution_outcome.is_(None))

    query = query.order_by(Market.created_at.desc())
    if filters.offset:
        query = query.offset(filters.offset)
    if filters.limit:
        query = query.limit(filters.limit)

    result = await session.execute(query)
    return list(result.scalars().all())


async def update_market(*, market: Market, session: AsyncSession, **updates: Any) -> Market:
    for key, value in updates.items():
        setattr(market, key, value)
    await session.flush()
    return market


# --- Participants ---

async def add_participant(*, session: AsyncSession, **fields: Any) -> Participant:
    participant = Participant(**fields)
    session.add(participant)
    await session.flush()
    return participant


async def get_market_participants(
    *, market_id: uuid.UUID, session: AsyncSession
) -> list[Participant]:
    """Join order (oldest first)."""
    result = await session.execute(
        select(Participant)
        .where(Participant.market_id == market_id)
        .order_by(Participant.created_at.asc())
    )
    return list(result.scalars().all())


async def get_user_participation(
    *, user_id: uuid.UUID, session: AsyncSession
) -> list[tuple[Participant, Market]]:
    result = await session.execute(
        select(Participant, Market)
        .join(Market, Market.id == Participant.market_id)
        .where(Participant.user_id == user_id)
        .order_by(Participant.created_at.desc())
    )
    return [(p, m) for p, m in result.all()]


async def get_user_market_predictions(
    *, user_id: uuid.UUID, market_id: uuid.UUID, session: AsyncSession
) -> list[Participant]:
    result = await session.execute(
        select(Participant)
        .where(Participant.user_id == user_id, Participant.market_id == market_id)
        .order_by(Participant.created_at.asc())
    )
    return list(result.scalars().all())


# --- Platform config ---

async def get_platform_config(*, key: str, session: AsyncSession) -> Optional[PlatformConfig]:
    return await session.get(PlatformConfig, key)


async def set_platform_config(*, key: str, value: Any, session: AsyncSession) -> PlatformConfig:
    entry = await session.get(PlatformConfig, key)
    if entry is None:
        entry = PlatformConfig(key=key, value=value)
        session.add(entry)
    else:
        entry.value = value
    await session.flush()
    return entry


async def get_all_platform_config(*, session: AsyncSession) -> list[PlatformConfig]:
    result = await session.execute(select(PlatformConfig).order_by(PlatformConfig.key))
    return list(result.scalars().all())
