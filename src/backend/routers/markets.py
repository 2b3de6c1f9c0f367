"""
markets.py — API router for match prediction markets.

Endpoints:
  GET  /                         — List markets (status/creator/match filters)
  POST /                         — Create a market
  GET  /{market_id}              — Market detail
  GET  /{market_id}/stats        — Participant counts per outcome + pool
  GET  /{market_id}/participants — All predictions on a market
  GET  /{market_id}/transactions/stats — Ledger counts and volume per type/status
  GET  /{market_id}/winnings     — Read-only payout preview for an outcome
  POST /{market_id}/join         — Place a prediction
  POST /{market_id}/resolve      — Manual resolution by the creator
  POST /{market_id}/cancel       — Cancel an empty market (creator only)

Each mutating endpoint is one DB transaction: the service writes, the
router commits once, and any domain error leaves nothing behind.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_session
from exceptions import MarketError, raise_http
from models import (
    CancelMarketRequest,
    JoinMarketRequest,
    Market,
    MarketCreate,
    MarketResponse,
    MarketStatsResponse,
    MarketStatus,
    Participant,
    ParticipantResponse,
    ResolutionResponse,
    ResolveMarketRequest,
    TransactionStatsResponse,
    TypeStatsResponse,
    WinningsPreviewResponse,
)
from services import market_service
from services.ledger_service import get_transaction_stats
from services.repository import MarketFilters

logger = logging.getLogger("markets")

router = APIRouter()


def _market_to_response(m: Market) -> MarketResponse:
    return MarketResponse(
        id=m.id,
        creator_id=m.creator_id,
        match_id=m.match_id,
        home_team_id=m.home_team_id,
        home_team_name=m.home_team_name,
        away_team_id=m.away_team_id,
        away_team_name=m.away_team_name,
        title=m.title,
        description=m.description or "",
        entry_fee=m.entry_fee,
        end_time=m.end_time.isoformat() if m.end_time else "",
        is_public=m.is_public,
        status=m.status,
        resolution_outcome=m.resolution_outcome,
        total_pool=m.total_pool,
        platform_fee_percentage=m.platform_fee_percentage,
        creator_reward_percentage=m.creator_reward_percentage,
        created_at=m.created_at.isoformat() if m.created_at else "",
    )


def _participant_to_response(p: Participant) -> ParticipantResponse:
    return ParticipantResponse(
        id=p.id,
        market_id=p.market_id,
        user_id=p.user_id,
        prediction=p.prediction,
        entry_amount=p.entry_amount,
        potential_winnings=p.potential_winnings,
        actual_winnings=p.actual_winnings,
        created_at=p.created_at.isoformat() if p.created_at else "",
    )


@router.get("/", response_model=list[MarketResponse])
async def list_markets(
    status: Optional[MarketStatus] = Query(default=None),
    creator_id: Optional[uuid.UUID] = Query(default=None),
    match_id: Optional[int] = Query(default=None),
    is_public: Optional[bool] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> list[MarketResponse]:
    """Return markets, newest first."""
    markets = await market_service.get_markets(
        session=session,
        filters=MarketFilters(
            status=status,
            creator_id=creator_id,
            match_id=match_id,
            is_public=is_public,
            limit=limit,
            offset=offset,
        ),
    )
    return [_market_to_response(m) for m in markets]


@router.post("/", response_model=MarketResponse, status_code=201)
async def create_market(
    payload: MarketCreate,
    session: AsyncSession = Depends(get_session),
) -> MarketResponse:
    try:
        market = await market_service.create_market(
            creator_id=payload.creator_id,
            match_id=payload.match_id,
            title=payload.title,
            description=payload.description,
            entry_fee=payload.entry_fee,
            end_time=payload.end_time,
            is_public=payload.is_public,
            home_team_id=payload.home_team_id,
            home_team_name=payload.home_team_name,
            away_team_id=payload.away_team_id,
            away_team_name=payload.away_team_name,
            session=session,
        )
    except (MarketError, ValueError) as exc:
        raise_http(exc)
    await session.commit()
    logger.info("POST /markets: %s created by %s", market.id, payload.creator_id)
    return _market_to_response(market)


@router.get("/{market_id}", response_model=MarketResponse)
async def get_market(
    market_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> MarketResponse:
    try:
        market = await market_service.get_market_by_id(market_id=market_id, session=session)
    except MarketError as exc:
        raise_http(exc)
    return _market_to_response(market)


@router.get("/{market_id}/stats", response_model=MarketStatsResponse)
async def get_market_stats(
    market_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> MarketStatsResponse:
    try:
        await market_service.get_market_by_id(market_id=market_id, session=session)
    except MarketError as exc:
        raise_http(exc)
    stats = await market_service.get_market_stats(market_id=market_id, session=session)
    return MarketStatsResponse(
        total_participants=stats.total_participants,
        home_count=stats.home_count,
        draw_count=stats.draw_count,
        away_count=stats.away_count,
        total_pool=stats.total_pool,
    )


@router.get("/{market_id}/participants", response_model=list[ParticipantResponse])
async def list_participants(
    market_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> list[ParticipantResponse]:
    try:
        await market_service.get_market_by_id(market_id=market_id, session=session)
    except MarketError as exc:
        raise_http(exc)
    participants = await market_service.get_market_participants(
        market_id=market_id, session=session
    )
    return [_participant_to_response(p) for p in participants]


@router.get("/{market_id}/transactions/stats", response_model=TransactionStatsResponse)
async def get_market_transaction_stats(
    market_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> TransactionStatsResponse:
    try:
        await market_service.get_market_by_id(market_id=market_id, session=session)
    except MarketError as exc:
        raise_http(exc)
    stats = await get_transaction_stats(session=session, market_id=market_id)
    return TransactionStatsResponse(
        total_transactions=stats.total_transactions,
        total_volume=stats.total_volume,
        by_type={
            t: TypeStatsResponse(count=s.count, volume=s.volume) for t, s in stats.by_type.items()
        },
        by_status=stats.by_status,
    )


@router.get("/{market_id}/winnings", response_model=WinningsPreviewResponse)
async def preview_winnings(
    market_id: uuid.UUID,
    outcome: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> WinningsPreviewResponse:
    """Payout preview. Defaults to the resolved outcome once there is one."""
    try:
        preview = await market_service.calculate_winnings(
            market_id=market_id, outcome=outcome, session=session
        )
    except (MarketError, ValueError) as exc:
        raise_http(exc)
    return WinningsPreviewResponse(
        market_id=preview.market_id,
        outcome=preview.outcome,
        total_pool=preview.total_pool,
        platform_fee=preview.platform_fee,
        creator_reward=preview.creator_reward,
        participant_pool=preview.participant_pool,
        winners=[_participant_to_response(p) for p in preview.winners],
        winnings_per_winner=preview.winnings_per_winner,
    )


@router.post("/{market_id}/join", response_model=ParticipantResponse, status_code=201)
async def join_market(
    market_id: uuid.UUID,
    payload: JoinMarketRequest,
    session: AsyncSession = Depends(get_session),
) -> ParticipantResponse:
    try:
        participant = await market_service.join_market(
            market_id=market_id,
            user_id=payload.user_id,
            prediction=payload.prediction,
            entry_amount=payload.entry_amount,
            session=session,
        )
    except (MarketError, ValueError) as exc:
        raise_http(exc)
    await session.commit()
    logger.info(
        "POST /markets/%s/join: user=%s prediction=%s",
        market_id, payload.user_id, participant.prediction.value,
    )
    return _participant_to_response(participant)


@router.post("/{market_id}/resolve", response_model=ResolutionResponse)
async def resolve_market(
    market_id: uuid.UUID,
    payload: ResolveMarketRequest,
    session: AsyncSession = Depends(get_session),
) -> ResolutionResponse:
    """Manual resolution. Only the creator, only once, only when FINISHED."""
    allowed = await market_service.can_user_resolve_market(
        market_id=market_id, user_id=payload.user_id, session=session
    )
    if not allowed:
        try:
            await market_service.get_market_by_id(market_id=market_id, session=session)
        except MarketError as exc:
            raise_http(exc)
        raise HTTPException(status_code=403, detail="Only market creator can resolve")

    try:
        result = await market_service.resolve_market(
            market_id=market_id, outcome=payload.outcome, session=session
        )
    except (MarketError, ValueError) as exc:
        raise_http(exc)
    await session.commit()
    logger.info(
        "POST /markets/%s/resolve by %s: outcome=%s winners=%d",
        market_id, payload.user_id, result.outcome, result.winners_count,
    )
    return ResolutionResponse.model_validate(result)


@router.post("/{market_id}/cancel", response_model=MarketResponse)
async def cancel_market(
    market_id: uuid.UUID,
    payload: CancelMarketRequest,
    session: AsyncSession = Depends(get_session),
) -> MarketResponse:
    try:
        market = await market_service.cancel_market(
            market_id=market_id, user_id=payload.user_id, session=session
        )
    except MarketError as exc:
        raise_http(exc)
    await session.commit()
    logger.info("POST /markets/%s/cancel by %s", market_id, payload.user_id)
    return _market_to_response(market)
