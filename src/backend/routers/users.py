"""User API Router.

Endpoints for sign-in (create-or-update), profile lookup and edits,
derived balance, portfolio summary and transaction history.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_session
from exceptions import MarketError, StateViolationError, raise_http
from models import (
    AuthResponse,
    BalanceResponse,
    PortfolioResponse,
    Transaction,
    TransactionResponse,
    User,
    UserAuthRequest,
    UserProfileUpdate,
    UserResponse,
)
from services import market_service, user_service
from services.ledger_service import get_user_transactions

logger = logging.getLogger("users")

router = APIRouter()


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        wallet_address=user.wallet_address,
        email=user.email,
        display_name=user.display_name,
        created_at=str(user.created_at),
    )


def _transaction_to_response(t: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=t.id,
        user_id=t.user_id,
        market_id=t.market_id,
        type=t.type,
        amount=t.amount,
        description=t.description or "",
        status=t.status,
        metadata=t.metadata_json,
        created_at=str(t.created_at),
    )


@router.post("/auth", response_model=AuthResponse)
async def authenticate(
    body: UserAuthRequest,
    session: AsyncSession = Depends(get_session),
) -> AuthResponse:
    """Create the user on first sign-in, refresh it afterwards."""
    try:
        result = await user_service.authenticate_user(
            email=body.email,
            wallet_address=body.wallet_address,
            display_name=body.display_name,
            session=session,
        )
        await session.commit()
    except ValueError as exc:
        raise_http(exc)
    except IntegrityError:
        await session.rollback()
        raise_http(StateViolationError("Email or wallet address already in use"))
    logger.info("POST /users/auth: user=%s new=%s", result.user.id, result.is_new_user)
    return AuthResponse(user=_user_to_response(result.user), is_new_user=result.is_new_user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    try:
        user = await user_service.get_user_by_id(user_id=user_id, session=session)
    except MarketError as exc:
        raise_http(exc)
    return _user_to_response(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    body: UserProfileUpdate,
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    try:
        user = await user_service.update_profile(
            user_id=user_id,
            display_name=body.display_name,
            email=body.email,
            session=session,
        )
        await session.commit()
    except MarketError as exc:
        raise_http(exc)
    except IntegrityError:
        await session.rollback()
        raise_http(StateViolationError("Email already in use"))
    logger.info("PATCH /users/%s", user_id)
    return _user_to_response(user)


@router.get("/{user_id}/balance", response_model=BalanceResponse)
async def get_balance(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> BalanceResponse:
    balance = await market_service.get_user_balance(user_id=user_id, session=session)
    return BalanceResponse(user_id=user_id, balance=balance)


@router.get("/{user_id}/portfolio", response_model=PortfolioResponse)
async def get_portfolio(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> PortfolioResponse:
    p = await market_service.get_user_portfolio(user_id=user_id, session=session)
    return PortfolioResponse(
        total_winnings=p.total_winnings,
        total_spent=p.total_spent,
        net_profit_loss=p.net_profit_loss,
        markets_participated=p.markets_participated,
        markets_won=p.markets_won,
        win_rate=p.win_rate,
        active_markets=p.active_markets,
    )


@router.get("/{user_id}/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    user_id: uuid.UUID,
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
) -> list[TransactionResponse]:
    entries = await get_user_transactions(user_id=user_id, session=session, limit=limit)
    return [_transaction_to_response(t) for t in entries]
