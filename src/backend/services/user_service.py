"""
user_service.py — User sign-in and profile management.

Identity is (email, wallet_address). Authentication is performed by an
external provider; this service only makes sure a matching row exists.
Caller manages the session.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import UserNotFoundError
from models import User
from services import repository

logger = logging.getLogger("user_service")


@dataclass
class AuthResult:
    user: User
    is_new_user: bool


async def authenticate_user(
    *,
    email: str,
    wallet_address: str,
    session: AsyncSession,
    display_name: Optional[str] = None,
) -> AuthResult:
    """Create or refresh the user behind an authenticated session.

    Lookup order: email first, then wallet address (covers a changed email).
    """
    if not email:
        raise ValueError("Email is required for user authentication")
    if not wallet_address:
        raise ValueError("Wallet address is required for user authentication")

    user = await repository.get_user_by_email(email=email, session=session)
    if user is not None:
        await repository.update_user(
            user=user,
            session=session,
            wallet_address=wallet_address,
            display_name=display_name or user.display_name,
        )
        return AuthResult(user=user, is_new_user=False)

    user = await repository.get_user_by_wallet_address(
        wallet_address=wallet_address, session=session
    )
    if user is not None:
        await repository.update_user(
            user=user,
            session=session,
            email=email,
            display_name=display_name or user.display_name,
        )
        return AuthResult(user=user, is_new_user=False)

    user = await repository.create_user(
        session=session,
        email=email,
        wallet_address=wallet_address,
        display_name=display_name,
    )
    logger.info("User created: %s", user.id)
    return AuthResult(user=user, is_new_user=True)


async def get_user_by_id(*, user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await repository.get_user(user_id=user_id, session=session)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def update_profile(
    *,
    user_id: uuid.UUID,
    session: AsyncSession,
    display_name: Optional[str] = None,
    email: Optional[str] = None,
) -> User:
    user = await get_user_by_id(user_id=user_id, session=session)
    updates = {}
    if display_name is not None:
        updates["display_name"] = display_name
    if email is not None:
        updates["email"] = email
    return await repository.update_user(user=user, session=session, **updates)
