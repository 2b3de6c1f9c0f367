"""Tests for sign-in (create-or-update) and profile edits."""

import uuid

import pytest

from exceptions import UserNotFoundError
from services import user_service


class TestAuthenticateUser:
    async def test_first_sign_in_creates_user(self, session):
        result = await user_service.authenticate_user(
            email="fan@example.com", wallet_address="0xabc", session=session
        )
        assert result.is_new_user is True
        assert result.user.email == "fan@example.com"
        assert result.user.wallet_address == "0xabc"

    async def test_returning_user_by_email(self, session):
        first = await user_service.authenticate_user(
            email="fan@example.com", wallet_address="0xabc", session=session
        )
        again = await user_service.authenticate_user(
            email="fan@example.com", wallet_address="0xdef", session=session
        )
        assert again.is_new_user is False
        assert again.user.id == first.user.id
        assert again.user.wallet_address == "0xdef"

    async def test_returning_user_by_wallet(self, session):
        first = await user_service.authenticate_user(
            email="old@example.com", wallet_address="0xabc", display_name="Fan", session=session
        )
        again = await user_service.authenticate_user(
            email="new@example.com", wallet_address="0xabc", session=session
        )
        assert again.is_new_user is False
        assert again.user.id == first.user.id
        assert again.user.email == "new@example.com"
        assert again.user.display_name == "Fan"

    @pytest.mark.parametrize("email, wallet", [("", "0xabc"), ("fan@example.com", "")])
    async def test_identity_fields_required(self, session, email, wallet):
        with pytest.raises(ValueError):
            await user_service.authenticate_user(
                email=email, wallet_address=wallet, session=session
            )


class TestProfile:
    async def test_update_display_name(self, session):
        result = await user_service.authenticate_user(
            email="fan@example.com", wallet_address="0xabc", session=session
        )
        user = await user_service.update_profile(
            user_id=result.user.id, display_name="Gooner", session=session
        )
        assert user.display_name == "Gooner"
        assert user.email == "fan@example.com"

    async def test_unknown_user(self, session):
        with pytest.raises(UserNotFoundError):
            await user_service.get_user_by_id(user_id=uuid.uuid4(), session=session)
