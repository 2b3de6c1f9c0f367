"""Tests for the platform_config seeding script."""

import logging

import pytest

from scripts import seed_config
from services import repository


@pytest.fixture
def seeded_db(session_maker, monkeypatch):
    async def _noop_init_db():
        return None

    monkeypatch.setattr(seed_config, "init_db", _noop_init_db)
    monkeypatch.setattr(seed_config, "async_session_maker", session_maker)
    return session_maker


async def _config(session_maker) -> dict[str, str]:
    async with session_maker() as session:
        entries = await repository.get_all_platform_config(session=session)
    return {e.key: e.value for e in entries}


async def test_seeds_defaults_once(seeded_db):
    assert await seed_config.seed() == 2
    assert await _config(seeded_db) == {
        "default_creator_reward_percentage": "0.02",
        "default_platform_fee_percentage": "0.03",
    }

    assert await seed_config.seed() == 0


async def test_existing_values_kept_unless_forced(seeded_db):
    async with seeded_db() as session:
        await repository.set_platform_config(
            key="default_platform_fee_percentage", value="0.05", session=session
        )
        await session.commit()

    assert await seed_config.seed() == 1
    assert (await _config(seeded_db))["default_platform_fee_percentage"] == "0.05"

    assert await seed_config.seed(force=True) == 2
    assert (await _config(seeded_db))["default_platform_fee_percentage"] == "0.03"


async def test_logs_resulting_config(seeded_db, caplog):
    with caplog.at_level(logging.INFO, logger="seed_config"):
        await seed_config.seed()

    assert "platform_config default_platform_fee_percentage = 0.03" in caplog.text
    assert "platform_config default_creator_reward_percentage = 0.02" in caplog.text
