#!/usr/bin/env python3
"""
seed_config.py — Create tables (if missing) and seed platform_config defaults.

Existing keys are left untouched unless --force is given, so re-running
never silently changes the fees of markets created afterwards.

Usage:
    cd src/backend && python scripts/seed_config.py [--force]
"""

import asyncio
import logging
import sys
from pathlib import Path

_backend = str(Path(__file__).resolve().parents[1])
if _backend not in sys.path:
    sys.path.insert(0, _backend)

from config import DEFAULT_CREATOR_REWARD_PERCENTAGE, DEFAULT_PLATFORM_FEE_PERCENTAGE
from database import async_session_maker, init_db
from services import repository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("seed_config")

DEFAULTS = {
    "default_platform_fee_percentage": DEFAULT_PLATFORM_FEE_PERCENTAGE,
    "default_creator_reward_percentage": DEFAULT_CREATOR_REWARD_PERCENTAGE,
}


async def seed(force: bool = False) -> int:
    """Returns the number of keys written."""
    await init_db()
    written = 0
    async with async_session_maker() as session:
        for key, value in DEFAULTS.items():
            existing = await repository.get_platform_config(key=key, session=session)
            if existing is not None and not force:
                logger.info("Keeping %s=%s", key, existing.value)
                continue
            await repository.set_platform_config(key=key, value=value, session=session)
            logger.info("Set %s=%s", key, value)
            written += 1
        await session.commit()

        for entry in await repository.get_all_platform_config(session=session):
            logger.info("platform_config %s = %s", entry.key, entry.value)
    return written


if __name__ == "__main__":
    asyncio.run(seed(force="--force" in sys.argv[1:]))
