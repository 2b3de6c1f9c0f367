"""
database.py — Engine and session factory ONLY.

Table definitions live in models.py. Nothing here knows about business rules.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from models import Base

DATABASE_URL = settings.DATABASE_URL
if not DATABASE_URL:
    raise ValueError("A DATABASE_URL environment variable is required.")

engine = create_async_engine(DATABASE_URL, echo=False)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session
