"""
ledger_service.py — Append-only transaction ledger operations.

Imports Transaction strictly from models.py (Single Source of Truth).

Rules:
  - Every economically meaningful event (join, payout, fee) writes exactly
    one Transaction row.
  - Rows are never edited, except status PENDING -> COMPLETED/FAILED.
  - The caller MUST hold a transactional session — nothing here commits.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Transaction, TransactionStatus, TransactionType


async def append_transaction(
    *,
    user_id: uuid.UUID,
    market_id: Optional[uuid.UUID],
    transaction_type: TransactionType,
    amount: Decimal,
    description: str,
    session: AsyncSession,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    metadata: Optional[dict[str, Any]] = None,
) -> Transaction:
    """Append one ledger row and flush so it gets its id. Does NOT commit."""
    entry = Transaction(
        user_id=user_id,
        market_id=market_id,
        type=transaction_type,
        amount=amount,
        description=description,
        status=status,
        metadata_json=metadata,
    )
    session.add(entry)
    await session.flush()
    return entry


async def complete_transaction(
    entry: Transaction,
    *,
    session: AsyncSession,
    metadata: Optional[dict[str, Any]] = None,
) -> Transaction:
    """Move a PENDING entry to COMPLETED, stamping completed_at into its metadata."""
    return await _finish(entry, TransactionStatus.COMPLETED, session=session, metadata=metadata)


async def fail_transaction(
    entry: Transaction,
    *,
    reason: str,
    session: AsyncSession,
) -> Transaction:
    return await _finish(
        entry, TransactionStatus.FAILED, session=session, metadata={"failure_reason": reason}
    )


async def _finish(
    entry: Transaction,
    status: TransactionStatus,
    *,
    session: AsyncSession,
    metadata: Optional[dict[str, Any]],
) -> Transaction:
    if entry.status != TransactionStatus.PENDING:
        raise ValueError(
            f"Transaction {entry.id} is {entry.status.value}, only PENDING can be finished"
        )
    merged = dict(entry.metadata_json or {})
    if metadata:
        merged.update(metadata)
    stamp_key = "completed_at" if status == TransactionStatus.COMPLETED else "failed_at"
    merged[stamp_key] = datetime.now(timezone.utc).isoformat()

    # JSON columns are not mutation-tracked: assign a new dict.
    entry.metadata_json = merged
    entry.status = status
    await session.flush()
    return entry


async def get_user_transactions(
    *,
    user_id: uuid.UUID,
    session: AsyncSession,
    limit: Optional[int] = None,
) -> list[Transaction]:
    """Newest first."""
    query = (
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .order_by(Transaction.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_market_transactions(
    *,
    market_id: uuid.UUID,
    session: AsyncSession,
) -> list[Transaction]:
    """Ledger order (oldest first)."""
    result = await session.execute(
        select(Transaction)
        .where(Transaction.market_id == market_id)
        .order_by(Transaction.id.asc())
    )
    return list(result.scalars().all())


@dataclass
class TypeStats:
    count: int = 0
    volume: Decimal = Decimal("0")


@dataclass
class TransactionStats:
    total_transactions: int
    total_volume: Decimal
    by_type: dict[TransactionType, TypeStats]
    by_status: dict[TransactionStatus, int]


async def get_transaction_stats(
    *,
    session: AsyncSession,
    market_id: Optional[uuid.UUID] = None,
) -> TransactionStats:
    """Counts and volume per type and status, for one market or the whole ledger.

    Every type and status is present in the result, zero-filled.
    """
    query = select(
        Transaction.type,
        Transaction.status,
        func.count(Transaction.id),
        func.coalesce(func.sum(Transaction.amount), 0),
    ).group_by(Transaction.type, Transaction.status)
    if market_id is not None:
        query = query.where(Transaction.market_id == market_id)
    rows = (await session.execute(query)).all()

    by_type = {t: TypeStats() for t in TransactionType}
    by_status = {s: 0 for s in TransactionStatus}
    for tx_type, status, count, volume in rows:
        volume = Decimal(str(volume))
        by_type[tx_type].count += count
        by_type[tx_type].volume += volume
        by_status[status] += count

    return TransactionStats(
        total_transactions=sum(s.count for s in by_type.values()),
        total_volume=sum((s.volume for s in by_type.values()), Decimal("0")),
        by_type=by_type,
        by_status=by_status,
    )
