"""
models.py — Single Source of Truth for ALL SQLAlchemy table definitions.

This file contains ONLY:
  1. Domain enums shared by the ORM and the API
  2. SQLAlchemy ORM models (DeclarativeBase subclasses)
  3. Pydantic request/response schemas

It does NOT contain:
  - Engine creation, session factories, or connection logic (see database.py)
  - Business logic or service functions (see services/)

Money columns are Numeric(18, 8) and handled as Decimal in major units.
Fee and winnings arithmetic converts to integer minor units first
(see services/fee_calculator.py).
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# BASE
# ============================================================================

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class MarketStatus(str, enum.Enum):
    """Market lifecycle.

    SCHEDULED -> LIVE -> FINISHED -> RESOLVED is the happy path.
    SCHEDULED/LIVE may branch to POSTPONED or CANCELLED.
    RESOLVED and CANCELLED are terminal.
    """
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"
    POSTPONED = "POSTPONED"
    CANCELLED = "CANCELLED"
    RESOLVED = "RESOLVED"


class Prediction(str, enum.Enum):
    HOME = "Home"
    DRAW = "Draw"
    AWAY = "Away"

    @classmethod
    def from_input(cls, value: "str | Prediction") -> "Prediction":
        """Accept stored values (Home/Draw/Away) or UI values (HOME_WIN/DRAW/AWAY_WIN)."""
        if isinstance(value, cls):
            return value
        aliases = {
            "HOME_WIN": cls.HOME,
            "DRAW": cls.DRAW,
            "AWAY_WIN": cls.AWAY,
        }
        if value in aliases:
            return aliases[value]
        for member in cls:
            if member.value.lower() == str(value).lower():
                return member
        raise ValueError(f"Unknown prediction: {value!r}")


class TransactionType(str, enum.Enum):
    MARKET_ENTRY = "market_entry"
    WINNINGS = "winnings"
    CREATOR_REWARD = "creator_reward"
    PLATFORM_FEE = "platform_fee"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# One type object for both columns so Postgres creates "prediction" once.
PredictionType = SAEnum(
    Prediction,
    name="prediction",
    create_constraint=True,
    values_callable=lambda e: [m.value for m in e],
)


# ============================================================================
# TABLES
# ============================================================================

class User(Base):
    """A human user. wallet_address is display/validation data only."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    wallet_address: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Market(Base):
    """
    A prediction market on a single football match.

    Invariants:
      - total_pool == sum(participants.entry_amount) after every join
      - resolution_outcome is NULL until resolution, then set exactly once
    """
    __tablename__ = "markets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    match_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    home_team_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    home_team_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    away_team_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    away_team_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    entry_fee: Mapped[Decimal] = mapped_column(Numeric(18, 8), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[MarketStatus] = mapped_column(
        SAEnum(MarketStatus, name="marketstatus", create_constraint=True),
        default=MarketStatus.SCHEDULED,
        index=True,
    )
    resolution_outcome: Mapped[Optional[Prediction]] = mapped_column(
        PredictionType,
        nullable=True,
    )
    total_pool: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal("0"))
    platform_fee_percentage: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), default=Decimal("0.03")
    )
    creator_reward_percentage: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), default=Decimal("0.02")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Participant(Base):
    """One user's single prediction + stake on a market.

    A user may hold up to 3 of these per market, one per outcome.
    potential_winnings is a join-time estimate for display only.
    actual_winnings stays NULL until resolution, then is set once.
    """
    __tablename__ = "participants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    market_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("markets.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    prediction: Mapped[Prediction] = mapped_column(
        PredictionType,
        nullable=False,
    )
    entry_amount: Mapped[Decimal] = mapped_column(Numeric(18, 8), nullable=False)
    potential_winnings: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal("0"))
    actual_winnings: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 8), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "market_id", "user_id", "prediction", name="uq_participant_market_user_prediction"
        ),
    )


class Transaction(Base):
    """
    Append-only ledger of every economically meaningful event.

    The autoincrement id is the ledger order. Rows are never mutated
    except for status moving PENDING -> COMPLETED (or FAILED).
    The DB column is ``metadata``; the attribute is metadata_json because
    ``metadata`` is reserved on declarative classes.
    """
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    market_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("markets.id"), nullable=True, index=True
    )
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, name="transactiontype", create_constraint=True,
               values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 8), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, name="transactionstatus", create_constraint=True),
        default=TransactionStatus.COMPLETED,
    )
    metadata_json: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class PlatformConfig(Base):
    """Global key/value settings (fee percentages, limits)."""
    __tablename__ = "platform_config"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


# ============================================================================
# PYDANTIC SCHEMAS: API Request/Response Models
# ============================================================================

# --- Users ---

class UserAuthRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    wallet_address: str = Field(..., min_length=1, max_length=64)
    display_name: Optional[str] = Field(default=None, max_length=100)


class UserProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, min_length=3, max_length=320)


class UserResponse(BaseModel):
    id: uuid.UUID
    wallet_address: str
    email: str
    display_name: Optional[str] = None
    created_at: str


class AuthResponse(BaseModel):
    user: UserResponse
    is_new_user: bool


class BalanceResponse(BaseModel):
    user_id: uuid.UUID
    balance: Decimal


class PortfolioResponse(BaseModel):
    total_winnings: Decimal
    total_spent: Decimal
    net_profit_loss: Decimal
    markets_participated: int
    markets_won: int
    win_rate: float
    active_markets: int


class TransactionResponse(BaseModel):
    id: int
    user_id: uuid.UUID
    market_id: Optional[uuid.UUID] = None
    type: TransactionType
    amount: Decimal
    description: str
    status: TransactionStatus
    metadata: Optional[dict] = None
    created_at: str


# --- Markets ---

class MarketCreate(BaseModel):
    creator_id: uuid.UUID
    match_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(default="", max_length=2000)
    entry_fee: Decimal = Field(..., gt=0, decimal_places=5)
    end_time: datetime
    is_public: bool = True
    home_team_id: Optional[int] = None
    home_team_name: Optional[str] = Field(default=None, max_length=100)
    away_team_id: Optional[int] = None
    away_team_name: Optional[str] = Field(default=None, max_length=100)


class MarketResponse(BaseModel):
    id: uuid.UUID
    creator_id: uuid.UUID
    match_id: int
    home_team_id: Optional[int] = None
    home_team_name: Optional[str] = None
    away_team_id: Optional[int] = None
    away_team_name: Optional[str] = None
    title: str
    description: str
    entry_fee: Decimal
    end_time: str
    is_public: bool
    status: MarketStatus
    resolution_outcome: Optional[Prediction] = None
    total_pool: Decimal
    platform_fee_percentage: Decimal
    creator_reward_percentage: Decimal
    created_at: str


class JoinMarketRequest(BaseModel):
    user_id: uuid.UUID
    prediction: Prediction
    entry_amount: Decimal = Field(..., gt=0, decimal_places=5)

    @field_validator("prediction", mode="before")
    @classmethod
    def normalize_prediction(cls, v: Any) -> Prediction:
        return Prediction.from_input(v)


class ParticipantResponse(BaseModel):
    id: uuid.UUID
    market_id: uuid.UUID
    user_id: uuid.UUID
    prediction: Prediction
    entry_amount: Decimal
    potential_winnings: Decimal
    actual_winnings: Optional[Decimal] = None
    created_at: str


class ResolveMarketRequest(BaseModel):
    user_id: uuid.UUID
    outcome: Prediction

    @field_validator("outcome", mode="before")
    @classmethod
    def normalize_outcome(cls, v: Any) -> Prediction:
        return Prediction.from_input(v)


class CancelMarketRequest(BaseModel):
    user_id: uuid.UUID


class MarketStatsResponse(BaseModel):
    total_participants: int
    home_count: int
    draw_count: int
    away_count: int
    total_pool: Decimal


class TypeStatsResponse(BaseModel):
    count: int
    volume: Decimal


class TransactionStatsResponse(BaseModel):
    total_transactions: int
    total_volume: Decimal
    by_type: dict[TransactionType, TypeStatsResponse]
    by_status: dict[TransactionStatus, int]


class WinningsPreviewResponse(BaseModel):
    market_id: uuid.UUID
    outcome: Prediction
    total_pool: Decimal
    platform_fee: Decimal
    creator_reward: Decimal
    participant_pool: Decimal
    winners: list[ParticipantResponse]
    winnings_per_winner: Decimal


class ResolutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    market_id: uuid.UUID
    outcome: Optional[Prediction] = None
    winners_count: int = 0
    winnings_per_winner: Decimal = Decimal("0")
    total_winnings_distributed: Decimal = Decimal("0")
    creator_reward: Decimal = Decimal("0")
    platform_fee: Decimal = Decimal("0")
    success: bool = True
    error: Optional[str] = None


# --- Automation ---

class SyncResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    market_id: uuid.UUID
    match_id: int
    old_status: MarketStatus
    new_status: MarketStatus
    updated: bool
    error: Optional[str] = None


class AutomationCycleResponse(BaseModel):
    status_sync_results: list[SyncResultResponse]
    resolution_results: list[ResolutionResponse]
