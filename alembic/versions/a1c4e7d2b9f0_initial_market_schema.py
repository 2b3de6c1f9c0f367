"""initial_market_schema

Revision ID: a1c4e7d2b9f0
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7d2b9f0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MARKET_STATUS = ('SCHEDULED', 'LIVE', 'FINISHED', 'POSTPONED', 'CANCELLED', 'RESOLVED')
PREDICTION = ('Home', 'Draw', 'Away')
TRANSACTION_TYPE = ('market_entry', 'winnings', 'creator_reward', 'platform_fee')
TRANSACTION_STATUS = ('PENDING', 'COMPLETED', 'FAILED')


def upgrade() -> None:
    """Users, markets, participants, transactions, platform_config."""
    # Shared by markets and participants: create once, reference twice.
    sa.Enum(*PREDICTION, name='prediction').create(op.get_bind(), checkfirst=True)
    prediction = postgresql.ENUM(*PREDICTION, name='prediction', create_type=False)

    op.create_table('users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('wallet_address', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_wallet_address', 'users', ['wallet_address'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('markets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('creator_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('home_team_id', sa.Integer(), nullable=True),
        sa.Column('home_team_name', sa.String(length=100), nullable=True),
        sa.Column('away_team_id', sa.Integer(), nullable=True),
        sa.Column('away_team_name', sa.String(length=100), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('entry_fee', sa.Numeric(precision=18, scale=8), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('status', sa.Enum(*MARKET_STATUS, name='marketstatus', create_constraint=True), nullable=False),
        sa.Column('resolution_outcome', prediction, nullable=True),
        sa.Column('total_pool', sa.Numeric(precision=18, scale=8), nullable=False),
        sa.Column('platform_fee_percentage', sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column('creator_reward_percentage', sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_markets_creator_id', 'markets', ['creator_id'])
    op.create_index('ix_markets_match_id', 'markets', ['match_id'])
    op.create_index('ix_markets_status', 'markets', ['status'])

    op.create_table('participants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('market_id', sa.Uuid(), sa.ForeignKey('markets.id'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('prediction', prediction, nullable=False),
        sa.Column('entry_amount', sa.Numeric(precision=18, scale=8), nullable=False),
        sa.Column('potential_winnings', sa.Numeric(precision=18, scale=8), nullable=False),
        sa.Column('actual_winnings', sa.Numeric(precision=18, scale=8), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('market_id', 'user_id', 'prediction', name='uq_participant_market_user_prediction')
    )
    op.create_index('ix_participants_market_id', 'participants', ['market_id'])
    op.create_index('ix_participants_user_id', 'participants', ['user_id'])

    op.create_table('transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('market_id', sa.Uuid(), sa.ForeignKey('markets.id'), nullable=True),
        sa.Column('type', sa.Enum(*TRANSACTION_TYPE, name='transactiontype', create_constraint=True), nullable=False),
        sa.Column('amount', sa.Numeric(precision=18, scale=8), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.Enum(*TRANSACTION_STATUS, name='transactionstatus', create_constraint=True), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('ix_transactions_market_id', 'transactions', ['market_id'])

    op.create_table('platform_config',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )


def downgrade() -> None:
    """Drop everything created above."""
    op.drop_table('platform_config')
    op.drop_table('transactions')
    op.drop_table('participants')
    op.drop_table('markets')
    op.drop_table('users')
    op.execute("DROP TYPE IF EXISTS transactionstatus")
    op.execute("DROP TYPE IF EXISTS transactiontype")
    op.execute("DROP TYPE IF EXISTS prediction")
    op.execute("DROP TYPE IF EXISTS marketstatus")
