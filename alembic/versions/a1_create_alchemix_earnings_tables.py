"""Create alchemix_earnings schema and depositor accounting tables.

Revision ID: a1createearnings
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "a1createearnings"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


SCHEMA = "alchemix_earnings"


def _uint256() -> sa.Numeric:
    return sa.Numeric(78, 0)


def upgrade() -> None:
    """Upgrade schema."""
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    op.create_table(
        "yield_token",
        sa.Column("yield_token", sa.String(42), primary_key=True),
        sa.Column("network", sa.String(32), primary_key=True),
        schema=SCHEMA,
    )

    op.create_table(
        "depositor",
        sa.Column("depositor", sa.String(42), primary_key=True),
        sa.Column("deposited_yield_token", sa.String(42), primary_key=True),
        sa.Column("network", sa.String(32), primary_key=True),
        sa.Column("yield_token_amount", _uint256(), nullable=False),
        sa.Column(
            "total_underlying_token_earned",
            postgresql.DOUBLE_PRECISION(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "total_donation_received",
            postgresql.DOUBLE_PRECISION(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_depositor_yield_token_network",
        "depositor",
        ["deposited_yield_token", "network"],
        schema=SCHEMA,
    )

    op.create_table(
        "harvest_event",
        sa.Column("id", sa.String(96), primary_key=True),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("yield_token", sa.String(42), nullable=False),
        sa.Column("total_harvested", _uint256(), nullable=False),
        sa.Column("credit", _uint256(), nullable=False),
        sa.Column("network", sa.String(32), nullable=False),
        schema=SCHEMA,
    )

    op.create_table(
        "donate_event",
        sa.Column("id", sa.String(96), primary_key=True),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("yield_token", sa.String(42), nullable=False),
        sa.Column("debt_tokens_burned", _uint256(), nullable=False),
        sa.Column("network", sa.String(32), nullable=False),
        schema=SCHEMA,
    )

    for table, parent_col, parent_table, amount_col in (
        ("user_harvest_share", "harvest_id", "harvest_event", "user_earnings"),
        ("user_donate_share", "donate_id", "donate_event", "donation_received"),
    ):
        op.create_table(
            table,
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("depositor", sa.String(42), nullable=False),
            sa.Column("yield_token", sa.String(42), nullable=False),
            sa.Column(parent_col, sa.String(96), sa.ForeignKey(f"{SCHEMA}.{parent_table}.id"), nullable=False),
            sa.Column("shares", _uint256(), nullable=False),
            sa.Column("total_alchemist_shares", _uint256(), nullable=False),
            sa.Column(amount_col, postgresql.DOUBLE_PRECISION(), nullable=False),
            sa.Column("block_number", sa.BigInteger(), nullable=False),
            sa.Column("network", sa.String(32), nullable=False),
            sa.ForeignKeyConstraint(
                ["depositor", "yield_token", "network"],
                [
                    f"{SCHEMA}.depositor.depositor",
                    f"{SCHEMA}.depositor.deposited_yield_token",
                    f"{SCHEMA}.depositor.network",
                ],
                name=f"fk_{table}_depositor",
            ),
            schema=SCHEMA,
        )
        op.create_index(f"ix_{SCHEMA}_{table}_{parent_col}", table, [parent_col], schema=SCHEMA)

    op.create_table(
        "indexer_checkpoint",
        sa.Column("network", sa.String(32), primary_key=True),
        sa.Column("contract_address", sa.String(42), primary_key=True),
        sa.Column("last_block", sa.BigInteger(), nullable=False),
        sa.Column("last_log_index", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.execute(f"DROP SCHEMA IF EXISTS {SCHEMA} CASCADE")
