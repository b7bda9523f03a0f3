"""SQLAlchemy models for AlchemistV2 depositor accounting.

Tables:
- yield_token: yield tokens registered with an alchemist, per network
- depositor: a user's position in one yield token on one network
- harvest_event / donate_event: one row per observed log
- user_harvest_share / user_donate_share: per-depositor allocation of a
  harvest or donation, an append-only audit trail

Raw on-chain quantities are uint256 values and are stored as NUMERIC(78, 0).
Derived earnings and donations are floating point approximations.
"""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import DOUBLE_PRECISION, UUID
from sqlalchemy.sql import func

from alchemix_earnings.core.database import SCHEMA_NAME, Base


def _uint256() -> Numeric:
    return Numeric(78, 0)


class YieldToken(Base):
    """A yield-bearing token registered with the alchemist on a network."""

    __tablename__ = "yield_token"
    __table_args__ = {"schema": SCHEMA_NAME}

    yield_token = Column(String(42), primary_key=True)
    network = Column(String(32), primary_key=True)


class Depositor(Base):
    """Cumulative position of one depositor in one yield token."""

    __tablename__ = "depositor"
    __table_args__ = (
        Index("ix_depositor_yield_token_network", "deposited_yield_token", "network"),
        {"schema": SCHEMA_NAME},
    )

    depositor = Column(String(42), primary_key=True)
    deposited_yield_token = Column(String(42), primary_key=True)
    network = Column(String(32), primary_key=True)

    yield_token_amount = Column(_uint256(), nullable=False)
    total_underlying_token_earned = Column(DOUBLE_PRECISION, nullable=False, server_default=text("0"))
    total_donation_received = Column(DOUBLE_PRECISION, nullable=False, server_default=text("0"))


class HarvestEvent(Base):
    __tablename__ = "harvest_event"
    __table_args__ = {"schema": SCHEMA_NAME}

    # "<block hash>-<log index>"
    id = Column(String(96), primary_key=True)
    block_number = Column(BigInteger, nullable=False)
    yield_token = Column(String(42), nullable=False)
    total_harvested = Column(_uint256(), nullable=False)
    credit = Column(_uint256(), nullable=False)
    network = Column(String(32), nullable=False)


class UserHarvestShare(Base):
    __tablename__ = "user_harvest_share"
    __table_args__ = (
        ForeignKeyConstraint(
            ["depositor", "yield_token", "network"],
            [
                f"{SCHEMA_NAME}.depositor.depositor",
                f"{SCHEMA_NAME}.depositor.deposited_yield_token",
                f"{SCHEMA_NAME}.depositor.network",
            ],
            name="fk_user_harvest_share_depositor",
        ),
        {"schema": SCHEMA_NAME},
    )

    id = Column(UUID(as_uuid=True), primary_key=True)
    depositor = Column(String(42), nullable=False)
    yield_token = Column(String(42), nullable=False)
    harvest_id = Column(String(96), ForeignKey(f"{SCHEMA_NAME}.harvest_event.id"), nullable=False, index=True)
    shares = Column(_uint256(), nullable=False)
    total_alchemist_shares = Column(_uint256(), nullable=False)
    user_earnings = Column(DOUBLE_PRECISION, nullable=False)
    block_number = Column(BigInteger, nullable=False)
    network = Column(String(32), nullable=False)


class DonateEvent(Base):
    __tablename__ = "donate_event"
    __table_args__ = {"schema": SCHEMA_NAME}

    id = Column(String(96), primary_key=True)
    block_number = Column(BigInteger, nullable=False)
    yield_token = Column(String(42), nullable=False)
    debt_tokens_burned = Column(_uint256(), nullable=False)
    network = Column(String(32), nullable=False)


class UserDonateShare(Base):
    __tablename__ = "user_donate_share"
    __table_args__ = (
        ForeignKeyConstraint(
            ["depositor", "yield_token", "network"],
            [
                f"{SCHEMA_NAME}.depositor.depositor",
                f"{SCHEMA_NAME}.depositor.deposited_yield_token",
                f"{SCHEMA_NAME}.depositor.network",
            ],
            name="fk_user_donate_share_depositor",
        ),
        {"schema": SCHEMA_NAME},
    )

    id = Column(UUID(as_uuid=True), primary_key=True)
    depositor = Column(String(42), nullable=False)
    yield_token = Column(String(42), nullable=False)
    donate_id = Column(String(96), ForeignKey(f"{SCHEMA_NAME}.donate_event.id"), nullable=False, index=True)
    shares = Column(_uint256(), nullable=False)
    total_alchemist_shares = Column(_uint256(), nullable=False)
    donation_received = Column(DOUBLE_PRECISION, nullable=False)
    block_number = Column(BigInteger, nullable=False)
    network = Column(String(32), nullable=False)


# Sentinel log index: every log of the checkpoint block has been applied
BLOCK_DONE = 2**31 - 1


class IndexerCheckpoint(Base):
    """Position of the last log applied for one alchemist contract."""

    __tablename__ = "indexer_checkpoint"
    __table_args__ = {"schema": SCHEMA_NAME}

    network = Column(String(32), primary_key=True)
    contract_address = Column(String(42), primary_key=True)
    last_block = Column(BigInteger, nullable=False)
    # index of the last applied log in `last_block`; BLOCK_DONE once the whole block is applied
    last_log_index = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
