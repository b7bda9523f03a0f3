"""Entity store for depositor accounting.

`EntityStore` is the interface the event handlers write through.
`PostgresEntityStore` implements it on a SQLAlchemy `AsyncSession`; it never
commits, the caller owns the transaction so that every write of one handler
invocation commits or rolls back together.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Protocol, Sequence

from sqlalchemy import String, and_, column, select, update, values
from sqlalchemy.dialects.postgresql import DOUBLE_PRECISION, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from alchemix_earnings.core.exceptions import DuplicateEventError, ReferentialIntegrityError
from alchemix_earnings.models.alchemist import (
    Depositor,
    DonateEvent,
    HarvestEvent,
    UserDonateShare,
    UserHarvestShare,
    YieldToken,
)


@dataclass(frozen=True)
class DepositorRow:
    depositor: str
    deposited_yield_token: str
    network: str
    yield_token_amount: int
    total_underlying_token_earned: float = 0.0
    total_donation_received: float = 0.0


@dataclass(frozen=True)
class HarvestEventRow:
    id: str
    block_number: int
    yield_token: str
    total_harvested: int
    credit: int
    network: str


@dataclass(frozen=True)
class DonateEventRow:
    id: str
    block_number: int
    yield_token: str
    debt_tokens_burned: int
    network: str


@dataclass(frozen=True)
class UserHarvestShareRow:
    id: uuid.UUID
    depositor: str
    yield_token: str
    harvest_id: str
    shares: int
    total_alchemist_shares: int
    user_earnings: float
    block_number: int
    network: str


@dataclass(frozen=True)
class UserDonateShareRow:
    id: uuid.UUID
    depositor: str
    yield_token: str
    donate_id: str
    shares: int
    total_alchemist_shares: int
    donation_received: float
    block_number: int
    network: str


@dataclass(frozen=True)
class BalanceIncrement:
    """Amount to add to one depositor's running total."""

    depositor: str
    yield_token: str
    network: str
    amount: float


class EntityStore(Protocol):
    async def insert_yield_token(self, yield_token: str, network: str) -> bool: ...

    async def upsert_deposit(self, depositor: str, yield_token: str, network: str, amount: int) -> None: ...

    async def get_depositor(self, depositor: str, yield_token: str, network: str) -> DepositorRow | None: ...

    async def list_depositors(self, yield_token: str, network: str) -> list[str]: ...

    async def insert_harvest_event(self, row: HarvestEventRow) -> None: ...

    async def insert_donate_event(self, row: DonateEventRow) -> None: ...

    async def insert_user_harvest_shares(self, rows: Sequence[UserHarvestShareRow]) -> None: ...

    async def insert_user_donate_shares(self, rows: Sequence[UserDonateShareRow]) -> None: ...

    async def increment_earnings(self, increments: Sequence[BalanceIncrement]) -> None: ...

    async def increment_donations(self, increments: Sequence[BalanceIncrement]) -> None: ...


def merge_increments(increments: Sequence[BalanceIncrement]) -> list[BalanceIncrement]:
    """Sum increments that target the same depositor row, keeping first-seen order."""
    totals: dict[tuple[str, str, str], float] = defaultdict(float)
    for inc in increments:
        totals[(inc.depositor, inc.yield_token, inc.network)] += inc.amount
    return [BalanceIncrement(d, y, n, amount) for (d, y, n), amount in totals.items()]


class PostgresEntityStore:
    # Stay well below the Postgres bind parameter limit (32767).
    BATCH = 1000

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert_yield_token(self, yield_token: str, network: str) -> bool:
        """Insert-or-ignore. Returns True when a new row was created."""
        stmt = (
            insert(YieldToken)
            .values(yield_token=yield_token, network=network)
            .on_conflict_do_nothing(index_elements=[YieldToken.yield_token, YieldToken.network])
            .returning(YieldToken.yield_token)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def upsert_deposit(self, depositor: str, yield_token: str, network: str, amount: int) -> None:
        stmt = insert(Depositor).values(
            depositor=depositor,
            deposited_yield_token=yield_token,
            network=network,
            yield_token_amount=amount,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Depositor.depositor, Depositor.deposited_yield_token, Depositor.network],
            set_={"yield_token_amount": Depositor.yield_token_amount + stmt.excluded.yield_token_amount},
        )
        await self._session.execute(stmt)

    async def get_depositor(self, depositor: str, yield_token: str, network: str) -> DepositorRow | None:
        row = await self._session.get(Depositor, (depositor, yield_token, network), populate_existing=True)
        if row is None:
            return None
        return DepositorRow(
            depositor=row.depositor,
            deposited_yield_token=row.deposited_yield_token,
            network=row.network,
            yield_token_amount=int(row.yield_token_amount),
            total_underlying_token_earned=float(row.total_underlying_token_earned or 0.0),
            total_donation_received=float(row.total_donation_received or 0.0),
        )

    async def list_depositors(self, yield_token: str, network: str) -> list[str]:
        stmt = (
            select(Depositor.depositor)
            .where(and_(Depositor.deposited_yield_token == yield_token, Depositor.network == network))
            .order_by(Depositor.depositor)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def _insert_event(self, model, row) -> None:
        stmt = (
            insert(model)
            .values(**asdict(row))
            .on_conflict_do_nothing(index_elements=[model.id])
            .returning(model.id)
        )
        result = await self._session.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise DuplicateEventError(model.__tablename__, row.id)

    async def insert_harvest_event(self, row: HarvestEventRow) -> None:
        await self._insert_event(HarvestEvent, row)

    async def insert_donate_event(self, row: DonateEventRow) -> None:
        await self._insert_event(DonateEvent, row)

    async def _insert_shares(self, model, rows) -> None:
        payload = [asdict(r) for r in rows]
        for i in range(0, len(payload), self.BATCH):
            chunk = payload[i : i + self.BATCH]
            try:
                await self._session.execute(insert(model).values(chunk))
            except IntegrityError as exc:
                raise ReferentialIntegrityError(
                    f"{model.__tablename__} rows reference a missing depositor or event: {exc.orig}"
                ) from exc

    async def insert_user_harvest_shares(self, rows: Sequence[UserHarvestShareRow]) -> None:
        await self._insert_shares(UserHarvestShare, rows)

    async def insert_user_donate_shares(self, rows: Sequence[UserDonateShareRow]) -> None:
        await self._insert_shares(UserDonateShare, rows)

    async def _increment(self, target, increments: Sequence[BalanceIncrement]) -> None:
        """Add amounts to `target` in place with one UPDATE ... FROM (VALUES ...) per batch.

        The addition happens inside the database so concurrent writers cannot
        lose updates. Every increment must match an existing depositor row.
        """
        merged = merge_increments(increments)
        for i in range(0, len(merged), self.BATCH):
            chunk = merged[i : i + self.BATCH]
            incoming = values(
                column("depositor", String),
                column("yield_token", String),
                column("network", String),
                column("amount", DOUBLE_PRECISION),
                name="incoming",
            ).data([(inc.depositor, inc.yield_token, inc.network, inc.amount) for inc in chunk])

            stmt = (
                update(Depositor)
                .where(
                    Depositor.depositor == incoming.c.depositor,
                    Depositor.deposited_yield_token == incoming.c.yield_token,
                    Depositor.network == incoming.c.network,
                )
                .values({target: target + incoming.c.amount})
                .returning(Depositor.depositor, Depositor.deposited_yield_token, Depositor.network)
                .execution_options(synchronize_session=False)
            )
            result = await self._session.execute(stmt)
            updated = {tuple(r) for r in result.all()}
            missing = sorted({(inc.depositor, inc.yield_token, inc.network) for inc in chunk} - updated)
            if missing:
                raise ReferentialIntegrityError(f"no depositor row for {missing}")

    async def increment_earnings(self, increments: Sequence[BalanceIncrement]) -> None:
        await self._increment(Depositor.total_underlying_token_earned, increments)

    async def increment_donations(self, increments: Sequence[BalanceIncrement]) -> None:
        await self._increment(Depositor.total_donation_received, increments)
