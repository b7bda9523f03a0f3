"""Pytest configuration and shared fakes.

For local test runs without an installed wheel, the repository root is added
to `sys.path` so imports like `from alchemix_earnings...` work under `pytest`.

Handlers are exercised against an in-memory `EntityStore` and a fake
`ContractReader`, so unit tests need neither Postgres nor an RPC endpoint.
"""

from __future__ import annotations

import copy
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Sequence

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from alchemix_earnings.core.exceptions import (  # noqa: E402
    AuxiliaryReadError,
    DuplicateEventError,
    ReferentialIntegrityError,
)
from alchemix_earnings.models.events import LogRef  # noqa: E402
from alchemix_earnings.services.alchemist_client import ContractCall  # noqa: E402
from alchemix_earnings.services.entity_store import (  # noqa: E402
    BalanceIncrement,
    DepositorRow,
    DonateEventRow,
    HarvestEventRow,
    UserDonateShareRow,
    UserHarvestShareRow,
    merge_increments,
)
from alchemix_earnings.services.event_handlers import HandlerContext  # noqa: E402


ALCHEMIST = "0x5C6374a2ac4EBC38DeA0Fc1F8716e5Ea1AdD94dd"
YIELD_TOKEN = "0x1111111111111111111111111111111111111111"
OTHER_YIELD_TOKEN = "0x2222222222222222222222222222222222222222"
ALICE = "0x3333333333333333333333333333333333333333"
BOB = "0x4444444444444444444444444444444444444444"
CAROL = "0x5555555555555555555555555555555555555555"


class InMemoryEntityStore:
    """Dict-backed EntityStore with the same conflict rules as the Postgres store."""

    def __init__(self) -> None:
        self.yield_tokens: set[tuple[str, str]] = set()
        self.depositors: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.harvest_events: dict[str, HarvestEventRow] = {}
        self.donate_events: dict[str, DonateEventRow] = {}
        self.user_harvest_shares: list[UserHarvestShareRow] = []
        self.user_donate_shares: list[UserDonateShareRow] = []

    @asynccontextmanager
    async def transaction(self):
        """Roll every collection back if the block raises."""
        snapshot = copy.deepcopy(self.__dict__)
        try:
            yield self
        except BaseException:
            self.__dict__.update(snapshot)
            raise

    async def insert_yield_token(self, yield_token: str, network: str) -> bool:
        key = (yield_token, network)
        if key in self.yield_tokens:
            return False
        self.yield_tokens.add(key)
        return True

    async def upsert_deposit(self, depositor: str, yield_token: str, network: str, amount: int) -> None:
        row = self.depositors.setdefault(
            (depositor, yield_token, network),
            {
                "yield_token_amount": 0,
                "total_underlying_token_earned": 0.0,
                "total_donation_received": 0.0,
            },
        )
        row["yield_token_amount"] += amount

    async def get_depositor(self, depositor: str, yield_token: str, network: str) -> DepositorRow | None:
        row = self.depositors.get((depositor, yield_token, network))
        if row is None:
            return None
        return DepositorRow(depositor, yield_token, network, **row)

    async def list_depositors(self, yield_token: str, network: str) -> list[str]:
        return sorted(d for (d, y, n) in self.depositors if y == yield_token and n == network)

    async def insert_harvest_event(self, row: HarvestEventRow) -> None:
        if row.id in self.harvest_events:
            raise DuplicateEventError("harvest_event", row.id)
        self.harvest_events[row.id] = row

    async def insert_donate_event(self, row: DonateEventRow) -> None:
        if row.id in self.donate_events:
            raise DuplicateEventError("donate_event", row.id)
        self.donate_events[row.id] = row

    def _check_refs(self, rows, parents: dict, parent_attr: str) -> None:
        for r in rows:
            if (r.depositor, r.yield_token, r.network) not in self.depositors:
                raise ReferentialIntegrityError(f"missing depositor {r.depositor}")
            if getattr(r, parent_attr) not in parents:
                raise ReferentialIntegrityError(f"missing event {getattr(r, parent_attr)}")

    async def insert_user_harvest_shares(self, rows: Sequence[UserHarvestShareRow]) -> None:
        self._check_refs(rows, self.harvest_events, "harvest_id")
        self.user_harvest_shares.extend(rows)

    async def insert_user_donate_shares(self, rows: Sequence[UserDonateShareRow]) -> None:
        self._check_refs(rows, self.donate_events, "donate_id")
        self.user_donate_shares.extend(rows)

    def _increment(self, column: str, increments: Sequence[BalanceIncrement]) -> None:
        merged = merge_increments(increments)
        missing = [i.depositor for i in merged if (i.depositor, i.yield_token, i.network) not in self.depositors]
        if missing:
            raise ReferentialIntegrityError(f"no depositor row for {missing}")
        for inc in merged:
            self.depositors[(inc.depositor, inc.yield_token, inc.network)][column] += inc.amount

    async def increment_earnings(self, increments: Sequence[BalanceIncrement]) -> None:
        self._increment("total_underlying_token_earned", increments)

    async def increment_donations(self, increments: Sequence[BalanceIncrement]) -> None:
        self._increment("total_donation_received", increments)


class FakeAlchemistReader:
    """ContractReader returning canned AlchemistV2 state and recording every read."""

    def __init__(
        self,
        *,
        total_shares: int = 0,
        decimals: int = 18,
        protocol_fee: int = 0,
        positions: dict[str, int] | None = None,
        fail_on: Sequence[str] = (),
    ) -> None:
        self.total_shares = total_shares
        self.decimals = decimals
        self.protocol_fee = protocol_fee
        self.positions = dict(positions or {})
        self.fail_on = set(fail_on)
        self.reads: list[tuple[ContractCall, int]] = []
        self.multicalls: list[tuple[list[ContractCall], int, bool]] = []

    def _maybe_fail(self, function_name: str, block_number: int) -> None:
        if function_name in self.fail_on:
            raise AuxiliaryReadError(function_name, block_number, "execution reverted")

    async def read_contract(self, call: ContractCall, block_number: int) -> Any:
        self.reads.append((call, block_number))
        self._maybe_fail(call.function_name, block_number)
        if call.function_name == "getYieldTokenParameters":
            params = [0] * 15
            params[0] = self.decimals
            params[8] = self.total_shares
            return tuple(params)
        if call.function_name == "protocolFee":
            return self.protocol_fee
        raise AssertionError(f"unexpected read {call.function_name}")

    async def multicall(
        self, calls: Sequence[ContractCall], block_number: int, allow_failure: bool = False
    ) -> list[Any]:
        self.multicalls.append((list(calls), block_number, allow_failure))
        for call in calls:
            self._maybe_fail(call.function_name, block_number)
        # positions(owner, yieldToken) -> (shares, lastAccruedWeight)
        return [(self.positions.get(call.args[0], 0), 0) for call in calls]


def make_log(block_number: int = 100, log_index: int = 0, contract_address: str = ALCHEMIST) -> LogRef:
    return LogRef(
        contract_address=contract_address,
        block_number=block_number,
        log_index=log_index,
        block_hash="0x" + f"{block_number:064x}",
    )


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def reader() -> FakeAlchemistReader:
    return FakeAlchemistReader()


@pytest.fixture
def ctx(store: InMemoryEntityStore, reader: FakeAlchemistReader) -> HandlerContext:
    return HandlerContext(network="mainnet", store=store, reader=reader)
