from __future__ import annotations

import pytest

from conftest import ALCHEMIST, ALICE, BOB, YIELD_TOKEN, FakeAlchemistReader

from alchemix_earnings.core.exceptions import AuxiliaryReadError
from alchemix_earnings.services.aux_state import AuxiliaryStateFetcher


@pytest.mark.asyncio
async def test_fetch_reads_params_positions_and_fee_at_block() -> None:
    reader = FakeAlchemistReader(total_shares=900, decimals=6, protocol_fee=1000, positions={ALICE: 300, BOB: 600})

    state = await AuxiliaryStateFetcher(reader).fetch(
        ALCHEMIST, YIELD_TOKEN, [ALICE, BOB], 1234, include_protocol_fee=True
    )

    assert state.total_shares == 900
    assert state.decimals == 6
    assert state.protocol_fee == 1000
    assert state.positions == {ALICE: 300, BOB: 600}
    assert all(block == 1234 for _, block in reader.reads)
    assert [block for _, block, _ in reader.multicalls] == [1234]


@pytest.mark.asyncio
async def test_fetch_without_fee_does_not_read_it() -> None:
    reader = FakeAlchemistReader(total_shares=1, positions={ALICE: 1})

    state = await AuxiliaryStateFetcher(reader).fetch(ALCHEMIST, YIELD_TOKEN, [ALICE], 5)

    assert state.protocol_fee is None
    assert [c.function_name for c, _ in reader.reads] == ["getYieldTokenParameters"]


@pytest.mark.asyncio
async def test_position_shares_skips_multicall_for_no_depositors() -> None:
    reader = FakeAlchemistReader()

    assert await AuxiliaryStateFetcher(reader).position_shares(ALCHEMIST, YIELD_TOKEN, [], 5) == {}
    assert reader.multicalls == []


@pytest.mark.asyncio
async def test_position_shares_result_count_mismatch_is_a_read_error() -> None:
    class ShortReader(FakeAlchemistReader):
        async def multicall(self, calls, block_number, allow_failure=False):
            return [(1, 0)]

    with pytest.raises(AuxiliaryReadError) as err:
        await AuxiliaryStateFetcher(ShortReader()).position_shares(ALCHEMIST, YIELD_TOKEN, [ALICE, BOB], 5)
    assert err.value.block_number == 5


@pytest.mark.asyncio
async def test_fetch_propagates_any_read_failure() -> None:
    reader = FakeAlchemistReader(total_shares=1, positions={ALICE: 1}, fail_on=["protocolFee"])

    with pytest.raises(AuxiliaryReadError):
        await AuxiliaryStateFetcher(reader).fetch(
            ALCHEMIST, YIELD_TOKEN, [ALICE], 5, include_protocol_fee=True
        )
