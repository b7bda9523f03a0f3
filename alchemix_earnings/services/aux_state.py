"""On-chain state needed to allocate a harvest or donation.

The event payload only carries the harvested/burned amount. Share totals,
token decimals, the protocol fee and each depositor's share count are read
from the alchemist at the event's block.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Sequence

from alchemix_earnings.core.exceptions import AuxiliaryReadError
from alchemix_earnings.services.alchemist_abi import (
    YIELD_TOKEN_PARAMS_DECIMALS,
    YIELD_TOKEN_PARAMS_TOTAL_SHARES,
)
from alchemix_earnings.services.alchemist_client import ContractCall, ContractReader


@dataclass(frozen=True)
class YieldTokenParameters:
    decimals: int
    total_shares: int


@dataclass(frozen=True)
class AuxiliaryState:
    total_shares: int
    decimals: int
    # depositor address -> raw shares
    positions: dict[str, int] = field(default_factory=dict)
    protocol_fee: int | None = None


class AuxiliaryStateFetcher:
    def __init__(self, reader: ContractReader) -> None:
        self._reader = reader

    async def yield_token_parameters(
        self, alchemist: str, yield_token: str, block_number: int
    ) -> YieldTokenParameters:
        params = await self._reader.read_contract(
            ContractCall(alchemist, "getYieldTokenParameters", (yield_token,)), block_number
        )
        return YieldTokenParameters(
            decimals=int(params[YIELD_TOKEN_PARAMS_DECIMALS]),
            total_shares=int(params[YIELD_TOKEN_PARAMS_TOTAL_SHARES]),
        )

    async def protocol_fee(self, alchemist: str, block_number: int) -> int:
        return int(await self._reader.read_contract(ContractCall(alchemist, "protocolFee"), block_number))

    async def position_shares(
        self,
        alchemist: str,
        yield_token: str,
        depositors: Sequence[str],
        block_number: int,
    ) -> dict[str, int]:
        """Shares held by each depositor, read in one all-or-nothing multicall."""
        if not depositors:
            return {}
        calls = [ContractCall(alchemist, "positions", (d, yield_token)) for d in depositors]
        results = await self._reader.multicall(calls, block_number, allow_failure=False)
        if len(results) != len(depositors):
            raise AuxiliaryReadError(
                "positions",
                block_number,
                f"expected {len(depositors)} results, got {len(results)}",
            )
        # positions() returns (shares, lastAccruedWeight)
        return {d: int(r[0]) for d, r in zip(depositors, results)}

    async def fetch(
        self,
        alchemist: str,
        yield_token: str,
        depositors: Sequence[str],
        block_number: int,
        *,
        include_protocol_fee: bool = False,
    ) -> AuxiliaryState:
        """Issue all reads concurrently; the first failure fails the fetch."""
        reads = [
            self.yield_token_parameters(alchemist, yield_token, block_number),
            self.position_shares(alchemist, yield_token, depositors, block_number),
        ]
        if include_protocol_fee:
            reads.append(self.protocol_fee(alchemist, block_number))

        results = await asyncio.gather(*reads)
        params, positions = results[0], results[1]
        return AuxiliaryState(
            total_shares=params.total_shares,
            decimals=params.decimals,
            positions=positions,
            protocol_fee=results[2] if include_protocol_fee else None,
        )
