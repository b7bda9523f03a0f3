"""Web3 client for AlchemistV2 reads and log queries.

Reads are pinned to a block number. Batched reads go through Multicall3
`aggregate3`; with `allow_failure=False` a single failing call reverts the
whole batch, and any failure is surfaced as `AuxiliaryReadError`.

The underlying `Web3` instance is synchronous; async entry points run the
blocking call in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from web3 import Web3

from alchemix_earnings.core.config import settings
from alchemix_earnings.core.exceptions import AuxiliaryReadError
from alchemix_earnings.services.alchemist_abi import (
    ALCHEMIST_EVENT_NAMES,
    ALCHEMIST_V2_ABI,
    MULTICALL3_ABI,
    event_signature,
    output_types,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractCall:
    """A view call against an AlchemistV2 contract."""

    address: str
    function_name: str
    args: tuple[Any, ...] = ()


class ContractReader(Protocol):
    async def read_contract(self, call: ContractCall, block_number: int) -> Any: ...

    async def multicall(
        self,
        calls: Sequence[ContractCall],
        block_number: int,
        allow_failure: bool = False,
    ) -> list[Any]: ...


def event_topics() -> list[str]:
    """topic0 of every indexed AlchemistV2 event."""
    return [Web3.to_hex(Web3.keccak(text=event_signature(name))) for name in ALCHEMIST_EVENT_NAMES]


class AlchemistRpcClient:
    def __init__(
        self,
        rpc_url: str,
        *,
        multicall_address: str | None = None,
        batch_size: int | None = None,
        request_timeout_seconds: int | None = None,
        w3: Web3 | None = None,
    ) -> None:
        timeout = request_timeout_seconds or settings.RPC_REQUEST_TIMEOUT_SECONDS
        self._w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self._batch_size = batch_size or settings.MULTICALL_BATCH_SIZE
        self._multicall = self._w3.eth.contract(
            address=self._checksum(multicall_address or settings.MULTICALL3_ADDRESS),
            abi=MULTICALL3_ABI,
        )

    @staticmethod
    def _checksum(address: str) -> str:
        return Web3.to_checksum_address(address)

    def _bound_function(self, call: ContractCall):
        contract = self._w3.eth.contract(address=self._checksum(call.address), abi=ALCHEMIST_V2_ABI)
        return contract.get_function_by_name(call.function_name)(*call.args)

    def _decode(self, call: ContractCall, data: bytes) -> Any:
        decoded = self._w3.codec.decode(output_types(call.function_name), data)
        return decoded[0] if len(decoded) == 1 else tuple(decoded)

    # --- reads ---

    def read_contract_sync(self, call: ContractCall, block_number: int) -> Any:
        try:
            return self._bound_function(call).call(block_identifier=block_number)
        except Exception as exc:
            raise AuxiliaryReadError(call.function_name, block_number, str(exc)) from exc

    def multicall_sync(
        self,
        calls: Sequence[ContractCall],
        block_number: int,
        allow_failure: bool = False,
    ) -> list[Any]:
        """Execute `calls` in Multicall3 batches and return decoded results in order.

        With `allow_failure=True` a failed call yields None in its slot.
        """
        results: list[Any] = []
        for i in range(0, len(calls), self._batch_size):
            chunk = calls[i : i + self._batch_size]
            payload = [
                {
                    "target": self._checksum(c.address),
                    "allowFailure": allow_failure,
                    "callData": Web3.to_bytes(hexstr=self._bound_function(c)._encode_transaction_data()),
                }
                for c in chunk
            ]
            try:
                raw = self._multicall.functions.aggregate3(payload).call(block_identifier=block_number)
            except Exception as exc:
                raise AuxiliaryReadError("aggregate3", block_number, str(exc)) from exc

            for call, (success, data) in zip(chunk, raw):
                if not success:
                    if not allow_failure:
                        raise AuxiliaryReadError(call.function_name, block_number, "call reverted")
                    results.append(None)
                    continue
                results.append(self._decode(call, data))

        logger.debug(f"multicall: {len(results)} results at block {block_number}")
        return results

    async def read_contract(self, call: ContractCall, block_number: int) -> Any:
        return await asyncio.to_thread(self.read_contract_sync, call, block_number)

    async def multicall(
        self,
        calls: Sequence[ContractCall],
        block_number: int,
        allow_failure: bool = False,
    ) -> list[Any]:
        return await asyncio.to_thread(self.multicall_sync, calls, block_number, allow_failure)

    # --- logs ---

    def block_number(self) -> int:
        return int(self._w3.eth.block_number)

    def get_logs(self, addresses: Sequence[str], from_block: int, to_block: int) -> list[Any]:
        """Raw AlchemistV2 logs for `addresses` in the inclusive block range."""
        return list(
            self._w3.eth.get_logs(
                {
                    "fromBlock": from_block,
                    "toBlock": to_block,
                    "address": [self._checksum(a) for a in addresses],
                    "topics": [event_topics()],
                }
            )
        )
