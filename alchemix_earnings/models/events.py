"""Typed AlchemistV2 events consumed by the handlers.

One frozen dataclass per event kind. Every event carries the `LogRef` of the
log it was decoded from; amounts are raw uint256 integers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class LogRef:
    contract_address: str
    block_number: int
    log_index: int
    block_hash: str

    @property
    def id(self) -> str:
        """Unique per-log identifier, `<block hash>-<log index>`."""
        return f"{self.block_hash}-{self.log_index}"


@dataclass(frozen=True)
class AddYieldToken:
    log: LogRef
    yield_token: str


@dataclass(frozen=True)
class Deposit:
    log: LogRef
    sender: str
    yield_token: str
    amount: int
    recipient: str | None = None


@dataclass(frozen=True)
class Harvest:
    log: LogRef
    yield_token: str
    total_harvested: int
    credit: int
    minimum_amount_out: int = 0


@dataclass(frozen=True)
class Donate:
    log: LogRef
    sender: str
    yield_token: str
    amount: int


AlchemistEvent = Union[AddYieldToken, Deposit, Harvest, Donate]
