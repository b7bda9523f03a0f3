"""Decode raw AlchemistV2 logs into typed events."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from web3 import Web3

from alchemix_earnings.models.events import AddYieldToken, AlchemistEvent, Deposit, Donate, Harvest, LogRef
from alchemix_earnings.services.alchemist_abi import ALCHEMIST_EVENT_NAMES, ALCHEMIST_V2_ABI, event_signature


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value.lower()
    return Web3.to_hex(value)


class LogDecoder:
    def __init__(self, w3: Web3 | None = None) -> None:
        # Decoding only needs the codec, no provider.
        contract = (w3 or Web3()).eth.contract(abi=ALCHEMIST_V2_ABI)
        self._events = {
            Web3.to_hex(Web3.keccak(text=event_signature(name))): getattr(contract.events, name)()
            for name in ALCHEMIST_EVENT_NAMES
        }

    @staticmethod
    def _log_ref(log: Mapping[str, Any]) -> LogRef:
        return LogRef(
            contract_address=Web3.to_checksum_address(log["address"]),
            block_number=int(log["blockNumber"]),
            log_index=int(log["logIndex"]),
            block_hash=_hex(log["blockHash"]),
        )

    def decode(self, log: Mapping[str, Any]) -> AlchemistEvent | None:
        """Return the typed event for `log`, or None for topics we don't index."""
        topics = log.get("topics") or []
        if not topics:
            return None
        event_abi = self._events.get(_hex(topics[0]))
        if event_abi is None:
            return None

        decoded = event_abi.process_log(log)
        args = decoded["args"]
        ref = self._log_ref(log)
        name = decoded["event"]

        if name == "AddYieldToken":
            return AddYieldToken(log=ref, yield_token=args["yieldToken"])
        if name == "Deposit":
            return Deposit(
                log=ref,
                sender=args["sender"],
                yield_token=args["yieldToken"],
                amount=int(args["amount"]),
                recipient=args.get("recipient"),
            )
        if name == "Harvest":
            return Harvest(
                log=ref,
                yield_token=args["yieldToken"],
                total_harvested=int(args["totalHarvested"]),
                credit=int(args["credit"]),
                minimum_amount_out=int(args["minimumAmountOut"]),
            )
        return Donate(
            log=ref,
            sender=args["sender"],
            yield_token=args["yieldToken"],
            amount=int(args["amount"]),
        )

    def decode_all(self, logs: Iterable[Mapping[str, Any]]) -> list[AlchemistEvent]:
        """Decode `logs`, drop unrelated ones and return them in chain order."""
        events = [e for e in (self.decode(log) for log in logs) if e is not None]
        return sort_events(events)


def sort_events(events: Iterable[AlchemistEvent]) -> list[AlchemistEvent]:
    return sorted(events, key=lambda e: (e.log.block_number, e.log.log_index))
