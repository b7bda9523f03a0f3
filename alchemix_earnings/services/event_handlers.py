"""AlchemistV2 event handlers.

Each handler applies one decoded event to the entity store. Handlers run one
at a time in log order and never commit: the caller wraps each invocation in a
single transaction, so a failure in any step (including an on-chain read)
leaves no partial state behind.

Harvest and Donate allocate the event amount to every depositor of the yield
token pro-rata to their shares at the event's block. When the token's total
share count is zero the allocation is skipped: the event row is recorded, no
share rows are written and no totals change.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable

from alchemix_earnings.models.events import AddYieldToken, AlchemistEvent, Deposit, Donate, Harvest
from alchemix_earnings.services.alchemist_client import ContractReader
from alchemix_earnings.services.aux_state import AuxiliaryStateFetcher
from alchemix_earnings.services.entity_store import (
    BalanceIncrement,
    DonateEventRow,
    EntityStore,
    HarvestEventRow,
    UserDonateShareRow,
    UserHarvestShareRow,
)
from alchemix_earnings.services.share_calculator import donation_share, harvest_earnings, protocol_fee_ratio

logger = logging.getLogger(__name__)


@dataclass
class HandlerContext:
    """Collaborators available to a handler invocation."""

    network: str
    store: EntityStore
    reader: ContractReader
    new_id: Callable[[], uuid.UUID] = uuid.uuid4


async def handle_add_yield_token(event: AddYieldToken, ctx: HandlerContext) -> None:
    created = await ctx.store.insert_yield_token(event.yield_token, ctx.network)
    if created:
        logger.info(f"[{ctx.network}] registered yield token {event.yield_token}")


async def handle_deposit(event: Deposit, ctx: HandlerContext) -> None:
    # Not idempotent: re-delivering the same log adds the amount again.
    await ctx.store.upsert_deposit(event.sender, event.yield_token, ctx.network, event.amount)


async def handle_harvest(event: Harvest, ctx: HandlerContext) -> int:
    """Record a harvest and credit each depositor's post-fee earnings.

    Returns:
        Number of UserHarvestShare rows written.
    """
    harvest_id = event.log.id
    block_number = event.log.block_number

    await ctx.store.insert_harvest_event(
        HarvestEventRow(
            id=harvest_id,
            block_number=block_number,
            yield_token=event.yield_token,
            total_harvested=event.total_harvested,
            credit=event.credit,
            network=ctx.network,
        )
    )

    depositors = await ctx.store.list_depositors(event.yield_token, ctx.network)
    if not depositors:
        logger.info(f"[{ctx.network}] harvest {harvest_id}: no depositors for {event.yield_token}")
        return 0

    state = await AuxiliaryStateFetcher(ctx.reader).fetch(
        event.log.contract_address,
        event.yield_token,
        depositors,
        block_number,
        include_protocol_fee=True,
    )
    if state.total_shares == 0:
        logger.warning(
            f"[{ctx.network}] harvest {harvest_id}: total shares of {event.yield_token} is zero "
            f"at block {block_number}; skipping allocation"
        )
        return 0

    fee = protocol_fee_ratio(state.protocol_fee or 0)
    rows = [
        UserHarvestShareRow(
            id=ctx.new_id(),
            depositor=depositor,
            yield_token=event.yield_token,
            harvest_id=harvest_id,
            shares=state.positions[depositor],
            total_alchemist_shares=state.total_shares,
            user_earnings=harvest_earnings(
                event.total_harvested,
                fee,
                state.positions[depositor],
                state.total_shares,
                state.decimals,
            ),
            block_number=block_number,
            network=ctx.network,
        )
        for depositor in depositors
    ]

    await ctx.store.insert_user_harvest_shares(rows)
    await ctx.store.increment_earnings(
        [BalanceIncrement(r.depositor, r.yield_token, r.network, r.user_earnings) for r in rows]
    )
    logger.info(f"[{ctx.network}] harvest {harvest_id}: allocated to {len(rows)} depositors")
    return len(rows)


async def handle_donate(event: Donate, ctx: HandlerContext) -> int:
    """Record a donation and credit each depositor's share of the burned debt tokens.

    Returns:
        Number of UserDonateShare rows written.
    """
    donate_id = event.log.id
    block_number = event.log.block_number

    await ctx.store.insert_donate_event(
        DonateEventRow(
            id=donate_id,
            block_number=block_number,
            yield_token=event.yield_token,
            debt_tokens_burned=event.amount,
            network=ctx.network,
        )
    )

    depositors = await ctx.store.list_depositors(event.yield_token, ctx.network)
    if not depositors:
        logger.info(f"[{ctx.network}] donate {donate_id}: no depositors for {event.yield_token}")
        return 0

    state = await AuxiliaryStateFetcher(ctx.reader).fetch(
        event.log.contract_address,
        event.yield_token,
        depositors,
        block_number,
    )
    if state.total_shares == 0:
        logger.warning(
            f"[{ctx.network}] donate {donate_id}: total shares of {event.yield_token} is zero "
            f"at block {block_number}; skipping allocation"
        )
        return 0

    rows = [
        UserDonateShareRow(
            id=ctx.new_id(),
            depositor=depositor,
            yield_token=event.yield_token,
            donate_id=donate_id,
            shares=state.positions[depositor],
            total_alchemist_shares=state.total_shares,
            donation_received=donation_share(event.amount, state.positions[depositor], state.total_shares),
            block_number=block_number,
            network=ctx.network,
        )
        for depositor in depositors
    ]

    await ctx.store.insert_user_donate_shares(rows)
    await ctx.store.increment_donations(
        [BalanceIncrement(r.depositor, r.yield_token, r.network, r.donation_received) for r in rows]
    )
    logger.info(f"[{ctx.network}] donate {donate_id}: allocated to {len(rows)} depositors")
    return len(rows)


HANDLERS: dict[type, Callable[[AlchemistEvent, HandlerContext], Awaitable[object]]] = {
    AddYieldToken: handle_add_yield_token,
    Deposit: handle_deposit,
    Harvest: handle_harvest,
    Donate: handle_donate,
}


async def handle_event(event: AlchemistEvent, ctx: HandlerContext) -> object:
    """Dispatch `event` to its handler."""
    try:
        handler = HANDLERS[type(event)]
    except KeyError:
        raise TypeError(f"No handler for event type {type(event).__name__}") from None
    return await handler(event, ctx)
