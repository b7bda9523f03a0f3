"""Prefect flow: index AlchemistV2 events for one network.

This module implements:
- Walk the chain from the stored checkpoint in fixed block windows
- Fetch and decode AddYieldToken / Deposit / Harvest / Donate logs
- Apply each event in its own transaction, together with the checkpoint
  advance, so a log is applied at most once and never half-applied

Events are applied strictly in (block, log index) order. Reorgs are not
handled; use CONFIRMATIONS to stay behind the head.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Sequence

from prefect import flow, get_run_logger, task
from prefect.cache_policies import NO_CACHE
from prefect.exceptions import MissingContextError
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession
from web3 import Web3

from alchemix_earnings.core.config import settings
from alchemix_earnings.core.database import AsyncSessionLocal
from alchemix_earnings.core.deployments import AlchemistDeployment, get_deployment, rpc_url_for
from alchemix_earnings.models.alchemist import BLOCK_DONE, IndexerCheckpoint
from alchemix_earnings.models.events import AlchemistEvent
from alchemix_earnings.services.alchemist_client import AlchemistRpcClient, ContractReader
from alchemix_earnings.services.entity_store import PostgresEntityStore
from alchemix_earnings.services.event_handlers import HandlerContext, handle_event
from alchemix_earnings.services.log_decoder import LogDecoder

# (block number, log index) of the last applied log
Position = tuple[int, int]


def _get_logger() -> logging.Logger:
    """Return a logger usable both inside and outside Prefect contexts."""
    try:
        return get_run_logger()  # type: ignore[return-value]
    except MissingContextError:
        return logging.getLogger(__name__)


def plan_block_ranges(start: int, end: int, step: int) -> list[tuple[int, int]]:
    """Split the inclusive range [start, end] into windows of at most `step` blocks."""
    if step <= 0:
        raise ValueError("step must be positive")
    return [(lo, min(lo + step - 1, end)) for lo in range(start, end + 1, step)]


def next_block(position: Position) -> int:
    """First block that may still hold unapplied logs."""
    block, log_index = position
    return block + 1 if log_index == BLOCK_DONE else block


def is_pending(event: AlchemistEvent, position: Position) -> bool:
    return (event.log.block_number, event.log.log_index) > position


async def load_checkpoints(session: AsyncSession, deployment: AlchemistDeployment) -> dict[str, Position]:
    """Checkpoint per alchemist; contracts never indexed start just before the deployment block."""
    rows = (
        await session.execute(
            select(IndexerCheckpoint).where(IndexerCheckpoint.network == deployment.network)
        )
    ).scalars().all()
    stored = {Web3.to_checksum_address(r.contract_address): (int(r.last_block), int(r.last_log_index)) for r in rows}

    out: dict[str, Position] = {}
    for address in deployment.alchemists:
        key = Web3.to_checksum_address(address)
        out[key] = stored.get(key, (deployment.start_block - 1, BLOCK_DONE))
    return out


async def save_checkpoint(session: AsyncSession, network: str, contract_address: str, position: Position) -> None:
    stmt = insert(IndexerCheckpoint).values(
        network=network,
        contract_address=Web3.to_checksum_address(contract_address),
        last_block=position[0],
        last_log_index=position[1],
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[IndexerCheckpoint.network, IndexerCheckpoint.contract_address],
        set_={
            "last_block": stmt.excluded.last_block,
            "last_log_index": stmt.excluded.last_log_index,
        },
    )
    await session.execute(stmt)


async def apply_event(
    event: AlchemistEvent,
    network: str,
    reader: ContractReader,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
) -> Any:
    """Run the handler for `event` and advance its contract's checkpoint in one transaction."""
    async with session_factory() as session:
        async with session.begin():
            ctx = HandlerContext(network=network, store=PostgresEntityStore(session), reader=reader)
            result = await handle_event(event, ctx)
            await save_checkpoint(
                session,
                network,
                event.log.contract_address,
                (event.log.block_number, event.log.log_index),
            )
    return result


@task(retries=3, retry_delay_seconds=[10, 30, 60], cache_policy=NO_CACHE)
async def fetch_logs_task(
    client: AlchemistRpcClient, addresses: Sequence[str], from_block: int, to_block: int
) -> list[Any]:
    """Fetch raw alchemist logs for one block window."""
    return await asyncio.to_thread(client.get_logs, addresses, from_block, to_block)


@flow(name="alchemist-sync", log_prints=True)
async def sync_alchemist_flow(network: str = "mainnet", to_block: int | None = None) -> int:
    """Index AlchemistV2 events on `network` up to `to_block` (default: head - CONFIRMATIONS).

    Any handler failure is logged and re-raised, failing the run; the failing
    event's transaction is rolled back and the next run resumes from it.

    Returns:
        Number of events applied.
    """
    logger = _get_logger()
    deployment = get_deployment(network)
    client = AlchemistRpcClient(rpc_url_for(deployment.network))
    decoder = LogDecoder()

    async with AsyncSessionLocal() as session:
        checkpoints = await load_checkpoints(session, deployment)

    if to_block is None:
        to_block = await asyncio.to_thread(client.block_number) - settings.CONFIRMATIONS

    start = min(next_block(p) for p in checkpoints.values())
    if start > to_block:
        logger.info(f"[{deployment.network}] up to date at block {to_block}")
        return 0

    applied = 0
    for lo, hi in plan_block_ranges(start, to_block, settings.LOG_BLOCK_RANGE):
        logs = await fetch_logs_task(client, deployment.alchemists, lo, hi)
        events = decoder.decode_all(logs)

        for event in events:
            key = Web3.to_checksum_address(event.log.contract_address)
            position = checkpoints.get(key)
            if position is None or not is_pending(event, position):
                continue
            try:
                await apply_event(event, deployment.network, client)
            except Exception:
                logger.exception(
                    f"[{deployment.network}] failed to apply {type(event).__name__} {event.log.id} "
                    f"at block {event.log.block_number}"
                )
                raise
            checkpoints[key] = (event.log.block_number, event.log.log_index)
            applied += 1

        # Mark the whole window as applied so empty ranges are not scanned again.
        window_done = (hi, BLOCK_DONE)
        async with AsyncSessionLocal() as session:
            async with session.begin():
                for key, position in checkpoints.items():
                    if position < window_done:
                        await save_checkpoint(session, deployment.network, key, window_done)
                        checkpoints[key] = window_done

        logger.info(f"[{deployment.network}] blocks {lo}-{hi}: {len(events)} logs, {applied} applied so far")

    logger.info(f"[{deployment.network}] synced to block {to_block}: {applied} events applied")
    return applied
