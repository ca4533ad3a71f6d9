"""
VOTECHAIN — Ledger Synchronisation.

The store is the source of truth across sessions: every write or
verification starts from a full reload, and a block only counts as
recorded once its write has returned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from votechain.chain.block import Block
from votechain.chain.ledger import Ledger
from votechain.storage import PersistenceGateway, guarded

logger = logging.getLogger("votechain.chain.sync")


async def load_ledger(
    gateway: PersistenceGateway,
    *,
    timeout: float | None = None,
    seed: bool = True,
    **ledger_kwargs: Any,
) -> Ledger:
    """Rebuild the ledger from every stored block.

    A load failure raises ``PersistenceError`` and yields no ledger.
    An empty store is not an error: with ``seed`` the ledger gets a
    freshly mined genesis block that is not yet persisted.
    """
    blocks = await guarded(
        gateway.load_all_ordered(), timeout=timeout, operation="load_all_ordered"
    )
    ledger = Ledger.from_blocks(blocks, **ledger_kwargs)

    if not blocks and seed:
        await asyncio.to_thread(ledger.create_genesis)

    logger.info("Loaded %d blocks from store", len(blocks))
    return ledger


async def persist_pending(
    ledger: Ledger,
    gateway: PersistenceGateway,
    *,
    timeout: float | None = None,
    exclusive: bool = True,
) -> list[Block]:
    """Write every unpersisted block in index order.

    With ``exclusive`` each write is conditional and a taken index
    raises ``ConflictError``; otherwise blocks are upserted.
    """
    written = []
    for block in ledger.unpersisted():
        write = gateway.insert_block(block) if exclusive else gateway.put_block(block)
        await guarded(write, timeout=timeout, operation=f"write block #{block.index}")
        ledger.mark_persisted(block)
        written.append(block)
        logger.info("Persisted block #%d (%s)", block.index, block.hash[:16])
    return written
