"""
VOTECHAIN — Vote Recorder.

Turns a cast vote into a mined, persisted ledger block and hands the
caller a receipt. The application-level "has voted" flag lives
outside the ledger: callers set it only after a successful receipt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from votechain import config
from votechain.chain.block import Block, VotePayload
from votechain.chain.ledger import wall_clock_ms
from votechain.chain.sync import load_ledger, persist_pending
from votechain.exceptions import ConflictError, MiningExhausted, PersistenceError
from votechain.storage import PersistenceGateway

logger = logging.getLogger("votechain.recorder")


class VoteErrorKind(str, Enum):
    PERSISTENCE_FAILURE = "PersistenceFailure"
    MINING_EXHAUSTED = "MiningExhausted"
    CONFLICT = "Conflict"


@dataclass
class VoteReceipt:
    success: bool
    transaction_hash: str | None = None
    block_index: int | None = None
    error: str | None = None
    error_kind: VoteErrorKind | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.transaction_hash is not None:
            result["transactionHash"] = self.transaction_hash
        if self.error is not None:
            result["error"] = self.error
        return result


class VoteRecorder:
    """
    Records votes on the ledger.
    Each call reloads the chain from the store, mines one block and
    writes it with a conditional insert. A lost race for the same index
    is retried from a fresh reload.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        difficulty: int | None = None,
        genesis_message: str | None = None,
        timeout: float | None = None,
        conflict_retries: int | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self.gateway = gateway
        self.difficulty = difficulty
        self.genesis_message = genesis_message
        self.timeout = timeout
        self.conflict_retries = conflict_retries
        self._clock = clock or wall_clock_ms

    async def _load(self):
        return await load_ledger(
            self.gateway,
            timeout=self.timeout,
            difficulty=self.difficulty,
            genesis_message=self.genesis_message,
            clock=self._clock,
        )

    async def append_vote(self, election_id: str, candidate_id: Any, voter_id: str) -> Block:
        """Mine and persist one vote block.

        Raises:
            PersistenceError: store unreachable, timed out or rejected a write.
            ConflictError: still losing the race after every retry.
            MiningExhausted: nonce search hit its cap.
        """
        retries = config.CONFLICT_RETRIES if self.conflict_retries is None else self.conflict_retries

        attempt = 0
        while True:
            ledger = await self._load()
            payload = VotePayload.build(election_id, candidate_id, voter_id, self._clock())
            block = await asyncio.to_thread(ledger.append, payload)
            try:
                await persist_pending(ledger, self.gateway, timeout=self.timeout)
            except ConflictError:
                if attempt >= retries:
                    raise
                attempt += 1
                logger.warning(
                    "Block #%d was taken by another writer, re-appending (attempt %d/%d)",
                    block.index, attempt, retries,
                )
                continue

            logger.info(
                "Vote sealed: election %s | block #%d | hash %s...",
                election_id, block.index, block.hash[:8],
            )
            return block

    async def record_vote(self, election_id: str, candidate_id: Any, voter_id: str) -> VoteReceipt:
        """Record a vote and report the outcome as a receipt."""
        try:
            block = await self.append_vote(election_id, candidate_id, voter_id)
        except ConflictError as e:
            logger.error("Vote for election %s lost every append race: %s", election_id, e)
            return VoteReceipt(False, error=str(e), error_kind=VoteErrorKind.CONFLICT)
        except PersistenceError as e:
            logger.error("Vote for election %s not persisted: %s", election_id, e)
            return VoteReceipt(False, error=str(e), error_kind=VoteErrorKind.PERSISTENCE_FAILURE)
        except MiningExhausted as e:
            logger.error("Vote for election %s not mined: %s", election_id, e)
            return VoteReceipt(False, error=str(e), error_kind=VoteErrorKind.MINING_EXHAUSTED)

        return VoteReceipt(True, transaction_hash=block.hash, block_index=block.index)

    async def initialize_chain(self) -> bool:
        """Write the genesis block if the store is empty.

        Returns:
            True if a genesis block was created, False if the chain
            already existed.
        """
        ledger = await self._load()
        if not ledger.unpersisted():
            logger.info("Blockchain already initialized (%d blocks)", len(ledger))
            return False

        await persist_pending(ledger, self.gateway, timeout=self.timeout)
        logger.info("Initialized blockchain with genesis block %s", ledger.latest().hash)
        return True
