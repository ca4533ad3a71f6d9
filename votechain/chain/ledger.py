"""
VOTECHAIN — Append-Only Vote Ledger.

In-memory chain of sealed blocks with hash-linkage validation.
The ledger never touches storage itself; ``votechain.chain.sync``
loads it from and writes it to a persistence gateway.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Any, Callable, Iterable, Iterator

from votechain import config
from votechain.chain.block import (
    GENESIS_PREVIOUS_HASH,
    Block,
    GenesisPayload,
    Payload,
    VotePayload,
    VoteRecord,
)
from votechain.chain.mining import meets_difficulty, mine_block
from votechain.exceptions import EmptyChain, GenesisExists

logger = logging.getLogger("votechain.chain.ledger")


def wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class Ledger:
    """
    Ordered, contiguous sequence of blocks from genesis to latest.
    Owns the mining parameters and the validation rules.
    """

    def __init__(
        self,
        difficulty: int | None = None,
        *,
        genesis_message: str | None = None,
        clock: Callable[[], int] | None = None,
        max_attempts: int | None = None,
    ):
        self.difficulty = config.DIFFICULTY if difficulty is None else difficulty
        self.genesis_message = (
            config.GENESIS_MESSAGE if genesis_message is None else genesis_message
        )
        self.max_attempts = max_attempts
        self._clock = clock or wall_clock_ms
        self._chain: list[Block] = []
        self._persisted_height = 0

    @classmethod
    def from_blocks(cls, blocks: Iterable[Block], **kwargs: Any) -> Ledger:
        """Rebuild a ledger from stored blocks, already in index order."""
        ledger = cls(**kwargs)
        ledger._chain = list(blocks)
        ledger._persisted_height = len(ledger._chain)
        return ledger

    # ─── Read access ─────────────────────────────────────────────────

    @property
    def chain(self) -> tuple[Block, ...]:
        return tuple(self._chain)

    def __len__(self) -> int:
        return len(self._chain)

    def __iter__(self) -> Iterator[Block]:
        return iter(self._chain)

    def latest(self) -> Block:
        if not self._chain:
            raise EmptyChain("Ledger has no genesis block")
        return self._chain[-1]

    # ─── Writes ──────────────────────────────────────────────────────

    def _seal(self, index: int, previous_hash: str, payload: Payload) -> Block:
        return mine_block(
            index,
            previous_hash,
            self._clock(),
            payload,
            self.difficulty,
            max_attempts=self.max_attempts,
        )

    def create_genesis(self, payload: Payload | None = None) -> Block:
        """Mine block 0 with the sentinel previous hash."""
        if self._chain:
            raise GenesisExists(f"Ledger already holds {len(self._chain)} blocks")
        if payload is None:
            payload = GenesisPayload(self.genesis_message)

        block = self._seal(0, GENESIS_PREVIOUS_HASH, payload)
        self._chain.append(block)
        logger.info("Genesis block created: %s", block.hash)
        return block

    def append(self, payload: Payload) -> Block:
        """Mine a block on top of the latest one. Seeds genesis if empty."""
        if not self._chain:
            self.create_genesis()
        last = self._chain[-1]
        block = self._seal(last.index + 1, last.hash, payload)
        self._chain.append(block)
        return block

    # ─── Persistence bookkeeping ─────────────────────────────────────

    def unpersisted(self) -> list[Block]:
        """Blocks appended in memory whose write is not yet confirmed."""
        return self._chain[self._persisted_height:]

    def mark_persisted(self, block: Block) -> None:
        """Confirm the write of the next unpersisted block."""
        if self._persisted_height >= len(self._chain):
            raise ValueError("No unpersisted blocks to confirm")
        expected = self._chain[self._persisted_height]
        if block.index != expected.index or block.hash != expected.hash:
            raise ValueError(
                f"Block #{block.index} confirmed out of order (expected #{expected.index})"
            )
        self._persisted_height += 1

    # ─── Validation ──────────────────────────────────────────────────

    def _violations(self) -> Iterator[dict[str, Any]]:
        previous: Block | None = None
        for position, block in enumerate(self._chain):
            if previous is None:
                if block.index != 0 or block.previous_hash != GENESIS_PREVIOUS_HASH:
                    yield {
                        "index": block.index,
                        "type": "GENESIS_MISMATCH",
                        "expected": f"index 0, previous hash {GENESIS_PREVIOUS_HASH!r}",
                        "actual": f"index {block.index}, previous hash {block.previous_hash!r}",
                    }
            else:
                if block.index != previous.index + 1:
                    yield {
                        "index": block.index,
                        "type": "INDEX_GAP",
                        "expected": previous.index + 1,
                        "actual": block.index,
                        "position": position,
                    }
                if block.previous_hash != previous.hash:
                    yield {
                        "index": block.index,
                        "type": "CHAIN_BREAK",
                        "expected": previous.hash,
                        "actual": block.previous_hash,
                    }

            computed = block.compute_hash()
            if computed != block.hash:
                yield {
                    "index": block.index,
                    "type": "DATA_TAMPERING",
                    "expected": block.hash,
                    "actual": computed,
                }
            if not meets_difficulty(block.hash, self.difficulty):
                yield {
                    "index": block.index,
                    "type": "INSUFFICIENT_WORK",
                    "expected": self.difficulty,
                    "actual": len(block.hash) - len(block.hash.lstrip("0")),
                }
            previous = block

    def is_valid(self) -> bool:
        """Stop at the first violation. Never mutates the chain."""
        return next(self._violations(), None) is None

    def validate(self) -> dict[str, Any]:
        """Audit the whole chain and list every violation."""
        violations = list(self._violations())
        return {
            "valid": not violations,
            "violations": violations,
            "blocks_checked": len(self._chain),
        }

    # ─── Vote queries ────────────────────────────────────────────────

    def votes(self, election_id: str | None = None) -> list[VoteRecord]:
        records = []
        for block in self._chain:
            if not isinstance(block.payload, VotePayload):
                continue
            if election_id is not None and block.payload.election_id != election_id:
                continue
            records.append(VoteRecord.from_block(block))
        return records

    def tally(self, election_id: str) -> Counter:
        """Votes per candidate id for one election."""
        return Counter(record.candidate_id for record in self.votes(election_id))

    def __repr__(self) -> str:
        return f"Ledger(blocks={len(self._chain)}, difficulty={self.difficulty})"
