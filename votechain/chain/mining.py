"""
VOTECHAIN — Proof-of-Work Sealing.

Nonce search over the block hash input. The work is a bounded local
delay: anyone holding the store can re-mine a rewritten chain, so
difficulty rate-limits writers and proves nothing about tampering.
"""

from __future__ import annotations

import logging

from votechain import config
from votechain.canonical import canonical_json, compute_block_hash
from votechain.chain.block import Block, Payload
from votechain.exceptions import MiningExhausted

logger = logging.getLogger("votechain.chain.mining")

MAX_DIFFICULTY = 64  # SHA-256 hex length


def meets_difficulty(block_hash: str, difficulty: int) -> bool:
    """True if ``block_hash`` starts with ``difficulty`` hex zeros."""
    return block_hash.startswith("0" * difficulty)


def mine_block(
    index: int,
    previous_hash: str,
    timestamp: int,
    payload: Payload,
    difficulty: int,
    *,
    max_attempts: int | None = None,
) -> Block:
    """Find the smallest nonce whose hash meets ``difficulty`` and seal the block.

    Raises:
        ValueError: difficulty outside ``0..64``.
        MiningExhausted: no nonce found within ``max_attempts`` tries.
    """
    if not 0 <= difficulty <= MAX_DIFFICULTY:
        raise ValueError(f"difficulty must be between 0 and {MAX_DIFFICULTY}, got {difficulty}")
    if max_attempts is None:
        max_attempts = config.MAX_MINING_ATTEMPTS

    payload_json = canonical_json(payload.to_dict())
    target = "0" * difficulty

    for nonce in range(max_attempts):
        candidate = compute_block_hash(index, previous_hash, timestamp, payload_json, nonce)
        if candidate.startswith(target):
            logger.debug("Block #%d mined: %s (nonce=%d)", index, candidate, nonce)
            return Block(
                index=index,
                timestamp=timestamp,
                payload=payload,
                previous_hash=previous_hash,
                hash=candidate,
                nonce=nonce,
            )

    raise MiningExhausted(index, max_attempts, difficulty)
