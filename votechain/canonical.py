"""VOTECHAIN — Canonical Hash Construction.

Provides deterministic JSON serialization and the block hash input
encoding for the vote ledger.

Block hash input (decimal numbers, no separators):
    f"{index}{previous_hash}{timestamp}{canonical_payload}{nonce}"
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

# ─── Canonical JSON ───────────────────────────────────────────────


def canonical_json(obj: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace, UTF-8 kept as-is.

    Guarantees identical output for semantically identical input
    regardless of Python dict insertion order.

    Args:
        obj: Any JSON-serializable object.

    Returns:
        Canonical JSON string.
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"),
        ensure_ascii=False, default=str,
    )


# ─── Digests ──────────────────────────────────────────────────────


def digest(data: bytes | str) -> str:
    """SHA-256 hex digest. ``str`` input is UTF-8 encoded first."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def compute_block_hash(
    index: int,
    previous_hash: str,
    timestamp: int,
    payload_json: str,
    nonce: int,
) -> str:
    """Compute the hash of a block from its sealed fields.

    Args:
        index: Block height, 0 for genesis.
        previous_hash: Hash of the preceding block, or "0" for genesis.
        timestamp: Creation time in epoch milliseconds.
        payload_json: Canonical JSON of the block payload.
        nonce: Proof-of-work nonce.

    Returns:
        SHA-256 hex digest of the concatenated fields.
    """
    return digest(f"{index}{previous_hash}{timestamp}{payload_json}{nonce}")


def create_vote_hash(election_id: str, candidate_id: Any, voter_id: str, timestamp: int) -> str:
    """Fingerprint of a single cast vote."""
    return digest(f"{election_id}|{candidate_id}|{voter_id}|{timestamp}")


def hash_voter_id(voter_id: str) -> str:
    """Digest stored in place of the raw voter identity."""
    return digest(voter_id)
