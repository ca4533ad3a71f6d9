"""
VOTECHAIN — Blocks and Payloads.

A block is sealed once and never mutated. Payloads are a tagged
variant: genesis marker, vote, or a raw mapping kept verbatim when a
stored block matches neither shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from votechain.canonical import (
    canonical_json,
    compute_block_hash,
    create_vote_hash,
    hash_voter_id,
)

GENESIS_PREVIOUS_HASH = "0"


class PayloadType(str, Enum):
    GENESIS = "GENESIS"
    VOTE = "VOTE"
    RAW = "RAW"


@dataclass(frozen=True)
class GenesisPayload:
    """Marker carried by block 0."""

    message: str
    kind = PayloadType.GENESIS

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message}


@dataclass(frozen=True)
class VotePayload:
    """One cast vote. Only a digest of the voter identity is stored."""

    election_id: str
    candidate_id: Any
    voter_id_hash: str
    vote_hash: str
    timestamp: int
    kind = PayloadType.VOTE

    KEYS = frozenset(
        {"type", "electionId", "candidateId", "voterIdHash", "voteHash", "timestamp"}
    )

    @classmethod
    def build(
        cls, election_id: str, candidate_id: Any, voter_id: str, timestamp: int
    ) -> VotePayload:
        """Hash the voter identity and fingerprint the vote."""
        return cls(
            election_id=election_id,
            candidate_id=candidate_id,
            voter_id_hash=hash_voter_id(voter_id),
            vote_hash=create_vote_hash(election_id, candidate_id, voter_id, timestamp),
            timestamp=timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": PayloadType.VOTE.value,
            "electionId": self.election_id,
            "candidateId": self.candidate_id,
            "voterIdHash": self.voter_id_hash,
            "voteHash": self.vote_hash,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VotePayload:
        return cls(
            election_id=data["electionId"],
            candidate_id=data["candidateId"],
            voter_id_hash=data["voterIdHash"],
            vote_hash=data["voteHash"],
            timestamp=data["timestamp"],
        )


@dataclass(frozen=True)
class RawPayload:
    """Any stored payload shape that is neither genesis nor vote."""

    data: dict[str, Any] = field(default_factory=dict)
    kind = PayloadType.RAW

    def to_dict(self) -> dict[str, Any]:
        return dict(self.data)


Payload = Union[GenesisPayload, VotePayload, RawPayload]


def payload_from_dict(data: dict[str, Any]) -> Payload:
    """Pick the payload variant for a stored mapping.

    Values are never coerced, so re-serialising the result reproduces
    the stored bytes and the stored hash stays checkable.

    Raises:
        TypeError: ``data`` is not a mapping.
    """
    if not isinstance(data, dict):
        raise TypeError(f"block data must be a mapping, got {type(data).__name__}")
    if data.get("type") == PayloadType.VOTE.value and set(data) == VotePayload.KEYS:
        return VotePayload.from_dict(data)
    if set(data) == {"message"} and isinstance(data["message"], str):
        return GenesisPayload(data["message"])
    return RawPayload(dict(data))


@dataclass(frozen=True)
class Block:
    index: int
    timestamp: int
    payload: Payload
    previous_hash: str
    hash: str
    nonce: int

    @property
    def payload_json(self) -> str:
        return canonical_json(self.payload.to_dict())

    def compute_hash(self) -> str:
        """Recompute the hash from the block's own fields."""
        return compute_block_hash(
            self.index, self.previous_hash, self.timestamp, self.payload_json, self.nonce
        )

    @property
    def is_vote(self) -> bool:
        return isinstance(self.payload, VotePayload)

    def to_dict(self) -> dict[str, Any]:
        """In-memory wire form (epoch-millisecond timestamp)."""
        return {
            "index": self.index,
            "timestamp": self.timestamp,
            "data": self.payload.to_dict(),
            "previousHash": self.previous_hash,
            "hash": self.hash,
            "nonce": self.nonce,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Block:
        return cls(
            index=int(data["index"]),
            timestamp=int(data["timestamp"]),
            payload=payload_from_dict(data.get("data") or {}),
            previous_hash=data["previousHash"],
            hash=data["hash"],
            nonce=int(data["nonce"]),
        )


@dataclass(frozen=True)
class VoteRecord:
    """Query view over a vote block. Not persisted separately."""

    election_id: str
    candidate_id: Any
    voter_id_hash: str
    vote_hash: str
    block_index: int
    block_hash: str
    timestamp: int

    @classmethod
    def from_block(cls, block: Block) -> VoteRecord:
        if not isinstance(block.payload, VotePayload):
            raise ValueError(f"Block #{block.index} does not carry a vote")
        vote = block.payload
        return cls(
            election_id=vote.election_id,
            candidate_id=vote.candidate_id,
            voter_id_hash=vote.voter_id_hash,
            vote_hash=vote.vote_hash,
            block_index=block.index,
            block_hash=block.hash,
            timestamp=vote.timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "electionId": self.election_id,
            "candidateId": self.candidate_id,
            "voterIdHash": self.voter_id_hash,
            "voteHash": self.vote_hash,
            "blockIndex": self.block_index,
            "blockHash": self.block_hash,
            "timestamp": self.timestamp,
        }
