"""
VOTECHAIN — Block Document Codec.

Persisted shape, one document per block:
    {index, timestamp: <datetime>, data: {...}, previousHash, hash, nonce}

In memory the timestamp is epoch milliseconds; in the store it is a
timezone-aware UTC datetime. Conversion uses integer arithmetic so a
round trip is exact.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from votechain.chain.block import Block, payload_from_dict

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)


def ms_to_datetime(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // ONE_MS


def document_id(index: int) -> str:
    return str(index)


def block_to_document(block: Block) -> dict[str, Any]:
    return {
        "index": block.index,
        "timestamp": ms_to_datetime(block.timestamp),
        "data": block.payload.to_dict(),
        "previousHash": block.previous_hash,
        "hash": block.hash,
        "nonce": block.nonce,
    }


def document_to_block(doc: dict[str, Any]) -> Block:
    timestamp = doc["timestamp"]
    if isinstance(timestamp, datetime):
        timestamp = datetime_to_ms(timestamp)
    return Block(
        index=int(doc["index"]),
        timestamp=int(timestamp),
        payload=payload_from_dict(doc.get("data") or {}),
        previous_hash=doc["previousHash"],
        hash=doc["hash"],
        nonce=int(doc["nonce"]),
    )
