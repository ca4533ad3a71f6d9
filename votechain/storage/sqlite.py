"""
VOTECHAIN — Local SQLite Block Store.

Async gateway over aiosqlite. One row per block, keyed by the decimal
string of the block index, with the timestamp held as ISO-8601 UTC
text and the payload as canonical JSON.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from votechain.canonical import canonical_json
from votechain.chain.block import Block
from votechain.exceptions import ConflictError, PersistenceError
from votechain.storage.codec import block_to_document, document_id, document_to_block

logger = logging.getLogger("votechain.storage.sqlite")

SCHEMA = """
CREATE TABLE IF NOT EXISTS blockchain (
    doc_id        TEXT PRIMARY KEY,
    idx           INTEGER NOT NULL UNIQUE,
    timestamp     TEXT NOT NULL,
    data          TEXT NOT NULL,
    previous_hash TEXT NOT NULL,
    hash          TEXT NOT NULL,
    nonce         INTEGER NOT NULL
);
"""

UPSERT_SQL = """
INSERT INTO blockchain (doc_id, idx, timestamp, data, previous_hash, hash, nonce)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(doc_id) DO UPDATE SET
    idx = excluded.idx,
    timestamp = excluded.timestamp,
    data = excluded.data,
    previous_hash = excluded.previous_hash,
    hash = excluded.hash,
    nonce = excluded.nonce
"""

INSERT_SQL = """
INSERT INTO blockchain (doc_id, idx, timestamp, data, previous_hash, hash, nonce)
VALUES (?, ?, ?, ?, ?, ?, ?)
"""


def _row_params(block: Block) -> tuple:
    doc = block_to_document(block)
    return (
        document_id(block.index),
        doc["index"],
        doc["timestamp"].isoformat(),
        canonical_json(doc["data"]),
        doc["previousHash"],
        doc["hash"],
        doc["nonce"],
    )


class SqliteGateway:
    """Block store in a local SQLite file (WAL mode)."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database and create the schema."""
        if self._conn is not None:
            return
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(self.db_path)
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.executescript(SCHEMA)
            await self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            logger.critical("Failed to open block store at %s: %s", self.db_path, e)
            raise PersistenceError(f"Cannot open block store: {e}") from e
        logger.info("Block store ready at %s", self.db_path)

    async def __aenter__(self) -> SqliteGateway:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise PersistenceError("SqliteGateway not connected. Call connect() first.")
        return self._conn

    async def put_block(self, block: Block) -> None:
        conn = self._ensure_conn()
        try:
            await conn.execute(UPSERT_SQL, _row_params(block))
            await conn.commit()
        except (sqlite3.Error, OSError) as e:
            await conn.rollback()
            logger.error("Failed to write block #%d: %s", block.index, e)
            raise PersistenceError(f"Failed to write block #{block.index}: {e}") from e

    async def insert_block(self, block: Block) -> None:
        conn = self._ensure_conn()
        try:
            await conn.execute(INSERT_SQL, _row_params(block))
            await conn.commit()
        except sqlite3.IntegrityError as e:
            await conn.rollback()
            raise ConflictError(f"Block #{block.index} already stored", status_code=409) from e
        except (sqlite3.Error, OSError) as e:
            await conn.rollback()
            logger.error("Failed to insert block #%d: %s", block.index, e)
            raise PersistenceError(f"Failed to insert block #{block.index}: {e}") from e

    async def load_all_ordered(self) -> list[Block]:
        conn = self._ensure_conn()
        try:
            async with conn.execute(
                "SELECT idx, timestamp, data, previous_hash, hash, nonce "
                "FROM blockchain ORDER BY idx ASC"
            ) as cursor:
                rows = await cursor.fetchall()
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to load blocks: %s", e)
            raise PersistenceError(f"Failed to load blocks: {e}") from e

        blocks = []
        for idx, ts, data, prev_hash, block_hash, nonce in rows:
            try:
                block = document_to_block({
                    "index": idx,
                    "timestamp": datetime.fromisoformat(ts),
                    "data": json.loads(data),
                    "previousHash": prev_hash,
                    "hash": block_hash,
                    "nonce": nonce,
                })
            except (KeyError, TypeError, ValueError) as e:
                raise PersistenceError(f"Block #{idx} holds undecodable data: {e}") from e
            blocks.append(block)
        return blocks

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    def __repr__(self) -> str:
        return f"SqliteGateway(db_path={self.db_path!r}, connected={self._conn is not None})"
