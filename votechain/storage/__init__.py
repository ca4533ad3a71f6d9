"""
VOTECHAIN — Storage Backend Abstraction.

Pluggable document store for ledger blocks: switch between local
SQLite, an in-process store and Firestore via environment variable.
The ledger layer never knows which backend is active — it just calls
the protocol methods.

Usage:
    VOTECHAIN_STORAGE=local      → SQLite file (default)
    VOTECHAIN_STORAGE=memory     → in-process dict (tests, demos)
    VOTECHAIN_STORAGE=firestore  → Firestore REST API
"""

from __future__ import annotations

import asyncio
import logging
import os
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Protocol, TypeVar, runtime_checkable

from votechain import config
from votechain.exceptions import PersistenceError

if TYPE_CHECKING:
    from votechain.chain.block import Block

logger = logging.getLogger("votechain.storage")

T = TypeVar("T")


class StorageMode(str, Enum):
    LOCAL = "local"
    MEMORY = "memory"
    FIRESTORE = "firestore"


@runtime_checkable
class PersistenceGateway(Protocol):
    """Protocol for all block stores.

    One document per block, keyed by the decimal string of its index.
    Backends raise ``PersistenceError`` for any store failure.
    """

    async def put_block(self, block: Block) -> None:
        """Idempotent upsert of one block keyed by its index."""
        ...

    async def insert_block(self, block: Block) -> None:
        """Create the block only if its index is free, else ``ConflictError``."""
        ...

    async def load_all_ordered(self) -> list[Block]:
        """Every stored block, ascending by index. Empty list if none."""
        ...

    async def close(self) -> None:
        """Release the connection."""
        ...


def get_storage_mode() -> StorageMode:
    """Detect storage mode from environment."""
    raw = os.environ.get("VOTECHAIN_STORAGE", "local").lower()
    try:
        return StorageMode(raw)
    except ValueError:
        logger.warning("Unknown VOTECHAIN_STORAGE='%s', falling back to local", raw)
        return StorageMode.LOCAL


def get_storage_config() -> dict:
    """Gather all storage-related config from environment."""
    mode = get_storage_mode()

    storage_config = {"mode": mode}

    if mode == StorageMode.LOCAL:
        storage_config["db_path"] = os.environ.get("VOTECHAIN_DB", config.DB_PATH)

    elif mode == StorageMode.FIRESTORE:
        project_id = os.environ.get("FIRESTORE_PROJECT_ID", "")
        if not project_id:
            raise ValueError(
                "FIRESTORE_PROJECT_ID is required when VOTECHAIN_STORAGE=firestore. "
                "Example: voting-system-12345"
            )

        storage_config["project_id"] = project_id
        storage_config["api_key"] = os.environ.get("FIRESTORE_API_KEY", "")
        storage_config["id_token"] = os.environ.get("FIRESTORE_ID_TOKEN", "")
        storage_config["collection"] = os.environ.get("FIRESTORE_COLLECTION", "blockchain")
        storage_config["base_url"] = os.environ.get(
            "FIRESTORE_BASE_URL", "https://firestore.googleapis.com/v1"
        )

    return storage_config


async def open_gateway(db_path: str | None = None) -> PersistenceGateway:
    """Build and connect the configured backend.

    Args:
        db_path: Overrides the SQLite path in local mode.
    """
    storage_config = get_storage_config()
    mode = storage_config["mode"]

    if mode == StorageMode.MEMORY:
        from votechain.storage.memory import InMemoryGateway

        return InMemoryGateway()

    if mode == StorageMode.FIRESTORE:
        from votechain.storage.firestore import FirestoreGateway

        return FirestoreGateway(
            project_id=storage_config["project_id"],
            api_key=storage_config["api_key"] or None,
            id_token=storage_config["id_token"] or None,
            collection=storage_config["collection"],
            base_url=storage_config["base_url"],
        )

    from votechain.storage.sqlite import SqliteGateway

    gateway = SqliteGateway(db_path or storage_config["db_path"])
    await gateway.connect()
    return gateway


async def guarded(
    awaitable: Awaitable[T],
    *,
    timeout: float | None = None,
    operation: str = "store call",
) -> T:
    """Await a gateway call under a timeout.

    A timeout cancels the call and surfaces as ``PersistenceError``;
    errors raised by the gateway propagate unchanged.
    """
    if timeout is None:
        timeout = config.STORE_TIMEOUT
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error("%s timed out after %.2fs", operation, timeout)
        raise PersistenceError(f"{operation} timed out after {timeout}s") from e
