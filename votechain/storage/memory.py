"""
VOTECHAIN — In-Process Document Store.

Dict-backed gateway with the same document shape as the remote
stores. Used for tests, demos and ``VOTECHAIN_STORAGE=memory``.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from votechain.chain.block import Block
from votechain.exceptions import ConflictError, PersistenceError
from votechain.storage.codec import block_to_document, document_id, document_to_block

logger = logging.getLogger("votechain.storage.memory")


class InMemoryGateway:
    """Gateway over a plain dict of documents keyed by document id.

    ``documents`` is public so callers can inspect or corrupt stored
    blocks the way an external writer could.
    """

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}

    async def put_block(self, block: Block) -> None:
        self.documents[document_id(block.index)] = copy.deepcopy(block_to_document(block))

    async def insert_block(self, block: Block) -> None:
        key = document_id(block.index)
        if key in self.documents:
            raise ConflictError(f"Block #{block.index} already stored", status_code=409)
        self.documents[key] = copy.deepcopy(block_to_document(block))

    async def load_all_ordered(self) -> list[Block]:
        try:
            docs = sorted(self.documents.values(), key=lambda d: d["index"])
            return [document_to_block(copy.deepcopy(doc)) for doc in docs]
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed block document: {e}") from e

    async def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"InMemoryGateway(documents={len(self.documents)})"
