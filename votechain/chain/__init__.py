"""
VOTECHAIN — Ledger Layer.

Hash-linked blocks, proof-of-work sealing, chain validation and the
load/persist protocol against a block store.
"""

from .block import (
    GENESIS_PREVIOUS_HASH,
    Block,
    GenesisPayload,
    PayloadType,
    RawPayload,
    VotePayload,
    VoteRecord,
    payload_from_dict,
)
from .ledger import Ledger
from .mining import meets_difficulty, mine_block
from .sync import load_ledger, persist_pending
