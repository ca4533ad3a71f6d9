"""
VOTECHAIN — Custom Exceptions.

Typed error hierarchy for the vote ledger. Chain invalidity is not
an exception: it is reported as data by ``Ledger.validate()``.
"""

from __future__ import annotations


class VoteChainError(Exception):
    """Base exception for all VOTECHAIN errors."""


class MiningExhausted(VoteChainError):
    """Raised when the nonce search exceeds its iteration cap.

    Safe to retry: a retry uses a new timestamp and therefore mines a
    different candidate block.
    """

    def __init__(self, index: int, attempts: int, difficulty: int):
        self.index = index
        self.attempts = attempts
        self.difficulty = difficulty
        super().__init__(
            f"Mining block #{index} exhausted after {attempts} attempts "
            f"(difficulty={difficulty})"
        )


class PersistenceError(VoteChainError):
    """Raised when the document store is unreachable or rejects a read/write."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ConflictError(PersistenceError):
    """Raised when a conditional write finds a block already stored at that index."""


class EmptyChain(VoteChainError):
    """Raised when the latest block is requested before a genesis block exists."""


class GenesisExists(VoteChainError):
    """Raised when a genesis block is requested for a chain that already has one."""
