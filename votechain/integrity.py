"""
VOTECHAIN — Integrity Checker.

Read-only audit of the stored ledger: hash-chain validity and the
reconciliation of on-chain vote tallies against externally kept counts.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping

from votechain.chain.block import VoteRecord
from votechain.chain.ledger import Ledger
from votechain.chain.sync import load_ledger
from votechain.storage import PersistenceGateway

logger = logging.getLogger("votechain.integrity")


@dataclass
class ChainReport:
    valid: bool
    block_count: int
    violations: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "blockCount": self.block_count}


@dataclass
class IntegrityReport:
    chain_valid: bool
    counts_match: bool
    block_count: int
    tally: dict[str, int] = field(default_factory=dict)
    mismatches: dict[str, dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chainValid": self.chain_valid,
            "countsMatch": self.counts_match,
            "blockCount": self.block_count,
            "tally": self.tally,
            "mismatches": self.mismatches,
        }


def _by_string_key(counts: Mapping[Any, int]) -> dict[str, int]:
    merged: Counter = Counter()
    for key, count in counts.items():
        merged[str(key)] += count
    return dict(merged)


def compare_counts(
    tally: Mapping[Any, int], expected: Mapping[Any, int]
) -> dict[str, dict[str, int]]:
    """Per-candidate differences between on-chain and expected counts.

    Keys are compared by their string form, so counts under ``1`` and
    ``"1"`` add up. A candidate missing on either side counts as zero.
    """
    actual = _by_string_key(tally)
    wanted = _by_string_key(expected)
    mismatches = {}
    for candidate in sorted(set(actual) | set(wanted)):
        on_chain = actual.get(candidate, 0)
        reported = wanted.get(candidate, 0)
        if on_chain != reported:
            mismatches[candidate] = {"ledger": on_chain, "expected": reported}
    return mismatches


class IntegrityChecker:
    """Reloads the ledger on every call and never writes to the store."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        difficulty: int | None = None,
        genesis_message: str | None = None,
        timeout: float | None = None,
    ):
        self.gateway = gateway
        self.difficulty = difficulty
        self.genesis_message = genesis_message
        self.timeout = timeout

    async def _load(self) -> Ledger:
        return await load_ledger(
            self.gateway,
            timeout=self.timeout,
            difficulty=self.difficulty,
            genesis_message=self.genesis_message,
        )

    async def verify_chain(self) -> ChainReport:
        ledger = await self._load()
        report = ledger.validate()
        if not report["valid"]:
            logger.warning(
                "Ledger integrity violation: %d issues, first at block #%d",
                len(report["violations"]), report["violations"][0]["index"],
            )
        return ChainReport(report["valid"], len(ledger), report["violations"])

    async def verify(self, election_id: str, expected_counts: Mapping[Any, int]) -> IntegrityReport:
        """Check chain validity and reconcile one election's tally.

        Both results are reported independently: a hash-valid chain may
        still disagree with the external counts.
        """
        ledger = await self._load()
        chain_valid = ledger.is_valid()
        tally = _by_string_key(ledger.tally(election_id))
        mismatches = compare_counts(tally, expected_counts)

        if mismatches:
            logger.warning("Vote count mismatch for election %s: %s", election_id, mismatches)

        return IntegrityReport(
            chain_valid=chain_valid,
            counts_match=not mismatches,
            block_count=len(ledger),
            tally=tally,
            mismatches=mismatches,
        )

    async def election_votes(self, election_id: str) -> list[VoteRecord]:
        ledger = await self._load()
        return ledger.votes(election_id)
