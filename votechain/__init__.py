"""
VOTECHAIN — Verifiable Vote Ledger.

Records each cast vote as a mined, hash-linked block in a document
store and audits the stored chain for tampering.
"""

__version__ = "1.0.0"

from votechain.chain.ledger import Ledger
from votechain.integrity import IntegrityChecker
from votechain.recorder import VoteRecorder

__all__ = ["IntegrityChecker", "Ledger", "VoteRecorder", "__version__"]
