"""
VOTECHAIN — API Dependencies.
Shared dependencies for FastAPI routes.
"""

from __future__ import annotations

from fastapi import Request

from votechain.integrity import IntegrityChecker
from votechain.recorder import VoteRecorder
from votechain.storage import PersistenceGateway


def get_gateway(request: Request) -> PersistenceGateway:
    """Inject the block store opened at startup."""
    return request.app.state.gateway


def get_recorder(request: Request) -> VoteRecorder:
    return VoteRecorder(get_gateway(request))


def get_checker(request: Request) -> IntegrityChecker:
    return IntegrityChecker(get_gateway(request))
