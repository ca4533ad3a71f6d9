"""
VOTECHAIN — Ledger Router.
Chain verification, vote listings and tally audits.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from votechain.api_deps import get_checker, get_recorder
from votechain.exceptions import PersistenceError
from votechain.integrity import IntegrityChecker
from votechain.models import (
    AuditRequest,
    ChainReportResponse,
    InitResponse,
    IntegrityReportResponse,
    VoteRecordResponse,
)
from votechain.recorder import VoteRecorder

logger = logging.getLogger("uvicorn.error")
router = APIRouter(tags=["ledger"])


def _unavailable(e: PersistenceError) -> HTTPException:
    logger.error("Block store unavailable: %s", e)
    return HTTPException(status_code=503, detail=f"Block store unavailable: {e}")


@router.get("/v1/ledger/verify", response_model=ChainReportResponse)
async def verify_ledger(checker: IntegrityChecker = Depends(get_checker)):
    """Reload the chain and check every hash link."""
    try:
        report = await checker.verify_chain()
    except PersistenceError as e:
        raise _unavailable(e) from e
    return report.to_dict()


@router.post("/v1/ledger/init", response_model=InitResponse)
async def init_ledger(recorder: VoteRecorder = Depends(get_recorder)):
    """Write the genesis block if the store is empty."""
    try:
        created = await recorder.initialize_chain()
    except PersistenceError as e:
        raise _unavailable(e) from e
    message = (
        "Blockchain initialized with genesis block" if created
        else "Blockchain already initialized"
    )
    return {"created": created, "message": message}


@router.get("/v1/elections/{election_id}/votes", response_model=list[VoteRecordResponse])
async def election_votes(election_id: str, checker: IntegrityChecker = Depends(get_checker)):
    """Every vote block recorded for one election."""
    try:
        records = await checker.election_votes(election_id)
    except PersistenceError as e:
        raise _unavailable(e) from e
    return [r.to_dict() for r in records]


@router.post("/v1/elections/{election_id}/audit", response_model=IntegrityReportResponse)
async def audit_election(
    election_id: str,
    req: AuditRequest,
    checker: IntegrityChecker = Depends(get_checker),
):
    """Check chain validity and reconcile the tally against expected counts."""
    try:
        report = await checker.verify(election_id, req.expected_counts)
    except PersistenceError as e:
        raise _unavailable(e) from e
    return report.to_dict()
