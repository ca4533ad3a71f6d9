"""
VOTECHAIN — Votes Router.
Casts votes onto the ledger and returns receipts.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from votechain.api_deps import get_recorder
from votechain.models import VoteReceiptResponse, VoteRequest
from votechain.recorder import VoteErrorKind, VoteRecorder

logger = logging.getLogger("uvicorn.error")
router = APIRouter(prefix="/v1/votes", tags=["votes"])

_ERROR_STATUS = {
    VoteErrorKind.CONFLICT: 409,
    VoteErrorKind.PERSISTENCE_FAILURE: 503,
    VoteErrorKind.MINING_EXHAUSTED: 500,
}


@router.post("", response_model=VoteReceiptResponse, status_code=201)
async def cast_vote(
    req: VoteRequest,
    recorder: VoteRecorder = Depends(get_recorder),
):
    """Mine the vote into a block and persist it. The body is always a receipt."""
    receipt = await recorder.record_vote(req.election_id, req.candidate_id, req.voter_id)
    if not receipt.success:
        logger.error("Vote rejected (%s): %s", receipt.error_kind, receipt.error)
        return JSONResponse(status_code=_ERROR_STATUS[receipt.error_kind], content=receipt.to_dict())
    return receipt.to_dict()
