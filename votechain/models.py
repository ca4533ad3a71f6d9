"""
VOTECHAIN — API Models.
Request and response schemas for the REST surface (camelCase on the wire).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VoteRequest(CamelModel):
    election_id: str = Field(..., alias="electionId", min_length=1, max_length=200)
    candidate_id: int | str = Field(..., alias="candidateId")
    voter_id: str = Field(..., alias="voterId", min_length=1, max_length=200)

    @field_validator("candidate_id")
    @classmethod
    def candidate_not_blank(cls, v: int | str) -> int | str:
        if isinstance(v, str) and not v.strip():
            raise ValueError("candidateId cannot be blank")
        return v


class VoteReceiptResponse(CamelModel):
    success: bool
    transaction_hash: str | None = Field(None, alias="transactionHash")
    error: str | None = None


class ChainReportResponse(CamelModel):
    valid: bool
    block_count: int = Field(..., alias="blockCount")


class VoteRecordResponse(CamelModel):
    election_id: str = Field(..., alias="electionId")
    candidate_id: int | str = Field(..., alias="candidateId")
    voter_id_hash: str = Field(..., alias="voterIdHash")
    vote_hash: str = Field(..., alias="voteHash")
    block_index: int = Field(..., alias="blockIndex")
    block_hash: str = Field(..., alias="blockHash")
    timestamp: int


class AuditRequest(CamelModel):
    expected_counts: dict[str, int] = Field(..., alias="expectedCounts")

    @field_validator("expected_counts")
    @classmethod
    def counts_non_negative(cls, v: dict[str, int]) -> dict[str, int]:
        if any(count < 0 for count in v.values()):
            raise ValueError("expected counts cannot be negative")
        return v


class IntegrityReportResponse(CamelModel):
    chain_valid: bool = Field(..., alias="chainValid")
    counts_match: bool = Field(..., alias="countsMatch")
    block_count: int = Field(..., alias="blockCount")
    tally: dict[str, int] = Field(default_factory=dict)
    mismatches: dict[str, dict[str, int]] = Field(default_factory=dict)


class InitResponse(CamelModel):
    created: bool
    message: str
