from pydantic import BaseModel, Field

from confidential_checks.models.domain.check_domain import (
    CheckRecord,
    CheckStats,
    CheckStatus,
    StatusPhase,
)


class CheckListResponse(BaseModel):
    """Response for GET /checks"""

    checks: list[CheckRecord]
    stats: CheckStats


class RefreshResponse(BaseModel):
    """Response for POST /checks/refresh"""

    checks: list[CheckRecord]
    stats: CheckStats
    user_history: list[CheckRecord]
    skipped: list[str] = Field(default_factory=list, description="Candidate ids that failed to load")


class CreateCheckResponse(BaseModel):
    """Response for POST /checks"""

    success: bool
    message: str
    check: CheckRecord | None = None


class DecryptResponse(BaseModel):
    """Response for POST /checks/{candidate_id}/decrypt"""

    candidate_id: str
    clear_score: int
    status: CheckStatus


class TransactionStatusResponse(BaseModel):
    """Response for GET /transaction-status"""

    visible: bool
    status: StatusPhase
    message: str
    sequence: int
    creating: bool = False
    decrypting: bool = False
    refreshing: bool = False
