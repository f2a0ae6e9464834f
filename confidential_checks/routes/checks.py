"""
checks.py
---------
Purpose:
    Presentation boundary for background checks: listing with derived
    status, aggregate stats, and the three entry points create / decrypt /
    refresh.

Architecture:
    - API layer: HTTP concerns, validation, actor resolution
    - Service layer: CheckLifecycleManager returns domain models
    - Errors: CheckServiceError subclasses are mapped to HTTP in main.py

Usage:
    1. GET  /checks                           - records (search + status filter) and stats
    2. GET  /checks/stats                     - aggregate stats
    3. GET  /checks/mine                      - records created by the caller
    4. GET  /checks/{candidate_id}            - one record, fresh from the ledger
    5. POST /checks                           - create (score encrypted before submission)
    6. POST /checks/{candidate_id}/decrypt    - verify and disclose the score
    7. POST /checks/refresh                   - full reload from the ledger
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query, status

from confidential_checks.auth.verify import actor_dependency
from confidential_checks.dependencies import get_lifecycle_manager
from confidential_checks.infrastructure.observability.logging import get_logger
from confidential_checks.models.api.check_request import CreateCheckRequest
from confidential_checks.models.api.check_response import (
    CheckListResponse,
    CreateCheckResponse,
    DecryptResponse,
    RefreshResponse,
)
from confidential_checks.models.domain.check_domain import (
    Actor,
    CheckRecord,
    CheckStats,
    derive_status,
)
from confidential_checks.services.aggregation import compute_stats
from confidential_checks.services.check_lifecycle_service import (
    MSG_CREATED,
    CheckLifecycleManager,
)
from confidential_checks.services.errors import NotAuthenticated

router = APIRouter(prefix="/checks", tags=["checks"])
logger = get_logger(__name__)


@router.get("", response_model=CheckListResponse)
async def list_checks(
    search: str = Query("", max_length=200),
    status_filter: Literal["all", "pending", "passed", "failed"] = Query("all", alias="status"),
    manager: CheckLifecycleManager = Depends(get_lifecycle_manager),
):
    """List records with their derived status. Stats cover the whole record set."""
    records = await manager.records()
    checks = await manager.list_checks(search=search, status=status_filter)
    return CheckListResponse(checks=checks, stats=compute_stats(records))


@router.get("/stats", response_model=CheckStats)
async def get_stats(manager: CheckLifecycleManager = Depends(get_lifecycle_manager)):
    return await manager.stats()


@router.get("/mine", response_model=list[CheckRecord])
async def get_my_checks(
    actor: Actor = Depends(actor_dependency),
    manager: CheckLifecycleManager = Depends(get_lifecycle_manager),
):
    """Records created by the authenticated account, newest first."""
    if not actor.is_authenticated:
        raise NotAuthenticated("Please connect wallet first")
    return await manager.user_history(actor)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_checks(
    actor: Actor = Depends(actor_dependency),
    manager: CheckLifecycleManager = Depends(get_lifecycle_manager),
):
    snapshot = await manager.refresh(actor)
    return RefreshResponse(
        checks=snapshot.records,
        stats=snapshot.stats,
        user_history=snapshot.user_history,
        skipped=snapshot.skipped,
    )


@router.get("/{candidate_id}", response_model=CheckRecord)
async def get_check(
    candidate_id: str, manager: CheckLifecycleManager = Depends(get_lifecycle_manager)
):
    return await manager.get_check(candidate_id)


@router.post("", response_model=CreateCheckResponse, status_code=status.HTTP_201_CREATED)
async def create_check(
    request: CreateCheckRequest,
    actor: Actor = Depends(actor_dependency),
    manager: CheckLifecycleManager = Depends(get_lifecycle_manager),
):
    """
    Create a background check. The risk score is encrypted before it leaves
    the service and stays encrypted on the ledger until decrypted.

    Raises:
        401: No connected account
        409: Transaction rejected by the signer
        502: Encryption or submission failed
    """
    record = await manager.create(
        name=request.name,
        position=request.position,
        risk_score=request.risk_score,
        actor=actor,
    )

    logger.info(
        "Background check created",
        actor=actor.address,
        candidate_id=record.candidate_id if record else None,
    )
    return CreateCheckResponse(success=True, message=MSG_CREATED, check=record)


@router.post("/{candidate_id}/decrypt", response_model=DecryptResponse)
async def decrypt_check(
    candidate_id: str,
    actor: Actor = Depends(actor_dependency),
    manager: CheckLifecycleManager = Depends(get_lifecycle_manager),
):
    """
    Verify and disclose the risk score. Calling it again on a verified
    record returns the stored value without a new proof exchange.
    """
    clear_score = await manager.decrypt(candidate_id, actor)
    return DecryptResponse(
        candidate_id=candidate_id,
        clear_score=clear_score,
        status=derive_status(True, clear_score),
    )
