"""
Read-only view of the transaction status channel.

GET /transaction-status returns the current status straight away, or, with
`after=<sequence>`, long-polls until the status moves past that sequence.
"""

from fastapi import APIRouter, Depends, Query

from confidential_checks.dependencies import get_lifecycle_manager, get_status_channel
from confidential_checks.models.api.check_response import TransactionStatusResponse
from confidential_checks.services.check_lifecycle_service import CheckLifecycleManager
from confidential_checks.services.transaction_status import TransactionStatusChannel

router = APIRouter(tags=["status"])

MAX_POLL_SECONDS = 30.0


@router.get("/transaction-status", response_model=TransactionStatusResponse)
async def get_transaction_status(
    after: int | None = Query(None, ge=0, description="Wait for a status newer than this sequence"),
    timeout: float = Query(15.0, gt=0, le=MAX_POLL_SECONDS),
    channel: TransactionStatusChannel = Depends(get_status_channel),
    manager: CheckLifecycleManager = Depends(get_lifecycle_manager),
):
    if after is None:
        current = channel.current()
    else:
        current = await channel.wait_for_change(after, timeout)

    return TransactionStatusResponse(
        visible=current.visible,
        status=current.phase,
        message=current.message,
        sequence=current.sequence,
        **manager.activity(),
    )
