"""
Actions API

Applies a compensation action to one employee and records it in the ledger.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from compadvisor.api.deps import get_db
from compadvisor.schemas.action import ActionRecordOut, ApplyActionRequest, ApplyActionResponse
from compadvisor.schemas.employee import EmployeeOut
from compadvisor.services.action_ledger_service import action_ledger_service

router = APIRouter()


@router.post("/action", response_model=ApplyActionResponse)
async def apply_action(
    request: ApplyActionRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Apply an action atomically.

    - FIRE: status becomes fired, salary untouched
    - PROMOTE / DECREASE_SALARY: salary scaled by changePercent
    - NO_CHANGE: ledger entry only

    Storage failures return 503 with ``retryable: true``; nothing was written.
    """
    applied = await action_ledger_service.apply_action(
        db,
        ssid=request.ssid,
        action=request.action,
        note=request.note,
        change_percent=request.changePercent,
    )
    return ApplyActionResponse(
        ok=True,
        message=applied.message,
        applied=ActionRecordOut.from_model(applied.record),
        employee=EmployeeOut.from_model(applied.employee),
        actionDetails=applied.details,
    )
