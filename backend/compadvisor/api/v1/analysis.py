"""
Analysis API

Runs the decision engine over the active workforce and lists suggestions
that are still waiting for a decision.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from compadvisor.api.deps import get_db
from compadvisor.schemas.analysis import (
    AnalyzeRequest,
    AnalyzeResponse,
    PendingEmployee,
    PendingResponse,
)
from compadvisor.services.analysis_service import analysis_service
from compadvisor.services.data.employee_store import EmployeeStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: AnalyzeRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Compute a suggestion for every active employee and reconcile the set
    against the budget ceiling.

    A budget that cannot be met is reported through
    ``summary.budgetExceeded``, not as an error.
    """
    outcome = await analysis_service.analyze_employees(db, budget=request.budget, ssids=request.ssids)
    return AnalyzeResponse(
        budget=outcome.summary.companyBudget,
        employeesAnalyzed=len(outcome.suggestions),
        summary=outcome.summary.to_dict(),
        results=outcome.result_items(),
    )


@router.get("/pending", response_model=PendingResponse)
async def list_pending(db: AsyncSession = Depends(get_db)):
    """Active employees whose latest suggestion is actionable and not yet superseded"""
    employees = await EmployeeStore(db).list_active()
    pending = [
        PendingEmployee(
            ssid=e.ssid,
            name=e.name,
            role=e.role,
            salary=float(e.salary),
            suggestion=e.suggestion,
        )
        for e in employees
        if analysis_service.is_pending(e.suggestion)
    ]
    return PendingResponse(count=len(pending), employees=pending)
