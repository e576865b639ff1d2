from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum


class DecisionAction(str, Enum):
    """Action spellings are part of the persisted contract; do not rename"""
    FIRE = "FIRE"
    PROMOTE = "PROMOTE"
    DECREASE_SALARY = "DECREASE_SALARY"
    NO_CHANGE = "NO_CHANGE"


class MarketSalaryRange(BaseModel):
    min: float
    mid: float
    max: float


class PersistedSuggestion(BaseModel):
    """Suggestion shape stored on the employee record and shown in the detail view"""
    action: DecisionAction
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    suggestedSalary: Optional[float] = None
    recommended_change_percent: Optional[float] = None
    marketSalaryRange: Optional[MarketSalaryRange] = None
    supersededAt: Optional[datetime] = None


class ResultSuggestion(PersistedSuggestion):
    currentSalary: float
    salaryDifference: Optional[float] = None
    salaryChangeType: str  # increase | decrease


class AnalyzeRequest(BaseModel):
    # Positivity is checked by the analysis service so the caller gets the
    # invalid_budget reason instead of a generic validation error
    budget: Optional[float] = Field(
        None, description="Organization-wide payroll ceiling; DEFAULT_COMPANY_BUDGET when omitted"
    )
    ssids: Optional[List[str]] = Field(None, description="Restrict analysis to these employees")


class AnalysisSummary(BaseModel):
    companyBudget: float
    totalCurrentSalaries: float
    totalSuggestedSalaries: float
    totalRevenue: float
    projectedSavings: float
    projectedSavingsType: str  # savings | increase
    budgetExceeded: bool
    escalations: int
    actionCounts: Dict[str, int]


class AnalysisResultItem(BaseModel):
    ssid: str
    name: str
    currentSalary: float
    suggestion: ResultSuggestion


class AnalyzeResponse(BaseModel):
    budget: float
    employeesAnalyzed: int
    summary: AnalysisSummary
    results: List[AnalysisResultItem]


class PendingEmployee(BaseModel):
    ssid: str
    name: str
    role: str
    salary: float
    suggestion: PersistedSuggestion


class PendingResponse(BaseModel):
    count: int
    employees: List[PendingEmployee]
