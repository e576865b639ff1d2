from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum

from compadvisor.models.employee import MONEY_CEILING
from compadvisor.schemas.analysis import PersistedSuggestion


class PerformanceBand(str, Enum):
    ELITE = "elite"
    STRONG = "strong"
    STABLE = "stable"
    RISK = "risk"


class ExperienceBand(str, Enum):
    PRINCIPAL = "principal"
    SENIOR = "senior"
    MID = "mid"
    JUNIOR = "junior"


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    FIRED = "fired"


# Lower rank = weaker performer; used for deterministic tie-breaks
PERFORMANCE_RANK = {
    PerformanceBand.RISK.value: 0,
    PerformanceBand.STABLE.value: 1,
    PerformanceBand.STRONG.value: 2,
    PerformanceBand.ELITE.value: 3,
}


class EmployeeCreate(BaseModel):
    """Onboarding payload (create or update by ssid)"""
    ssid: str = Field(..., min_length=1, description="Stable human-facing employee identifier")
    name: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1, description="Free-text role, matched against the market rate table")
    performance: PerformanceBand
    experience: ExperienceBand
    salary: float = Field(..., ge=0, lt=MONEY_CEILING)
    revenue: float = Field(0, ge=0, lt=MONEY_CEILING, description="Revenue attributed to the employee")

    @field_validator("ssid", "name", "role")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class EmployeeOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., serialization_alias="_id")
    ssid: str
    name: str
    role: str
    performance: str
    experience: str
    salary: float
    revenue: float
    status: str
    suggestion: Optional[PersistedSuggestion] = None
    lastAnalyzed: Optional[datetime] = None
    revision: int

    @classmethod
    def from_model(cls, employee) -> "EmployeeOut":
        return cls(
            id=employee.id,
            ssid=employee.ssid,
            name=employee.name,
            role=employee.role,
            performance=employee.performance,
            experience=employee.experience,
            salary=float(employee.salary),
            revenue=float(employee.revenue or 0),
            status=employee.status,
            suggestion=employee.suggestion,
            lastAnalyzed=employee.last_analyzed,
            revision=employee.revision,
        )


class SaveEmployeeResponse(BaseModel):
    ok: bool
    employee: EmployeeOut


class BulkItemResult(BaseModel):
    ssid: str
    ok: Optional[bool] = None
    error: Optional[str] = None


class BulkSaveResponse(BaseModel):
    ok: bool
    results: List[BulkItemResult]
