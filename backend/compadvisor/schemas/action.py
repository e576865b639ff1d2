from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from compadvisor.schemas.employee import EmployeeOut


class ApplyActionRequest(BaseModel):
    ssid: str = Field(..., description="Employee ssid")
    # Kept as a plain string so an unknown spelling surfaces as invalid_action
    action: str = Field(..., description="FIRE, PROMOTE, DECREASE_SALARY or NO_CHANGE")
    note: Optional[str] = Field(None, description="Free-text note stored on the ledger entry")
    changePercent: Optional[float] = Field(None, description="Required for PROMOTE and DECREASE_SALARY")


class ActionDetails(BaseModel):
    effect: str
    previousSalary: Optional[float] = None
    newSalary: Optional[float] = None
    salary: Optional[float] = None
    changePercent: Optional[float] = None


class ActionRecordOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., serialization_alias="_id")
    ssid: str
    action: str
    note: Optional[str] = None
    details: ActionDetails
    appliedAt: datetime

    @classmethod
    def from_model(cls, record) -> "ActionRecordOut":
        return cls(
            id=record.id,
            ssid=record.ssid,
            action=record.action,
            note=record.note,
            details=record.details,
            appliedAt=record.applied_at,
        )


class ApplyActionResponse(BaseModel):
    ok: bool
    message: str
    applied: ActionRecordOut
    employee: EmployeeOut
    actionDetails: ActionDetails


class EmployeeWithActions(BaseModel):
    employee: EmployeeOut
    actions: List[ActionRecordOut]


class EmployeesWithActions(BaseModel):
    employees: List[EmployeeOut]
    actions: List[ActionRecordOut]
