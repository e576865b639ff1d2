"""
Employees API

Read views over employees and their ledger, plus onboarding upserts.
"""

import logging
from typing import List

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from compadvisor.api.deps import get_db
from compadvisor.core.exceptions import CompensationError, EmployeeNotFoundError, InvalidEmployeeError
from compadvisor.schemas.action import ActionRecordOut, EmployeesWithActions, EmployeeWithActions
from compadvisor.schemas.employee import (
    BulkItemResult,
    BulkSaveResponse,
    EmployeeCreate,
    EmployeeOut,
    SaveEmployeeResponse,
)
from compadvisor.services.data.employee_store import EmployeeStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_employee(item: dict) -> EmployeeCreate:
    try:
        return EmployeeCreate.model_validate(item)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise InvalidEmployeeError(
            f"Invalid employee payload: {field}: {first['msg']}",
            details={"field": field},
        )


@router.get("", response_model=EmployeesWithActions)
async def list_employees(db: AsyncSession = Depends(get_db)):
    """All employees (active and fired) and the whole ledger, newest entry first"""
    store = EmployeeStore(db)
    employees = await store.list_all()
    actions = await store.list_actions()
    return EmployeesWithActions(
        employees=[EmployeeOut.from_model(e) for e in employees],
        actions=[ActionRecordOut.from_model(a) for a in actions],
    )


@router.get("/{ssid}", response_model=EmployeeWithActions)
async def get_employee(ssid: str, db: AsyncSession = Depends(get_db)):
    store = EmployeeStore(db)
    employee = await store.get_any(ssid)
    if employee is None:
        raise EmployeeNotFoundError(ssid)
    actions = await store.list_actions(ssid)
    return EmployeeWithActions(
        employee=EmployeeOut.from_model(employee),
        actions=[ActionRecordOut.from_model(a) for a in actions],
    )


@router.post("", response_model=SaveEmployeeResponse)
async def save_employee(payload: dict = Body(...), db: AsyncSession = Depends(get_db)):
    """Create an employee or update its descriptive fields by ssid"""
    employee = await EmployeeStore(db).upsert_employee(_parse_employee(payload))
    logger.info(f"Saved employee {employee.ssid} (revision {employee.revision})")
    return SaveEmployeeResponse(ok=True, employee=EmployeeOut.from_model(employee))


@router.post("/bulk", response_model=BulkSaveResponse)
async def save_employees_bulk(payload: List[dict], db: AsyncSession = Depends(get_db)):
    """
    Upsert many employees. Items are validated and saved one by one, so a
    bad item is reported in its result without aborting the rest.
    """
    store = EmployeeStore(db)
    results: List[BulkItemResult] = []

    for index, item in enumerate(payload):
        ssid = str(item.get("ssid") or f"#{index}")
        try:
            data = _parse_employee(item)
            await store.upsert_employee(data)
        except CompensationError as e:
            logger.warning(f"Bulk upsert failed for {ssid}: {e.message}")
            results.append(BulkItemResult(ssid=ssid, error=e.message))
            continue
        results.append(BulkItemResult(ssid=data.ssid, ok=True))

    return BulkSaveResponse(ok=all(r.ok for r in results), results=results)
