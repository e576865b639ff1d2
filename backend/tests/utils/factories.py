"""
Test data builders shared across the suite.
"""
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compadvisor.models.action_record import ActionRecord
from compadvisor.models.employee import Employee
from compadvisor.services.profitability_service import EmployeeProfile


# Seed workforce. Under the default rule config:
#   E123 strong, margin 0.60  -> PROMOTE to 1,200,000
#   E200 risk,   margin -1.50 -> FIRE
#   E300 stable, margin 0.04  -> DECREASE_SALARY to 2,300,000
#   E400 elite,  margin 0.25  -> NO_CHANGE
# Current payroll 7,300,000; suggested payroll 6,500,000; revenue 9,000,000.
SEED_EMPLOYEES: List[Dict] = [
    {
        "ssid": "E123",
        "name": "Asha Rao",
        "role": "Software Engineer",
        "performance": "strong",
        "experience": "mid",
        "salary": 800_000,
        "revenue": 2_000_000,
    },
    {
        "ssid": "E200",
        "name": "Vikram Shah",
        "role": "Support Engineer",
        "performance": "risk",
        "experience": "junior",
        "salary": 1_000_000,
        "revenue": 400_000,
    },
    {
        "ssid": "E300",
        "name": "Meera Iyer",
        "role": "Data Scientist",
        "performance": "stable",
        "experience": "senior",
        "salary": 2_500_000,
        "revenue": 2_600_000,
    },
    {
        "ssid": "E400",
        "name": "Rohan Das",
        "role": "Product Manager",
        "performance": "elite",
        "experience": "senior",
        "salary": 3_000_000,
        "revenue": 4_000_000,
    },
]


def make_profile(**overrides) -> EmployeeProfile:
    """Build an EmployeeProfile with sensible defaults."""
    data = {
        "ssid": "T001",
        "name": "Test Employee",
        "role": "Software Engineer",
        "performance": "stable",
        "experience": "mid",
        "salary": 1_500_000.0,
        "revenue": 2_000_000.0,
    }
    data.update(overrides)
    return EmployeeProfile(**data)


def seed_profiles() -> List[EmployeeProfile]:
    return [
        make_profile(**{**row, "salary": float(row["salary"]), "revenue": float(row["revenue"])})
        for row in SEED_EMPLOYEES
    ]


async def reload_employees(session: AsyncSession) -> List[Employee]:
    """Fresh rows from the database, bypassing the session's identity map."""
    result = await session.execute(
        select(Employee).order_by(Employee.ssid).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def reload_employee(session: AsyncSession, ssid: str) -> Optional[Employee]:
    return await session.scalar(
        select(Employee).where(Employee.ssid == ssid).execution_options(populate_existing=True)
    )


async def ledger_entries(session: AsyncSession, ssid: Optional[str] = None) -> List[ActionRecord]:
    query = select(ActionRecord).order_by(ActionRecord.id)
    if ssid is not None:
        query = query.where(ActionRecord.ssid == ssid)
    result = await session.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())
