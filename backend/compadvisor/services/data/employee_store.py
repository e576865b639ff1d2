"""
Employee Store

Storage collaborator for the decision engine. All employee and ledger
queries go through this class, and it is the only place that commits
employee mutations.

Ledger writes are two-phase: ``stage_action`` flushes the versioned employee
UPDATE and the ledger INSERT inside the session's open transaction, and
``commit`` makes both durable at once. Any failure rolls the whole
transaction back, so a ledger entry never exists without its employee
change (or the reverse).
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, desc, update, bindparam
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from compadvisor.core.exceptions import StaleRevisionError, StorageError
from compadvisor.models.action_record import ActionRecord
from compadvisor.models.employee import Employee
from compadvisor.schemas.employee import EmployeeCreate, EmployeeStatus

logger = logging.getLogger(__name__)


class EmployeeStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_active(self, ssids: Optional[Sequence[str]] = None) -> List[Employee]:
        """Active employees, optionally restricted to an ssid subset"""
        query = select(Employee).where(Employee.status == EmployeeStatus.ACTIVE.value)
        if ssids is not None:
            query = query.where(Employee.ssid.in_(list(ssids)))
        result = await self.db.execute(query.order_by(Employee.ssid))
        return list(result.scalars().all())

    async def list_all(self) -> List[Employee]:
        result = await self.db.execute(select(Employee).order_by(Employee.ssid))
        return list(result.scalars().all())

    async def get_any(self, ssid: str) -> Optional[Employee]:
        return await self.db.scalar(select(Employee).where(Employee.ssid == ssid))

    async def get_active(self, ssid: str) -> Optional[Employee]:
        return await self.db.scalar(
            select(Employee).where(
                Employee.ssid == ssid,
                Employee.status == EmployeeStatus.ACTIVE.value,
            )
        )

    async def list_actions(self, ssid: Optional[str] = None) -> List[ActionRecord]:
        """Ledger entries, newest first"""
        query = select(ActionRecord)
        if ssid is not None:
            query = query.where(ActionRecord.ssid == ssid)
        result = await self.db.execute(
            query.order_by(desc(ActionRecord.applied_at), desc(ActionRecord.id))
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    async def upsert_employee(self, data: EmployeeCreate) -> Employee:
        """
        Create an employee, or update the descriptive fields of an existing one.

        Status and ledger history are never touched here.
        """
        employee = await self.get_any(data.ssid)
        if employee is None:
            employee = Employee(ssid=data.ssid, status=EmployeeStatus.ACTIVE.value)
            self.db.add(employee)

        employee.name = data.name
        employee.role = data.role
        employee.performance = data.performance.value
        employee.experience = data.experience.value
        employee.salary = data.salary
        employee.revenue = data.revenue

        try:
            await self.db.commit()
        except StaleDataError as exc:
            await self.db.rollback()
            raise StaleRevisionError(f"Employee {data.ssid} changed while saving") from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Failed to save employee {data.ssid}: {exc}")
            raise StorageError("Could not save employee", details={"ssid": data.ssid}) from exc

        await self.db.refresh(employee)
        return employee

    # ------------------------------------------------------------------
    # Analysis write-back
    # ------------------------------------------------------------------

    async def save_suggestions(
        self,
        suggestions: Sequence[Tuple[str, Dict[str, Any]]],
        analyzed_at: datetime,
    ) -> bool:
        """
        Attach freshly computed suggestions to active employees.

        Uses a plain UPDATE so the optimistic revision is not bumped: a
        suggestion refresh must not invalidate an in-flight apply. Failures
        are logged and reported, not raised, since the analysis result itself
        is already complete.
        """
        if not suggestions:
            return True

        table = Employee.__table__
        stmt = (
            update(table)
            .where(table.c.ssid == bindparam("b_ssid"))
            .where(table.c.status == EmployeeStatus.ACTIVE.value)
            .values(
                suggestion=bindparam("b_suggestion", type_=table.c.suggestion.type),
                last_analyzed=bindparam("b_analyzed_at", type_=table.c.last_analyzed.type),
            )
        )
        params = [
            {"b_ssid": ssid, "b_suggestion": payload, "b_analyzed_at": analyzed_at}
            for ssid, payload in suggestions
        ]

        try:
            await self.db.execute(stmt, params)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Suggestion write-back skipped due to DB error: {exc}")
            return False
        # Core UPDATE bypasses the identity map
        self.db.expire_all()
        return True

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    async def stage_action(
        self,
        employee: Employee,
        record: ActionRecord,
        salary: Optional[Any] = None,
        status: Optional[str] = None,
        suggestion: Optional[Dict[str, Any]] = None,
        touched_at: Optional[datetime] = None,
    ) -> None:
        """Flush the employee mutation and the ledger entry without committing"""
        try:
            if salary is not None:
                employee.salary = salary
            if status is not None:
                employee.status = status
            if suggestion is not None:
                employee.suggestion = suggestion
            if touched_at is not None:
                # Guarantees a versioned UPDATE even when nothing else changes
                employee.updated_at = touched_at
            await self.db.flush()
            await self.append_record(record)
        except StaleDataError as exc:
            await self.db.rollback()
            raise StaleRevisionError(
                f"Employee {employee.ssid} was modified concurrently",
                details={"ssid": record.ssid},
            ) from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Ledger staging failed for {record.ssid}: {exc}")
            raise StorageError(
                "Could not record the action; nothing was applied",
                details={"ssid": record.ssid},
            ) from exc

    async def append_record(self, record: ActionRecord) -> None:
        self.db.add(record)
        await self.db.flush()

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except StaleDataError as exc:
            await self.db.rollback()
            raise StaleRevisionError("Employee was modified concurrently") from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Ledger commit failed: {exc}")
            raise StorageError("Could not commit the action; nothing was applied") from exc

    async def rollback(self) -> None:
        await self.db.rollback()
