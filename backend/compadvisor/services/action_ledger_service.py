"""
Action Ledger Service

Applies a caller-chosen action to one active employee and appends the
matching ActionRecord. The employee mutation and the ledger entry commit
together or not at all.

Concurrency: Employee.revision is the SQLAlchemy version counter, so two
applies racing on the same employee cannot both commit against the same
prior state. The loser gets StaleRevisionError, re-reads, and recomputes
from the winner's committed salary, up to APPLY_ACTION_MAX_RETRIES times.

Timeout: reading, computing and flushing run under
APPLY_ACTION_TIMEOUT_SECONDS. The commit itself does not, so a timeout
always means nothing was written.
"""

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from compadvisor.core.config import settings
from compadvisor.core.logging_config import get_logger
from compadvisor.core.exceptions import (
    ConcurrentModificationError,
    EmployeeNotFoundError,
    InvalidActionError,
    InvalidChangePercentError,
    StaleRevisionError,
    StorageError,
)
from compadvisor.models.action_record import ActionRecord
from compadvisor.models.employee import MONEY_CEILING, Employee
from compadvisor.schemas.analysis import DecisionAction
from compadvisor.schemas.employee import EmployeeStatus
from compadvisor.services.data.employee_store import EmployeeStore

logger = get_logger(__name__)

SALARY_ACTIONS = (DecisionAction.PROMOTE, DecisionAction.DECREASE_SALARY)


@dataclass
class AppliedAction:
    employee: Employee
    record: ActionRecord

    @property
    def details(self) -> Dict[str, Any]:
        return self.record.details

    @property
    def message(self) -> str:
        return f"{self.record.action} applied to {self.employee.ssid}: {self.details['effect']}"


class ActionLedgerService:
    def __init__(
        self,
        max_retries: int = 3,
        timeout_seconds: float = 10.0,
        currency_decimals: int = 2,
    ):
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self.quantum = Decimal(1).scaleb(-currency_decimals)

    @classmethod
    def from_settings(cls, app_settings) -> "ActionLedgerService":
        return cls(
            max_retries=app_settings.APPLY_ACTION_MAX_RETRIES,
            timeout_seconds=app_settings.APPLY_ACTION_TIMEOUT_SECONDS,
            currency_decimals=app_settings.CURRENCY_DECIMALS,
        )

    # ------------------------------------------------------------------
    # Validation (no I/O)
    # ------------------------------------------------------------------

    @staticmethod
    def parse_action(action: Any) -> DecisionAction:
        if isinstance(action, DecisionAction):
            return action
        try:
            return DecisionAction(action)
        except ValueError:
            raise InvalidActionError(
                f"Unknown action '{action}'",
                details={"allowed": [a.value for a in DecisionAction]},
            )

    @staticmethod
    def validate_change_percent(action: DecisionAction, change_percent: Optional[float]) -> Optional[float]:
        if action not in SALARY_ACTIONS:
            return None
        if change_percent is None:
            raise InvalidChangePercentError(f"{action.value} requires changePercent")
        try:
            value = float(change_percent)
        except (TypeError, ValueError):
            raise InvalidChangePercentError("changePercent must be a number")
        if not math.isfinite(value):
            raise InvalidChangePercentError("changePercent must be finite")
        if action == DecisionAction.PROMOTE and value <= 0:
            raise InvalidChangePercentError(
                "PROMOTE requires a positive changePercent", details={"changePercent": value}
            )
        if action == DecisionAction.DECREASE_SALARY and value >= 0:
            raise InvalidChangePercentError(
                "DECREASE_SALARY requires a negative changePercent", details={"changePercent": value}
            )
        return value

    def compute_new_salary(self, current: Decimal, change_percent: float) -> Decimal:
        factor = Decimal(1) + Decimal(str(change_percent)) / Decimal(100)
        new_salary = (Decimal(current) * factor).quantize(self.quantum, rounding=ROUND_HALF_UP)
        if new_salary < 0:
            raise InvalidChangePercentError(
                f"changePercent {change_percent} would make the salary negative",
                details={"changePercent": change_percent},
            )
        if new_salary >= MONEY_CEILING:
            raise InvalidChangePercentError(
                f"changePercent {change_percent} would push the salary past {MONEY_CEILING:,}",
                details={"changePercent": change_percent, "maxSalary": MONEY_CEILING},
            )
        return new_salary

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def apply_action(
        self,
        db: AsyncSession,
        ssid: str,
        action: Any,
        note: Optional[str] = None,
        change_percent: Optional[float] = None,
    ) -> AppliedAction:
        decision = self.parse_action(action)
        percent = self.validate_change_percent(decision, change_percent)
        store = EmployeeStore(db)
        log = logger.bind(ssid=ssid, action=decision.value)

        for attempt in range(1, self.max_retries + 1):
            try:
                employee, record = await asyncio.wait_for(
                    self._stage(store, ssid, decision, note, percent),
                    timeout=self.timeout_seconds,
                )
                await store.commit()
            except asyncio.TimeoutError:
                await store.rollback()
                log.error(f"Apply {decision.value} for {ssid} timed out after {self.timeout_seconds}s")
                raise StorageError(
                    "Action timed out before commit; nothing was applied",
                    details={"ssid": ssid, "action": decision.value},
                )
            except StaleRevisionError:
                log.warning(
                    f"Stale revision applying {decision.value} to {ssid} "
                    f"(attempt {attempt}/{self.max_retries}), retrying"
                )
                continue

            log.info(
                f"Applied {decision.value} to {ssid}: {record.details['effect']}",
                extra={"revision": employee.revision},
            )
            return AppliedAction(employee=employee, record=record)

        raise ConcurrentModificationError(
            f"Employee {ssid} kept changing; gave up after {self.max_retries} attempts",
            details={"ssid": ssid, "action": decision.value},
        )

    async def _stage(
        self,
        store: EmployeeStore,
        ssid: str,
        decision: DecisionAction,
        note: Optional[str],
        percent: Optional[float],
    ) -> Tuple[Employee, ActionRecord]:
        employee = await store.get_active(ssid)
        if employee is None:
            raise EmployeeNotFoundError(ssid)

        applied_at = datetime.now(timezone.utc)
        previous = Decimal(employee.salary or 0)
        new_salary: Optional[Decimal] = None
        new_status: Optional[str] = None

        if decision == DecisionAction.FIRE:
            new_status = EmployeeStatus.FIRED.value
            details = {"effect": "terminated", "previousSalary": float(previous)}
        elif decision in SALARY_ACTIONS:
            new_salary = self.compute_new_salary(previous, percent)
            details = {
                "effect": "salary increased" if decision == DecisionAction.PROMOTE else "salary decreased",
                "previousSalary": float(previous),
                "newSalary": float(new_salary),
                "changePercent": percent,
            }
        else:
            details = {"effect": "no action taken", "salary": float(previous)}

        superseded = None
        if employee.suggestion:
            superseded = dict(employee.suggestion)
            superseded["supersededAt"] = applied_at.isoformat()

        record = ActionRecord(
            ssid=employee.ssid,
            action=decision.value,
            note=note,
            details=details,
            applied_at=applied_at,
        )
        await store.stage_action(
            employee,
            record,
            salary=new_salary,
            status=new_status,
            suggestion=superseded,
            touched_at=applied_at,
        )
        return employee, record


action_ledger_service = ActionLedgerService.from_settings(settings)
