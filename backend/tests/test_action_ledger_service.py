"""
Tests for compadvisor/services/action_ledger_service.py - atomic apply with audit trail.
"""
import asyncio
import logging
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from compadvisor.core.exceptions import (
    ConcurrentModificationError,
    EmployeeNotFoundError,
    InvalidActionError,
    InvalidChangePercentError,
    StaleRevisionError,
    StorageError,
)
from compadvisor.models.employee import Employee
from compadvisor.services.action_ledger_service import ActionLedgerService
from compadvisor.services.analysis_service import AnalysisService
from compadvisor.services.data.employee_store import EmployeeStore
from tests.utils.factories import ledger_entries, reload_employee


@pytest.fixture
def ledger():
    return ActionLedgerService(max_retries=3, timeout_seconds=5)


class TestValidation:
    """Requests rejected before anything is read or written."""

    def test_unknown_action(self, ledger):
        with pytest.raises(InvalidActionError) as exc_info:
            ledger.parse_action("RAISE")
        assert exc_info.value.reason == "invalid_action"

    @pytest.mark.parametrize("action", ["PROMOTE", "DECREASE_SALARY"])
    def test_salary_actions_require_percent(self, ledger, action):
        with pytest.raises(InvalidChangePercentError):
            ledger.validate_change_percent(ledger.parse_action(action), None)

    @pytest.mark.parametrize("action,percent", [
        ("PROMOTE", -5),
        ("PROMOTE", 0),
        ("DECREASE_SALARY", 5),
        ("DECREASE_SALARY", float("nan")),
    ])
    def test_percent_sign_must_match_action(self, ledger, action, percent):
        with pytest.raises(InvalidChangePercentError):
            ledger.validate_change_percent(ledger.parse_action(action), percent)

    def test_percent_ignored_for_other_actions(self, ledger):
        assert ledger.validate_change_percent(ledger.parse_action("FIRE"), 12) is None

    def test_new_salary_rounds_to_currency_unit(self, ledger):
        assert ledger.compute_new_salary(Decimal("800000"), 10) == Decimal("880000.00")
        assert ledger.compute_new_salary(Decimal("1000.005"), 0.0001) == Decimal("1000.01")

    def test_negative_salary_rejected(self, ledger):
        with pytest.raises(InvalidChangePercentError):
            ledger.compute_new_salary(Decimal("800000"), -150)

    def test_salary_past_column_capacity_rejected(self, ledger):
        """An overflowing salary is a bad request, not a retryable storage failure."""
        with pytest.raises(InvalidChangePercentError) as exc_info:
            ledger.compute_new_salary(Decimal("800000"), 1e9)
        assert exc_info.value.status_code == 400
        assert exc_info.value.retryable is False

    def test_salary_just_below_capacity_allowed(self, ledger):
        assert ledger.compute_new_salary(Decimal("500000000000"), 99) == Decimal("995000000000.00")


class TestApplyAction:
    """Effects per action kind."""

    @pytest.mark.asyncio
    async def test_promote_scenario(self, ledger, seeded_session):
        applied = await ledger.apply_action(seeded_session, "E123", "PROMOTE", change_percent=10)

        assert applied.details == {
            "effect": "salary increased",
            "previousSalary": 800000,
            "newSalary": 880000,
            "changePercent": 10,
        }
        employee = await reload_employee(seeded_session, "E123")
        assert employee.salary == Decimal("880000.00")
        assert employee.status == "active"
        assert employee.revision == 2

        entries = await ledger_entries(seeded_session, "E123")
        assert len(entries) == 1
        assert entries[0].action == "PROMOTE"
        assert entries[0].details["newSalary"] == 880000

    @pytest.mark.asyncio
    async def test_decrease(self, ledger, seeded_session):
        applied = await ledger.apply_action(
            seeded_session, "E300", "DECREASE_SALARY", note="cost review", change_percent=-8
        )

        assert applied.details["effect"] == "salary decreased"
        assert applied.details["newSalary"] == 2_300_000
        assert applied.record.note == "cost review"

    @pytest.mark.asyncio
    async def test_fire(self, ledger, seeded_session):
        applied = await ledger.apply_action(seeded_session, "E200", "FIRE")

        assert applied.details == {"effect": "terminated", "previousSalary": 1_000_000}
        employee = await reload_employee(seeded_session, "E200")
        assert employee.status == "fired"
        assert employee.salary == Decimal("1000000.00")

    @pytest.mark.asyncio
    async def test_fired_employee_is_not_found(self, ledger, seeded_session):
        await ledger.apply_action(seeded_session, "E200", "FIRE")

        with pytest.raises(EmployeeNotFoundError):
            await ledger.apply_action(seeded_session, "E200", "NO_CHANGE")

    @pytest.mark.asyncio
    async def test_unknown_employee(self, ledger, seeded_session):
        with pytest.raises(EmployeeNotFoundError) as exc_info:
            await ledger.apply_action(seeded_session, "NOPE", "FIRE")

        assert exc_info.value.status_code == 404
        assert await ledger_entries(seeded_session) == []

    @pytest.mark.asyncio
    async def test_no_change_twice(self, ledger, seeded_session):
        """Two ledger entries, salary and status untouched both times."""
        await ledger.apply_action(seeded_session, "E400", "NO_CHANGE")
        await ledger.apply_action(seeded_session, "E400", "NO_CHANGE", note="reviewed again")

        employee = await reload_employee(seeded_session, "E400")
        assert employee.salary == Decimal("3000000.00")
        assert employee.status == "active"

        entries = await ledger_entries(seeded_session, "E400")
        assert [e.details for e in entries] == [
            {"effect": "no action taken", "salary": 3_000_000},
            {"effect": "no action taken", "salary": 3_000_000},
        ]

    @pytest.mark.asyncio
    async def test_apply_log_carries_trace_fields(self, ledger, seeded_session, caplog):
        caplog.set_level(logging.INFO, logger="compadvisor.services.action_ledger_service")

        await ledger.apply_action(seeded_session, "E400", "NO_CHANGE")

        [record] = [r for r in caplog.records if r.getMessage().startswith("Applied")]
        assert record.ssid == "E400"
        assert record.action == "NO_CHANGE"
        assert record.revision == 2

    @pytest.mark.asyncio
    async def test_negative_result_writes_nothing(self, ledger, seeded_session):
        with pytest.raises(InvalidChangePercentError):
            await ledger.apply_action(seeded_session, "E123", "DECREASE_SALARY", change_percent=-150)

        employee = await reload_employee(seeded_session, "E123")
        assert employee.salary == Decimal("800000.00")
        assert employee.revision == 1
        assert await ledger_entries(seeded_session) == []

    @pytest.mark.asyncio
    async def test_apply_supersedes_persisted_suggestion(self, ledger, seeded_session):
        analysis = AnalysisService(default_budget=50_000_000, persist_suggestions=True)
        await analysis.analyze_employees(seeded_session)

        await ledger.apply_action(seeded_session, "E123", "PROMOTE", change_percent=10)

        employee = await reload_employee(seeded_session, "E123")
        assert employee.suggestion["action"] == "PROMOTE"
        assert employee.suggestion["supersededAt"]
        assert AnalysisService.is_pending(employee.suggestion) is False


class TestAtomicity:
    """Employee mutation and ledger entry commit together or not at all."""

    @pytest.mark.asyncio
    async def test_failure_between_update_and_append_leaves_nothing(self, ledger, seeded_session):
        failure = OperationalError("INSERT INTO action_records", {}, Exception("disk I/O error"))

        with patch.object(EmployeeStore, "append_record", side_effect=failure):
            with pytest.raises(StorageError) as exc_info:
                await ledger.apply_action(seeded_session, "E123", "PROMOTE", change_percent=10)

        assert exc_info.value.retryable is True
        employee = await reload_employee(seeded_session, "E123")
        assert employee.salary == Decimal("800000.00")
        assert employee.revision == 1
        assert await ledger_entries(seeded_session) == []

    @pytest.mark.asyncio
    async def test_failed_apply_can_be_retried(self, ledger, seeded_session):
        failure = OperationalError("INSERT INTO action_records", {}, Exception("disk I/O error"))

        with patch.object(EmployeeStore, "append_record", side_effect=failure):
            with pytest.raises(StorageError):
                await ledger.apply_action(seeded_session, "E123", "PROMOTE", change_percent=10)

        applied = await ledger.apply_action(seeded_session, "E123", "PROMOTE", change_percent=10)

        assert applied.details["newSalary"] == 880000
        assert len(await ledger_entries(seeded_session)) == 1

    @pytest.mark.asyncio
    async def test_timeout_resolves_to_not_committed(self, seeded_session):
        ledger = ActionLedgerService(timeout_seconds=0.05)
        original_get_active = EmployeeStore.get_active

        async def slow_get_active(self, ssid):
            await asyncio.sleep(1)
            return await original_get_active(self, ssid)

        with patch.object(EmployeeStore, "get_active", slow_get_active):
            with pytest.raises(StorageError) as exc_info:
                await ledger.apply_action(seeded_session, "E123", "FIRE")

        assert "nothing was applied" in exc_info.value.message
        employee = await reload_employee(seeded_session, "E123")
        assert employee.status == "active"
        assert await ledger_entries(seeded_session) == []


class TestOptimisticConcurrency:
    """Competing applies cannot both commit against the same prior state."""

    @pytest.mark.asyncio
    async def test_stale_revision_is_retried_from_fresh_state(self, ledger, seeded_session):
        # Load E123 at revision 1, then let another writer commit behind the session's back
        await EmployeeStore(seeded_session).get_active("E123")
        table = Employee.__table__
        await seeded_session.execute(
            update(table).where(table.c.ssid == "E123").values(salary=1_000_000, revision=2)
        )
        await seeded_session.commit()

        applied = await ledger.apply_action(seeded_session, "E123", "PROMOTE", change_percent=10)

        # Computed from the winner's salary, not the stale one
        assert applied.details["previousSalary"] == 1_000_000
        assert applied.details["newSalary"] == 1_100_000
        assert applied.employee.revision == 3
        assert len(await ledger_entries(seeded_session, "E123")) == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, seeded_session):
        ledger = ActionLedgerService(max_retries=2)

        with patch.object(
            EmployeeStore, "stage_action", side_effect=StaleRevisionError("conflict")
        ) as mock_stage:
            with pytest.raises(ConcurrentModificationError) as exc_info:
                await ledger.apply_action(seeded_session, "E123", "FIRE")

        assert mock_stage.call_count == 2
        assert exc_info.value.status_code == 409
        assert exc_info.value.retryable is True
