from __future__ import annotations

from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from .core.logging import get_logger
from .entry_calculator import PayrollEntryCalculator
from .exceptions import EntryNotFoundError, InvalidTransitionError, RunNotFoundError, ValidationError
from .models import (
    Employee,
    EmployeeType,
    PayPeriod,
    PayrollAdjustment,
    PayrollEntry,
    PayrollRun,
    PayrollSettings,
    RunStatus,
    TimeEntry,
    YearToDateTotals,
)
from .money import round_currency
from .storage import RunRepository

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[RunStatus, frozenset] = {
    RunStatus.DRAFT: frozenset({RunStatus.APPROVED}),
    RunStatus.APPROVED: frozenset({RunStatus.COMPLETED}),
    RunStatus.COMPLETED: frozenset(),
}

# Identity and bookkeeping fields cannot be changed through update_entry.
PROTECTED_ENTRY_FIELDS = frozenset(
    {"id", "payroll_run_id", "employee_id", "adjustments", "ytd", "total_deductions", "net_pay", "has_manual_overrides"}
)
EDITABLE_ENTRY_FIELDS = frozenset(f.name for f in fields(PayrollEntry)) - PROTECTED_ENTRY_FIELDS
NUMERIC_ENTRY_FIELDS = frozenset(f.name for f in fields(PayrollEntry) if f.type == "float")

# entry field that feeds each running year-to-date total
YTD_SOURCE_FIELDS = {
    "gross_pay": "gross_pay",
    "federal": "federal_withholding",
    "state": "state_withholding",
    "social_security": "social_security",
    "medicare": "medicare",
}


def _checked_entry_updates(updates: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce entry edits to their field types; nothing is applied if any edit is bad."""
    problems: List[str] = []
    checked: Dict[str, Any] = {}
    for name in sorted(set(updates) - EDITABLE_ENTRY_FIELDS):
        problems.append(f"field {name!r} cannot be updated")
    for name, value in updates.items():
        if name not in EDITABLE_ENTRY_FIELDS:
            continue
        if name in NUMERIC_ENTRY_FIELDS:
            if isinstance(value, bool):
                problems.append(f"field {name!r} must be a number")
                continue
            try:
                checked[name] = float(value)
            except (TypeError, ValueError):
                problems.append(f"field {name!r} must be a number")
        elif name == "employee_type":
            try:
                checked[name] = EmployeeType(value)
            except ValueError:
                problems.append(f"field 'employee_type' must be one of {[t.value for t in EmployeeType]}")
        elif name == "employee_name" and not isinstance(value, str):
            problems.append("field 'employee_name' must be a string")
        else:
            checked[name] = value
    if problems:
        raise ValidationError(problems)
    return checked


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ytd_from_runs(runs: Iterable[PayrollRun], employee_id: str) -> YearToDateTotals:
    totals = YearToDateTotals()
    for run in runs:
        for entry in run.entries:
            if entry.employee_id != employee_id:
                continue
            totals = totals.add(
                gross_pay=entry.gross_pay,
                federal=entry.federal_withholding,
                state=entry.state_withholding,
                social_security=entry.social_security,
                medicare=entry.medicare,
            )
    return totals


class PayrollRunService:
    """Assembles payroll runs and keeps their totals in step with their entries.

    Every mutating call loads the run, applies the change together with the
    recomputed totals, and saves it in one repository write. Repositories
    reject the write if another caller saved the run in between.
    """

    def __init__(self, repository: RunRepository, clock: Optional[Callable[[], datetime]] = None):
        self.repository = repository
        self.clock = clock or utc_now

    def _load(self, org_id: str, run_id: str) -> PayrollRun:
        run = self.repository.get(org_id, run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    @staticmethod
    def _entry(run: PayrollRun, entry_id: str) -> PayrollEntry:
        entry = run.find_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(run.id, entry_id)
        return entry

    def _next_run_number(self, org_id: str, year: int) -> int:
        runs = self.repository.list(org_id, created_year=year)
        return max((run.run_number for run in runs), default=0) + 1

    def create_run(
        self,
        org_id: str,
        pay_period: PayPeriod,
        entries: List[PayrollEntry],
        created_by: str,
        created_by_name: str = "",
    ) -> PayrollRun:
        now = self.clock()
        run_id = str(uuid4())
        run = PayrollRun(
            id=run_id,
            org_id=org_id,
            run_number=self._next_run_number(org_id, now.year),
            pay_period=pay_period,
            created_by=created_by,
            created_by_name=created_by_name,
            created_at=now,
            updated_at=now,
            entries=[replace(entry, payroll_run_id=run_id) for entry in entries],
        )
        run.recalculate_totals()
        self.repository.add(run)
        logger.info(
            "payroll_run_created",
            org_id=org_id,
            run_id=run.id,
            run_number=run.run_number,
            period=pay_period.id,
            employees=run.employee_count,
            total_gross_pay=run.total_gross_pay,
        )
        return run

    def run_payroll(
        self,
        org_id: str,
        pay_period: PayPeriod,
        employees: Iterable[Employee],
        time_entries: Iterable[TimeEntry],
        settings: PayrollSettings,
        calculator: PayrollEntryCalculator,
        created_by: str,
        created_by_name: str = "",
    ) -> PayrollRun:
        """Calculate every employee's entry for the period and store a draft run."""
        in_period = [entry for entry in time_entries if pay_period.contains(entry.clock_in)]
        tax_year = pay_period.pay_date.year
        entries = [
            calculator.calculate_entry(
                employee,
                in_period,
                pay_period,
                settings,
                ytd=self.employee_ytd_totals(org_id, employee.id, tax_year),
            )
            for employee in employees
        ]
        return self.create_run(org_id, pay_period, entries, created_by, created_by_name)

    def get_run(self, org_id: str, run_id: str) -> PayrollRun:
        return self._load(org_id, run_id)

    def list_runs(self, org_id: str, status: Optional[RunStatus] = None, year: Optional[int] = None) -> List[PayrollRun]:
        return self.repository.list(org_id, status=RunStatus(status) if status else None, created_year=year)

    def update_status(
        self,
        org_id: str,
        run_id: str,
        status: RunStatus | str,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> PayrollRun:
        status = RunStatus(status)
        run = self._load(org_id, run_id)
        if status not in ALLOWED_TRANSITIONS[run.status]:
            raise InvalidTransitionError(
                f"Cannot move payroll run from {run.status.value} to {status.value}",
                current=run.status.value,
                requested=status.value,
            )

        now = self.clock()
        if status is RunStatus.APPROVED:
            run.approved_by = user_id
            run.approved_by_name = user_name
            run.approved_at = now
        elif status is RunStatus.COMPLETED:
            run.processed_by = user_id
            run.processed_at = now
        previous = run.status
        run.status = status
        run.updated_at = now
        self.repository.save(run)
        logger.info("payroll_run_status_changed", run_id=run_id, previous=previous.value, status=status.value, user_id=user_id)
        return run

    def approve_run(self, org_id: str, run_id: str, user_id: str, user_name: Optional[str] = None) -> PayrollRun:
        return self.update_status(org_id, run_id, RunStatus.APPROVED, user_id, user_name)

    def complete_run(self, org_id: str, run_id: str, user_id: str, user_name: Optional[str] = None) -> PayrollRun:
        return self.update_status(org_id, run_id, RunStatus.COMPLETED, user_id, user_name)

    def mark_exported(self, org_id: str, run_id: str, user_id: Optional[str] = None) -> PayrollRun:
        run = self._load(org_id, run_id)
        now = self.clock()
        run.exported = True
        run.exported_by = user_id
        run.exported_at = now
        run.updated_at = now
        self.repository.save(run)
        logger.info("payroll_run_exported", run_id=run_id, user_id=user_id)
        return run

    def delete_run(self, org_id: str, run_id: str) -> None:
        run = self._load(org_id, run_id)
        if run.status is not RunStatus.DRAFT:
            raise InvalidTransitionError(
                "Can only delete draft payroll runs", current=run.status.value, requested="deleted"
            )
        self.repository.delete(org_id, run_id)
        logger.info("payroll_run_deleted", org_id=org_id, run_id=run_id)

    def update_entry(self, org_id: str, run_id: str, entry_id: str, updates: Mapping[str, Any]) -> PayrollEntry:
        run = self._load(org_id, run_id)
        if run.status is not RunStatus.DRAFT:
            raise InvalidTransitionError(
                "Can only edit entries of draft payroll runs", current=run.status.value, requested="edit"
            )
        entry = self._entry(run, entry_id)

        updates = _checked_entry_updates(updates)

        previous = {total: getattr(entry, source) for total, source in YTD_SOURCE_FIELDS.items()}
        for name, value in updates.items():
            setattr(entry, name, value)
        entry.has_manual_overrides = True
        entry.recalculate_net_pay()
        for total, source in YTD_SOURCE_FIELDS.items():
            moved = getattr(entry.ytd, total) + getattr(entry, source) - previous[total]
            setattr(entry.ytd, total, round_currency(moved))

        run.recalculate_totals()
        run.updated_at = self.clock()
        self.repository.save(run)
        logger.info("payroll_entry_updated", run_id=run_id, entry_id=entry_id, fields=sorted(updates))
        return entry

    def add_adjustment(
        self,
        org_id: str,
        run_id: str,
        entry_id: str,
        description: str,
        amount: float,
        taxable: bool = True,
    ) -> PayrollAdjustment:
        """Append an adjustment to an entry.

        Taxable amounts raise gross pay without re-running withholding, so
        the entry's taxes still reflect the originally calculated gross.
        Non-taxable amounts are booked as reimbursements.
        """
        run = self._load(org_id, run_id)
        if run.status is RunStatus.COMPLETED:
            raise InvalidTransitionError(
                "Cannot adjust completed payroll runs", current=run.status.value, requested="adjust"
            )
        entry = self._entry(run, entry_id)

        adjustment = PayrollAdjustment(id=str(uuid4()), description=description, amount=amount, taxable=taxable)
        entry.adjustments.append(adjustment)
        if not taxable:
            entry.reimbursements = round_currency(entry.reimbursements + amount)
        entry.gross_pay = round_currency(entry.gross_pay + amount)
        entry.ytd.gross_pay = round_currency(entry.ytd.gross_pay + amount)
        entry.has_manual_overrides = True
        entry.recalculate_net_pay()

        run.recalculate_totals()
        run.updated_at = self.clock()
        self.repository.save(run)
        logger.info(
            "payroll_adjustment_added",
            run_id=run_id,
            entry_id=entry_id,
            adjustment_id=adjustment.id,
            amount=amount,
            taxable=taxable,
        )
        return adjustment

    def employee_ytd_totals(self, org_id: str, employee_id: str, year: Optional[int] = None) -> YearToDateTotals:
        year = year or self.clock().year
        runs = self.repository.list(org_id, status=RunStatus.COMPLETED, pay_year=year)
        return ytd_from_runs(runs, employee_id)
