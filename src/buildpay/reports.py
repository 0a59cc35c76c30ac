from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .models import PayrollRun, RunStatus, local_naive
from .money import round_currency

DEADLINE_WARNING_DAYS = 3


@dataclass
class EmployeePayTotals:
    employee_id: str
    employee_name: str
    gross_pay: float = 0.0
    net_pay: float = 0.0
    hours_worked: float = 0.0
    overtime_hours: float = 0.0


@dataclass
class PeriodRunTotals:
    period_label: str
    run_id: str
    status: RunStatus
    employee_count: int
    gross_pay: float
    net_pay: float
    pay_date: datetime


@dataclass
class PayrollAlert:
    type: str
    message: str
    severity: str = "warning"
    payroll_run_id: Optional[str] = None


@dataclass
class PayrollSummary:
    period_start: datetime
    period_end: datetime
    run_count: int
    total_employees: int
    total_gross_pay: float
    total_net_pay: float
    total_deductions: float
    by_period: List[PeriodRunTotals] = field(default_factory=list)
    employees: List[EmployeePayTotals] = field(default_factory=list)
    alerts: List[PayrollAlert] = field(default_factory=list)
    open_runs: int = 0


def _months_before(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    day = min(moment.day, 28)
    return moment.replace(year=year, month=month + 1, day=day)


def days_until_pay_date(run: PayrollRun, now: datetime) -> int:
    """Whole days, rounded up, from ``now`` to the run's pay date."""
    remaining = local_naive(run.pay_period.pay_date) - local_naive(now)
    return math.ceil(remaining.total_seconds() / 86400)


def deadline_alerts(runs: Iterable[PayrollRun], now: datetime) -> List[PayrollAlert]:
    alerts = []
    for run in runs:
        if run.status is not RunStatus.DRAFT:
            continue
        days = days_until_pay_date(run, now)
        if 0 < days <= DEADLINE_WARNING_DAYS:
            alerts.append(
                PayrollAlert(
                    type="upcoming_deadline",
                    message=f"Payroll due in {days} day(s) for {run.pay_period.label}",
                    payroll_run_id=run.id,
                )
            )
    return alerts


def summarize_runs(runs: Iterable[PayrollRun], now: datetime, months: int = 3) -> Optional[PayrollSummary]:
    """Totals over completed runs created in the last ``months`` months.

    Returns None when there are no runs at all. ``by_period`` lists every
    recent run whatever its status, and ``open_runs`` counts the recent runs
    that still need approval or processing. Hours worked cover regular,
    overtime, double time, PTO and sick hours.
    """
    runs = list(runs)
    if not runs:
        return None

    since = _months_before(now, months)
    recent = [run for run in runs if run.created_at >= since]
    completed = [run for run in recent if run.status is RunStatus.COMPLETED]

    by_employee: Dict[str, EmployeePayTotals] = {}
    for run in completed:
        for entry in run.entries:
            totals = by_employee.setdefault(
                entry.employee_id,
                EmployeePayTotals(employee_id=entry.employee_id, employee_name=entry.employee_name),
            )
            totals.gross_pay += entry.gross_pay
            totals.net_pay += entry.net_pay
            totals.hours_worked += (
                entry.regular_hours + entry.overtime_hours + entry.double_time_hours + entry.pto_hours + entry.sick_hours
            )
            totals.overtime_hours += entry.overtime_hours

    employees = []
    for totals in sorted(by_employee.values(), key=lambda t: t.gross_pay, reverse=True):
        totals.gross_pay = round_currency(totals.gross_pay)
        totals.net_pay = round_currency(totals.net_pay)
        totals.hours_worked = round(totals.hours_worked, 2)
        totals.overtime_hours = round(totals.overtime_hours, 2)
        employees.append(totals)

    by_period = [
        PeriodRunTotals(
            period_label=run.pay_period.label,
            run_id=run.id,
            status=run.status,
            employee_count=run.employee_count,
            gross_pay=run.total_gross_pay,
            net_pay=run.total_net_pay,
            pay_date=run.pay_period.pay_date,
        )
        for run in recent
    ]

    return PayrollSummary(
        period_start=since,
        period_end=now,
        run_count=len(completed),
        total_employees=len(by_employee),
        total_gross_pay=round_currency(sum(run.total_gross_pay for run in completed)),
        total_net_pay=round_currency(sum(run.total_net_pay for run in completed)),
        total_deductions=round_currency(sum(run.total_deductions for run in completed)),
        by_period=by_period,
        employees=employees,
        alerts=deadline_alerts(recent, now),
        open_runs=sum(1 for run in recent if run.status is not RunStatus.COMPLETED),
    )
