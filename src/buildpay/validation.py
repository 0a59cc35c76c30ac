from __future__ import annotations

import re
from typing import Iterable, List, Optional

from .exceptions import ValidationError
from .models import Employee, EmployeeType, FilingStatus, PayrollSettings, TimeEntry

STATE_CODE = re.compile(r"^[A-Z]{2}$")


def _negative(label: str, value: Optional[float]) -> List[str]:
    if value is not None and value < 0:
        return [f"{label} cannot be negative"]
    return []


def employee_problems(employee: Employee) -> List[str]:
    problems: List[str] = []
    if not employee.id:
        problems.append("employee id is required")
    try:
        EmployeeType(employee.employee_type)
    except ValueError:
        problems.append(f"unknown employee type {employee.employee_type!r}")
    problems += _negative("hourly rate", employee.hourly_rate)
    problems += _negative("salary", employee.salary)
    problems += _negative("overtime multiplier", employee.overtime_multiplier)
    problems += _negative("double-time multiplier", employee.double_time_multiplier)

    profile = employee.withholding
    try:
        FilingStatus(profile.filing_status)
    except ValueError:
        problems.append(f"unknown filing status {profile.filing_status!r}")
    problems += _negative("allowances", profile.allowances)
    problems += _negative("additional withholding", profile.additional_withholding)
    return [f"{employee.id or '?'}: {problem}" for problem in problems]


def time_entry_problems(entries: Iterable[TimeEntry]) -> List[str]:
    return [
        f"time entry {entry.id}: minutes cannot be negative"
        for entry in entries
        if entry.total_minutes is not None and entry.total_minutes < 0
    ]


def settings_problems(settings: PayrollSettings) -> List[str]:
    problems: List[str] = []
    problems += _negative("overtime multiplier", settings.overtime_multiplier)
    problems += _negative("double-time multiplier", settings.double_time_multiplier)
    problems += _negative("daily overtime threshold", settings.daily_overtime_threshold)
    problems += _negative("weekly overtime threshold", settings.weekly_overtime_threshold)
    problems += _negative("health insurance amount", settings.health_insurance_amount)
    if settings.daily_double_time_threshold is not None and (
        settings.daily_double_time_threshold < settings.daily_overtime_threshold
    ):
        problems.append("daily double-time threshold must not be below the daily overtime threshold")
    if not 0 <= settings.default_retirement_percent <= 100:
        problems.append("retirement percent must be between 0 and 100")
    if not STATE_CODE.match(settings.state_code or ""):
        problems.append(f"state code {settings.state_code!r} must be two uppercase letters")
    return [f"settings: {problem}" for problem in problems]


def validate_payroll_inputs(
    employee: Employee,
    entries: Iterable[TimeEntry],
    settings: PayrollSettings,
) -> None:
    problems = employee_problems(employee) + time_entry_problems(entries) + settings_problems(settings)
    if problems:
        raise ValidationError(problems)
