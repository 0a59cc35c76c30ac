from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Protocol

from .models import Employee, PayPeriod


@dataclass
class TimeOffHours:
    pto_hours: float = 0.0
    sick_hours: float = 0.0
    holiday_hours: float = 0.0


class TimeOffProvider(Protocol):
    def hours_for(self, employee: Employee, pay_period: PayPeriod) -> TimeOffHours:
        ...


class NoTimeOff:
    """Default provider: time off is tracked outside payroll."""

    def hours_for(self, employee: Employee, pay_period: PayPeriod) -> TimeOffHours:
        return TimeOffHours()


@dataclass
class ApprovedTimeOff:
    employee_id: str
    taken_on: date
    hours: float
    kind: str = "pto"  # pto, sick or holiday


class StaticTimeOffProvider:
    """Serves approved time off that falls inside the pay period."""

    KINDS = ("pto", "sick", "holiday")

    def __init__(self, records: Iterable[ApprovedTimeOff]):
        self.records: List[ApprovedTimeOff] = list(records)
        for record in self.records:
            if record.kind not in self.KINDS:
                raise ValueError(f"Unknown time off kind {record.kind!r}")

    def hours_for(self, employee: Employee, pay_period: PayPeriod) -> TimeOffHours:
        hours = TimeOffHours()
        for record in self.records:
            if record.employee_id != employee.id:
                continue
            if not (pay_period.start.date() <= record.taken_on <= pay_period.end.date()):
                continue
            attr = f"{record.kind}_hours"
            setattr(hours, attr, getattr(hours, attr) + record.hours)
        return hours
