from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .models import (
    Employee,
    EmployeeType,
    FilingStatus,
    PaySchedule,
    PayrollSettings,
    TimeEntry,
    TimeEntryType,
    WithholdingProfile,
)
from .time_off import ApprovedTimeOff


class WithholdingIn(BaseModel):
    filing_status: FilingStatus = FilingStatus.SINGLE
    allowances: int = 0
    additional_withholding: float = 0.0
    is_exempt: bool = False


class EmployeeIn(BaseModel):
    id: str
    name: str
    employee_type: EmployeeType = EmployeeType.HOURLY
    hourly_rate: Optional[float] = None
    salary: Optional[float] = None
    overtime_multiplier: Optional[float] = None
    double_time_multiplier: Optional[float] = None
    withholding: WithholdingIn = Field(default_factory=WithholdingIn)

    def to_domain(self) -> Employee:
        return Employee(
            id=self.id,
            name=self.name,
            employee_type=self.employee_type,
            hourly_rate=self.hourly_rate,
            salary=self.salary,
            overtime_multiplier=self.overtime_multiplier,
            double_time_multiplier=self.double_time_multiplier,
            withholding=WithholdingProfile(**self.withholding.model_dump()),
        )


class TimeEntryIn(BaseModel):
    id: str
    employee_id: str
    clock_in: datetime
    total_minutes: float
    entry_type: TimeEntryType = TimeEntryType.CLOCK

    def to_domain(self) -> TimeEntry:
        return TimeEntry(**self.model_dump())


class TimeOffIn(BaseModel):
    employee_id: str
    taken_on: date
    hours: float
    kind: Literal["pto", "sick", "holiday"] = "pto"

    def to_domain(self) -> ApprovedTimeOff:
        return ApprovedTimeOff(**self.model_dump())


class SettingsIn(BaseModel):
    overtime_multiplier: float = 1.5
    double_time_multiplier: float = 2.0
    enable_daily_overtime: bool = False
    daily_overtime_threshold: float = 8.0
    daily_double_time_threshold: Optional[float] = None
    weekly_overtime_threshold: float = 40.0
    default_retirement_percent: float = 0.0
    health_insurance_amount: float = 0.0
    state_code: str = "NC"
    default_pay_schedule: PaySchedule = PaySchedule.BI_WEEKLY
    employer_social_security_rate: float = 0.062
    employer_medicare_rate: float = 0.0145
    employer_futa_rate: float = 0.006

    def to_domain(self) -> PayrollSettings:
        return PayrollSettings(**self.model_dump())


class PayrollInput(BaseModel):
    """A payroll batch as handed over by the host application."""

    schedule: Optional[PaySchedule] = None
    reference_date: Optional[date] = None
    settings: SettingsIn = Field(default_factory=SettingsIn)
    employees: List[EmployeeIn] = Field(default_factory=list)
    time_entries: List[TimeEntryIn] = Field(default_factory=list)
    time_off: List[TimeOffIn] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path) -> "PayrollInput":
        with path.open("r", encoding="utf-8") as handle:
            return cls.model_validate(json.load(handle))

    def pay_schedule(self) -> PaySchedule:
        return self.schedule or self.settings.default_pay_schedule
