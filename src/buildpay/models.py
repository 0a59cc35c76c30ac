from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .money import round_currency, sum_currency


class PaySchedule(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    SEMI_MONTHLY = "semi-monthly"
    MONTHLY = "monthly"


PERIODS_PER_YEAR: Dict[PaySchedule, int] = {
    PaySchedule.WEEKLY: 52,
    PaySchedule.BI_WEEKLY: 26,
    PaySchedule.SEMI_MONTHLY: 24,
    PaySchedule.MONTHLY: 12,
}


def periods_per_year(schedule: PaySchedule | str) -> int:
    return PERIODS_PER_YEAR[PaySchedule(schedule)]


class EmployeeType(str, Enum):
    HOURLY = "hourly"
    SALARIED = "salaried"


class FilingStatus(str, Enum):
    SINGLE = "single"
    MARRIED_FILING_JOINTLY = "married_filing_jointly"
    MARRIED_FILING_SEPARATELY = "married_filing_separately"
    HEAD_OF_HOUSEHOLD = "head_of_household"


class TimeEntryType(str, Enum):
    CLOCK = "clock"
    MANUAL = "manual"
    IMPORTED = "imported"


class RunStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    COMPLETED = "completed"


@dataclass
class WithholdingProfile:
    filing_status: FilingStatus = FilingStatus.SINGLE
    allowances: int = 0
    additional_withholding: float = 0.0
    is_exempt: bool = False


@dataclass
class Employee:
    id: str
    name: str
    employee_type: EmployeeType = EmployeeType.HOURLY
    hourly_rate: Optional[float] = None
    salary: Optional[float] = None  # annual
    overtime_multiplier: Optional[float] = None
    double_time_multiplier: Optional[float] = None
    withholding: WithholdingProfile = field(default_factory=WithholdingProfile)


def local_naive(moment: datetime) -> datetime:
    """Offset-bearing datetimes become local wall-clock time; naive ones pass through."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


@dataclass
class TimeEntry:
    id: str
    employee_id: str
    clock_in: datetime
    total_minutes: float
    entry_type: TimeEntryType = TimeEntryType.CLOCK

    def __post_init__(self) -> None:
        # periods and day grouping use naive local time
        self.clock_in = local_naive(self.clock_in)


@dataclass
class OvertimeBucket:
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    doubletime_hours: float = 0.0


@dataclass(frozen=True)
class PayPeriod:
    id: str
    schedule: PaySchedule
    start: datetime
    end: datetime
    pay_date: datetime
    label: str

    def contains(self, moment: datetime) -> bool:
        return self.start <= local_naive(moment) <= self.end


@dataclass
class PayrollSettings:
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


@dataclass
class YearToDateTotals:
    gross_pay: float = 0.0
    federal: float = 0.0
    state: float = 0.0
    social_security: float = 0.0
    medicare: float = 0.0

    def add(self, gross_pay: float, federal: float, state: float, social_security: float, medicare: float) -> "YearToDateTotals":
        return YearToDateTotals(
            gross_pay=round_currency(self.gross_pay + gross_pay),
            federal=round_currency(self.federal + federal),
            state=round_currency(self.state + state),
            social_security=round_currency(self.social_security + social_security),
            medicare=round_currency(self.medicare + medicare),
        )


@dataclass
class TaxCalculationInput:
    gross_pay: float
    schedule: PaySchedule
    filing_status: FilingStatus = FilingStatus.SINGLE
    allowances: int = 0
    additional_withholding: float = 0.0
    is_exempt: bool = False
    state_code: str = "NC"
    ytd_gross_pay: float = 0.0


@dataclass
class TaxCalculationResult:
    gross_pay: float
    federal_withholding: float
    state_withholding: float
    social_security: float
    medicare: float
    total_tax: float
    effective_rate: float


@dataclass
class PayrollAdjustment:
    id: str
    description: str
    amount: float
    taxable: bool = True


@dataclass
class PayrollEntry:
    id: str
    payroll_run_id: str
    employee_id: str
    employee_name: str
    employee_type: EmployeeType = EmployeeType.HOURLY

    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    double_time_hours: float = 0.0
    pto_hours: float = 0.0
    sick_hours: float = 0.0
    holiday_hours: float = 0.0

    regular_rate: float = 0.0
    overtime_rate: float = 1.5  # multiplier
    double_time_rate: float = 2.0  # multiplier

    regular_pay: float = 0.0
    overtime_pay: float = 0.0
    double_time_pay: float = 0.0
    pto_pay: float = 0.0
    sick_pay: float = 0.0
    holiday_pay: float = 0.0
    bonuses: float = 0.0
    commissions: float = 0.0
    reimbursements: float = 0.0
    gross_pay: float = 0.0

    federal_withholding: float = 0.0
    state_withholding: float = 0.0
    social_security: float = 0.0
    medicare: float = 0.0
    local_tax: float = 0.0
    retirement_401k: float = 0.0
    health_insurance: float = 0.0
    other_deductions: float = 0.0
    total_deductions: float = 0.0
    net_pay: float = 0.0

    time_entry_ids: List[str] = field(default_factory=list)
    adjustments: List[PayrollAdjustment] = field(default_factory=list)
    ytd: YearToDateTotals = field(default_factory=YearToDateTotals)
    employer_taxes: Dict[str, float] = field(default_factory=dict)
    has_manual_overrides: bool = False

    def deduction_components(self) -> List[float]:
        return [
            self.federal_withholding,
            self.state_withholding,
            self.social_security,
            self.medicare,
            self.local_tax,
            self.retirement_401k,
            self.health_insurance,
            self.other_deductions,
        ]

    def recalculate_net_pay(self) -> None:
        self.total_deductions = sum_currency(self.deduction_components())
        self.net_pay = round_currency(self.gross_pay - self.total_deductions)


@dataclass
class PayrollRun:
    id: str
    org_id: str
    run_number: int
    pay_period: PayPeriod
    created_by: str
    created_at: datetime
    created_by_name: str = ""
    status: RunStatus = RunStatus.DRAFT
    entries: List[PayrollEntry] = field(default_factory=list)
    employee_count: int = 0
    total_regular_hours: float = 0.0
    total_overtime_hours: float = 0.0
    total_gross_pay: float = 0.0
    total_deductions: float = 0.0
    total_net_pay: float = 0.0
    total_employer_taxes: Dict[str, float] = field(default_factory=dict)
    updated_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_by_name: Optional[str] = None
    approved_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    exported: bool = False
    exported_by: Optional[str] = None
    exported_at: Optional[datetime] = None
    version: int = 0

    def find_entry(self, entry_id: str) -> Optional[PayrollEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def recalculate_totals(self) -> None:
        self.employee_count = len(self.entries)
        self.total_regular_hours = round(sum(e.regular_hours for e in self.entries), 2)
        self.total_overtime_hours = round(sum(e.overtime_hours for e in self.entries), 2)
        self.total_gross_pay = sum_currency(e.gross_pay for e in self.entries)
        self.total_deductions = sum_currency(e.total_deductions for e in self.entries)
        self.total_net_pay = sum_currency(e.net_pay for e in self.entries)
        employer: Dict[str, float] = {}
        for entry in self.entries:
            for name, value in entry.employer_taxes.items():
                employer[name] = employer.get(name, 0) + value
        self.total_employer_taxes = {k: round_currency(v) for k, v in employer.items()}
