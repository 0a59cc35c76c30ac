from __future__ import annotations

from typing import Iterable, Optional
from uuid import uuid4

from .core.logging import get_logger
from .models import (
    Employee,
    EmployeeType,
    PayPeriod,
    PayrollEntry,
    PayrollSettings,
    TaxCalculationInput,
    TimeEntry,
    YearToDateTotals,
    periods_per_year,
)
from .money import round_currency, sum_currency
from .overtime import classify_hours
from .tax_engine import TaxCalculator
from .time_off import NoTimeOff, TimeOffProvider
from .validation import validate_payroll_inputs

logger = get_logger(__name__)

HOLIDAY_PREMIUM = 1.5


class PayrollEntryCalculator:
    def __init__(self, tax_calculator: TaxCalculator, time_off: Optional[TimeOffProvider] = None):
        self.tax_calculator = tax_calculator
        self.time_off = time_off or NoTimeOff()

    def calculate_entry(
        self,
        employee: Employee,
        time_entries: Iterable[TimeEntry],
        pay_period: PayPeriod,
        settings: PayrollSettings,
        ytd: Optional[YearToDateTotals] = None,
        payroll_run_id: str = "",
    ) -> PayrollEntry:
        """Build one employee's entry for ``pay_period``.

        ``time_entries`` are expected to be scoped to the period already;
        entries for other employees are skipped. ``ytd`` holds the totals
        from completed runs before this period.
        """
        ytd = ytd or YearToDateTotals()
        own_entries = [entry for entry in time_entries if entry.employee_id == employee.id]
        validate_payroll_inputs(employee, own_entries, settings)

        hours = classify_hours(employee.id, own_entries, settings)
        time_off = self.time_off.hours_for(employee, pay_period)

        regular_rate = employee.hourly_rate or 0.0
        overtime_multiplier = (
            employee.overtime_multiplier if employee.overtime_multiplier is not None else settings.overtime_multiplier
        )
        double_time_multiplier = (
            employee.double_time_multiplier
            if employee.double_time_multiplier is not None
            else settings.double_time_multiplier
        )

        if employee.employee_type == EmployeeType.SALARIED:
            regular_pay = round_currency((employee.salary or 0.0) / periods_per_year(pay_period.schedule))
        else:
            regular_pay = round_currency(hours.regular_hours * regular_rate)
        overtime_pay = round_currency(hours.overtime_hours * regular_rate * overtime_multiplier)
        double_time_pay = round_currency(hours.double_time_hours * regular_rate * double_time_multiplier)
        pto_pay = round_currency(time_off.pto_hours * regular_rate)
        sick_pay = round_currency(time_off.sick_hours * regular_rate)
        holiday_pay = round_currency(time_off.holiday_hours * regular_rate * HOLIDAY_PREMIUM)

        gross_pay = sum_currency([regular_pay, overtime_pay, double_time_pay, pto_pay, sick_pay, holiday_pay])

        profile = employee.withholding
        taxes = self.tax_calculator.calculate_taxes(
            TaxCalculationInput(
                gross_pay=gross_pay,
                schedule=pay_period.schedule,
                filing_status=profile.filing_status,
                allowances=profile.allowances,
                additional_withholding=profile.additional_withholding,
                is_exempt=profile.is_exempt,
                state_code=settings.state_code,
                ytd_gross_pay=ytd.gross_pay,
            )
        )

        entry = PayrollEntry(
            id=str(uuid4()),
            payroll_run_id=payroll_run_id,
            employee_id=employee.id,
            employee_name=employee.name,
            employee_type=EmployeeType(employee.employee_type),
            regular_hours=hours.regular_hours,
            overtime_hours=hours.overtime_hours,
            double_time_hours=hours.double_time_hours,
            pto_hours=time_off.pto_hours,
            sick_hours=time_off.sick_hours,
            holiday_hours=time_off.holiday_hours,
            regular_rate=regular_rate,
            overtime_rate=overtime_multiplier,
            double_time_rate=double_time_multiplier,
            regular_pay=regular_pay,
            overtime_pay=overtime_pay,
            double_time_pay=double_time_pay,
            pto_pay=pto_pay,
            sick_pay=sick_pay,
            holiday_pay=holiday_pay,
            gross_pay=gross_pay,
            federal_withholding=taxes.federal_withholding,
            state_withholding=taxes.state_withholding,
            social_security=taxes.social_security,
            medicare=taxes.medicare,
            retirement_401k=round_currency(gross_pay * settings.default_retirement_percent / 100),
            health_insurance=round_currency(settings.health_insurance_amount),
            time_entry_ids=list(hours.time_entry_ids),
            employer_taxes=self.tax_calculator.employer_taxes(gross_pay, ytd.gross_pay, settings),
        )
        entry.recalculate_net_pay()
        entry.ytd = ytd.add(
            gross_pay=gross_pay,
            federal=taxes.federal_withholding,
            state=taxes.state_withholding,
            social_security=taxes.social_security,
            medicare=taxes.medicare,
        )

        logger.debug(
            "payroll_entry_calculated",
            employee_id=employee.id,
            period=pay_period.id,
            gross_pay=entry.gross_pay,
            net_pay=entry.net_pay,
        )
        return entry
