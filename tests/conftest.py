from datetime import date, datetime, timedelta, timezone

import pytest

from buildpay.entry_calculator import PayrollEntryCalculator
from buildpay.models import Employee, PaySchedule, PayrollSettings, TimeEntry
from buildpay.pay_periods import generate_pay_period
from buildpay.runs import PayrollRunService
from buildpay.storage import InMemoryRunRepository
from buildpay.tax_engine import TaxCalculator
from buildpay.tax_tables import TaxTableRepository

NOW = datetime(2024, 6, 12, 15, 0, tzinfo=timezone.utc)


def daily_entries(employee_id, first_day, hours_per_day, prefix="t"):
    """One clock entry per day starting at 7am."""
    entries = []
    for offset, hours in enumerate(hours_per_day):
        clock_in = datetime.combine(first_day + timedelta(days=offset), datetime.min.time()).replace(hour=7)
        entries.append(
            TimeEntry(id=f"{prefix}{offset}", employee_id=employee_id, clock_in=clock_in, total_minutes=hours * 60)
        )
    return entries


@pytest.fixture
def tax_table():
    return TaxTableRepository().load("2024_v1")


@pytest.fixture
def tax_calculator(tax_table):
    return TaxCalculator(tax_table)


@pytest.fixture
def entry_calculator(tax_calculator):
    return PayrollEntryCalculator(tax_calculator)


@pytest.fixture
def weekly_period():
    # Sunday Jun 2 through Saturday Jun 8, 2024
    return generate_pay_period(PaySchedule.WEEKLY, date(2024, 6, 12))


@pytest.fixture
def texas_settings():
    return PayrollSettings(state_code="TX")


@pytest.fixture
def crew_member():
    return Employee(id="emp-1", name="Dana Framer", hourly_rate=25.0)


@pytest.fixture
def service():
    return PayrollRunService(InMemoryRunRepository(), clock=lambda: NOW)
