from datetime import date

import pytest

from buildpay.models import Employee
from buildpay.time_off import ApprovedTimeOff, NoTimeOff, StaticTimeOffProvider


def test_no_time_off_provider_returns_zero(weekly_period, crew_member):
    hours = NoTimeOff().hours_for(crew_member, weekly_period)

    assert (hours.pto_hours, hours.sick_hours, hours.holiday_hours) == (0, 0, 0)


def test_static_provider_sums_records_inside_period(weekly_period, crew_member):
    provider = StaticTimeOffProvider(
        [
            ApprovedTimeOff(employee_id="emp-1", taken_on=date(2024, 6, 3), hours=8, kind="pto"),
            ApprovedTimeOff(employee_id="emp-1", taken_on=date(2024, 6, 4), hours=4, kind="pto"),
            ApprovedTimeOff(employee_id="emp-1", taken_on=date(2024, 6, 5), hours=8, kind="sick"),
            ApprovedTimeOff(employee_id="emp-1", taken_on=date(2024, 5, 27), hours=8, kind="holiday"),
            ApprovedTimeOff(employee_id="emp-2", taken_on=date(2024, 6, 3), hours=8, kind="pto"),
        ]
    )

    hours = provider.hours_for(crew_member, weekly_period)

    assert hours.pto_hours == 12
    assert hours.sick_hours == 8
    assert hours.holiday_hours == 0
    assert provider.hours_for(Employee(id="emp-3", name="Nobody"), weekly_period).pto_hours == 0


def test_static_provider_rejects_unknown_kind():
    with pytest.raises(ValueError, match="vacation"):
        StaticTimeOffProvider([ApprovedTimeOff(employee_id="emp-1", taken_on=date(2024, 6, 3), hours=8, kind="vacation")])
