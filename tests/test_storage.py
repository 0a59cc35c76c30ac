from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from buildpay.exceptions import ConcurrentModificationError, RunNotFoundError
from buildpay.models import PaySchedule, RunStatus
from buildpay.pay_periods import generate_pay_period
from buildpay.runs import PayrollRunService
from buildpay.storage import SqlRunRepository

from conftest import NOW, daily_entries


@pytest.fixture
def sql_repository():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    repository = SqlRunRepository(engine)
    repository.create_schema()
    return repository


@pytest.fixture
def sql_service(sql_repository):
    return PayrollRunService(sql_repository, clock=lambda: NOW)


def make_draft(sql_service, entry_calculator, crew_member, weekly_period, texas_settings, org_id="org-1"):
    return sql_service.run_payroll(
        org_id,
        weekly_period,
        [crew_member],
        daily_entries("emp-1", date(2024, 6, 3), [9, 9, 9, 9, 9]),
        texas_settings,
        entry_calculator,
        created_by="u-1",
        created_by_name="Sam Super",
    )


def test_runs_survive_a_round_trip(sql_service, entry_calculator, crew_member, weekly_period, texas_settings):
    run = make_draft(sql_service, entry_calculator, crew_member, weekly_period, texas_settings)

    loaded = sql_service.get_run("org-1", run.id)

    assert loaded == run
    assert loaded.version == 1
    assert loaded.created_at.tzinfo is not None
    assert loaded.entries[0].gross_pay == 1187.5


def test_list_filters_by_org_status_and_year(
    sql_service, entry_calculator, crew_member, weekly_period, texas_settings
):
    first = make_draft(sql_service, entry_calculator, crew_member, weekly_period, texas_settings)
    make_draft(sql_service, entry_calculator, crew_member, weekly_period, texas_settings)
    make_draft(sql_service, entry_calculator, crew_member, weekly_period, texas_settings, org_id="org-2")
    sql_service.approve_run("org-1", first.id, "u-2")

    assert len(sql_service.list_runs("org-1")) == 2
    assert [run.id for run in sql_service.list_runs("org-1", status=RunStatus.APPROVED)] == [first.id]
    assert len(sql_service.list_runs("org-1", year=2024)) == 2
    assert sql_service.list_runs("org-1", year=2025) == []


def test_save_rejects_stale_version(sql_repository, sql_service):
    run = sql_service.create_run("org-1", generate_pay_period(PaySchedule.WEEKLY, date(2024, 6, 12)), [], "u-1")
    first = sql_repository.get("org-1", run.id)
    second = sql_repository.get("org-1", run.id)

    first.status = RunStatus.APPROVED
    sql_repository.save(first)

    assert first.version == 2
    with pytest.raises(ConcurrentModificationError):
        sql_repository.save(second)
    assert second.version == 1
    assert sql_repository.get("org-1", run.id).status is RunStatus.APPROVED


def test_save_and_delete_unknown_run(sql_repository, sql_service):
    run = sql_service.create_run("org-1", generate_pay_period(PaySchedule.WEEKLY, date(2024, 6, 12)), [], "u-1")
    sql_service.delete_run("org-1", run.id)

    with pytest.raises(RunNotFoundError):
        sql_repository.save(run)
    with pytest.raises(RunNotFoundError):
        sql_repository.delete("org-1", run.id)


def test_pay_year_filter_uses_pay_date(sql_repository):
    service = PayrollRunService(sql_repository, clock=lambda: datetime(2024, 12, 30, tzinfo=timezone.utc))
    # last December week is paid in January
    period = generate_pay_period(PaySchedule.WEEKLY, date(2024, 12, 30))
    run = service.create_run("org-1", period, [], "u-1")

    assert period.pay_date.year == 2025
    assert [r.id for r in sql_repository.list("org-1", pay_year=2025)] == [run.id]
    assert sql_repository.list("org-1", pay_year=2024) == []
