from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path

from .core.config import Settings, get_settings
from .core.logging import bind_payroll_context, configure_logging
from .core.monitoring import configure_error_monitoring, report_payroll_error
from .entry_calculator import PayrollEntryCalculator
from .exceptions import PayrollError
from .exporter import write_run_csv
from .models import PayrollRun, PaySchedule, RunStatus
from .pay_periods import generate_pay_period
from .reports import summarize_runs
from .runs import PayrollRunService
from .schemas import PayrollInput
from .serialization import to_jsonable
from .storage import SqlRunRepository
from .tax_engine import TaxCalculator
from .tax_tables import TaxTableRepository
from .time_off import StaticTimeOffProvider


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value)


def build_tax_calculator(settings: Settings) -> TaxCalculator:
    table = TaxTableRepository(settings.tax_table_path).load(settings.tax_table_version)
    return TaxCalculator(table, strict_state_codes=settings.strict_state_codes)


def build_service(settings: Settings) -> PayrollRunService:
    return PayrollRunService(SqlRunRepository.from_url(settings.database_url))


def _load_batch(settings: Settings, path: str):
    batch = PayrollInput.from_file(Path(path))
    period = generate_pay_period(batch.pay_schedule(), batch.reference_date)
    calculator = PayrollEntryCalculator(
        build_tax_calculator(settings),
        time_off=StaticTimeOffProvider(record.to_domain() for record in batch.time_off),
    )
    return batch, period, calculator


def _print_run_line(run: PayrollRun) -> None:
    exported = " exported" if run.exported else ""
    print(
        f"{run.id} #{run.run_number} {run.pay_period.label} status={run.status.value}{exported} "
        f"employees={run.employee_count} gross={run.total_gross_pay:.2f} net={run.total_net_pay:.2f}"
    )


def cmd_period(args: argparse.Namespace) -> None:
    period = generate_pay_period(args.schedule, parse_date(args.reference))
    print(json.dumps(to_jsonable(period.__dict__), indent=2))


def cmd_preview(args: argparse.Namespace) -> None:
    settings = get_settings()
    batch, period, calculator = _load_batch(settings, args.input)
    payroll_settings = batch.settings.to_domain()
    time_entries = [entry.to_domain() for entry in batch.time_entries]
    in_period = [entry for entry in time_entries if period.contains(entry.clock_in)]

    print(f"Pay period {period.label} (pay date {period.pay_date.date().isoformat()})")
    total_gross = 0.0
    total_net = 0.0
    for employee_in in batch.employees:
        entry = calculator.calculate_entry(employee_in.to_domain(), in_period, period, payroll_settings)
        total_gross += entry.gross_pay
        total_net += entry.net_pay
        print(
            f"{entry.employee_id} {entry.employee_name}: regular={entry.regular_hours:.2f}h "
            f"overtime={entry.overtime_hours:.2f}h gross={entry.gross_pay:.2f} "
            f"deductions={entry.total_deductions:.2f} net={entry.net_pay:.2f}"
        )
    print(f"Total gross: {total_gross:.2f}  Total net: {total_net:.2f}")


def cmd_run_create(args: argparse.Namespace) -> None:
    settings = get_settings()
    batch, period, calculator = _load_batch(settings, args.input)
    run = build_service(settings).run_payroll(
        args.org,
        period,
        [employee.to_domain() for employee in batch.employees],
        [entry.to_domain() for entry in batch.time_entries],
        batch.settings.to_domain(),
        calculator,
        created_by=args.created_by,
        created_by_name=args.created_by_name or "",
    )
    print(f"Created payroll run {run.id} (#{run.run_number}) for {run.pay_period.label}")


def cmd_run_list(args: argparse.Namespace) -> None:
    runs = build_service(get_settings()).list_runs(args.org, status=args.status, year=args.year)
    for run in runs:
        _print_run_line(run)


def cmd_run_approve(args: argparse.Namespace) -> None:
    run = build_service(get_settings()).approve_run(args.org, args.id, args.user, args.user_name)
    print(f"Approved payroll run {run.id}")


def cmd_run_complete(args: argparse.Namespace) -> None:
    run = build_service(get_settings()).complete_run(args.org, args.id, args.user, args.user_name)
    print(f"Completed payroll run {run.id}")


def cmd_run_delete(args: argparse.Namespace) -> None:
    build_service(get_settings()).delete_run(args.org, args.id)
    print(f"Deleted payroll run {args.id}")


def cmd_run_export(args: argparse.Namespace) -> None:
    service = build_service(get_settings())
    run = service.get_run(args.org, args.id)
    path = write_run_csv(run, Path(args.output))
    service.mark_exported(args.org, args.id, args.user)
    print(f"Exported payroll run {run.id} to {path}")


def cmd_ytd(args: argparse.Namespace) -> None:
    totals = build_service(get_settings()).employee_ytd_totals(args.org, args.employee, args.year)
    print(json.dumps(to_jsonable(totals.__dict__), indent=2))


def cmd_summary(args: argparse.Namespace) -> None:
    service = build_service(get_settings())
    summary = summarize_runs(service.list_runs(args.org), service.clock(), months=args.months)
    if summary is None:
        print("No payroll runs")
        return
    print(
        f"{summary.run_count} completed runs: gross={summary.total_gross_pay:.2f} "
        f"net={summary.total_net_pay:.2f} deductions={summary.total_deductions:.2f} "
        f"employees={summary.total_employees} open={summary.open_runs}"
    )
    for alert in summary.alerts:
        print(f"{alert.severity}: {alert.message}")
    for row in summary.by_period:
        print(
            f"  {row.period_label} run={row.run_id} status={row.status.value} employees={row.employee_count} "
            f"gross={row.gross_pay:.2f} net={row.net_pay:.2f} pay_date={row.pay_date:%Y-%m-%d}"
        )
    for employee in summary.employees:
        print(
            f"  {employee.employee_id} {employee.employee_name}: gross={employee.gross_pay:.2f} "
            f"net={employee.net_pay:.2f} hours={employee.hours_worked:.2f} overtime={employee.overtime_hours:.2f}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crew payroll and withholding")
    sub = parser.add_subparsers(dest="command", required=True)
    schedules = [schedule.value for schedule in PaySchedule]
    statuses = [status.value for status in RunStatus]

    period = sub.add_parser("period", help="Show the last complete pay period")
    period.add_argument("schedule", choices=schedules)
    period.add_argument("--reference", help="Reference date (default: today)")
    period.set_defaults(func=cmd_period)

    preview = sub.add_parser("preview", help="Calculate entries without saving a run")
    preview.add_argument("input", help="Payroll input JSON")
    preview.set_defaults(func=cmd_preview)

    create = sub.add_parser("run-create", help="Calculate and store a draft payroll run")
    create.add_argument("input", help="Payroll input JSON")
    create.add_argument("--org", required=True)
    create.add_argument("--created-by", required=True)
    create.add_argument("--created-by-name")
    create.set_defaults(func=cmd_run_create)

    listing = sub.add_parser("run-list", help="List payroll runs")
    listing.add_argument("--org", required=True)
    listing.add_argument("--status", choices=statuses)
    listing.add_argument("--year", type=int)
    listing.set_defaults(func=cmd_run_list)

    for name, func, help_text in (
        ("run-approve", cmd_run_approve, "Approve a draft run"),
        ("run-complete", cmd_run_complete, "Mark an approved run as processed"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument("id")
        command.add_argument("--org", required=True)
        command.add_argument("--user", required=True)
        command.add_argument("--user-name")
        command.set_defaults(func=func)

    delete = sub.add_parser("run-delete", help="Delete a draft run")
    delete.add_argument("id")
    delete.add_argument("--org", required=True)
    delete.set_defaults(func=cmd_run_delete)

    export = sub.add_parser("run-export", help="Export a run to CSV")
    export.add_argument("id")
    export.add_argument("--org", required=True)
    export.add_argument("--output", required=True)
    export.add_argument("--user")
    export.set_defaults(func=cmd_run_export)

    ytd = sub.add_parser("ytd", help="Year-to-date totals from completed runs")
    ytd.add_argument("employee")
    ytd.add_argument("--org", required=True)
    ytd.add_argument("--year", type=int)
    ytd.set_defaults(func=cmd_ytd)

    summary = sub.add_parser("summary", help="Summarize recent completed runs")
    summary.add_argument("--org", required=True)
    summary.add_argument("--months", type=int, default=3)
    summary.set_defaults(func=cmd_summary)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    bind_payroll_context(command=args.command, org_id=getattr(args, "org", None))
    configure_error_monitoring(settings)
    try:
        args.func(args)
    except PayrollError as exc:
        report_payroll_error(exc)
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
