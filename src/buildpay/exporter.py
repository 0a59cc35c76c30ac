from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import List

from .models import PayrollEntry, PayrollRun

CSV_HEADERS = [
    "Employee ID",
    "Employee Name",
    "Regular Hours",
    "Overtime Hours",
    "PTO Hours",
    "Sick Hours",
    "Regular Pay",
    "Overtime Pay",
    "PTO Pay",
    "Sick Pay",
    "Bonuses",
    "Gross Pay",
    "Federal Tax",
    "State Tax",
    "Social Security",
    "Medicare",
    "401k",
    "Health Insurance",
    "Total Deductions",
    "Net Pay",
]


def _money(value: float) -> str:
    return f"{value:.2f}"


def entry_row(entry: PayrollEntry) -> List[str]:
    return [
        entry.employee_id,
        entry.employee_name,
        _money(entry.regular_hours),
        _money(entry.overtime_hours),
        _money(entry.pto_hours),
        _money(entry.sick_hours),
        _money(entry.regular_pay),
        _money(entry.overtime_pay),
        _money(entry.pto_pay),
        _money(entry.sick_pay),
        _money(entry.bonuses),
        _money(entry.gross_pay),
        _money(entry.federal_withholding),
        _money(entry.state_withholding),
        _money(entry.social_security),
        _money(entry.medicare),
        _money(entry.retirement_401k),
        _money(entry.health_insurance),
        _money(entry.total_deductions),
        _money(entry.net_pay),
    ]


def export_run_csv(run: PayrollRun) -> str:
    """One row per entry followed by a blank line and summary lines."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for entry in run.entries:
        writer.writerow(entry_row(entry))

    summary = [
        "",
        f"Pay Period: {run.pay_period.label}",
        f"Pay Date: {run.pay_period.pay_date:%m/%d/%Y}",
        f"Total Gross: ${run.total_gross_pay:.2f}",
        f"Total Net: ${run.total_net_pay:.2f}",
    ]
    return buffer.getvalue() + "\n".join(summary) + "\n"


def write_run_csv(run: PayrollRun, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(export_run_csv(run), encoding="utf-8")
    return output_path
