from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from .models import (
    EmployeeType,
    PayPeriod,
    PaySchedule,
    PayrollAdjustment,
    PayrollEntry,
    PayrollRun,
    RunStatus,
    YearToDateTotals,
)


def to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def run_to_dict(run: PayrollRun) -> Dict[str, Any]:
    return to_jsonable(asdict(run))


def pay_period_from_dict(data: Dict[str, Any]) -> PayPeriod:
    return PayPeriod(
        id=data["id"],
        schedule=PaySchedule(data["schedule"]),
        start=_parse_datetime(data["start"]),
        end=_parse_datetime(data["end"]),
        pay_date=_parse_datetime(data["pay_date"]),
        label=data["label"],
    )


def entry_from_dict(data: Dict[str, Any]) -> PayrollEntry:
    payload = dict(data)
    payload["employee_type"] = EmployeeType(payload.get("employee_type", EmployeeType.HOURLY.value))
    payload["adjustments"] = [PayrollAdjustment(**adj) for adj in payload.get("adjustments", [])]
    payload["ytd"] = YearToDateTotals(**payload.get("ytd", {}))
    payload["time_entry_ids"] = list(payload.get("time_entry_ids", []))
    payload["employer_taxes"] = dict(payload.get("employer_taxes", {}))
    return PayrollEntry(**payload)


def run_from_dict(data: Dict[str, Any]) -> PayrollRun:
    payload = dict(data)
    payload["pay_period"] = pay_period_from_dict(payload["pay_period"])
    payload["status"] = RunStatus(payload["status"])
    payload["entries"] = [entry_from_dict(entry) for entry in payload.get("entries", [])]
    payload["total_employer_taxes"] = dict(payload.get("total_employer_taxes", {}))
    for key in ("created_at", "updated_at", "approved_at", "processed_at", "exported_at"):
        payload[key] = _parse_datetime(payload.get(key))
    return PayrollRun(**payload)
