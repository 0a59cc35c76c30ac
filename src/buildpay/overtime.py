from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from .models import OvertimeBucket, PayrollSettings, TimeEntry


@dataclass
class DailyThresholdRule:
    """Hours past ``threshold`` in a single day are overtime."""

    threshold: float = 8.0
    double_time_threshold: Optional[float] = None

    def classify(self, daily_hours: float) -> OvertimeBucket:
        regular = min(daily_hours, self.threshold)
        remaining = daily_hours - regular
        overtime = 0.0
        double_time = 0.0
        if remaining > 0:
            if self.double_time_threshold is None:
                overtime = remaining
            else:
                overtime = min(remaining, max(self.double_time_threshold - self.threshold, 0))
            remaining -= overtime
        if remaining > 0:
            double_time = remaining
        return OvertimeBucket(regular_hours=regular, overtime_hours=overtime, doubletime_hours=double_time)


@dataclass
class WeeklyThresholdRule:
    """Hours past ``threshold`` across the whole period are overtime."""

    threshold: float = 40.0

    def classify_total(self, total_hours: float) -> OvertimeBucket:
        regular = min(total_hours, self.threshold)
        return OvertimeBucket(regular_hours=regular, overtime_hours=max(total_hours - self.threshold, 0))


@dataclass
class DayClassification:
    worked_date: date
    total_hours: float
    bucket: OvertimeBucket


@dataclass
class HoursBreakdown:
    days: List[DayClassification] = field(default_factory=list)
    total_hours: float = 0.0
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    double_time_hours: float = 0.0
    time_entry_ids: List[str] = field(default_factory=list)

    def add_day(self, classification: DayClassification) -> None:
        self.days.append(classification)
        self.total_hours += classification.total_hours
        self.regular_hours += classification.bucket.regular_hours
        self.overtime_hours += classification.bucket.overtime_hours
        self.double_time_hours += classification.bucket.doubletime_hours


def hours_by_day(employee_id: str, entries: Iterable[TimeEntry]) -> tuple[Dict[date, float], List[str]]:
    """Sum worked hours per clock-in calendar date for one employee."""
    minutes: Dict[date, float] = defaultdict(float)
    entry_ids: List[str] = []
    for entry in entries:
        if entry.employee_id != employee_id:
            continue
        minutes[entry.clock_in.date()] += entry.total_minutes or 0
        entry_ids.append(entry.id)
    return {day: total / 60 for day, total in minutes.items()}, entry_ids


def classify_hours(employee_id: str, entries: Iterable[TimeEntry], settings: PayrollSettings) -> HoursBreakdown:
    daily_hours, entry_ids = hours_by_day(employee_id, entries)
    result = HoursBreakdown(time_entry_ids=entry_ids)

    daily_rule = None
    if settings.enable_daily_overtime:
        daily_rule = DailyThresholdRule(
            threshold=settings.daily_overtime_threshold,
            double_time_threshold=settings.daily_double_time_threshold,
        )

    for day, hours in sorted(daily_hours.items()):
        if daily_rule:
            bucket = daily_rule.classify(hours)
        else:
            bucket = OvertimeBucket(regular_hours=hours)
        result.add_day(DayClassification(worked_date=day, total_hours=hours, bucket=bucket))

    # Weekly mode is one correction over the summed period, never combined with daily mode.
    if daily_rule is None:
        weekly = WeeklyThresholdRule(threshold=settings.weekly_overtime_threshold).classify_total(result.total_hours)
        result.regular_hours = weekly.regular_hours
        result.overtime_hours = weekly.overtime_hours

    return result
