from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from .models import PaySchedule, PayPeriod

END_OF_DAY = time(23, 59, 59, 999000)
PAY_DELAY_DAYS = 5


def _as_date(reference: Optional[date | datetime]) -> date:
    if reference is None:
        return datetime.now().date()
    if isinstance(reference, datetime):
        return reference.date()
    return reference


def _days_since_sunday(day: date) -> int:
    # date.weekday() counts from Monday
    return (day.weekday() + 1) % 7


def _previous_month(day: date) -> Tuple[int, int]:
    if day.month == 1:
        return day.year - 1, 12
    return day.year, day.month - 1


def _bounds(schedule: PaySchedule, ref: date) -> Tuple[date, date, date]:
    if schedule is PaySchedule.WEEKLY:
        start = ref - timedelta(days=_days_since_sunday(ref) + 7)
        end = start + timedelta(days=6)
        return start, end, end + timedelta(days=PAY_DELAY_DAYS)

    if schedule is PaySchedule.BI_WEEKLY:
        start = ref - timedelta(days=_days_since_sunday(ref) + 14)
        end = start + timedelta(days=13)
        return start, end, end + timedelta(days=PAY_DELAY_DAYS)

    if schedule is PaySchedule.SEMI_MONTHLY:
        if ref.day <= 15:
            year, month = _previous_month(ref)
            start = date(year, month, 16)
            end = date(year, month, monthrange(year, month)[1])
            return start, end, ref.replace(day=5)
        return ref.replace(day=1), ref.replace(day=15), ref.replace(day=20)

    year, month = _previous_month(ref)
    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])
    return start, end, ref.replace(day=5)


def format_period_label(start: date, end: date) -> str:
    return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"


def generate_pay_period(schedule: PaySchedule | str, reference: Optional[date | datetime] = None) -> PayPeriod:
    """Return the last complete pay period before ``reference`` (default: now).

    Weekly and bi-weekly periods run Sunday to Saturday and are paid five
    days after they end. Semi-monthly periods are paid on the 5th or the
    20th, monthly periods on the 5th of the following month.
    """
    schedule = PaySchedule(schedule)
    start_day, end_day, pay_day = _bounds(schedule, _as_date(reference))
    return PayPeriod(
        id=f"{schedule.value}-{start_day:%Y%m%d}",
        schedule=schedule,
        start=datetime.combine(start_day, time.min),
        end=datetime.combine(end_day, END_OF_DAY),
        pay_date=datetime.combine(pay_day, time.min),
        label=format_period_label(start_day, end_day),
    )
