from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta
from typing import Iterable

from ..schemas import Frequency, RecurringAlert, RecurringSchedule


def _clamped_day(year: int, month: int, day: int) -> int:
    return min(day, monthrange(year, month)[1])


def _add_months(base: date, months: int, day_anchor: int) -> date:
    total_month = (base.month - 1) + months
    year = base.year + total_month // 12
    month = (total_month % 12) + 1
    return date(year, month, _clamped_day(year, month, day_anchor))


def due_alerts(alerts: Iterable[RecurringAlert], today: date) -> list[RecurringAlert]:
    """Active alerts falling on ``today``; a day past the month's end fires on its last day."""
    return [
        a
        for a in alerts
        if a.active and _clamped_day(today.year, today.month, a.dayOfMonth) == today.day
    ]


def occurrence(schedule: RecurringSchedule, step: int) -> date:
    start = schedule.startDate
    anchor = schedule.dayOfMonth or start.day
    if schedule.frequency == Frequency.weekly:
        return start + timedelta(days=7 * step)
    if schedule.frequency == Frequency.yearly:
        return _add_months(start, 12 * step, anchor)
    return _add_months(start, step, anchor)


def next_occurrence(schedule: RecurringSchedule, after: date) -> date:
    """First occurrence strictly after ``after``."""
    if schedule.frequency == Frequency.weekly:
        if after < schedule.startDate:
            return schedule.startDate
        step = (after - schedule.startDate).days // 7 + 1
        return occurrence(schedule, step)
    months = (after.year - schedule.startDate.year) * 12 + (after.month - schedule.startDate.month)
    per_step = 12 if schedule.frequency == Frequency.yearly else 1
    step = max(0, months // per_step - 1)
    candidate = occurrence(schedule, step)
    while candidate <= after or candidate < schedule.startDate:
        step += 1
        candidate = occurrence(schedule, step)
    return candidate
