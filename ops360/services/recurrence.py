"""Expansion of recurrence rules into concrete task occurrences."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta

from ops360.domain.entities import Occurrence, RecurrenceRule
from ops360.domain.enums import DueType, Frequency
from ops360.domain.errors import ValidationError

DEFAULT_DUE_TIME = time(23, 59)


def validate_rule(rule: RecurrenceRule) -> None:
    if not isinstance(rule.frequency, Frequency):
        raise ValidationError(f"Invalid recurrence frequency type: {rule.frequency!r}")
    if rule.interval < 1:
        raise ValidationError("Recurrence interval must be a positive integer")

    if rule.due_type == DueType.AFTER:
        if rule.after is None or rule.after < 1:
            raise ValidationError("Recurrence 'after' must be a positive integer when due_type is After")
        if rule.end_date is not None:
            raise ValidationError("Recurrence end date is not allowed when due_type is After")
    elif rule.due_type == DueType.DATE:
        if rule.end_date is None:
            raise ValidationError("Recurrence end date is required when due_type is Date")
        if rule.after is not None:
            raise ValidationError("Recurrence 'after' is not allowed when due_type is Date")
    else:
        raise ValidationError(f"Invalid recurrence due_type: {rule.due_type!r}")

    if rule.frequency == Frequency.WEEKLY and not rule.byweekday:
        raise ValidationError("Weekly recurrence needs at least one weekday")


def expand(
    rule: RecurrenceRule,
    anchor: datetime,
    due_time: time = DEFAULT_DUE_TIME,
) -> list[Occurrence]:
    """Return the ordered occurrences generated by ``rule`` from ``anchor``.

    Every occurrence is due on its start date at ``due_time``. Weekly rules
    place each weekday relative to the weekday of the iteration start, so a
    weekday earlier in the week than the anchor lands before the anchor.
    """
    validate_rule(rule)

    if rule.frequency == Frequency.ONCE:
        return [Occurrence(start=anchor, due=_due_for(anchor, due_time))]

    if rule.frequency == Frequency.WEEKLY:
        return _expand_weekly(rule, anchor, due_time)

    occurrences: list[Occurrence] = []
    iteration = 0
    while rule.due_type != DueType.AFTER or iteration < rule.after:
        start = _step(anchor, rule.frequency, rule.interval * iteration)
        if rule.due_type == DueType.DATE and start.date() > rule.end_date:
            break
        occurrences.append(Occurrence(start=start, due=_due_for(start, due_time)))
        iteration += 1
    return occurrences


def _expand_weekly(rule: RecurrenceRule, anchor: datetime, due_time: time) -> list[Occurrence]:
    occurrences: list[Occurrence] = []
    iteration = 0
    while rule.due_type != DueType.AFTER or iteration < rule.after:
        week_start = anchor + timedelta(weeks=rule.interval * iteration)
        starts = [
            week_start + timedelta(days=int(weekday) - week_start.weekday())
            for weekday in sorted(rule.byweekday)
        ]
        if rule.due_type == DueType.DATE:
            starts = [start for start in starts if start.date() <= rule.end_date]
            if not starts:
                break
        occurrences.extend(Occurrence(start=start, due=_due_for(start, due_time)) for start in starts)
        iteration += 1
    return occurrences


def _step(anchor: datetime, frequency: Frequency, steps: int) -> datetime:
    if frequency == Frequency.DAILY:
        return anchor + timedelta(days=steps)
    if frequency == Frequency.MONTHLY:
        return _add_months(anchor, steps)
    if frequency == Frequency.YEARLY:
        return _add_months(anchor, steps * 12)
    raise ValidationError(f"Invalid recurrence frequency type: {frequency!r}")


def _due_for(start: datetime, due_time: time) -> datetime:
    # A start later than the cutoff on the same day is due immediately.
    return max(datetime.combine(start.date(), due_time), start)


def _add_months(base: datetime, months: int) -> datetime:
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(base.day, _days_in_month(year, month))
    return base.replace(year=year, month=month, day=day)


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day
