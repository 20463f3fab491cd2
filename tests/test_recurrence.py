from __future__ import annotations

from datetime import date, datetime, time, timedelta

import pytest

from ops360.domain.entities import RecurrenceRule
from ops360.domain.enums import DueType, Frequency, Weekday
from ops360.domain.errors import ValidationError
from ops360.services.recurrence import expand

WEDNESDAY = datetime(2026, 1, 7, 9, 30)


def after_rule(frequency: Frequency, after: int, interval: int = 1, byweekday=()) -> RecurrenceRule:
    return RecurrenceRule(
        frequency=frequency,
        due_type=DueType.AFTER,
        interval=interval,
        after=after,
        byweekday=tuple(byweekday),
    )


def date_rule(frequency: Frequency, end_date: date, interval: int = 1, byweekday=()) -> RecurrenceRule:
    return RecurrenceRule(
        frequency=frequency,
        due_type=DueType.DATE,
        interval=interval,
        end_date=end_date,
        byweekday=tuple(byweekday),
    )


@pytest.mark.parametrize("frequency", [Frequency.DAILY, Frequency.MONTHLY, Frequency.YEARLY])
def test_after_returns_exactly_after_occurrences(frequency: Frequency) -> None:
    occurrences = expand(after_rule(frequency, after=4, interval=2), WEDNESDAY)

    assert len(occurrences) == 4
    assert occurrences[0].start == WEDNESDAY


def test_weekly_after_multiplies_by_weekday_count() -> None:
    rule = after_rule(Frequency.WEEKLY, after=3, byweekday=[Weekday.MONDAY, Weekday.THURSDAY])

    assert len(expand(rule, WEDNESDAY)) == 6


def test_daily_steps_by_interval() -> None:
    occurrences = expand(after_rule(Frequency.DAILY, after=3, interval=2), WEDNESDAY)

    assert [o.start.date() for o in occurrences] == [date(2026, 1, 7), date(2026, 1, 9), date(2026, 1, 11)]


def test_daily_date_stays_within_end_date() -> None:
    end = date(2026, 1, 20)
    occurrences = expand(date_rule(Frequency.DAILY, end, interval=3), WEDNESDAY)

    assert all(o.start.date() <= end for o in occurrences)
    assert (occurrences[-1].start + timedelta(days=3)).date() > end
    assert len(occurrences) == 5


def test_due_is_start_date_at_cutoff() -> None:
    for occurrence in expand(after_rule(Frequency.DAILY, after=3), WEDNESDAY):
        assert occurrence.due == datetime.combine(occurrence.start.date(), time(23, 59))
        assert occurrence.start <= occurrence.due


def test_once_uses_anchor_date() -> None:
    occurrences = expand(after_rule(Frequency.ONCE, after=1), WEDNESDAY)

    assert len(occurrences) == 1
    assert occurrences[0].start == WEDNESDAY
    assert occurrences[0].due == datetime(2026, 1, 7, 23, 59)


def test_custom_due_time() -> None:
    occurrences = expand(after_rule(Frequency.DAILY, after=1), WEDNESDAY, due_time=time(18, 0))

    assert occurrences[0].due == datetime(2026, 1, 7, 18, 0)


def test_weekly_weekday_before_anchor_lands_earlier_in_the_week() -> None:
    occurrences = expand(after_rule(Frequency.WEEKLY, after=2, byweekday=[Weekday.MONDAY]), WEDNESDAY)

    first = occurrences[0].start
    assert first.weekday() == Weekday.MONDAY
    assert first.date() == date(2026, 1, 5)
    assert first < WEDNESDAY
    assert occurrences[1].start.date() == date(2026, 1, 12)


def test_weekly_occurrences_are_in_date_order_whatever_the_weekday_order() -> None:
    rule = after_rule(Frequency.WEEKLY, after=2, byweekday=[Weekday.FRIDAY, Weekday.MONDAY])

    starts = [o.start.date() for o in expand(rule, WEDNESDAY)]

    assert starts == [date(2026, 1, 5), date(2026, 1, 9), date(2026, 1, 12), date(2026, 1, 16)]


def test_weekly_date_truncates_a_partial_week() -> None:
    rule = date_rule(
        Frequency.WEEKLY,
        end_date=date(2026, 1, 12),
        byweekday=[Weekday.MONDAY, Weekday.FRIDAY],
    )

    starts = [o.start.date() for o in expand(rule, WEDNESDAY)]

    # Second week keeps its Monday but loses its Friday.
    assert starts == [date(2026, 1, 5), date(2026, 1, 9), date(2026, 1, 12)]


def test_monthly_clamps_to_month_length() -> None:
    anchor = datetime(2026, 1, 31, 8, 0)
    starts = [o.start.date() for o in expand(after_rule(Frequency.MONTHLY, after=3), anchor)]

    assert starts == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31)]


def test_yearly_date_bound() -> None:
    rule = date_rule(Frequency.YEARLY, end_date=date(2028, 6, 1))

    starts = [o.start.date() for o in expand(rule, WEDNESDAY)]

    assert starts == [date(2026, 1, 7), date(2027, 1, 7), date(2028, 1, 7)]


def test_expand_is_deterministic() -> None:
    rule = after_rule(Frequency.WEEKLY, after=2, byweekday=[Weekday.FRIDAY, Weekday.TUESDAY])

    assert expand(rule, WEDNESDAY) == expand(rule, WEDNESDAY)


def test_from_dict_accepts_weekday_names_and_iso_dates() -> None:
    rule = RecurrenceRule.from_dict(
        {
            "frequency": "weekly",
            "interval": 2,
            "byweekday": ["Monday", "wednesday", "Monday", 4],
            "due_type": "Date",
            "date": "2026-03-01T00:00:00.000Z",
        }
    )

    assert rule.frequency == Frequency.WEEKLY
    assert rule.byweekday == (Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY)
    assert rule.end_date == date(2026, 3, 1)
    assert RecurrenceRule.from_dict(rule.to_dict()) == rule


@pytest.mark.parametrize(
    "data",
    [
        {"frequency": "hourly", "due_type": "After", "after": 1},
        {"frequency": "daily", "due_type": "Sometime", "after": 1},
        {"frequency": "weekly", "due_type": "After", "after": 1, "byweekday": ["Funday"]},
    ],
)
def test_from_dict_rejects_unknown_values(data: dict) -> None:
    with pytest.raises(ValidationError):
        RecurrenceRule.from_dict(data)


@pytest.mark.parametrize(
    "rule",
    [
        RecurrenceRule(frequency=Frequency.DAILY, due_type=DueType.AFTER),
        RecurrenceRule(frequency=Frequency.DAILY, due_type=DueType.AFTER, after=2, interval=0),
        RecurrenceRule(frequency=Frequency.DAILY, due_type=DueType.DATE),
        RecurrenceRule(frequency=Frequency.DAILY, due_type=DueType.DATE, after=2, end_date=date(2026, 2, 1)),
        RecurrenceRule(frequency=Frequency.WEEKLY, due_type=DueType.AFTER, after=2),
    ],
)
def test_invalid_rules_are_rejected(rule: RecurrenceRule) -> None:
    with pytest.raises(ValidationError):
        expand(rule, WEDNESDAY)
