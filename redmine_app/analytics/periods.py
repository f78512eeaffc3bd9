"""Period mapping: rescale yearly completion onto sub-periods (pure functions).

A period tag names a slice of the fiscal year. Each quarter owns a fixed slice
of the 0-100 yearly completion ratio (Q1 0-25, Q2 26-50, Q3 51-75, Q4 76-100);
``HALF`` and ``THREE_Q`` cover the first six and nine months.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import date, datetime
from enum import Enum

import pytz

from redmine_app.core.config import (
    FISCAL_YEAR_START,
    QUARTER_CALENDAR,
    QUARTER_RATIO_RANGES,
    QUARTER_TAGS,
    TIMEZONE,
    FieldTag,
)
from redmine_app.core.field_config import field_name
from redmine_app.core.fields import field_has_value, get_field_number
from redmine_app.core.models import IssueModel


class PeriodTag(str, Enum):
    YEARLY = "YEARLY"
    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"
    Q4 = "Q4"
    HALF = "HALF"
    THREE_Q = "THREE_Q"

    @property
    def is_quarter(self) -> bool:
        return self in QUARTERS

    @classmethod
    def parse(cls, value: PeriodTag | str | None) -> PeriodTag:
        """Resolve a tag from its name, a short label, or a deployment label.

        Unknown or empty values resolve to ``YEARLY``.
        """
        if isinstance(value, PeriodTag):
            return value
        if not value:
            return cls.YEARLY
        text = str(value).strip()
        alias = PERIOD_ALIASES.get(text.lower())
        if alias is not None:
            return alias
        for tag, quarter_field in zip(QUARTERS, QUARTER_TAGS):
            if text == field_name(quarter_field):
                return tag
        return cls.YEARLY


QUARTERS: tuple[PeriodTag, ...] = (PeriodTag.Q1, PeriodTag.Q2, PeriodTag.Q3, PeriodTag.Q4)

# Keys are lowercase for case-insensitive matching
PERIOD_ALIASES: dict[str, PeriodTag] = {
    "yearly": PeriodTag.YEARLY,
    "year": PeriodTag.YEARLY,
    "q1": PeriodTag.Q1,
    "q2": PeriodTag.Q2,
    "q3": PeriodTag.Q3,
    "q4": PeriodTag.Q4,
    "half": PeriodTag.HALF,
    "6 months": PeriodTag.HALF,
    "three_q": PeriodTag.THREE_Q,
    "9 months": PeriodTag.THREE_Q,
}

_QUARTER_FIELDS: dict[PeriodTag, FieldTag] = dict(zip(QUARTERS, QUARTER_TAGS))

# Quarters whose fields decide membership in a cumulative period
_COVERED_QUARTERS: dict[PeriodTag, tuple[PeriodTag, ...]] = {
    PeriodTag.HALF: (PeriodTag.Q1, PeriodTag.Q2),
    PeriodTag.THREE_Q: (PeriodTag.Q1, PeriodTag.Q2, PeriodTag.Q3),
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def quarter_range(tag: PeriodTag | str) -> tuple[int, int]:
    tag = PeriodTag.parse(tag)
    return QUARTER_RATIO_RANGES.get(tag.value, (0, 0))


def map_to_period(tag: PeriodTag | str, ratio: float | None) -> int:
    """Rescale a yearly 0-100 ratio onto the period's own 0-100 scale."""
    tag = PeriodTag.parse(tag)
    done = ratio or 0
    if tag is PeriodTag.YEARLY:
        return round_half_up(done)
    if tag is PeriodTag.HALF:
        return round_half_up(done / 50 * 100) if done <= 50 else 100
    if tag is PeriodTag.THREE_Q:
        return round_half_up(done / 75 * 100) if done <= 75 else 100
    if tag is PeriodTag.Q1:
        return round_half_up(done / 25 * 100) if done <= 25 else 100
    low, high = quarter_range(tag)
    if low <= done <= high:
        return round_half_up((done - low) / (high - low) * 100)
    if tag is PeriodTag.Q4:
        # Q4 reaches 100 only at full completion
        return 100 if done == 100 else 0
    return 100 if done > high else 0


def map_from_period(tag: PeriodTag | str, value: float | None) -> int:
    """Inverse of ``map_to_period`` for quarters: period 0-100 back to yearly ratio."""
    low, high = quarter_range(tag)
    if high == low:
        return 0
    return round_half_up(low + (value or 0) * (high - low) / 100)


def quarter_progress(tag: PeriodTag | str, done_ratio: float | None) -> int:
    """Position of the yearly ratio inside a quarter's slice, unclamped."""
    low, high = quarter_range(tag)
    if high == low:
        return 0
    return round_half_up(((done_ratio or 0) - low) / (high - low) * 100)


# ------------------ Fiscal calendar ------------------
def fiscal_year_of(day: date) -> int:
    month, start_day = FISCAL_YEAR_START
    if (day.month, day.day) >= (month, start_day):
        return day.year
    return day.year - 1


def _quarter_window(tag: PeriodTag, fiscal_year: int) -> tuple[date, date]:
    sm, sd, sy, em, ed, ey = QUARTER_CALENDAR[tag.value]
    return date(fiscal_year + sy, sm, sd), date(fiscal_year + ey, em, ed)


def calendar_window(tag: PeriodTag | str, fiscal_year: int) -> tuple[date, date]:
    tag = PeriodTag.parse(tag)
    if tag.is_quarter:
        return _quarter_window(tag, fiscal_year)
    last = {PeriodTag.HALF: PeriodTag.Q2, PeriodTag.THREE_Q: PeriodTag.Q3}.get(tag, PeriodTag.Q4)
    start, _ = _quarter_window(PeriodTag.Q1, fiscal_year)
    _, end = _quarter_window(last, fiscal_year)
    return start, end


def today_local(tz_name: str = TIMEZONE) -> date:
    return datetime.now(pytz.timezone(tz_name)).date()


def is_period_active(tag: PeriodTag | str, today: date | None = None) -> bool:
    today = today or today_local()
    start, end = calendar_window(tag, fiscal_year_of(today))
    return start <= today <= end


def current_quarter(today: date | None = None) -> PeriodTag | None:
    today = today or today_local()
    for tag in QUARTERS:
        if is_period_active(tag, today):
            return tag
    return None


# ------------------ Period membership and targets ------------------
def _has_quarter_value(item: IssueModel, tag: PeriodTag) -> bool:
    return field_has_value(item, field_name(_QUARTER_FIELDS[tag]))


def in_period(item: IssueModel, tag: PeriodTag | str) -> bool:
    tag = PeriodTag.parse(tag)
    if tag is PeriodTag.YEARLY:
        return True
    if tag.is_quarter:
        return _has_quarter_value(item, tag)
    return any(_has_quarter_value(item, q) for q in _COVERED_QUARTERS[tag])


def filter_by_period(items: Iterable[IssueModel], tag: PeriodTag | str) -> list[IssueModel]:
    tag = PeriodTag.parse(tag)
    return [item for item in items if in_period(item, tag)]


def target_value(item: IssueModel, tag: PeriodTag | str) -> float:
    """Planned quantity for the period: yearly plan, quarter value, or covered quarters summed."""
    tag = PeriodTag.parse(tag)
    if tag is PeriodTag.YEARLY:
        return get_field_number(item, field_name(FieldTag.YEARLY_PLAN))
    if tag.is_quarter:
        return get_field_number(item, field_name(_QUARTER_FIELDS[tag]))
    return sum(get_field_number(item, field_name(_QUARTER_FIELDS[q])) for q in _COVERED_QUARTERS[tag])


def actual_value(achievement: float | None, target: float | None) -> float:
    if not achievement or not target:
        return 0.0
    return achievement / 100 * target


def quarter_done_ratio(quarter_value: float | None, annual_plan: float | None) -> int:
    """Yearly done ratio implied by a quarter's achieved quantity against the annual plan."""
    if not annual_plan or annual_plan <= 0 or quarter_value is None:
        return 0
    return max(0, min(round_half_up(quarter_value * 100 / annual_plan), 100))


# ------------------ Issue-aware quarter slices ------------------
def planned_quarters(item: IssueModel) -> list[PeriodTag]:
    """Quarters the item plans something for, in calendar order."""
    return [q for q in QUARTERS if _has_quarter_value(item, q)]


def issue_quarter_range(item: IssueModel, tag: PeriodTag | str) -> tuple[float, float] | None:
    """Slice of the yearly ratio owned by ``tag`` among the item's planned quarters.

    The 0-100 scale is split evenly across the planned quarters only, so an
    item planning Q3 and Q4 owns 0-50 in Q3 and 50-100 in Q4. ``None`` when
    the item plans nothing for ``tag``.
    """
    tag = PeriodTag.parse(tag)
    planned = planned_quarters(item)
    if tag not in planned:
        return None
    size = 100 / len(planned)
    start = planned.index(tag) * size
    return start, start + size


def map_to_period_for(item: IssueModel, tag: PeriodTag | str) -> int:
    """Like ``map_to_period`` but quarters use the item's own planned slices."""
    tag = PeriodTag.parse(tag)
    done = item.done_ratio or 0
    if not tag.is_quarter:
        return map_to_period(tag, done)
    span = issue_quarter_range(item, tag)
    if span is None:
        return 0
    start, end = span
    if done < start:
        return 0
    if done >= end:
        return 100
    return max(0, min(100, round_half_up((done - start) / (end - start) * 100)))


def has_period_target(item: IssueModel, tag: PeriodTag | str) -> bool:
    """Whether the item plans a quantity for the period.

    YEARLY needs the annual plan; cumulative periods need a positive number in
    a covered quarter; a quarter needs its own field.
    """
    tag = PeriodTag.parse(tag)
    if tag is PeriodTag.YEARLY:
        return field_has_value(item, field_name(FieldTag.YEARLY_PLAN))
    if tag.is_quarter:
        return _has_quarter_value(item, tag)
    return any(get_field_number(item, field_name(_QUARTER_FIELDS[q])) > 0 for q in _COVERED_QUARTERS[tag])
