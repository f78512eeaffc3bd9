from datetime import date

import pytest

from redmine_app.analytics.periods import (
    QUARTERS,
    PeriodTag,
    calendar_window,
    current_quarter,
    filter_by_period,
    fiscal_year_of,
    has_period_target,
    in_period,
    issue_quarter_range,
    is_period_active,
    map_from_period,
    map_to_period,
    map_to_period_for,
    planned_quarters,
    quarter_done_ratio,
    quarter_progress,
    quarter_range,
    target_value,
)
from redmine_app.core.config import FieldTag
from redmine_app.core.field_config import field_name
from redmine_app.core.mappers import map_issue


def _issue(item_id, done=0, **values):
    fields = [
        {"id": n, "name": field_name(FieldTag(tag)), "value": value}
        for n, (tag, value) in enumerate(values.items(), start=1)
    ]
    return map_issue({"id": item_id, "subject": f"Item {item_id}", "done_ratio": done, "custom_fields": fields})


def test_q2_forward_and_back():
    assert map_to_period(PeriodTag.Q2, 38) == 50
    assert map_from_period(PeriodTag.Q2, 50) == 38


@pytest.mark.parametrize("tag", QUARTERS)
def test_quarter_round_trip_inside_range(tag):
    low, high = quarter_range(tag)
    for ratio in range(low, high + 1):
        assert map_from_period(tag, map_to_period(tag, ratio)) == ratio


def test_quarter_saturation_outside_range():
    assert map_to_period(PeriodTag.Q2, 10) == 0
    assert map_to_period(PeriodTag.Q2, 60) == 100
    assert map_to_period(PeriodTag.Q1, 40) == 100
    assert map_to_period(PeriodTag.Q4, 50) == 0
    assert map_to_period(PeriodTag.Q4, 100) == 100


def test_cumulative_periods():
    assert map_to_period(PeriodTag.YEARLY, 37) == 37
    assert map_to_period(PeriodTag.HALF, 25) == 50
    assert map_to_period(PeriodTag.HALF, 60) == 100
    assert map_to_period(PeriodTag.THREE_Q, 30) == 40
    assert map_to_period(PeriodTag.THREE_Q, 90) == 100
    assert map_to_period(PeriodTag.YEARLY, None) == 0


def test_parse_labels():
    assert PeriodTag.parse("6 Months") is PeriodTag.HALF
    assert PeriodTag.parse("9 months") is PeriodTag.THREE_Q
    assert PeriodTag.parse("q3") is PeriodTag.Q3
    assert PeriodTag.parse(field_name(FieldTag.Q4)) is PeriodTag.Q4
    assert PeriodTag.parse("") is PeriodTag.YEARLY
    assert PeriodTag.parse("unknown") is PeriodTag.YEARLY


def test_fiscal_calendar_windows():
    assert fiscal_year_of(date(2026, 5, 8)) == 2025
    assert fiscal_year_of(date(2026, 5, 9)) == 2026
    assert calendar_window(PeriodTag.Q2, 2025) == (date(2025, 10, 11), date(2026, 1, 8))
    assert calendar_window(PeriodTag.HALF, 2025) == (date(2025, 5, 9), date(2026, 1, 8))
    assert calendar_window(PeriodTag.YEARLY, 2025) == (date(2025, 5, 9), date(2026, 7, 7))


def test_current_quarter():
    assert current_quarter(date(2025, 7, 20)) is PeriodTag.Q1
    assert current_quarter(date(2025, 12, 1)) is PeriodTag.Q2
    assert current_quarter(date(2026, 1, 8)) is PeriodTag.Q2
    assert current_quarter(date(2026, 2, 14)) is PeriodTag.Q3
    assert current_quarter(date(2026, 4, 20)) is PeriodTag.Q4
    assert is_period_active(PeriodTag.Q4, date(2026, 4, 20))
    assert not is_period_active(PeriodTag.Q3, date(2026, 4, 20))


def test_period_membership():
    item = _issue(1, q1="10", q2="0")
    assert in_period(item, PeriodTag.YEARLY)
    assert in_period(item, PeriodTag.Q1)
    assert not in_period(item, PeriodTag.Q2)
    assert in_period(item, PeriodTag.HALF)
    assert not in_period(item, PeriodTag.Q3)

    plain = _issue(2)
    assert [i.id for i in filter_by_period([item, plain], PeriodTag.Q1)] == [1]
    assert [i.id for i in filter_by_period([item, plain], PeriodTag.YEARLY)] == [1, 2]


def test_target_values():
    item = _issue(1, yearly_plan="100", q1="10", q2="20", q3="30")
    assert target_value(item, PeriodTag.YEARLY) == 100
    assert target_value(item, PeriodTag.Q2) == 20
    assert target_value(item, PeriodTag.HALF) == 30
    assert target_value(item, PeriodTag.THREE_Q) == 60
    assert target_value(item, PeriodTag.Q4) == 0


def test_quarter_done_ratio():
    assert quarter_done_ratio(30, 120) == 25
    assert quarter_done_ratio(200, 100) == 100
    assert quarter_done_ratio(5, 0) == 0
    assert quarter_done_ratio(None, 100) == 0


def test_quarter_progress_is_unclamped():
    assert quarter_progress(PeriodTag.Q2, 38) == 50
    assert quarter_progress(PeriodTag.Q2, 60) == 142
    assert quarter_progress(PeriodTag.YEARLY, 60) == 0


def test_issue_aware_quarter_ranges():
    full = _issue(1, q1="1", q2="1", q3="1", q4="1")
    assert issue_quarter_range(full, PeriodTag.Q2) == (25, 50)

    late = _issue(2, q3="5", q4="5")
    assert planned_quarters(late) == [PeriodTag.Q3, PeriodTag.Q4]
    assert issue_quarter_range(late, PeriodTag.Q3) == (0, 50)
    assert issue_quarter_range(late, PeriodTag.Q4) == (50, 100)
    assert issue_quarter_range(late, PeriodTag.Q1) is None


def test_map_to_period_for_uses_planned_quarters():
    late = _issue(1, done=50, q3="5", q4="5")
    assert map_to_period_for(late, PeriodTag.Q3) == 100
    assert map_to_period_for(late, PeriodTag.Q4) == 0
    assert map_to_period_for(late, PeriodTag.Q1) == 0
    assert map_to_period_for(_issue(2, done=75, q3="5", q4="5"), PeriodTag.Q4) == 50

    three = _issue(3, done=50, q1="1", q2="1", q4="1")
    # Q2 owns 33.3-66.7 of the yearly ratio here
    assert map_to_period_for(three, PeriodTag.Q2) == 50

    # Cumulative periods keep the fixed calendar mapping
    assert map_to_period_for(late, PeriodTag.HALF) == map_to_period(PeriodTag.HALF, 50)


def test_has_period_target():
    item = _issue(1, yearly_plan="100", q2="20", q3="0")
    assert has_period_target(item, PeriodTag.YEARLY)
    assert has_period_target(item, PeriodTag.Q2)
    assert not has_period_target(item, PeriodTag.Q3)
    assert has_period_target(item, PeriodTag.HALF)
    assert not has_period_target(_issue(2, q3="4"), PeriodTag.HALF)
    assert not has_period_target(_issue(3, q1="4"), PeriodTag.YEARLY)
