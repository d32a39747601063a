import datetime

import pytest

from app.utils.formatting import (
    format_clock,
    format_date,
    format_datetime,
    format_duration,
    format_hours,
    format_minutes,
    format_score,
    isoformat_or_none,
)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "0:00"), (65, "1:05"), (3600, "1:00:00"), (3725, "1:02:05"), (None, "0:00"), (-5, "0:00")],
)
def test_format_clock(seconds, expected):
    assert format_clock(seconds) == expected


def test_minutes_hours_and_duration():
    assert format_minutes(725) == "12p 05s"
    assert format_hours(8100) == "2h 15p"
    assert format_hours(59) == "0h 0p"
    assert format_duration(3725) == "62:05"


def test_dates_use_vietnamese_order():
    moment = datetime.datetime(2024, 3, 9, 7, 5, 30)
    assert format_date(moment) == "09/03/2024"
    assert format_date(moment.date()) == "09/03/2024"
    assert format_datetime(moment) == "07:05:30 09/03/2024"
    assert format_date(None) == ""


def test_isoformat_or_none():
    assert isoformat_or_none(None) is None
    assert isoformat_or_none(datetime.date(2024, 1, 2)) == "2024-01-02T00:00:00"
    assert isoformat_or_none("2024-01-02") == "2024-01-02T00:00:00"
    assert isoformat_or_none("soon") == "soon"


def test_format_score():
    assert format_score(None) == "-"
    assert format_score(8) == "8.0"
    assert format_score(7.25) == "7.2"


def test_date_filters_accept_serialized_values():
    assert format_date("2024-03-09T07:05:30") == "09/03/2024"
    assert format_datetime("2024-03-09T07:05:30.123456") == "07:05:30 09/03/2024"
    assert format_datetime("not a date") == ""
