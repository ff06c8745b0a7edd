########## Stardate Tests ##########
# Origin, rounding, round trips, and input parsing.

from __future__ import annotations

import math
from datetime import datetime, timedelta

from stautils.core import config
from stautils.core.stardate import (
    STARDATE_ORIGIN,
    calendar_to_stardate,
    format_calendar_date,
    format_stardate,
    parse_calendar_input,
    stardate_to_calendar,
)


def test_origin_is_stardate_zero() -> None:
    assert calendar_to_stardate(STARDATE_ORIGIN) == 0.0
    assert stardate_to_calendar(0.0) == STARDATE_ORIGIN


def test_one_unit_after_origin() -> None:
    """A stardate unit is a fixed number of milliseconds."""

    moment = stardate_to_calendar(1.0)
    assert moment - STARDATE_ORIGIN == timedelta(milliseconds=config.STARDATE_MS_PER_UNIT)
    assert calendar_to_stardate(moment) == 1.0


def test_seconds_are_ignored() -> None:
    """Two moments in the same minute share a stardate."""

    early = datetime(2364, 3, 15, 9, 30, 0)
    late = datetime(2364, 3, 15, 9, 30, 59)
    assert calendar_to_stardate(early) == calendar_to_stardate(late)


def test_stardates_before_origin_are_negative() -> None:
    assert calendar_to_stardate(datetime(2300, 1, 1)) < 0


def test_round_trip_keeps_one_decimal() -> None:
    # 1 Stardate to calendar and back should land on the same tenth.         # steps
    for stardate in (41153.7, 47457.1, -1234.5):
        moment = stardate_to_calendar(stardate)
        assert calendar_to_stardate(moment) == stardate


def test_out_of_range_stardates_return_none() -> None:
    assert stardate_to_calendar(math.inf) is None
    assert stardate_to_calendar(math.nan) is None
    assert stardate_to_calendar(1e15) is None


def test_formatting() -> None:
    assert format_calendar_date(STARDATE_ORIGIN) == "Fri 05 Jul 2318 @ 12:00:00"
    assert format_stardate(41153.7) == "41153.7"
    assert format_stardate(12.0) == "12.0"


def test_parse_calendar_input() -> None:
    """Date is required; time of day is optional with or without seconds."""

    assert parse_calendar_input("2364-03-15") == datetime(2364, 3, 15)
    assert parse_calendar_input("2364-03-15", "09:30") == datetime(2364, 3, 15, 9, 30)
    assert parse_calendar_input("2364-03-15", "09:30:12") == datetime(2364, 3, 15, 9, 30, 12)
    assert parse_calendar_input("", "09:30") is None
    assert parse_calendar_input("15/03/2364") is None
    assert parse_calendar_input("2364-03-15", "half past nine") is None
