########## Stardate Conversion ##########
# TNG stardates after the TrekGuide formula: fixed origin, fixed unit length.

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

from . import config

STARDATE_ORIGIN: datetime = datetime.fromisoformat(config.STARDATE_ORIGIN_ISO)
DATE_INPUT_FORMAT: str = "%Y-%m-%d"
TIME_INPUT_FORMATS: tuple[str, ...] = ("%H:%M", "%H:%M:%S")
CALENDAR_DISPLAY_FORMAT: str = "%a %d %b %Y @ %H:%M:%S"


def calendar_to_stardate(moment: datetime) -> float:
    """Return the stardate for a calendar moment, rounded to one decimal."""

    # 1 Drop seconds so the same minute always maps to the same stardate.     # steps
    truncated = moment.replace(second=0, microsecond=0)
    # 2 Scale elapsed milliseconds by the stardate unit.                      # steps
    elapsed_ms = (truncated - STARDATE_ORIGIN) / timedelta(milliseconds=1)
    return round(elapsed_ms / config.STARDATE_MS_PER_UNIT, 1)


def stardate_to_calendar(stardate: float) -> Optional[datetime]:
    """Return the calendar moment for a stardate, or None when out of range."""

    if not math.isfinite(stardate):
        return None
    try:
        return STARDATE_ORIGIN + timedelta(milliseconds=stardate * config.STARDATE_MS_PER_UNIT)
    except OverflowError:
        return None


def format_calendar_date(moment: datetime) -> str:
    """Render a moment as e.g. 'Fri 05 Jul 2318 @ 12:00:00'."""

    return moment.strftime(CALENDAR_DISPLAY_FORMAT)


def format_stardate(stardate: float) -> str:
    return f"{stardate:.1f}"


def parse_calendar_input(date_value: str, time_value: str = "") -> Optional[datetime]:
    """Parse 'yyyy-mm-dd' plus an optional 'hh:mm' into a datetime."""

    date_value = (date_value or "").strip()
    time_value = (time_value or "").strip()
    if not date_value:
        return None
    try:
        day = datetime.strptime(date_value, DATE_INPUT_FORMAT)
    except ValueError:
        return None
    if not time_value:
        return day
    for pattern in TIME_INPUT_FORMATS:
        try:
            clock = datetime.strptime(time_value, pattern)
        except ValueError:
            continue
        return day.replace(hour=clock.hour, minute=clock.minute, second=clock.second)
    return None
