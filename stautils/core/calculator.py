########## Calculator ##########
# Turns raw dialog inputs into travel and stardate reports plus HTML cards.

from __future__ import annotations

import math
from html import escape
from typing import List, Optional

from . import config
from .stardate import (
    calendar_to_stardate,
    format_calendar_date,
    format_stardate,
    parse_calendar_input,
    stardate_to_calendar,
)
from .types import SolveMode, StardateMode, StardateReport, TravelReport, WarpFormula
from .warp import (
    LY_PER_DAY_AT_C,
    calculate_distance,
    calculate_time,
    calculate_warp_factor,
    max_warp,
    warp_to_speed,
)

INFINITY_GLYPH: str = "∞"


########## Input Parsing ##########


def parse_number(raw: object) -> Optional[float]:
    """Read a form value; blank, zero, NaN and garbage all mean "not given"."""

    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if math.isnan(value) or value == 0:
        return None
    return value


########## Formatting ##########


def format_number(value: Optional[float], decimals: int = 2) -> str:
    """Group thousands and keep at most `decimals` fraction digits."""

    if value is None or not math.isfinite(value):
        return INFINITY_GLYPH
    text = f"{value:,.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def format_time(days: Optional[float]) -> str:
    """Render days as 'N days, H hours', or hours alone under one day."""

    if days is None or not math.isfinite(days):
        return INFINITY_GLYPH
    if days < 1:
        return f"{format_number(days * 24, 1)} hours"
    whole_days = math.floor(days)
    remaining_hours = (days - whole_days) * 24
    plural = "" if whole_days == 1 else "s"
    label = f"{format_number(whole_days, 0)} day{plural}"
    if remaining_hours < 0.1:
        return label
    return f"{label}, {format_number(remaining_hours, 1)} hours"


########## Warp Calculator ##########


def compute_travel(
    warp: Optional[float],
    distance: Optional[float],
    days: Optional[float],
    formula: WarpFormula = WarpFormula.TNG,
) -> TravelReport:
    """Solve for whichever of warp, distance, and time is missing."""

    # 1 Decide which inputs count as provided.                                # steps
    has_warp = warp is not None and 1 <= warp <= max_warp(formula)
    has_distance = distance is not None and distance > 0
    has_time = days is not None and days > 0
    if sum([has_warp, has_distance, has_time]) < 2:
        return TravelReport(valid=False, formula=formula, message=config.WARP_ENTER_TWO_VALUES)

    # 2 Derive the missing value.                                             # steps
    solved_warp = warp
    solved_distance = distance
    solved_time = days
    if has_warp and has_time and not has_distance:
        solved_distance = calculate_distance(warp, days, formula)
        mode = SolveMode.DISTANCE
    elif has_warp and has_distance and not has_time:
        solved_time = calculate_time(warp, distance, formula)
        mode = SolveMode.TIME
    elif has_distance and has_time and not has_warp:
        solved_warp = calculate_warp_factor(distance, days, formula)
        mode = SolveMode.WARP
    else:
        mode = SolveMode.VERIFY

    if solved_warp is None or not math.isfinite(solved_warp):
        return TravelReport(
            valid=False,
            formula=formula,
            solve_mode=mode,
            message=config.WARP_CANNOT_CALCULATE,
        )

    # 3 Fill in speed and display strings.                                    # steps
    speed = warp_to_speed(solved_warp, formula)
    ly_per_day = speed * LY_PER_DAY_AT_C
    return TravelReport(
        valid=True,
        formula=formula,
        solve_mode=mode,
        warp=solved_warp,
        distance=solved_distance,
        time=solved_time,
        speed=speed,
        ly_per_day=ly_per_day,
        warp_display=format_number(solved_warp, 2),
        distance_display=format_number(solved_distance, 2),
        time_display=format_time(solved_time),
        speed_display=format_number(speed, 2),
        ly_per_day_display=format_number(ly_per_day, 4),
    )


def render_travel_html(report: TravelReport) -> str:
    """Build the results grid, highlighting the solved row."""

    if not report.valid:
        css = "sta-warp-result-error" if report.solve_mode != SolveMode.NONE else "sta-warp-result-placeholder"
        return f'<div class="{css}">{escape(report.message or "")}</div>'

    def _row(field: str, label: str, value: str) -> str:
        highlight = " sta-warp-calculated" if report.solve_mode.value == field else ""
        return (
            f'<div class="sta-warp-result-row{highlight}">'
            f'<span class="sta-warp-result-label">{label}:</span>'
            f'<span class="sta-warp-result-value">{escape(value)}</span>'
            "</div>"
        )

    rows: List[str] = [
        _row("warp", "Warp Factor", report.warp_display),
        _row("distance", "Distance", f"{report.distance_display} ly"),
        _row("time", "Time", report.time_display),
        '<hr class="sta-warp-divider" />',
        '<div class="sta-warp-result-row sta-warp-derived">'
        '<span class="sta-warp-result-label">Light-years per day:</span>'
        f'<span class="sta-warp-result-value">{escape(report.ly_per_day_display)} ly/day</span>'
        "</div>",
    ]
    return '<div class="sta-warp-results-grid">' + "".join(rows) + "</div>"


########## Stardate Calculator ##########


def compute_stardate(
    mode: StardateMode,
    stardate_value: str = "",
    date_value: str = "",
    time_value: str = "",
) -> StardateReport:
    """Convert in the requested direction from raw form strings."""

    if mode == StardateMode.TO_STARDATE:
        # 1 Need at least a date; time of day is optional.                    # steps
        if not (date_value or "").strip():
            return StardateReport(valid=False, mode=mode, message=config.STARDATE_ENTER_DATE)
        moment = parse_calendar_input(date_value, time_value)
        if moment is None:
            return StardateReport(valid=False, mode=mode, message=config.STARDATE_INVALID_DATE)
        stardate = calendar_to_stardate(moment)
        return StardateReport(
            valid=True,
            mode=mode,
            stardate=stardate,
            stardate_display=format_stardate(stardate),
            calendar_display=format_calendar_date(moment),
        )

    # 2 Reverse direction: stardate text to calendar.                         # steps
    try:
        stardate = float((stardate_value or "").strip())
    except ValueError:
        return StardateReport(valid=False, mode=mode, message=config.STARDATE_ENTER_STARDATE)
    moment = stardate_to_calendar(stardate)
    if moment is None:
        return StardateReport(valid=False, mode=mode, message=config.STARDATE_INVALID_DATE)
    return StardateReport(
        valid=True,
        mode=mode,
        stardate=stardate,
        stardate_display=format_stardate(stardate),
        calendar_display=format_calendar_date(moment),
    )


def render_stardate_html(report: StardateReport) -> str:
    """Build the stardate results grid."""

    if not report.valid:
        return f'<div class="sta-stardate-result-placeholder">{escape(report.message or "")}</div>'
    stardate_row = (
        '<div class="sta-stardate-result-row{cls}">'
        '<span class="sta-stardate-result-label">Stardate:</span>'
        f'<span class="sta-stardate-result-value">{escape(report.stardate_display)}</span>'
        "</div>"
    )
    calendar_row = (
        '<div class="sta-stardate-result-row{cls}">'
        '<span class="sta-stardate-result-label">Calendar Date:</span>'
        f'<span class="sta-stardate-result-value">{escape(report.calendar_display)}</span>'
        "</div>"
    )
    calculated = " sta-stardate-calculated"
    if report.mode == StardateMode.TO_STARDATE:
        rows = [calendar_row.format(cls=""), stardate_row.format(cls=calculated)]
    else:
        rows = [stardate_row.format(cls=""), calendar_row.format(cls=calculated)]
    return '<div class="sta-stardate-results-grid">' + "".join(rows) + "</div>"


def chat_card(title: str, icon: str, body_html: str, css_class: str = "sta-calculator-chat") -> str:
    """Wrap rendered results the way they are posted to chat."""

    return f'<div class="{css_class}"><h3><i class="fas {icon}"></i> {escape(title)}</h3>{body_html}</div>'
