from __future__ import annotations

import math
import re
from datetime import date

DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_local_date(value: str) -> date:
    """
    Parse YYYY-MM-DD into a calendar day built from its components.
    The string is never read as an instant, so no timezone can shift the day.
    """
    match = DATE_PATTERN.match((value or "").strip())
    if not match:
        raise ValueError("Invalid date format, expected YYYY-MM-DD")

    year, month, day = (int(part) for part in match.groups())
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        raise ValueError("Invalid date: month must be 1-12 and day 1-31")
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"Invalid date: {e}") from e


def parse_duration_hours(value: str | float | int | None, default: float = 1.0) -> float:
    if value is None or value == "":
        return default
    try:
        duration = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError("Duration must be a positive number of hours") from e
    if math.isnan(duration) or math.isinf(duration) or duration <= 0:
        raise ValueError("Duration must be a positive number of hours")
    return duration


def parse_time_of_day(value: str) -> tuple[int, int]:
    """Parse HH:MM (24h) into (hour, minute)."""
    match = TIME_PATTERN.match((value or "").strip())
    if not match:
        raise ValueError("Invalid time format, expected HH:MM")
    return int(match.group(1)), int(match.group(2))
