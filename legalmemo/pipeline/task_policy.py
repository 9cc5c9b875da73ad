"""Deterministic deadline and owner policies for extracted tasks.

These run without the language model: they fill in a deadline or owner
the model did not provide, and they are the fallback when it fails.
"""

import calendar
import re
from datetime import date, datetime, timedelta

import dateparser
from rapidfuzz import fuzz, utils

URGENT_WORDS = ("urgent", "asap", "immediately")
DUPLICATE_THRESHOLD = 90.0


def suggest_deadline(text: str, now: datetime | date) -> date | None:
    """Suggest a deadline from timing cues in a task's text.

    Rules, first match wins (case-insensitive):
    - "urgent", "asap" or "immediately": tomorrow
    - "this week": the coming Friday, or a week out if today is Friday
    - "next week": Friday of the following Sunday-based week
    - "month": last day of the current month

    Args:
        text: Task title and/or description
        now: Reference point, usually the meeting date

    Returns:
        Suggested date, or None when no cue is present

    Examples:
        >>> suggest_deadline("Call client ASAP", date(2026, 1, 14))
        datetime.date(2026, 1, 15)
        >>> suggest_deadline("File motion this week", date(2026, 1, 14))
        datetime.date(2026, 1, 16)
    """
    today = now.date() if isinstance(now, datetime) else now
    lowered = text.lower()
    # Sunday-based weekday: Sunday=0 ... Saturday=6
    sunday_weekday = (today.weekday() + 1) % 7

    if any(word in lowered for word in URGENT_WORDS):
        return today + timedelta(days=1)
    if "this week" in lowered:
        days_until_friday = (5 - sunday_weekday + 7) % 7 or 7
        return today + timedelta(days=days_until_friday)
    if "next week" in lowered:
        return today + timedelta(days=7 + (5 - sunday_weekday))
    if "month" in lowered:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=last_day)
    return None


def suggest_owner(text: str, participant_names: list[str]) -> str | None:
    """Return the first participant whose name appears in the text."""
    for name in participant_names:
        if name and re.search(rf"\b{re.escape(name)}\b", text, re.IGNORECASE):
            return name
    return None


def normalize_deadline(raw_deadline: str | None, meeting_date: datetime) -> date | None:
    """Convert a natural language deadline to a date, relative to the meeting.

    Args:
        raw_deadline: Deadline as stated (e.g. "next Friday", "March 3")
        meeting_date: Reference point for relative dates

    Returns:
        Parsed date, or None if raw_deadline is empty or unparseable
    """
    if raw_deadline is None or not raw_deadline.strip():
        return None

    parser_settings: dict = {
        "RELATIVE_BASE": meeting_date.replace(tzinfo=None),
        "PREFER_DATES_FROM": "future",
        "RETURN_AS_TIMEZONE_AWARE": False,
    }
    try:
        parsed = dateparser.parse(raw_deadline, settings=parser_settings)
    except Exception:
        # dateparser raises assorted exceptions on malformed input
        return None
    return parsed.date() if parsed else None


def is_duplicate_task(candidate: str, existing_titles: list[str]) -> bool:
    """True if candidate closely matches an existing task title."""
    for title in existing_titles:
        score = fuzz.token_sort_ratio(
            candidate, title, processor=utils.default_process
        )
        if score >= DUPLICATE_THRESHOLD:
            return True
    return False
