from __future__ import annotations

import re
from datetime import date, datetime, timedelta

DATE_KEY_FORMAT = "%Y-%m-%d"
_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DateLike = date | datetime | str


def date_key(value: DateLike) -> str:
    """Return the ``YYYY-MM-DD`` key used for bucket and equality checks.

    Timestamps (objects or ISO strings) are truncated to their calendar date.
    """
    if isinstance(value, datetime):
        return value.date().strftime(DATE_KEY_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_KEY_FORMAT)
    if isinstance(value, str):
        text = value.strip()
        if _DATE_KEY_RE.match(text):
            return parse_date_key(text).strftime(DATE_KEY_FORMAT)
        if "T" in text or " " in text:
            head = re.split(r"[T ]", text, maxsplit=1)[0]
            if _DATE_KEY_RE.match(head):
                return parse_date_key(head).strftime(DATE_KEY_FORMAT)
        return datetime.fromisoformat(text).date().strftime(DATE_KEY_FORMAT)
    raise ValueError(f"Unsupported date value: {value!r}")


def parse_date_key(key: str) -> date:
    return datetime.strptime(key, DATE_KEY_FORMAT).date()


def to_date(value: DateLike) -> date:
    return parse_date_key(date_key(value))


def display_dates(center: date, span: int = 3) -> list[date]:
    before = (span - 1) // 2
    start = center - timedelta(days=before)
    return [start + timedelta(days=offset) for offset in range(span)]


def shift(center: date, days: int) -> date:
    return center + timedelta(days=days)


def week_bounds(value: date) -> tuple[date, date]:
    start = value - timedelta(days=value.weekday())
    return start, start + timedelta(days=6)
