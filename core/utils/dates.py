from __future__ import annotations

import calendar
import datetime as dt
import re
from typing import Optional

from core.errors import ValidationFailed

_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")


def parse_date_flex(value) -> Optional[dt.date]:
    """Best-effort date parser shared across importer/exporter/UI."""

    if not value:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return dt.date.fromisoformat(s[:10])
    except ValueError:
        pass
    parts = [p for p in re.split(r"[^0-9]", s) if p]
    if len(parts) >= 3:
        try:
            y, m, d = map(int, parts[:3])
            return dt.date(y, m, d)
        except ValueError:
            return None
    return None


def require_date(value, field: str) -> dt.date:
    parsed = parse_date_flex(value)
    if parsed is None:
        raise ValidationFailed(f"{field} must be YYYY-MM-DD")
    return parsed


def month_bounds(year: int, month: int) -> tuple[dt.date, dt.date]:
    if not dt.MINYEAR <= int(year) <= dt.MAXYEAR:
        raise ValidationFailed(f"year must be {dt.MINYEAR}-{dt.MAXYEAR}")
    if not 1 <= int(month) <= 12:
        raise ValidationFailed("month must be 1-12")
    last = calendar.monthrange(int(year), int(month))[1]
    return dt.date(int(year), int(month), 1), dt.date(int(year), int(month), last)


def parse_month(value: Optional[str], *, today: Optional[dt.date] = None) -> tuple[int, int]:
    """``YYYY-MM`` → (year, month); empty means the current month."""
    if not value:
        d = today or dt.date.today()
        return d.year, d.month
    m = _MONTH.match(str(value).strip())
    if not m:
        raise ValidationFailed("month must be YYYY-MM")
    year, month = int(m.group(1)), int(m.group(2))
    if not dt.MINYEAR <= year <= dt.MAXYEAR or not 1 <= month <= 12:
        raise ValidationFailed("month must be YYYY-MM")
    return year, month
