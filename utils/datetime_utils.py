# utils/datetime_utils.py
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

DateLike = Union[date, datetime, str]


def utc_now() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Ensure datetime is timezone-aware UTC."""
    if dt.tzinfo is None:
        # treat naive as UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_meta_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Returns timezone-aware UTC datetime.

    Meta examples:
      - 2010-09-04T20:25:22+0200
      - 2025-12-26T19:10:00+0000
      - 2025-12-26T19:10:00Z
    """
    if not value:
        return None

    v = value.strip()
    if v.endswith("Z"):
        v = v[:-1] + "+0000"

    try:
        return datetime.strptime(v, "%Y-%m-%dT%H:%M:%S%z").astimezone(timezone.utc)
    except ValueError:
        pass

    # fallback: first 19 chars as naive UTC
    try:
        dt = datetime.strptime(value[:19].replace("T", " "), "%Y-%m-%d %H:%M:%S")
        return dt.replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


# =========================
# Reporting periods
# =========================

def month_info(day: Optional[DateLike] = None) -> Dict[str, object]:
    """Calendar month containing `day` (today UTC by default)."""
    d = as_date(day) if day is not None else utc_now().date()
    last = calendar.monthrange(d.year, d.month)[1]
    return {
        "year": d.year,
        "month": d.month,
        "start_date": date(d.year, d.month, 1).isoformat(),
        "end_date": date(d.year, d.month, last).isoformat(),
        "period_id": f"{d.year}-{d.month:02d}",
    }


def week_info(day: Optional[DateLike] = None) -> Dict[str, object]:
    """Monday..Sunday week containing `day`, numbered by ISO calendar."""
    d = as_date(day) if day is not None else utc_now().date()
    monday = d - timedelta(days=d.weekday())
    sunday = monday + timedelta(days=6)
    iso_year, iso_week, _ = monday.isocalendar()
    return {
        "year": iso_year,
        "week": iso_week,
        "start_date": monday.isoformat(),
        "end_date": sunday.isoformat(),
        "period_id": f"{iso_year}-W{iso_week:02d}",
    }


def month_ranges(start: DateLike, end: DateLike) -> List[Dict[str, object]]:
    """Every month touched by [start, end], oldest first."""
    cur = as_date(start).replace(day=1)
    stop = as_date(end)
    out = []
    while cur <= stop:
        out.append(month_info(cur))
        if cur.month == 12:
            cur = date(cur.year + 1, 1, 1)
        else:
            cur = date(cur.year, cur.month + 1, 1)
    return out


def week_ranges(start: DateLike, end: DateLike) -> List[Dict[str, object]]:
    """Every Monday-start week touched by [start, end], oldest first."""
    d = as_date(start)
    cur = d - timedelta(days=d.weekday())
    stop = as_date(end)
    out = []
    while cur <= stop:
        out.append(week_info(cur))
        cur += timedelta(days=7)
    return out


def is_monday(value: DateLike) -> bool:
    return as_date(value).weekday() == 0
