from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple, Union

from content_search.src.search.schemas import DateRange

DateLike = Union[date, datetime, str, None]

PRESET_DAYS = {"last7days": 7, "last30days": 30, "lastyear": 365}


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse(value: DateLike) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    return datetime.combine(value, time.min)


def _end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def resolve_date_range(
    date_range: Optional[DateRange],
    now: Optional[datetime] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn a preset into (start, end) bounds in naive UTC.

    Unknown presets and a custom range without bounds resolve to (None, None),
    meaning no date filter.
    """
    if date_range is None or not date_range.preset:
        return None, None

    now = _to_naive_utc(now or datetime.now(timezone.utc))
    preset = date_range.preset

    if preset == "yesterday":
        start = datetime.combine(now.date() - timedelta(days=1), time.min)
        return start, _end_of_day(start)

    if preset in PRESET_DAYS:
        return now - timedelta(days=PRESET_DAYS[preset]), now

    if preset == "custom":
        start = _parse(date_range.start)
        end = _parse(date_range.end)
        if end is not None:
            end = _end_of_day(end)
        return start, end

    return None, None
