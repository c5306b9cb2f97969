"""Translates dashboard timeframe tokens into (start, end) Unix timestamps.

All day boundaries are local midnight. Ranges are half-open, so "until the
end of today" is expressed as the start of tomorrow.
"""

from datetime import datetime, timedelta, tzinfo

TIMEFRAMES = ("t", "24h", "7d", "30d", "12m", "mtd", "ytd")


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _months_back(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    return moment.replace(year=month_index // 12, month=month_index % 12 + 1, day=1)


def _timestamp(wall: datetime, zone: tzinfo | None) -> int:
    # Each wall-clock time gets its own UTC offset, so midnights on the other
    # side of a DST change stay at local midnight.
    if zone is None:
        return int(wall.astimezone().timestamp())
    return int(wall.replace(tzinfo=zone).timestamp())


def parse_timeframe(token: str | None, now: datetime | None = None) -> tuple[int, int]:
    """Resolve a timeframe token.

    Args:
        token: One of ``t``, ``24h``, ``7d``, ``30d``, ``12m``, ``mtd``,
            ``ytd``. Empty or None means ``t``; unknown tokens mean the
            last 24 hours.
        now: Reference time, defaults to the current local time. A naive
            value is read as system local time; an aware value keeps its
            time zone.

    Returns:
        (start, end) in Unix seconds.
    """
    if now is None:
        now = datetime.now()
    zone = now.tzinfo
    wall = now.replace(tzinfo=None)
    today = _start_of_day(wall)
    end_of_today = _timestamp(today + timedelta(days=1), zone)
    token = token or "t"

    if token == "t":
        return _timestamp(today, zone), end_of_today
    if token == "7d":
        return _timestamp(today - timedelta(days=7), zone), end_of_today
    if token == "30d":
        return _timestamp(today - timedelta(days=30), zone), end_of_today
    if token == "12m":
        return _timestamp(_months_back(today, 12), zone), end_of_today
    if token == "mtd":
        return _timestamp(today.replace(day=1), zone), end_of_today
    if token == "ytd":
        return _timestamp(today.replace(month=1, day=1), zone), end_of_today

    # "24h" and anything unrecognized
    current = _timestamp(wall, zone)
    return current - 24 * 3600, current
