from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

FRIDAY = 4


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def local_today(now: datetime | None = None, tz: str = "America/New_York") -> date:
    return (now or now_utc()).astimezone(ZoneInfo(tz)).date()


def get_week_start_date(now: datetime, tz: str = "America/New_York") -> date:
    local_now = now.astimezone(ZoneInfo(tz))
    return local_now.date() - timedelta(days=local_now.weekday())


def next_friday_midnight(now: datetime | None = None, tz: str = "America/New_York") -> datetime:
    """Midnight starting the next Friday in ``tz``, returned in UTC.

    On a Friday the following Friday is used, so the result always lies in
    ``(now, now + 7 days]``.
    """
    zone = ZoneInfo(tz)
    local_now = (now or now_utc()).astimezone(zone)
    days_until = (FRIDAY - local_now.weekday()) % 7 or 7
    friday = local_now.date() + timedelta(days=days_until)
    return datetime.combine(friday, time.min, tzinfo=zone).astimezone(timezone.utc)
