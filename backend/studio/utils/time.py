from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings


def studio_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().studio_timezone)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def studio_today() -> date:
    """Current calendar date at the studio. Only routers should call this."""
    return datetime.now(timezone.utc).astimezone(studio_zone()).date()


def utc_naive_to_studio(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(studio_zone())
