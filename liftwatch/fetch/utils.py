import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_hour(moment: datetime, tz: ZoneInfo) -> int:
    """
    Hour of day at the source for an aware datetime.
    Seasonal offset changes are handled by the zone rules, not by a fixed offset.
    """
    if moment.tzinfo is None:
        raise ValueError("local_hour needs a timezone-aware datetime")
    return moment.astimezone(tz).hour


def normalize_text(s: str) -> str:
    s = re.sub(r"\u00a0", " ", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()
