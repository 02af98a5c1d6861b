from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """
    获取当前UTC时间
    """
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    统一为带时区的UTC时间，无时区信息的值视为UTC
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
