"""时区工具方法：数据库统一存储 UTC，展示时按配置时区转换。"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from zoneinfo import ZoneInfo

from app.packages.drive.core.config import get_settings


def get_timezone() -> ZoneInfo:
    return get_settings().timezone_info


def utcnow() -> datetime:
    """返回带时区信息的当前 UTC 时间。"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite 读回的时间不带时区，按 UTC 解释；带时区的值统一换算为 UTC。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """将 ``datetime`` 转换为配置时区。"""
    utc_value = ensure_utc(value)
    if utc_value is None:
        return None
    return utc_value.astimezone(get_timezone())


def isoformat(value: Optional[datetime]) -> Optional[str]:
    localized = to_local(value)
    if localized is None:
        return None
    return localized.isoformat()
