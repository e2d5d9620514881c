"""时间工具."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """当前 UTC 时间（带时区）."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """SQLite 读回的时间不带时区，按 UTC 补上."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_epoch_ms(value: datetime) -> int:
    """时间转毫秒时间戳."""
    return int(ensure_utc(value).timestamp() * 1000)


def to_iso(value: datetime) -> str:
    """ISO 8601，UTC 以 Z 结尾."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def from_epoch_seconds(value: int | float | None) -> datetime | None:
    """秒级时间戳转 UTC 时间."""
    if not value:
        return None
    return datetime.fromtimestamp(value, UTC)
