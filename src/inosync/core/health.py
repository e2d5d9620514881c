"""健康检查."""

import logging
import time
from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inosync.config import Settings
from inosync.utils.time import to_iso, utcnow

logger = logging.getLogger(__name__)

SERVICE_NAME = "inosync"
_started_at = time.monotonic()


class DatabaseState:
    """数据库检查结果."""

    CONNECTED = "connected"
    SLOW = "slow"
    ERROR = "error"
    UNAVAILABLE = "unavailable"


@dataclass
class DatabaseCheck:
    """一次数据库探测."""

    state: str
    query_time_ms: float | None = None
    error: str | None = None

    @property
    def healthy(self) -> bool:
        return self.state != DatabaseState.ERROR


async def check_database(
    session_factory: async_sessionmaker[AsyncSession] | None,
    settings: Settings,
) -> DatabaseCheck:
    """执行 SELECT 1 探测数据库，测试环境跳过."""
    if settings.environment == "test":
        return DatabaseCheck(state=DatabaseState.UNAVAILABLE)
    if session_factory is None:
        return DatabaseCheck(state=DatabaseState.ERROR, error="数据库未初始化")

    started = time.perf_counter()
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"数据库健康检查失败: {e}")
        return DatabaseCheck(state=DatabaseState.ERROR, error=str(e))

    elapsed = round((time.perf_counter() - started) * 1000, 2)
    state = (
        DatabaseState.SLOW
        if elapsed > settings.db_slow_threshold_ms
        else DatabaseState.CONNECTED
    )
    return DatabaseCheck(state=state, query_time_ms=elapsed)


def overall_status(database: DatabaseCheck) -> str:
    """汇总服务状态: healthy | degraded | unhealthy."""
    if database.state == DatabaseState.ERROR:
        return "unhealthy"
    if database.state == DatabaseState.SLOW:
        return "degraded"
    return "healthy"


def uptime_seconds() -> int:
    return int(time.monotonic() - _started_at)


def app_health(database: DatabaseCheck, settings: Settings) -> dict[str, Any]:
    """应用健康状态."""
    return {
        "status": overall_status(database),
        "service": SERVICE_NAME,
        "version": settings.app_version,
        "environment": settings.environment,
        "uptime": uptime_seconds(),
        "timestamp": to_iso(utcnow()),
        "dependencies": {"database": database.state},
    }


def database_health(database: DatabaseCheck, settings: Settings) -> dict[str, Any]:
    """数据库健康状态，connection 是 database 的别名."""
    payload: dict[str, Any] = {
        "status": overall_status(database),
        "database": database.state,
        "connection": database.state,
        "queryTime": database.query_time_ms,
        "environment": settings.environment,
        "timestamp": to_iso(utcnow()),
    }
    if database.error:
        payload["error"] = "数据库连接失败"
    return payload
