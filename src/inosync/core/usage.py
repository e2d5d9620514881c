"""API 配额跟踪."""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from inosync.core.errors import StoreUnavailable
from inosync.core.inoreader import RateLimitInfo
from inosync.models.api_usage import ApiUsage
from inosync.models.database import dialect_insert
from inosync.utils.time import to_iso, utcnow

logger = logging.getLogger(__name__)

SERVICE = "inoreader"
DEFAULT_ZONE1_LIMIT = 10000
DEFAULT_ZONE2_LIMIT = 2000
DEFAULT_RESET_AFTER = 86400

_FIELDS = ("zone1_usage", "zone1_limit", "zone2_usage", "zone2_limit", "reset_after")


def _percentage(used: int, limit: int | None) -> float:
    if not limit or limit <= 0:
        return 0.0
    return round(used / limit * 100, 1)


class ApiUsageTracker:
    """记录 Inoreader 响应头中的配额，进程内所有任务共享同一份记录."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def record(self, info: RateLimitInfo) -> None:
        """写入今日配额，只更新响应里出现的字段. 失败只记日志."""
        now = utcnow()
        present = {
            name: getattr(info, name)
            for name in _FIELDS
            if getattr(info, name) is not None
        }
        try:
            async with self.session_factory() as session:
                # 并发任务同时写当天第一条记录时靠唯一约束合并
                stmt = dialect_insert(session)(ApiUsage).values(
                    service=SERVICE,
                    usage_date=now.date(),
                    updated_at=now,
                    **present,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["service", "usage_date"],
                    set_={**present, "updated_at": now},
                )
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError:
            logger.exception("记录 API 配额失败")
            return

        logger.info(
            f"Inoreader 配额: zone1={info.zone1_usage}/{info.zone1_limit}, "
            f"zone2={info.zone2_usage}/{info.zone2_limit}, reset={info.reset_after}s"
        )

    async def current(self) -> dict[str, Any]:
        """今日配额使用情况，无记录时返回默认值."""
        try:
            async with self.session_factory() as session:
                stmt = select(ApiUsage).where(
                    ApiUsage.service == SERVICE,
                    ApiUsage.usage_date == utcnow().date(),
                )
                result = await session.execute(stmt)
                usage = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            msg = f"读取 API 配额失败: {e}"
            raise StoreUnavailable(msg) from e

        if usage is None:
            return {
                "zone1": {"used": 0, "limit": DEFAULT_ZONE1_LIMIT, "percentage": 0.0},
                "zone2": {"used": 0, "limit": DEFAULT_ZONE2_LIMIT, "percentage": 0.0},
                "resetAfterSeconds": DEFAULT_RESET_AFTER,
                "lastUpdated": None,
            }

        zone1_used = usage.zone1_usage or 0
        zone2_used = usage.zone2_usage or 0
        return {
            "zone1": {
                "used": zone1_used,
                "limit": usage.zone1_limit or DEFAULT_ZONE1_LIMIT,
                "percentage": _percentage(zone1_used, usage.zone1_limit),
            },
            "zone2": {
                "used": zone2_used,
                "limit": usage.zone2_limit or DEFAULT_ZONE2_LIMIT,
                "percentage": _percentage(zone2_used, usage.zone2_limit),
            },
            "resetAfterSeconds": usage.reset_after or DEFAULT_RESET_AFTER,
            "lastUpdated": to_iso(usage.updated_at),
        }
