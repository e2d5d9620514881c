"""定时任务定义."""

import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from inosync.config import Settings
from inosync.core.errors import StoreUnavailable
from inosync.core.store import SyncStatusStore
from inosync.core.sync import SyncOrchestrator
from inosync.utils.time import utcnow

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def sync_task(settings: Settings, orchestrator: SyncOrchestrator) -> None:
    """定时同步：与手动触发走同一条任务流程."""
    if not settings.inoreader_configured:
        logger.warning("Inoreader 未配置，跳过同步")
        return

    try:
        sync_id = await orchestrator.start_sync()
    except StoreUnavailable as e:
        logger.error(f"定时同步启动失败: {e}")
        return
    logger.info(f"定时同步已启动: {sync_id}")


async def prune_task(settings: Settings, store: SyncStatusStore) -> None:
    """清理过期的同步任务记录."""
    cutoff = utcnow() - timedelta(hours=settings.sync_retention_hours)
    try:
        count = await store.prune(cutoff)
    except StoreUnavailable as e:
        logger.error(f"清理同步任务失败: {e}")
        return
    if count:
        logger.info(f"已清理 {count} 条过期同步任务")


def create_scheduler(
    settings: Settings,
    orchestrator: SyncOrchestrator,
) -> AsyncIOScheduler:
    """创建并启动定时任务调度器."""
    global _scheduler

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        sync_task,
        "interval",
        minutes=settings.sync_interval_minutes,
        args=[settings, orchestrator],
        id="inoreader_sync",
        name="Inoreader 定时同步",
        replace_existing=True,
    )

    _scheduler.add_job(
        prune_task,
        "interval",
        hours=1,
        args=[settings, orchestrator.store],
        id="sync_job_prune",
        name="清理过期同步任务",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info(
        f"定时任务调度器已启动，同步间隔: {settings.sync_interval_minutes} 分钟"
    )

    return _scheduler


async def shutdown_scheduler() -> None:
    """关闭定时任务调度器."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        logger.info("定时任务调度器已关闭")
        _scheduler = None
