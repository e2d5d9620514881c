"""同步 API."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from inosync.api.deps import get_orchestrator, get_reporter, get_usage_tracker
from inosync.config import Settings, get_settings
from inosync.core.errors import StoreUnavailable
from inosync.core.reporter import StatusReporter
from inosync.core.sync import SyncOrchestrator
from inosync.core.usage import ApiUsageTracker
from inosync.models.sync import SyncJobStatus
from inosync.utils.time import to_epoch_ms, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def trigger_sync(
    settings: Settings = Depends(get_settings),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict:
    """触发后台同步，立即返回任务 ID."""
    if not settings.inoreader_configured:
        raise HTTPException(status_code=400, detail="Inoreader 未配置")

    try:
        sync_id = await orchestrator.start_sync()
    except StoreUnavailable as e:
        logger.error(f"无法创建同步任务: {e}")
        raise HTTPException(status_code=503, detail="同步状态存储不可用") from e

    return {
        "syncId": sync_id,
        "status": SyncJobStatus.PENDING,
        "progress": 0,
        "message": "同步已开始",
        "startTime": to_epoch_ms(utcnow()),
    }


@router.get("/status/{sync_id}")
async def get_sync_status(
    sync_id: str,
    reporter: StatusReporter = Depends(get_reporter),
) -> dict:
    """轮询同步进度."""
    try:
        return await reporter.get_status(sync_id)
    except StoreUnavailable as e:
        logger.error(f"读取同步状态失败: {e}")
        raise HTTPException(status_code=503, detail="同步状态存储不可用") from e


@router.get("/api-usage")
async def get_api_usage(
    tracker: ApiUsageTracker = Depends(get_usage_tracker),
) -> dict:
    """获取今日 Inoreader 配额使用情况."""
    try:
        return await tracker.current()
    except StoreUnavailable as e:
        logger.error(f"读取配额失败: {e}")
        raise HTTPException(status_code=503, detail="配额存储不可用") from e
