"""同步状态查询."""

from typing import Any

from inosync.core.store import SyncStatusStore
from inosync.models.sync import SyncJob, SyncJobStatus
from inosync.utils.time import to_epoch_ms, utcnow


def job_snapshot(job: SyncJob) -> dict[str, Any]:
    """任务记录转为接口返回格式，值为 None 的键省略."""
    snapshot: dict[str, Any] = {
        "syncId": job.id,
        "status": job.status,
        "progress": job.progress,
        "message": job.message,
        "error": job.error,
        "retryAfter": job.retry_after,
        "startTime": to_epoch_ms(job.started_at),
    }
    if job.status == SyncJobStatus.COMPLETED:
        snapshot["metrics"] = {
            "feeds": job.feeds_synced,
            "articles": job.articles_synced,
        }
    return {key: value for key, value in snapshot.items() if value is not None}


class StatusReporter:
    """只读的同步状态查询."""

    def __init__(self, store: SyncStatusStore) -> None:
        self.store = store

    async def get_status(self, job_id: str) -> dict[str, Any]:
        """
        查询任务状态.

        未知 ID 按尚未开始的 pending 任务返回，轮询方无需区分 404。
        """
        job = await self.store.get(job_id)
        if job is None:
            return {
                "syncId": job_id,
                "status": SyncJobStatus.PENDING,
                "progress": 0,
                "startTime": to_epoch_ms(utcnow()),
            }
        return job_snapshot(job)
