"""同步任务状态存储."""

from datetime import datetime
from typing import Any

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inosync.core.errors import StoreUnavailable
from inosync.models.sync import SyncJob, SyncJobStatus
from inosync.utils.time import utcnow

_UPDATABLE = frozenset(
    {
        "status",
        "progress",
        "message",
        "error",
        "retry_after",
        "feeds_synced",
        "articles_synced",
    }
)


def apply_update(job: SyncJob, fields: dict[str, Any]) -> None:
    """
    把部分字段合并进任务记录，同时维护状态不变量.

    - progress 只增不减
    - progress == 100 当且仅当 status == completed
    - error 存在当且仅当 status == failed
    - completed / failed 为终态，之后不能再改变状态
    """
    unknown = set(fields) - _UPDATABLE
    if unknown:
        msg = f"不支持更新的字段: {sorted(unknown)}"
        raise ValueError(msg)

    status = fields.get("status", job.status)
    if status not in SyncJobStatus.ALL:
        msg = f"未知状态: {status}"
        raise ValueError(msg)
    if job.status in SyncJobStatus.TERMINAL and status != job.status:
        msg = f"任务已结束 ({job.status})，不能改为 {status}"
        raise ValueError(msg)

    progress = max(job.progress, int(fields.get("progress", job.progress)))
    progress = min(progress, 100)

    if status == SyncJobStatus.COMPLETED:
        progress = 100
    else:
        progress = min(progress, 99)

    if status == SyncJobStatus.FAILED:
        error = fields.get("error", job.error)
        if not error:
            msg = "failed 状态必须带 error"
            raise ValueError(msg)
        job.error = error
        job.retry_after = fields.get("retry_after", job.retry_after)
    else:
        job.error = None
        job.retry_after = None

    job.status = status
    job.progress = progress
    for key in ("message", "feeds_synced", "articles_synced"):
        if key in fields:
            setattr(job, key, fields[key])
    job.updated_at = utcnow()


class SyncStatusStore:
    """同步任务状态的持久化存储（单写多读）."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def create(self, job_id: str) -> SyncJob:
        """创建 pending 状态的任务."""
        try:
            async with self.session_factory() as session:
                if await session.get(SyncJob, job_id) is not None:
                    msg = f"同步任务已存在: {job_id}"
                    raise ValueError(msg)
                now = utcnow()
                job = SyncJob(
                    id=job_id,
                    status=SyncJobStatus.PENDING,
                    progress=0,
                    started_at=now,
                    updated_at=now,
                )
                session.add(job)
                await session.commit()
                return job
        except SQLAlchemyError as e:
            msg = f"创建同步任务失败: {e}"
            raise StoreUnavailable(msg) from e

    async def update(self, job_id: str, **fields: Any) -> SyncJob:
        """部分更新任务字段."""
        try:
            async with self.session_factory() as session:
                job = await session.get(SyncJob, job_id)
                if job is None:
                    msg = f"同步任务不存在: {job_id}"
                    raise KeyError(msg)
                apply_update(job, fields)
                await session.commit()
                return job
        except SQLAlchemyError as e:
            msg = f"更新同步任务失败: {e}"
            raise StoreUnavailable(msg) from e

    async def get(self, job_id: str) -> SyncJob | None:
        """读取任务."""
        try:
            async with self.session_factory() as session:
                return await session.get(SyncJob, job_id)
        except SQLAlchemyError as e:
            msg = f"读取同步任务失败: {e}"
            raise StoreUnavailable(msg) from e

    async def prune(self, older_than: datetime) -> int:
        """删除早于 older_than 的已结束任务，返回删除数量."""
        try:
            async with self.session_factory() as session:
                stmt = (
                    delete(SyncJob)
                    .where(SyncJob.status.in_(sorted(SyncJobStatus.TERMINAL)))  # type: ignore[attr-defined]
                    .where(SyncJob.updated_at < older_than)  # type: ignore[operator]
                )
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            msg = f"清理同步任务失败: {e}"
            raise StoreUnavailable(msg) from e
