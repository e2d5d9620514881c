"""SyncJob 同步任务模型."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from inosync.utils.time import utcnow


class SyncJobStatus:
    """同步任务状态枚举."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = frozenset({COMPLETED, FAILED})
    ALL = frozenset({PENDING, PROCESSING, COMPLETED, FAILED})


class SyncJob(SQLModel, table=True):
    """一次同步任务的状态记录."""

    __tablename__ = "sync_jobs"  # type: ignore[assignment]

    id: str = Field(primary_key=True, description="同步任务 ID")
    status: str = Field(
        default=SyncJobStatus.PENDING,
        index=True,
        description="状态: pending|processing|completed|failed",
    )
    progress: int = Field(default=0, ge=0, le=100, description="进度百分比")
    message: str | None = Field(default=None, description="当前步骤描述")
    error: str | None = Field(default=None, description="错误信息（仅 failed）")
    retry_after: int | None = Field(default=None, description="限流后建议等待秒数")
    feeds_synced: int = Field(default=0, description="同步的订阅源数")
    articles_synced: int = Field(default=0, description="同步的文章数")
    started_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
