"""ApiUsage 第三方 API 配额模型."""

from datetime import date, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from inosync.utils.time import utcnow


class ApiUsage(SQLModel, table=True):
    """每日 API 配额使用情况（来自 Inoreader 响应头）."""

    __tablename__ = "api_usage"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("service", "usage_date"),)

    id: int | None = Field(default=None, primary_key=True)
    service: str = Field(default="inoreader", description="服务名")
    usage_date: date = Field(description="统计日期 (UTC)")
    zone1_usage: int | None = Field(default=None)
    zone1_limit: int | None = Field(default=None)
    zone2_usage: int | None = Field(default=None)
    zone2_limit: int | None = Field(default=None)
    reset_after: int | None = Field(default=None, description="配额重置剩余秒数")
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
