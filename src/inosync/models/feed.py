"""Feed 订阅源模型."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from inosync.utils.time import utcnow


class Feed(SQLModel, table=True):
    """Inoreader 订阅源."""

    __tablename__ = "feeds"  # type: ignore[assignment]

    id: str = Field(primary_key=True, description="Inoreader 中的 feed ID (streamId)")
    title: str = Field(description="Feed 标题")
    url: str = Field(description="Feed URL")
    site_url: str | None = Field(default=None, description="网站 URL")
    icon_url: str | None = Field(default=None, description="图标 URL")
    category: str | None = Field(default=None, description="分类（文件夹）")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
