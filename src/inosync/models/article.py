"""Article 文章模型."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from inosync.utils.time import utcnow


class Article(SQLModel, table=True):
    """从 Inoreader 同步的文章，按 Inoreader item ID 去重."""

    __tablename__ = "articles"  # type: ignore[assignment]

    id: str = Field(primary_key=True, description="Inoreader 中的 item ID")
    feed_id: str = Field(foreign_key="feeds.id", index=True, description="关联 Feed")
    title: str = Field(description="标题")
    author: str | None = Field(default=None, description="作者")
    url: str | None = Field(default=None, description="原文链接")
    content: str | None = Field(default=None, description="HTML 内容")
    content_text: str | None = Field(default=None, description="纯文本内容")
    published_at: datetime | None = Field(
        default=None, sa_type=DateTime(timezone=True), description="发布时间"
    )
    is_read: bool = Field(default=False, description="是否已读")
    is_starred: bool = Field(default=False, description="是否收藏")
    ai_summary: str | None = Field(default=None, description="AI 摘要")
    summary_model: str | None = Field(default=None, description="生成摘要的模型")
    synced_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        description="最近同步时间",
    )
