"""UserPreferences 用户偏好模型."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from inosync.utils.time import utcnow


class UserPreferences(SQLModel, table=True):
    """用户偏好（加密保存的摘要 API Key）."""

    __tablename__ = "user_preferences"  # type: ignore[assignment]

    user_id: str = Field(primary_key=True)
    encrypted_api_key: str | None = Field(default=None, description="密文 (hex)")
    api_key_iv: str | None = Field(default=None, description="IV (hex)")
    api_key_auth_tag: str | None = Field(default=None, description="GCM 认证标签 (hex)")
    summary_model: str | None = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
