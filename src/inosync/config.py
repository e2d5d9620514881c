"""应用配置管理."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置（环境变量）."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Inoreader 配置
    inoreader_base_url: str = "https://www.inoreader.com"
    inoreader_access_token: str = ""
    inoreader_timeout_seconds: float = 30.0

    # 同步配置
    sync_page_size: int = 100
    sync_max_pages: int = 10
    sync_batch_retries: int = 1
    sync_timeout_seconds: float = 300.0
    sync_interval_minutes: int = 30
    sync_retention_hours: int = 24
    rate_limit_retry_seconds: int = 300

    # 摘要 LLM 配置（OpenAI 兼容接口）
    token_encryption_key: str = ""
    summary_api_key: str = ""
    summary_base_url: str = "https://api.openai.com/v1"
    summary_model: str = "gpt-4o-mini"

    # 应用配置
    database_url: str = "sqlite+aiosqlite:///./inosync.db"
    environment: Literal["development", "test", "production"] = "development"
    app_version: str = "0.1.0"
    db_slow_threshold_ms: int = 1000
    scheduler_enabled: bool = True

    @property
    def inoreader_configured(self) -> bool:
        """Inoreader 是否已配置."""
        return bool(self.inoreader_base_url and self.inoreader_access_token)


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()
