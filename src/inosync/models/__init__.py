"""数据模型."""

from inosync.models.api_usage import ApiUsage
from inosync.models.article import Article
from inosync.models.database import get_session, init_db
from inosync.models.feed import Feed
from inosync.models.sync import SyncJob, SyncJobStatus
from inosync.models.user_preferences import UserPreferences

__all__ = [
    "ApiUsage",
    "Article",
    "Feed",
    "SyncJob",
    "SyncJobStatus",
    "UserPreferences",
    "get_session",
    "init_db",
]
