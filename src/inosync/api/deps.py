"""接口共享依赖."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inosync.config import Settings, get_settings
from inosync.core.reporter import StatusReporter
from inosync.core.store import SyncStatusStore
from inosync.core.sync import SyncOrchestrator, create_orchestrator
from inosync.core.usage import ApiUsageTracker
from inosync.models.database import async_session_maker

# 单用户应用，摘要 Key 归属固定用户
DEFAULT_USER_ID = "default"


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """会话工厂（未初始化时抛出 RuntimeError）."""
    return async_session_maker()


def get_optional_session_factory() -> async_sessionmaker[AsyncSession] | None:
    """会话工厂，未初始化时返回 None（健康检查用）."""
    try:
        return async_session_maker()
    except RuntimeError:
        return None


def get_orchestrator(
    request: Request,
    settings: Settings = Depends(get_settings),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SyncOrchestrator:
    """应用级同步编排器，首次使用时创建并挂到 app.state."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = create_orchestrator(settings, session_factory)
        request.app.state.orchestrator = orchestrator
    return orchestrator


def get_reporter(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> StatusReporter:
    return StatusReporter(SyncStatusStore(session_factory))


def get_usage_tracker(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ApiUsageTracker:
    return ApiUsageTracker(session_factory)
