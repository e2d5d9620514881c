"""健康检查 API."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inosync.api.deps import get_optional_session_factory
from inosync.config import Settings, get_settings
from inosync.core.health import app_health, check_database, database_health

router = APIRouter(prefix="/api/health", tags=["health"])

NO_CACHE = {"Cache-Control": "no-store, max-age=0"}


@router.get("/app")
async def get_app_health(
    settings: Settings = Depends(get_settings),
    session_factory: async_sessionmaker[AsyncSession] | None = Depends(
        get_optional_session_factory
    ),
) -> JSONResponse:
    """应用健康状态，数据库不可用时返回 503."""
    database = await check_database(session_factory, settings)
    return JSONResponse(
        app_health(database, settings),
        status_code=200 if database.healthy else 503,
        headers=NO_CACHE,
    )


@router.get("/db")
async def get_db_health(
    settings: Settings = Depends(get_settings),
    session_factory: async_sessionmaker[AsyncSession] | None = Depends(
        get_optional_session_factory
    ),
) -> JSONResponse:
    """数据库健康状态."""
    database = await check_database(session_factory, settings)
    return JSONResponse(
        database_health(database, settings),
        status_code=200 if database.healthy else 503,
        headers=NO_CACHE,
    )
