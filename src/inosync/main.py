"""inosync 主应用入口."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from inosync.api import articles, health, settings, sync
from inosync.config import get_settings
from inosync.core.sync import create_orchestrator
from inosync.models.database import async_session_maker, close_db, init_db
from inosync.scheduler import create_scheduler, shutdown_scheduler

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期管理."""
    app_settings = get_settings()

    logger.info("正在初始化数据库...")
    await init_db(app_settings.database_url)

    app.state.orchestrator = create_orchestrator(app_settings, async_session_maker())

    if app_settings.scheduler_enabled:
        logger.info("正在启动定时任务...")
        create_scheduler(app_settings, app.state.orchestrator)

    logger.info("inosync 启动完成！")
    yield

    # 关闭时清理，未完成的同步任务不等待
    logger.info("正在关闭...")
    await shutdown_scheduler()
    await close_db()
    logger.info("inosync 已关闭")


app = FastAPI(
    title="inosync",
    description="个人 RSS 阅读器后端 - Inoreader 同步与 AI 摘要",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(sync.router)
app.include_router(health.router)
app.include_router(settings.router)
app.include_router(articles.router)


@app.exception_handler(StarletteHTTPException)
async def json_not_found_handler(
    request: Request, exc: StarletteHTTPException
) -> Response:
    """404 统一返回 JSON，其余错误沿用默认处理."""
    if exc.status_code != 404:
        return await http_exception_handler(request, exc)

    body = {"error": "Not Found", "status": 404, "path": request.url.path}
    if exc.detail and exc.detail != "Not Found":
        body["message"] = exc.detail
    return JSONResponse(body, status_code=404)


@app.get("/")
async def root() -> dict:
    """根路径."""
    return {
        "name": "inosync",
        "version": "0.1.0",
        "description": "个人 RSS 阅读器后端",
    }


@app.get("/health")
async def liveness() -> dict:
    """存活检查."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inosync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
