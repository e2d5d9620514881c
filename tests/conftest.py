"""测试配置和 fixtures."""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from inosync.api.deps import (
    get_optional_session_factory,
    get_orchestrator,
    get_session_factory,
)
from inosync.config import Settings, get_settings
from inosync.core.inoreader import InoreaderClient, InoreaderConfig
from inosync.core.store import SyncStatusStore
from inosync.core.sync import SyncOptions, SyncOrchestrator
from inosync.core.usage import ApiUsageTracker
from inosync.main import app
from inosync.models.database import create_session_factory, get_session

BASE_URL = "https://inoreader.test"
VALID_HEX_KEY = "367649d22465a95203ddcffee4882e37718bef016c98f18227efe011035e3498"
FEED_ID = "feed/https://example.com/rss"


def make_subscription(feed_id: str = FEED_ID, title: str = "Example Feed") -> dict:
    return {
        "id": feed_id,
        "title": title,
        "url": "https://example.com/rss",
        "htmlUrl": "https://example.com",
        "categories": [{"id": "user/-/label/Tech", "label": "Tech"}],
    }


def make_item(
    item_id: str,
    title: str = "Article",
    author: str | None = None,
    feed_id: str = FEED_ID,
) -> dict:
    item: dict[str, Any] = {
        "id": item_id,
        "title": title,
        "published": 1_700_000_000,
        "canonical": [{"href": f"https://example.com/{item_id}"}],
        "summary": {"content": f"<p>{title} body</p>"},
        "origin": {"streamId": feed_id},
        "categories": [],
    }
    if author is not None:
        item["author"] = author
    return item


class FakeInoreader:
    """基于 httpx.MockTransport 的 Inoreader 假服务."""

    def __init__(
        self,
        subscriptions: list[dict] | None = None,
        pages: list[list[dict]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.subscriptions = subscriptions if subscriptions is not None else [make_subscription()]
        self.pages = pages if pages is not None else [[]]
        self.headers = headers or {}
        self.failures: dict[str, list[tuple[int, dict[str, str]]]] = {}
        self.delay = 0.0
        self.requests: list[httpx.Request] = []

    def fail(self, kind: str, *statuses: int, headers: dict[str, str] | None = None) -> None:
        """让接下来的 kind 请求（subscriptions | stream）依次返回给定状态码."""
        queue = self.failures.setdefault(kind, [])
        queue.extend((status, headers or {}) for status in statuses)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        kind = "subscriptions" if "subscription/list" in request.url.path else "stream"
        queue = self.failures.get(kind)
        if queue:
            status, headers = queue.pop(0)
            return httpx.Response(status, headers=headers, json={"error": "fail"})

        if kind == "subscriptions":
            return httpx.Response(
                200, json={"subscriptions": self.subscriptions}, headers=self.headers
            )

        continuation = request.url.params.get("c")
        index = int(continuation) if continuation else 0
        body: dict[str, Any] = {"items": self.pages[index]}
        if index + 1 < len(self.pages):
            body["continuation"] = str(index + 1)
        return httpx.Response(200, json=body, headers=self.headers)

    def client(self, on_rate_limit: Any = None) -> InoreaderClient:
        config = InoreaderConfig(base_url=BASE_URL, access_token="test-token")
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return InoreaderClient(config, on_rate_limit=on_rate_limit, http_client=http_client)


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """文件型 SQLite，允许多个并发任务各自开连接."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield create_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        inoreader_base_url=BASE_URL,
        inoreader_access_token="test-token",
        token_encryption_key=VALID_HEX_KEY,
        summary_api_key="",
        environment="test",
        scheduler_enabled=False,
    )


@pytest.fixture
def fake_inoreader() -> FakeInoreader:
    return FakeInoreader()


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> SyncStatusStore:
    return SyncStatusStore(session_factory)


@pytest.fixture
def make_orchestrator(session_factory: async_sessionmaker[AsyncSession]):
    """按假服务组装编排器."""

    def factory(
        fake: FakeInoreader,
        options: SyncOptions | None = None,
        store: SyncStatusStore | None = None,
    ) -> SyncOrchestrator:
        usage = ApiUsageTracker(session_factory)
        return SyncOrchestrator(
            store=store or SyncStatusStore(session_factory),
            session_factory=session_factory,
            client_factory=lambda: fake.client(on_rate_limit=usage.record),
            options=options or SyncOptions(retry_backoff_seconds=0),
        )

    return factory


@pytest_asyncio.fixture
async def orchestrator(make_orchestrator, fake_inoreader: FakeInoreader) -> SyncOrchestrator:
    return make_orchestrator(fake_inoreader)


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    test_settings: Settings,
    orchestrator: SyncOrchestrator,
) -> AsyncGenerator[AsyncClient, None]:
    """创建测试客户端."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_optional_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await orchestrator.join()
    app.dependency_overrides.clear()
