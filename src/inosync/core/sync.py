"""同步服务 - 从 Inoreader 拉取数据并跟踪任务进度."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inosync.config import Settings
from inosync.core.errors import RateLimited, StoreUnavailable, SyncTimeout
from inosync.core.fetcher import ExternalFetcher, ExternalItem, RetryPolicy
from inosync.core.inoreader import InoreaderClient, InoreaderConfig
from inosync.core.store import SyncStatusStore
from inosync.core.usage import ApiUsageTracker
from inosync.models.article import Article
from inosync.models.database import dialect_insert
from inosync.models.feed import Feed
from inosync.models.sync import SyncJobStatus
from inosync.utils.html_parser import html_to_text
from inosync.utils.ids import generate_sync_id
from inosync.utils.time import utcnow

logger = logging.getLogger(__name__)

# 各阶段进度
PROGRESS_STARTED = 10
PROGRESS_FEEDS_DONE = 20
PROGRESS_ARTICLES_START = 30
PROGRESS_ARTICLES_END = 90
PROGRESS_FINALIZING = 95

# 文章入库时更新的列，AI 摘要不被覆盖
_ARTICLE_SYNC_COLUMNS = (
    "feed_id",
    "title",
    "author",
    "url",
    "content",
    "content_text",
    "published_at",
    "is_read",
    "is_starred",
    "synced_at",
)
_FEED_SYNC_COLUMNS = ("title", "url", "site_url", "icon_url", "category", "updated_at")


@dataclass
class SyncOptions:
    """同步任务参数."""

    page_size: int = 100
    max_pages: int = 10
    batch_retries: int = 1
    retry_backoff_seconds: float = 1.0
    timeout_seconds: float = 300.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncOptions":
        return cls(
            page_size=settings.sync_page_size,
            max_pages=settings.sync_max_pages,
            batch_retries=settings.sync_batch_retries,
            timeout_seconds=settings.sync_timeout_seconds,
        )


class ProgressTracker:
    """
    按已处理页数 / 已知总页数计算进度.

    总页数事先未知：只要还有 continuation 就把分母加一，
    分母上调时进度不回退。
    """

    def __init__(self, start: int, end: int, max_pages: int) -> None:
        self.start = start
        self.end = end
        self.max_pages = max(max_pages, 1)
        self.pages_done = 0
        self.pages_known = 1
        self.percentage = start

    def page_done(self, has_more: bool) -> int:
        self.pages_done += 1
        if has_more:
            self.pages_known = min(
                max(self.pages_known, self.pages_done + 1), self.max_pages
            )
        else:
            self.pages_known = self.pages_done

        span = self.end - self.start
        raw = self.start + span * self.pages_done // max(self.pages_known, 1)
        self.percentage = max(self.percentage, min(raw, self.end))
        return self.percentage


async def upsert_feeds(session: AsyncSession, feeds: Iterable[Feed]) -> int:
    """按 feed ID 插入或更新订阅源，返回处理数量."""
    now = utcnow()
    rows = [
        {
            "id": feed.id,
            "title": feed.title,
            "url": feed.url,
            "site_url": feed.site_url,
            "icon_url": feed.icon_url,
            "category": feed.category,
            "created_at": now,
            "updated_at": now,
        }
        for feed in feeds
    ]
    if not rows:
        return 0

    stmt = dialect_insert(session)(Feed).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={col: stmt.excluded[col] for col in _FEED_SYNC_COLUMNS},
    )
    await session.execute(stmt)
    await session.commit()
    return len(rows)


async def upsert_items(
    session: AsyncSession,
    items: Iterable[ExternalItem],
    known_feed_ids: set[str],
) -> int:
    """
    按外部 ID 插入或更新文章，返回写入数量.

    不属于任何已知订阅源的文章会被跳过。
    """
    now = utcnow()
    rows: dict[str, dict[str, Any]] = {}
    for item in items:
        if item.feed_id not in known_feed_ids:
            logger.info(f"跳过未知订阅源的文章: {item.id} ({item.feed_id})")
            continue
        # 同一批次内重复的 ID 以最后一次为准
        rows[item.id] = {
            "id": item.id,
            "feed_id": item.feed_id,
            "title": item.title,
            "author": item.author,
            "url": item.url,
            "content": item.content,
            "content_text": html_to_text(item.content),
            "published_at": item.published_at,
            "is_read": item.is_read,
            "is_starred": item.is_starred,
            "synced_at": now,
        }
    if not rows:
        return 0

    stmt = dialect_insert(session)(Article).values(list(rows.values()))
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={col: stmt.excluded[col] for col in _ARTICLE_SYNC_COLUMNS},
    )
    await session.execute(stmt)
    await session.commit()
    return len(rows)


class SyncOrchestrator:
    """
    同步编排器.

    start_sync() 创建任务记录后立即返回 ID，实际同步在后台 task 中执行，
    每个阶段结束时更新任务进度，最终一定落在 completed 或 failed。
    """

    def __init__(
        self,
        store: SyncStatusStore,
        session_factory: async_sessionmaker[AsyncSession],
        client_factory: Callable[[], InoreaderClient],
        options: SyncOptions | None = None,
    ) -> None:
        self.store = store
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.options = options or SyncOptions()
        self._tasks: set[asyncio.Task[None]] = set()

    async def start_sync(self) -> str:
        """创建 pending 任务并在后台启动，返回任务 ID."""
        job_id = generate_sync_id()
        await self.store.create(job_id)

        task = asyncio.create_task(self.run(job_id), name=f"sync-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(f"同步任务已创建: {job_id}")
        return job_id

    async def join(self) -> None:
        """等待所有后台任务结束."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def run(self, job_id: str) -> None:
        """执行同步直到终态."""
        try:
            async with asyncio.timeout(self.options.timeout_seconds):
                await self._perform(job_id)
        except TimeoutError:
            error = SyncTimeout(self.options.timeout_seconds)
            logger.error(f"[{job_id}] {error}")
            await self._fail(job_id, str(error))
        except RateLimited as e:
            logger.error(f"[{job_id}] Inoreader 速率限制，{e.retry_after} 秒后可重试")
            await self._fail(job_id, str(e), retry_after=e.retry_after)
        except Exception as e:
            logger.exception(f"[{job_id}] 同步失败: {e}")
            await self._fail(job_id, str(e) or e.__class__.__name__)

    async def _perform(self, job_id: str) -> None:
        options = self.options
        policy = RetryPolicy(
            max_retries=options.batch_retries,
            backoff_seconds=options.retry_backoff_seconds,
        )
        client = self.client_factory()
        try:
            fetcher = ExternalFetcher(
                client,
                page_size=options.page_size,
                max_pages=options.max_pages,
            )

            await self._progress(
                job_id,
                status=SyncJobStatus.PROCESSING,
                progress=PROGRESS_STARTED,
                message="正在获取订阅列表...",
            )
            feeds = await fetcher.fetch_feeds(policy)
            async with self.session_factory() as session:
                feeds_count = await upsert_feeds(session, feeds)
            feed_ids = {feed.id for feed in feeds}

            await self._progress(
                job_id,
                progress=PROGRESS_FEEDS_DONE,
                message=f"已同步 {feeds_count} 个订阅源，正在获取文章...",
                feeds_synced=feeds_count,
            )

            tracker = ProgressTracker(
                PROGRESS_ARTICLES_START, PROGRESS_ARTICLES_END, options.max_pages
            )
            articles_count = 0
            async for batch in fetcher.fetch_all(policy):
                async with self.session_factory() as session:
                    articles_count += await upsert_items(session, batch.items, feed_ids)
                await self._progress(
                    job_id,
                    progress=tracker.page_done(batch.has_more),
                    message=f"已处理第 {batch.page} 页，共 {articles_count} 篇文章...",
                    articles_synced=articles_count,
                )

            await self._progress(
                job_id, progress=PROGRESS_FINALIZING, message="正在收尾..."
            )
            await self.store.update(
                job_id,
                status=SyncJobStatus.COMPLETED,
                progress=100,
                message=f"同步完成：{feeds_count} 个订阅源，{articles_count} 篇文章",
                feeds_synced=feeds_count,
                articles_synced=articles_count,
            )
            logger.info(
                f"[{job_id}] 同步完成: feeds={feeds_count}, articles={articles_count}"
            )
        finally:
            await client.close()

    async def _progress(self, job_id: str, **fields: Any) -> None:
        """写入进度；存储不可用时保留上一次状态继续执行."""
        try:
            await self.store.update(job_id, **fields)
        except StoreUnavailable as e:
            logger.warning(f"[{job_id}] 进度写入失败，继续同步: {e}")

    async def _fail(
        self,
        job_id: str,
        error: str,
        retry_after: int | None = None,
    ) -> None:
        try:
            await self.store.update(
                job_id,
                status=SyncJobStatus.FAILED,
                error=error,
                retry_after=retry_after,
                message="同步失败",
            )
        except StoreUnavailable:
            logger.exception(f"[{job_id}] 无法写入失败状态")
        except ValueError as e:
            # 完成状态已提交后才超时，保留 completed
            logger.warning(f"[{job_id}] 忽略失败状态: {e}")


def create_orchestrator(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> SyncOrchestrator:
    """按配置组装同步编排器."""
    usage = ApiUsageTracker(session_factory)
    config = InoreaderConfig(
        base_url=settings.inoreader_base_url,
        access_token=settings.inoreader_access_token,
        timeout=settings.inoreader_timeout_seconds,
        default_retry_after=settings.rate_limit_retry_seconds,
    )

    def client_factory() -> InoreaderClient:
        return InoreaderClient(config, on_rate_limit=usage.record)

    return SyncOrchestrator(
        store=SyncStatusStore(session_factory),
        session_factory=session_factory,
        client_factory=client_factory,
        options=SyncOptions.from_settings(settings),
    )
