"""测试同步编排器端到端流程."""

import asyncio
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import func, select

from inosync.core.errors import StoreUnavailable
from inosync.core.inoreader import InoreaderClient, InoreaderConfig
from inosync.core.reporter import StatusReporter
from inosync.core.store import SyncStatusStore
from inosync.core.sync import SyncOptions, SyncOrchestrator
from inosync.core.usage import ApiUsageTracker
from inosync.models.article import Article
from inosync.models.sync import SyncJob, SyncJobStatus

from .conftest import BASE_URL, FakeInoreader, make_item, make_subscription


class RecordingStore(SyncStatusStore):
    """记录每次写入后的状态."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(session_factory)
        self.history: list[tuple[str, int]] = []

    async def update(self, job_id: str, **fields: Any) -> SyncJob:
        job = await super().update(job_id, **fields)
        self.history.append((job.status, job.progress))
        return job


class FlakyStore(SyncStatusStore):
    """第 fail_on 次 update 时模拟存储不可用."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], fail_on: int
    ) -> None:
        super().__init__(session_factory)
        self.fail_on = fail_on
        self.calls = 0

    async def update(self, job_id: str, **fields: Any) -> SyncJob:
        self.calls += 1
        if self.calls == self.fail_on:
            raise StoreUnavailable("database is locked")
        return await super().update(job_id, **fields)


class SlowCloseClient(InoreaderClient):
    """关闭连接耗时超过同步超时."""

    async def close(self) -> None:
        await asyncio.sleep(10)
        await super().close()


async def _run(orchestrator) -> str:
    job_id = await orchestrator.start_sync()
    await orchestrator.join()
    return job_id


async def _articles(session_factory) -> list[Article]:
    async with session_factory() as session:
        result = await session.execute(select(Article).order_by(Article.id))
        return list(result.scalars().all())


class TestSuccessfulSync:
    """测试正常同步."""

    async def test_two_items_with_and_without_author(
        self, make_orchestrator, session_factory, store
    ) -> None:
        """两篇文章，一篇有作者一篇没有."""
        fake = FakeInoreader(
            pages=[
                [
                    make_item("tag:a", title="With author", author="Jane Doe"),
                    make_item("tag:b", title="Without author"),
                ]
            ]
        )
        orchestrator = make_orchestrator(fake, store=store)

        job_id = await _run(orchestrator)

        job = await store.get(job_id)
        assert job.status == SyncJobStatus.COMPLETED
        assert job.progress == 100
        assert job.error is None
        assert job.feeds_synced == 1
        assert job.articles_synced == 2

        articles = await _articles(session_factory)
        assert [a.author for a in articles] == ["Jane Doe", None]
        assert articles[0].content_text == "With author body"

        snapshot = await StatusReporter(store).get_status(job_id)
        assert snapshot["metrics"] == {"feeds": 1, "articles": 2}

    async def test_resync_updates_instead_of_duplicating(
        self, make_orchestrator, session_factory
    ) -> None:
        fake = FakeInoreader(pages=[[make_item("tag:a", title="Old title")]])
        orchestrator = make_orchestrator(fake)
        await _run(orchestrator)

        async with session_factory() as session:
            article = await session.get(Article, "tag:a")
            article.ai_summary = "已有摘要"
            await session.commit()

        fake.pages = [[make_item("tag:a", title="New title")]]
        await _run(orchestrator)

        articles = await _articles(session_factory)
        assert len(articles) == 1
        assert articles[0].title == "New title"
        assert articles[0].ai_summary == "已有摘要"

    async def test_items_from_unknown_feeds_are_skipped(
        self, make_orchestrator, session_factory, store
    ) -> None:
        fake = FakeInoreader(
            pages=[[make_item("tag:a"), make_item("tag:x", feed_id="feed/unknown")]]
        )
        job_id = await _run(make_orchestrator(fake, store=store))

        job = await store.get(job_id)
        assert job.status == SyncJobStatus.COMPLETED
        assert job.articles_synced == 1
        assert [a.id for a in await _articles(session_factory)] == ["tag:a"]

    async def test_progress_is_monotonic_and_ends_at_100(
        self, make_orchestrator, session_factory
    ) -> None:
        recording = RecordingStore(session_factory)
        fake = FakeInoreader(
            pages=[[make_item("1")], [make_item("2")], [make_item("3")]]
        )

        await _run(make_orchestrator(fake, store=recording))

        progress = [p for _, p in recording.history]
        assert progress == sorted(progress)
        assert progress[-1] == 100
        assert recording.history[-1][0] == SyncJobStatus.COMPLETED
        assert all(p < 100 for s, p in recording.history if s != SyncJobStatus.COMPLETED)

    async def test_multiple_pages_are_all_stored(
        self, make_orchestrator, session_factory
    ) -> None:
        fake = FakeInoreader(
            subscriptions=[make_subscription()],
            pages=[[make_item(str(i)) for i in range(3)], [make_item("3")]],
        )
        await _run(make_orchestrator(fake))

        async with session_factory() as session:
            result = await session.execute(select(func.count()).select_from(Article))
            assert result.scalar_one() == 4


class TestFailures:
    """测试失败场景."""

    async def test_rate_limited_fails_with_retry_hint(
        self, make_orchestrator, store
    ) -> None:
        """429 立即失败，retryAfter 取自 Limits-Reset-After."""
        fake = FakeInoreader(pages=[[make_item("1")]])
        fake.fail("stream", 429, headers={"X-Reader-Limits-Reset-After": "3600"})

        job_id = await _run(make_orchestrator(fake, store=store))

        snapshot = await StatusReporter(store).get_status(job_id)
        assert snapshot["status"] == SyncJobStatus.FAILED
        assert "rate limit" in snapshot["error"].lower()
        assert snapshot["retryAfter"] == 3600
        assert snapshot["progress"] < 100
        assert "metrics" not in snapshot

    async def test_transient_error_is_retried(self, make_orchestrator, store) -> None:
        fake = FakeInoreader(pages=[[make_item("1")]])
        fake.fail("stream", 503)

        job_id = await _run(make_orchestrator(fake, store=store))

        job = await store.get(job_id)
        assert job.status == SyncJobStatus.COMPLETED
        assert job.articles_synced == 1

    async def test_repeated_error_fails_job(self, make_orchestrator, store) -> None:
        fake = FakeInoreader(pages=[[make_item("1")]])
        fake.fail("subscriptions", 503, 503)

        job_id = await _run(make_orchestrator(fake, store=store))

        job = await store.get(job_id)
        assert job.status == SyncJobStatus.FAILED
        assert job.error
        assert job.retry_after is None

    async def test_timeout_fails_job(self, make_orchestrator, store) -> None:
        fake = FakeInoreader(pages=[[make_item("1")]])
        fake.delay = 1.0
        options = SyncOptions(retry_backoff_seconds=0, timeout_seconds=0.1)

        job_id = await _run(make_orchestrator(fake, options=options, store=store))

        job = await store.get(job_id)
        assert job.status == SyncJobStatus.FAILED
        assert "timeout" in job.error.lower()

    async def test_timeout_after_completion_keeps_completed(
        self, session_factory, store
    ) -> None:
        """完成状态已写入后关闭客户端超时，任务仍为 completed."""
        fake = FakeInoreader(pages=[[make_item("1")]])
        config = InoreaderConfig(base_url=BASE_URL, access_token="test-token")
        orchestrator = SyncOrchestrator(
            store=store,
            session_factory=session_factory,
            client_factory=lambda: SlowCloseClient(
                config,
                http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake.handler)),
            ),
            options=SyncOptions(retry_backoff_seconds=0, timeout_seconds=1.0),
        )

        job_id = await _run(orchestrator)

        job = await store.get(job_id)
        assert job.status == SyncJobStatus.COMPLETED
        assert job.progress == 100
        assert job.error is None

    async def test_progress_write_failure_does_not_abort(
        self, make_orchestrator, session_factory
    ) -> None:
        """中途进度写入失败，任务仍然完成."""
        flaky = FlakyStore(session_factory, fail_on=2)
        fake = FakeInoreader(pages=[[make_item("1")]])

        job_id = await _run(make_orchestrator(fake, store=flaky))

        job = await flaky.get(job_id)
        assert job.status == SyncJobStatus.COMPLETED
        assert job.progress == 100


class TestConcurrency:
    """测试并发任务."""

    async def test_concurrent_jobs_are_independent(
        self, make_orchestrator, store
    ) -> None:
        fake = FakeInoreader(pages=[[make_item("1")], [make_item("2")]])
        orchestrator = make_orchestrator(fake, store=store)

        job_ids = await asyncio.gather(*(orchestrator.start_sync() for _ in range(3)))
        await orchestrator.join()

        assert len(set(job_ids)) == 3
        for job_id in job_ids:
            job = await store.get(job_id)
            assert job.status == SyncJobStatus.COMPLETED
            assert job.progress == 100
            assert job.articles_synced == 2


class TestApiUsage:
    """测试配额记录."""

    async def test_usage_headers_are_recorded(
        self, make_orchestrator, session_factory
    ) -> None:
        fake = FakeInoreader(
            pages=[[make_item("1")]],
            headers={
                "X-Reader-Zone1-Usage": "120",
                "X-Reader-Zone1-Limit": "1,000",
                "X-Reader-Limits-Reset-After": "3600",
            },
        )
        await _run(make_orchestrator(fake))

        usage = await ApiUsageTracker(session_factory).current()
        assert usage["zone1"] == {"used": 120, "limit": 1000, "percentage": 12.0}
        assert usage["zone2"]["limit"] == 2000
        assert usage["resetAfterSeconds"] == 3600
        assert usage["lastUpdated"] is not None
