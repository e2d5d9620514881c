"""外部数据抓取 - 把 Inoreader 响应转换为本地记录."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel

from inosync.core.errors import ExternalUnavailable
from inosync.core.inoreader import READ_STATE, STARRED_STATE, InoreaderClient
from inosync.models.feed import Feed
from inosync.utils.html_parser import decode_html_entities
from inosync.utils.time import from_epoch_seconds

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExternalItem(BaseModel):
    """Inoreader 中的一篇文章."""

    id: str
    feed_id: str
    title: str
    author: str | None = None
    content: str = ""
    url: str | None = None
    published_at: datetime | None = None
    is_read: bool = False
    is_starred: bool = False


@dataclass
class StreamBatch:
    """一页文章."""

    items: list[ExternalItem]
    page: int
    has_more: bool


@dataclass
class RetryPolicy:
    """单页请求的重试策略，只重试 ExternalUnavailable."""

    max_retries: int = 1
    backoff_seconds: float = 1.0

    async def run(self, call: Callable[[], Awaitable[T]], label: str) -> T:
        attempt = 0
        while True:
            try:
                return await call()
            except ExternalUnavailable as e:
                if attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(f"{label} 失败，第 {attempt} 次重试: {e}")
                if self.backoff_seconds:
                    await asyncio.sleep(self.backoff_seconds)


def parse_subscription(sub: dict[str, Any]) -> Feed:
    """解析订阅源."""
    categories = sub.get("categories", [])
    category = categories[0].get("label") if categories else None

    return Feed(
        id=sub["id"],
        title=decode_html_entities(sub.get("title")) or sub["id"],
        url=sub.get("url", ""),
        site_url=sub.get("htmlUrl"),
        icon_url=sub.get("iconUrl"),
        category=category,
    )


def parse_item(item: dict[str, Any]) -> ExternalItem:
    """解析单篇文章."""
    content_obj = item.get("content") or item.get("summary") or {}

    # 优先 canonical 链接
    links = item.get("canonical") or item.get("alternate") or []
    url = links[0].get("href") if links else None

    origin = item.get("origin") or {}
    categories = item.get("categories") or []

    return ExternalItem(
        id=item["id"],
        feed_id=origin.get("streamId", ""),
        title=decode_html_entities(item.get("title")) or "Untitled",
        author=item.get("author") or None,
        content=decode_html_entities(content_obj.get("content", "")),
        url=url or None,
        published_at=from_epoch_seconds(item.get("published")),
        is_read=READ_STATE in categories,
        is_starred=STARRED_STATE in categories,
    )


class ExternalFetcher:
    """按页拉取 Inoreader 阅读列表."""

    def __init__(
        self,
        client: InoreaderClient,
        page_size: int = 100,
        max_pages: int = 10,
    ) -> None:
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages

    async def fetch_feeds(self, retry_policy: RetryPolicy | None = None) -> list[Feed]:
        """获取订阅源列表."""
        policy = retry_policy or RetryPolicy(max_retries=0)
        subscriptions = await policy.run(self.client.get_subscriptions, "获取订阅列表")
        return [parse_subscription(sub) for sub in subscriptions]

    async def fetch_all(
        self,
        retry_policy: RetryPolicy | None = None,
    ) -> AsyncIterator[StreamBatch]:
        """
        从头遍历阅读列表，逐页产出.

        每次调用都从第一页开始，最多 max_pages 页。
        """
        policy = retry_policy or RetryPolicy(max_retries=0)
        continuation: str | None = None

        for page in range(1, self.max_pages + 1):
            token = continuation
            raw_items, continuation = await policy.run(
                lambda: self.client.get_stream_page(self.page_size, token),
                f"获取第 {page} 页文章",
            )

            items = []
            for raw in raw_items:
                try:
                    items.append(parse_item(raw))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"跳过无法解析的文章: {raw.get('id')} - {e}")

            has_more = continuation is not None and page < self.max_pages
            yield StreamBatch(items=items, page=page, has_more=has_more)

            if not has_more:
                break
