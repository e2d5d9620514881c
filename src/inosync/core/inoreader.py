"""Inoreader Reader API 客户端."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from inosync.core.errors import ExternalUnavailable, InoreaderError, RateLimited

logger = logging.getLogger(__name__)

READING_LIST = "user/-/state/com.google/reading-list"
READ_STATE = "user/-/state/com.google/read"
STARRED_STATE = "user/-/state/com.google/starred"


@dataclass
class InoreaderConfig:
    """Inoreader 连接配置."""

    base_url: str
    access_token: str
    timeout: float = 30.0
    default_retry_after: int = 300


@dataclass
class RateLimitInfo:
    """响应头中的配额信息，缺失的字段为 None."""

    zone1_usage: int | None = None
    zone1_limit: int | None = None
    zone2_usage: int | None = None
    zone2_limit: int | None = None
    reset_after: int | None = None

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.zone1_usage,
                self.zone1_limit,
                self.zone2_usage,
                self.zone2_limit,
                self.reset_after,
            )
        )

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> "RateLimitInfo":
        """解析 X-Reader-Zone*-Usage/Limit 与 X-Reader-Limits-Reset-After."""
        return cls(
            zone1_usage=_parse_count(headers.get("X-Reader-Zone1-Usage")),
            zone1_limit=_parse_count(headers.get("X-Reader-Zone1-Limit")),
            zone2_usage=_parse_count(headers.get("X-Reader-Zone2-Usage")),
            zone2_limit=_parse_count(headers.get("X-Reader-Zone2-Limit")),
            reset_after=_parse_seconds(headers.get("X-Reader-Limits-Reset-After")),
        )


def _parse_count(value: str | None) -> int | None:
    """解析 "1,234" 形式的计数."""
    if value is None:
        return None
    try:
        return int(value.replace(",", "").strip())
    except ValueError:
        return None


def _parse_seconds(value: str | None) -> int | None:
    """解析秒数，忽略小数部分."""
    if value is None:
        return None
    try:
        return int(float(value.strip()))
    except ValueError:
        return None


RateLimitCallback = Callable[[RateLimitInfo], Awaitable[None]]


class InoreaderClient:
    """Inoreader Reader API 客户端."""

    def __init__(
        self,
        config: InoreaderConfig,
        on_rate_limit: RateLimitCallback | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.on_rate_limit = on_rate_limit
        self.last_rate_limit: RateLimitInfo | None = None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout)

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    def _get_headers(self) -> dict[str, str]:
        """获取带认证的请求头."""
        if not self.config.access_token:
            msg = "Inoreader 未配置 access token"
            raise InoreaderError(msg)
        return {"Authorization": f"Bearer {self.config.access_token}"}

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """发送 GET 请求并统一处理配额头与错误."""
        url = f"{self.config.base_url.rstrip('/')}{path}"

        try:
            response = await self._client.get(
                url,
                params=params,
                headers=self._get_headers(),
            )
        except httpx.TransportError as e:
            msg = f"无法连接 Inoreader: {e}"
            raise ExternalUnavailable(msg) from e

        # 失败响应同样带配额头
        await self._capture_rate_limit(response)

        if response.status_code == 429:
            raise RateLimited(self._retry_after(response))
        if response.status_code >= 500:
            msg = f"Inoreader 服务异常: HTTP {response.status_code}"
            raise ExternalUnavailable(msg)
        if response.status_code >= 400:
            msg = f"Inoreader 请求失败: HTTP {response.status_code} {response.reason_phrase}"
            raise InoreaderError(msg)

        return response.json()

    async def _capture_rate_limit(self, response: httpx.Response) -> None:
        info = RateLimitInfo.from_headers(response.headers)
        if info.is_empty:
            return
        self.last_rate_limit = info
        if self.on_rate_limit is not None:
            await self.on_rate_limit(info)

    def _retry_after(self, response: httpx.Response) -> int:
        """优先 Retry-After，其次配额重置时间，最后使用默认值."""
        for header in ("Retry-After", "X-Reader-Limits-Reset-After"):
            seconds = _parse_seconds(response.headers.get(header))
            if seconds is not None:
                return seconds
        return self.config.default_retry_after

    async def get_subscriptions(self) -> list[dict[str, Any]]:
        """获取订阅列表（原始 JSON）."""
        data = await self._get(
            "/reader/api/0/subscription/list",
            {"output": "json"},
        )
        return data.get("subscriptions", [])

    async def get_stream_page(
        self,
        count: int = 100,
        continuation: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        """
        获取一页未读文章.

        Returns:
            (items, continuation)，continuation 为 None 表示没有下一页
        """
        params: dict[str, Any] = {
            "output": "json",
            "n": count,
            "xt": READ_STATE,  # 排除已读
        }
        if continuation:
            params["c"] = continuation

        data = await self._get(f"/reader/api/0/stream/contents/{READING_LIST}", params)
        return data.get("items", []), data.get("continuation") or None
