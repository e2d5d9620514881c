"""同步相关异常."""


class SyncError(Exception):
    """同步任务错误基类."""


class InoreaderError(SyncError):
    """Inoreader API 错误（不可重试的 4xx 等）."""


class ExternalUnavailable(InoreaderError):
    """Inoreader 暂时不可用（网络错误或 5xx），可重试."""


class RateLimited(InoreaderError):
    """Inoreader 返回 429，需要等待 retry_after 秒后再试."""

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(
            message
            or f"Inoreader API 触发速率限制 (rate limit exceeded)，请在 {retry_after} 秒后重试"
        )


class StoreUnavailable(SyncError):
    """状态存储读写失败."""


class SyncTimeout(SyncError):
    """同步任务超出时间预算."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"同步超时 (timeout)：超过 {timeout_seconds:g} 秒仍未完成")
