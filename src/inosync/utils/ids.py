"""ID 生成工具."""

import uuid


def generate_sync_id() -> str:
    """生成同步任务 ID."""
    return uuid.uuid4().hex
