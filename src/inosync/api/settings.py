"""设置 API - 摘要服务 API Key 管理."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from inosync.api.deps import DEFAULT_USER_ID
from inosync.config import Settings, get_settings
from inosync.core.crypto import EncryptionKeyError, encrypt_api_key, resolve_api_key
from inosync.models.database import get_session
from inosync.models.user_preferences import UserPreferences
from inosync.utils.time import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


class ApiKeyUpdate(BaseModel):
    """API Key 更新请求."""

    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(alias="apiKey")
    model: str | None = None


@router.get("/api-key")
async def get_api_key_status(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    """查看当前生效的 Key 来源，不返回 Key 本身."""
    prefs = await session.get(UserPreferences, DEFAULT_USER_ID)
    resolved = await resolve_api_key(session, DEFAULT_USER_ID, settings)
    return {
        "hasUserKey": bool(prefs and prefs.encrypted_api_key is not None),
        "keySource": resolved.source.value,
        "fallbackReason": resolved.fallback_reason,
        "model": (prefs.summary_model if prefs else None) or settings.summary_model,
    }


@router.put("/api-key")
async def update_api_key(
    body: ApiKeyUpdate,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    """加密保存用户的 API Key."""
    api_key = body.api_key.strip()
    if not api_key:
        raise HTTPException(status_code=400, detail="API Key 不能为空")

    try:
        secret = encrypt_api_key(api_key, settings.token_encryption_key)
    except EncryptionKeyError as e:
        logger.error(f"加密配置错误: {e}")
        raise HTTPException(status_code=500, detail="服务端加密配置错误") from e

    prefs = await session.get(UserPreferences, DEFAULT_USER_ID)
    if prefs is None:
        prefs = UserPreferences(user_id=DEFAULT_USER_ID)
        session.add(prefs)

    prefs.encrypted_api_key = secret.encrypted
    prefs.api_key_iv = secret.iv
    prefs.api_key_auth_tag = secret.auth_tag
    if body.model:
        prefs.summary_model = body.model
    prefs.updated_at = utcnow()
    await session.commit()

    logger.info("用户 API Key 已更新")
    return {"success": True, "keySource": "user"}


@router.delete("/api-key")
async def delete_api_key(
    session: AsyncSession = Depends(get_session),
) -> dict:
    """删除用户的 API Key."""
    prefs = await session.get(UserPreferences, DEFAULT_USER_ID)
    if prefs is None or prefs.encrypted_api_key is None:
        return {"success": True, "deleted": False}

    prefs.encrypted_api_key = None
    prefs.api_key_iv = None
    prefs.api_key_auth_tag = None
    prefs.updated_at = utcnow()
    await session.commit()
    return {"success": True, "deleted": True}
