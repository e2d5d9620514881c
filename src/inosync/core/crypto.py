"""摘要服务 API Key 的加密存储与解析."""

import logging
import os
import re
from dataclasses import dataclass
from enum import Enum

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from sqlalchemy.ext.asyncio import AsyncSession

from inosync.config import Settings
from inosync.models.user_preferences import UserPreferences

logger = logging.getLogger(__name__)

IV_BYTES = 16
TAG_BYTES = 16
_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


class EncryptionKeyError(ValueError):
    """TOKEN_ENCRYPTION_KEY 缺失或格式错误."""


class DecryptionError(ValueError):
    """密文被篡改或密钥不匹配."""


@dataclass
class EncryptedSecret:
    """AES-256-GCM 密文，三段均为 hex."""

    encrypted: str
    iv: str
    auth_tag: str


class KeySource(str, Enum):
    """API Key 来源."""

    ENVIRONMENT = "environment"
    USER = "user"
    NONE = "none"


@dataclass
class ResolvedApiKey:
    """API Key 解析结果."""

    key: str | None
    source: KeySource
    fallback_reason: str | None = None


def validate_encryption_key(hex_key: str) -> bytes:
    """校验并转换 64 位 hex 密钥为 32 字节."""
    if not hex_key or not _HEX_KEY.match(hex_key):
        msg = "TOKEN_ENCRYPTION_KEY 必须是 64 位十六进制字符串 (32 字节)"
        raise EncryptionKeyError(msg)
    return bytes.fromhex(hex_key)


def encrypt_api_key(plaintext: str, hex_key: str) -> EncryptedSecret:
    """加密 API Key，每次使用随机 IV."""
    key = validate_encryption_key(hex_key)
    iv = os.urandom(IV_BYTES)
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    return EncryptedSecret(
        encrypted=sealed[:-TAG_BYTES].hex(),
        iv=iv.hex(),
        auth_tag=sealed[-TAG_BYTES:].hex(),
    )


def decrypt_api_key(secret: EncryptedSecret, hex_key: str) -> str:
    """解密 API Key. 错误信息里不包含任何密钥内容."""
    key = validate_encryption_key(hex_key)
    try:
        sealed = bytes.fromhex(secret.encrypted) + bytes.fromhex(secret.auth_tag)
        iv = bytes.fromhex(secret.iv)
        return AESGCM(key).decrypt(iv, sealed, None).decode("utf-8")
    except (InvalidTag, ValueError) as e:
        msg = "API Key 解密失败（密文已损坏或密钥不匹配）"
        raise DecryptionError(msg) from e


def secret_from_preferences(prefs: UserPreferences) -> EncryptedSecret | None:
    if not (prefs.encrypted_api_key is not None and prefs.api_key_iv and prefs.api_key_auth_tag):
        return None
    return EncryptedSecret(
        encrypted=prefs.encrypted_api_key,
        iv=prefs.api_key_iv,
        auth_tag=prefs.api_key_auth_tag,
    )


async def resolve_api_key(
    session: AsyncSession,
    user_id: str,
    settings: Settings,
) -> ResolvedApiKey:
    """
    解析摘要服务使用的 API Key.

    用户 Key 可解密时优先使用；否则回退到环境变量，并在
    fallback_reason 中写明回退原因；两者都没有时 source 为 none。
    """
    fallback_reason: str | None = None

    prefs = await session.get(UserPreferences, user_id)
    secret = secret_from_preferences(prefs) if prefs else None
    if secret is not None:
        try:
            key = decrypt_api_key(secret, settings.token_encryption_key)
            return ResolvedApiKey(key=key, source=KeySource.USER)
        except (EncryptionKeyError, DecryptionError) as e:
            fallback_reason = str(e)
            logger.warning(f"用户 {user_id} 的 API Key 无法使用，回退到环境配置: {e}")

    if settings.summary_api_key:
        return ResolvedApiKey(
            key=settings.summary_api_key,
            source=KeySource.ENVIRONMENT,
            fallback_reason=fallback_reason,
        )

    return ResolvedApiKey(key=None, source=KeySource.NONE, fallback_reason=fallback_reason)
