"""文章 API."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from openai import OpenAIError
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from inosync.api.deps import DEFAULT_USER_ID
from inosync.config import Settings, get_settings
from inosync.core.crypto import KeySource, resolve_api_key
from inosync.llm import ArticleSummarizer, create_llm_provider
from inosync.models.article import Article
from inosync.models.database import get_session
from inosync.models.user_preferences import UserPreferences
from inosync.utils.html_parser import html_to_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/articles", tags=["articles"])


class SummarizeRequest(BaseModel):
    """摘要请求."""

    regenerate: bool = False


@router.get("/{article_id}")
async def get_article(
    article_id: str,
    session: AsyncSession = Depends(get_session),
) -> Article:
    """获取文章详情."""
    article = await session.get(Article, article_id)
    if not article:
        raise HTTPException(status_code=404, detail="文章不存在")
    return article


@router.post("/{article_id}/summarize")
async def summarize_article(
    article_id: str,
    body: SummarizeRequest | None = None,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    """生成（或返回已缓存的）文章摘要."""
    regenerate = body.regenerate if body else False

    article = await session.get(Article, article_id)
    if not article:
        raise HTTPException(status_code=404, detail="文章不存在")

    if article.ai_summary and not regenerate:
        return {
            "summary": article.ai_summary,
            "model": article.summary_model,
            "keySource": None,
            "cached": True,
        }

    resolved = await resolve_api_key(session, DEFAULT_USER_ID, settings)
    if resolved.source is KeySource.NONE or not resolved.key:
        raise HTTPException(status_code=403, detail="未配置摘要服务 API Key")

    prefs = await session.get(UserPreferences, DEFAULT_USER_ID)
    model = (prefs.summary_model if prefs else None) or settings.summary_model

    provider = create_llm_provider(
        api_key=resolved.key,
        base_url=settings.summary_base_url,
        model=model,
    )
    summarizer = ArticleSummarizer(provider)
    content = article.content_text or html_to_text(article.content or "")

    try:
        summary = await summarizer.summarize(
            title=article.title,
            content=content,
            author=article.author,
        )
    except OpenAIError as e:
        logger.exception(f"摘要生成失败: {article.title}")
        raise HTTPException(status_code=502, detail="摘要服务调用失败") from e

    article.ai_summary = summary
    article.summary_model = model
    await session.commit()

    logger.info(f"摘要已生成: {article.title} (key={resolved.source.value})")
    return {
        "summary": summary,
        "model": model,
        "keySource": resolved.source.value,
        "cached": False,
    }
