"""LLM 抽象层."""

from inosync.llm.base import LLMConfig, LLMProvider, Message
from inosync.llm.factory import create_llm_provider
from inosync.llm.openai import OpenAIProvider
from inosync.llm.summarizer import ArticleSummarizer

__all__ = [
    "ArticleSummarizer",
    "LLMConfig",
    "LLMProvider",
    "Message",
    "OpenAIProvider",
    "create_llm_provider",
]
