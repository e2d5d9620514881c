"""LLM Provider 工厂."""

from inosync.llm.base import LLMConfig, LLMProvider
from inosync.llm.openai import OpenAIProvider


def create_llm_provider(api_key: str, base_url: str, model: str) -> LLMProvider:
    """用解析出的 API Key 创建摘要使用的 Provider."""
    config = LLMConfig(model=model)
    return OpenAIProvider(config=config, api_key=api_key, base_url=base_url)
