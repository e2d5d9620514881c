"""OpenAI 兼容接口的摘要 Provider."""

import logging

from openai import AsyncOpenAI

from inosync.llm.base import LLMConfig, LLMProvider, Message

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    OpenAI 兼容接口.

    Key 按请求解析（用户 Key 或环境变量），所以每次摘要都新建一个实例，
    不在进程内复用客户端。
    """

    name = "openai"

    def __init__(
        self,
        config: LLMConfig,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
    ) -> None:
        super().__init__(config)
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=config.timeout,
            max_retries=1,
        )

    async def chat(self, messages: list[Message]) -> str:
        response = await self.client.chat.completions.create(
            model=self.config.model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

        if response.usage is not None:
            logger.info(
                f"摘要调用完成: model={self.config.model}, "
                f"tokens={response.usage.total_tokens}"
            )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
