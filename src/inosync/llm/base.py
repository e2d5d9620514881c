"""摘要 LLM 抽象."""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class Message(BaseModel):
    """对话消息."""

    role: str  # "system" | "user" | "assistant"
    content: str


class LLMConfig(BaseModel):
    """单次摘要调用的参数."""

    model: str
    temperature: float = 0.3
    max_tokens: int = 800
    timeout: float = 60.0


class LLMProvider(ABC):
    """摘要服务提供者."""

    name: str = "base"

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    @abstractmethod
    async def chat(self, messages: list[Message]) -> str:
        """发送对话，返回模型的完整回复."""
