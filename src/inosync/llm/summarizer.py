"""文章摘要生成."""

from inosync.llm.base import LLMProvider, Message

SYSTEM_PROMPT = """你是一个专业的文章摘要助手。

## 任务
用 3-5 句话概括用户提供的文章，保留关键事实和结论。

## 注意事项
- 使用文章原语言
- 不要添加文章中没有的信息
- 只返回摘要正文，不要标题或其他说明"""

USER_PROMPT_TEMPLATE = """请为以下文章生成摘要：

**标题**：{title}
**作者**：{author}

**正文**：
{content}"""

MAX_CONTENT_LENGTH = 8000


class ArticleSummarizer:
    """文章摘要器."""

    def __init__(self, provider: LLMProvider) -> None:
        self.provider = provider

    async def summarize(
        self,
        title: str,
        content: str,
        author: str | None = None,
    ) -> str:
        """生成摘要."""
        messages = self._build_messages(title, content, author)
        response = await self.provider.chat(messages)
        return self._clean_response(response)

    def _build_messages(
        self,
        title: str,
        content: str,
        author: str | None,
    ) -> list[Message]:
        """构建对话消息."""
        # 限制内容长度，避免超过 token 限制
        if len(content) > MAX_CONTENT_LENGTH:
            content = content[:MAX_CONTENT_LENGTH] + "\n\n[内容已截断...]"

        user_content = USER_PROMPT_TEMPLATE.format(
            title=title,
            author=author or "未知",
            content=content,
        )

        return [
            Message(role="system", content=SYSTEM_PROMPT),
            Message(role="user", content=user_content),
        ]

    def _clean_response(self, response: str) -> str:
        response = response.strip()

        # 移除可能的 markdown 代码块标记
        if response.startswith("```"):
            response = response.split("\n", 1)[1] if "\n" in response else ""
        if response.endswith("```"):
            response = response[:-3]

        return response.strip()
