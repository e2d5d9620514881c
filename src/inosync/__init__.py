"""inosync - Inoreader 同步与 AI 摘要的个人 RSS 阅读器后端."""

__version__ = "0.1.0"
