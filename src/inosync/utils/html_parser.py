"""HTML 解析工具."""

import html
import re

from bs4 import BeautifulSoup


def decode_html_entities(text: str | None) -> str:
    """
    解码 HTML 实体.

    Inoreader 返回的标题和正文里常带有 &amp; / &#039; 之类的实体，
    入库前统一解码。
    """
    if not text:
        return ""
    return html.unescape(text)


def html_to_text(content: str) -> str:
    """
    将 HTML 转换为纯文本.

    Args:
        content: HTML 内容

    Returns:
        提取的纯文本内容
    """
    if not content:
        return ""

    soup = BeautifulSoup(content, "lxml")

    # 移除 script 和 style 标签
    for element in soup(["script", "style", "nav", "footer", "header"]):
        element.decompose()

    text = soup.get_text(separator="\n")

    # 清理多余空白
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)

    return text.strip()
