"""HTML 解析工具."""

import re

from bs4 import BeautifulSoup

# 正文容器的基础样式，保证在阅读器中的排版接近原文
CONTENT_STYLE = (
    "<style> .rich_media_content {overflow: hidden;color: #222;font-size: 18px;"
    "word-wrap: break-word;hyphens: auto;text-align: justify;position: relative;"
    "z-index: 0;}</style>"
)


def clean_article_html(html: str) -> str:
    """
    提取公众号文章正文并修正懒加载图片.

    Args:
        html: 文章页面 HTML

    Returns:
        带基础样式的正文 HTML，找不到正文时只返回样式
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "lxml")
    content = soup.select_one(".rich_media_content")
    if content is None:
        return CONTENT_STYLE

    # 懒加载图片的真实地址在 data-src 中
    for img in content.find_all("img"):
        data_src = img.get("data-src")
        if data_src:
            img["src"] = data_src
            del img["data-src"]

    body = str(content)
    # 移除隐藏正文的内联样式
    body = re.sub(r"opacity: 0( !important)?;", "", body)
    body = body.replace("visibility: hidden;", "")

    return CONTENT_STYLE + body


def html_to_text(html: str) -> str:
    """
    将 HTML 转换为纯文本.

    Args:
        html: HTML 内容

    Returns:
        提取的纯文本内容
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "lxml")

    for element in soup(["script", "style"]):
        element.decompose()

    lines = []
    for line in soup.get_text(separator="\n").split("\n"):
        line = line.strip()
        if line:
            lines.append(line)

    return "\n".join(lines)
