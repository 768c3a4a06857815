"""订阅源输出 - 将文章渲染为 RSS / Atom / JSON Feed."""

import json
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

import httpx
from feedgen.feed import FeedGenerator

from mpfeed.config import Settings
from mpfeed.core.errors import FeedNotFoundError
from mpfeed.core.store import Store
from mpfeed.models.article import Article
from mpfeed.models.feed import Feed, FeedStatus
from mpfeed.utils.html_parser import clean_article_html, html_to_text
from mpfeed.utils.time import now_ts, ts_to_datetime

logger = logging.getLogger(__name__)

FEED_TYPES = ("rss", "atom", "json")
FEED_MIME_TYPES = {
    "rss": "application/rss+xml; charset=utf-8",
    "atom": "application/atom+xml; charset=utf-8",
    "json": "application/feed+json; charset=utf-8",
}
ALL_FEED_ID = "all"
GENERATOR = "MPFeed"
ARTICLE_URL = "https://mp.weixin.qq.com/s/{id}"
FULLTEXT_FAILED = "获取全文失败，请重试~"

DEFAULT_HEADERS = {
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "accept-language": "zh-CN,zh;q=0.9,en;q=0.8",
    "user-agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
}


@dataclass
class FeedDocument:
    """渲染后的订阅源文档."""

    content: str
    mime_type: str


class ContentCache:
    """文章全文的 LRU 缓存."""

    def __init__(self, max_size: int = 5000) -> None:
        self.max_size = max_size
        self._items: OrderedDict[str, str] = OrderedDict()

    def get(self, key: str) -> str | None:
        value = self._items.get(key)
        if value is not None:
            self._items.move_to_end(key)
        return value

    def set(self, key: str, value: str) -> None:
        self._items[key] = value
        self._items.move_to_end(key)
        while len(self._items) > self.max_size:
            self._items.popitem(last=False)

    def __len__(self) -> int:
        return len(self._items)


def filter_by_title(
    articles: list[Article],
    title_include: str | None = None,
    title_exclude: str | None = None,
) -> list[Article]:
    """按标题关键词过滤文章，多个关键词用 | 分隔."""
    if title_include:
        includes = [k for k in title_include.split("|") if k]
        articles = [a for a in articles if any(k in a.title for k in includes)]
    if title_exclude:
        excludes = [k for k in title_exclude.split("|") if k]
        articles = [a for a in articles if not any(k in a.title for k in excludes)]
    return articles


class FeedRenderer:
    """订阅源渲染器."""

    def __init__(
        self,
        store: Store,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.cache = ContentCache()
        self._client = httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            timeout=settings.request_timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    def _all_feed_info(self) -> Feed:
        origin = self.settings.server_origin_url
        return Feed(
            id=ALL_FEED_ID,
            mp_name="MPFeed All",
            mp_intro="MPFeed 全部文章",
            mp_cover=f"{origin}/favicon.ico" if origin else "",
            status=FeedStatus.ENABLE,
            sync_time=0,
            update_time=now_ts(),
            has_history=-1,
        )

    async def generate(
        self,
        *,
        mp_id: str | None = None,
        feed_type: str = "atom",
        limit: int = 10,
        page: int = 1,
        mode: str | None = None,
        title_include: str | None = None,
        title_exclude: str | None = None,
    ) -> FeedDocument:
        """生成订阅源文档，mp_id 为空时输出全部文章.

        Raises:
            FeedNotFoundError: 订阅源不存在
        """
        if feed_type not in FEED_TYPES:
            feed_type = "atom"

        offset = (max(page, 1) - 1) * limit
        if mp_id:
            feed_info = await self.store.get_feed(mp_id)
            if feed_info is None:
                raise FeedNotFoundError(mp_id)
            articles = await self.store.list_articles(mp_id, limit=limit, offset=offset)
        else:
            feed_info = self._all_feed_info()
            articles = await self.store.list_articles(limit=limit, offset=offset)

        articles = filter_by_title(articles, title_include, title_exclude)

        fulltext = (mode if mode is not None else self.settings.feed_mode) == "fulltext"
        contents: dict[str, str] = {}
        if fulltext:
            for article in articles:
                contents[article.id] = await self.get_content(article.id)

        # 聚合源需要展示每篇文章的公众号名称
        names: dict[str, str] = {}
        if feed_info.id == ALL_FEED_ID:
            names = {feed.id: feed.mp_name for feed in await self.store.list_feeds()}

        if feed_type == "json":
            content = self._render_json(feed_info, articles, contents, names)
        else:
            content = self._render_xml(feed_type, feed_info, articles, contents, names)
        return FeedDocument(content=content, mime_type=FEED_MIME_TYPES[feed_type])

    async def get_content(self, article_id: str) -> str:
        """获取文章全文（带缓存），失败时返回提示文字."""
        cached = self.cache.get(article_id)
        if cached is not None:
            return cached

        try:
            response = await self._client.get(ARTICLE_URL.format(id=article_id))
            response.raise_for_status()
            html = response.text
            if self.settings.enable_clean_html:
                html = clean_article_html(html)
        except httpx.HTTPError as e:
            logger.warning(f"获取全文失败: {article_id} - {e}")
            html = FULLTEXT_FAILED

        self.cache.set(article_id, html)
        return html

    def _feed_link(self, feed_info: Feed, feed_type: str) -> str:
        return f"{self.settings.server_origin_url}/feeds/{feed_info.id}.{feed_type}"

    def _render_xml(
        self,
        feed_type: str,
        feed_info: Feed,
        articles: list[Article],
        contents: dict[str, str],
        names: dict[str, str],
    ) -> str:
        link = self._feed_link(feed_info, feed_type)

        fg = FeedGenerator()
        fg.id(link)
        fg.title(feed_info.mp_name)
        fg.link(href=link, rel="self")
        fg.link(href=link, rel="alternate")
        fg.description(feed_info.mp_intro or feed_info.mp_name)
        fg.language("zh-cn")
        fg.generator(GENERATOR)
        fg.author({"name": feed_info.mp_name})
        fg.updated(ts_to_datetime(feed_info.update_time))
        if feed_info.mp_cover:
            fg.logo(feed_info.mp_cover)
            fg.icon(feed_info.mp_cover)

        for article in articles:
            url = ARTICLE_URL.format(id=article.id)
            published = ts_to_datetime(article.publish_time)

            fe = fg.add_entry(order="append")
            fe.id(url)
            fe.guid(url, permalink=True)
            fe.title(article.title)
            fe.link(href=url)
            fe.published(published)
            fe.updated(published)
            content = contents.get(article.id)
            if content:
                fe.content(content, type="CDATA" if feed_type == "rss" else "html")
                fe.description(html_to_text(content)[:200] or article.title)
            if article.pic_url:
                fe.enclosure(article.pic_url, "0", "image/jpeg")
            if names:
                fe.author({"name": names.get(article.mp_id, "-")})

        if feed_type == "rss":
            return fg.rss_str(pretty=True).decode("utf-8")
        return fg.atom_str(pretty=True).decode("utf-8")

    def _render_json(
        self,
        feed_info: Feed,
        articles: list[Article],
        contents: dict[str, str],
        names: dict[str, str],
    ) -> str:
        """JSON Feed 1.1."""
        items: list[dict[str, Any]] = []
        for article in articles:
            url = ARTICLE_URL.format(id=article.id)
            item: dict[str, Any] = {
                "id": article.id,
                "url": url,
                "title": article.title,
                "content_html": contents.get(article.id, ""),
                "date_published": ts_to_datetime(article.publish_time).isoformat(),
            }
            if article.pic_url:
                item["image"] = article.pic_url
            if names:
                item["authors"] = [{"name": names.get(article.mp_id, "-")}]
            items.append(item)

        document: dict[str, Any] = {
            "version": "https://jsonfeed.org/version/1.1",
            "title": feed_info.mp_name,
            "home_page_url": self._feed_link(feed_info, "json"),
            "feed_url": self._feed_link(feed_info, "json"),
            "description": feed_info.mp_intro,
            "language": "zh-cn",
            "authors": [{"name": feed_info.mp_name}],
            "items": items,
        }
        if feed_info.mp_cover:
            document["icon"] = feed_info.mp_cover
            document["favicon"] = feed_info.mp_cover
        return json.dumps(document, ensure_ascii=False, indent=2)
