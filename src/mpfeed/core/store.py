"""数据存取 - 账号、订阅源、文章."""

import logging
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from mpfeed.models.account import Account, AccountStatus
from mpfeed.models.article import Article
from mpfeed.models.feed import Feed, FeedStatus
from mpfeed.utils.time import utc_now

logger = logging.getLogger(__name__)

ACCOUNT_FIELDS = frozenset({"token", "name", "status"})
FEED_FIELDS = frozenset(
    {
        "mp_name",
        "mp_cover",
        "mp_intro",
        "status",
        "sync_time",
        "update_time",
        "has_history",
    }
)


class ArticleLike(Protocol):
    """可写入文章表的上游文章摘要."""

    id: str
    title: str
    pic_url: str
    publish_time: int


def _apply(obj: Any, fields: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        msg = f"不支持更新的字段: {', '.join(sorted(unknown))}"
        raise ValueError(msg)
    for key, value in fields.items():
        if value is not None:
            setattr(obj, key, value)
    obj.updated_at = utc_now()


class Store:
    """基于 SQLModel 的存储访问，每次操作使用独立会话."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # 账号

    async def list_accounts(
        self,
        status: int | None = None,
        exclude_ids: Iterable[str] = (),
    ) -> list[Account]:
        """按状态列出账号，可排除指定 ID."""
        stmt = select(Account).order_by(
            col(Account.created_at).asc(), col(Account.id).asc()
        )
        if status is not None:
            stmt = stmt.where(Account.status == status)
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(col(Account.id).not_in(excluded))

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_account(self, account_id: str) -> Account | None:
        async with self._session_factory() as session:
            return await session.get(Account, account_id)

    async def upsert_account(
        self,
        account_id: str,
        token: str,
        name: str,
        status: int = AccountStatus.ENABLE,
    ) -> Account:
        """新增账号，已存在时覆盖 token、名称和状态."""
        async with self._session_factory() as session:
            account = await session.get(Account, account_id)
            if account:
                fields = {"token": token, "name": name, "status": status}
                _apply(account, fields, ACCOUNT_FIELDS)
            else:
                account = Account(id=account_id, token=token, name=name, status=status)
                session.add(account)
            await session.commit()
            await session.refresh(account)
            return account

    async def update_account(self, account_id: str, **fields: Any) -> Account | None:
        """更新账号的 token / name / status，值为 None 的字段忽略."""
        async with self._session_factory() as session:
            account = await session.get(Account, account_id)
            if account is None:
                return None
            _apply(account, fields, ACCOUNT_FIELDS)
            await session.commit()
            await session.refresh(account)
            return account

    async def delete_account(self, account_id: str) -> bool:
        async with self._session_factory() as session:
            account = await session.get(Account, account_id)
            if account is None:
                return False
            await session.delete(account)
            await session.commit()
            return True

    # 订阅源

    async def get_feed(self, mp_id: str) -> Feed | None:
        async with self._session_factory() as session:
            return await session.get(Feed, mp_id)

    async def list_feeds(self, status: int | None = None) -> list[Feed]:
        """列出订阅源，status 为 None 时返回全部."""
        stmt = select(Feed).order_by(col(Feed.created_at).asc(), col(Feed.id).asc())
        if status is not None:
            stmt = stmt.where(Feed.status == status)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def upsert_feed(
        self,
        mp_id: str,
        mp_name: str,
        mp_cover: str,
        mp_intro: str,
        update_time: int,
        sync_time: int | None = None,
        status: int = FeedStatus.ENABLE,
    ) -> Feed:
        """新增订阅源，已存在时更新资料但保留 has_history.

        sync_time 为 None 时保留已存储的同步时间，新订阅源记为 0。
        """
        fields = {
            "mp_name": mp_name,
            "mp_cover": mp_cover,
            "mp_intro": mp_intro,
            "update_time": update_time,
            "sync_time": sync_time,
            "status": status,
        }
        async with self._session_factory() as session:
            feed = await session.get(Feed, mp_id)
            if feed:
                _apply(feed, fields, FEED_FIELDS)
            else:
                fields["sync_time"] = sync_time or 0
                feed = Feed(id=mp_id, **fields)
                session.add(feed)
            await session.commit()
            await session.refresh(feed)
            return feed

    async def update_feed(self, mp_id: str, **fields: Any) -> Feed | None:
        """更新订阅源的部分字段，值为 None 的字段忽略."""
        async with self._session_factory() as session:
            feed = await session.get(Feed, mp_id)
            if feed is None:
                return None
            _apply(feed, fields, FEED_FIELDS)
            await session.commit()
            await session.refresh(feed)
            return feed

    async def delete_feed(self, mp_id: str) -> bool:
        async with self._session_factory() as session:
            feed = await session.get(Feed, mp_id)
            if feed is None:
                return False
            await session.delete(feed)
            await session.commit()
            return True

    # 文章

    async def upsert_articles(
        self, mp_id: str, articles: Sequence[ArticleLike]
    ) -> int:
        """写入文章，已存在的文章更新标题、封面、发布时间和所属公众号.

        Returns:
            新增的文章数量
        """
        created = 0
        async with self._session_factory() as session:
            for item in articles:
                existing = await session.get(Article, item.id)
                if existing:
                    existing.mp_id = mp_id
                    existing.title = item.title
                    existing.pic_url = item.pic_url
                    existing.publish_time = item.publish_time
                    existing.updated_at = utc_now()
                else:
                    session.add(
                        Article(
                            id=item.id,
                            mp_id=mp_id,
                            title=item.title,
                            pic_url=item.pic_url,
                            publish_time=item.publish_time,
                        )
                    )
                    created += 1
            await session.commit()
        logger.debug(f"写入文章: mp={mp_id} 共 {len(articles)} 篇，新增 {created} 篇")
        return created

    async def count_articles(self, mp_id: str) -> int:
        stmt = select(func.count()).select_from(Article).where(Article.mp_id == mp_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def list_articles(
        self,
        mp_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Article]:
        """按发布时间倒序列出文章."""
        stmt = select(Article).order_by(
            col(Article.publish_time).desc(), col(Article.id).desc()
        )
        if mp_id:
            stmt = stmt.where(Article.mp_id == mp_id)
        stmt = stmt.offset(offset).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_article(self, article_id: str) -> Article | None:
        async with self._session_factory() as session:
            return await session.get(Article, article_id)

    async def delete_article(self, article_id: str) -> bool:
        async with self._session_factory() as session:
            article = await session.get(Article, article_id)
            if article is None:
                return False
            await session.delete(article)
            await session.commit()
            return True
