"""数据模型."""

from mpfeed.models.account import Account, AccountStatus
from mpfeed.models.article import Article
from mpfeed.models.database import async_session_maker, dispose_db, init_db
from mpfeed.models.feed import Feed, FeedStatus

__all__ = [
    "Account",
    "AccountStatus",
    "Article",
    "Feed",
    "FeedStatus",
    "async_session_maker",
    "dispose_db",
    "init_db",
]
