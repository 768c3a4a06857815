"""接口返回数据转换."""

from mpfeed.models.account import Account
from mpfeed.models.article import Article
from mpfeed.models.feed import Feed


def account_to_dict(account: Account, *, include_token: bool = False) -> dict:
    """账号信息，默认不返回 token."""
    data = {
        "id": account.id,
        "name": account.name,
        "status": account.status,
        "created_at": account.created_at.isoformat(),
        "updated_at": account.updated_at.isoformat(),
    }
    if include_token:
        data["token"] = account.token
    return data


def feed_to_dict(feed: Feed) -> dict:
    return {
        "id": feed.id,
        "mp_name": feed.mp_name,
        "mp_cover": feed.mp_cover,
        "mp_intro": feed.mp_intro,
        "status": feed.status,
        "sync_time": feed.sync_time,
        "update_time": feed.update_time,
        "has_history": feed.has_history,
        "created_at": feed.created_at.isoformat(),
        "updated_at": feed.updated_at.isoformat(),
    }


def article_to_dict(article: Article) -> dict:
    return {
        "id": article.id,
        "mp_id": article.mp_id,
        "title": article.title,
        "pic_url": article.pic_url,
        "publish_time": article.publish_time,
        "created_at": article.created_at.isoformat(),
        "updated_at": article.updated_at.isoformat(),
    }
