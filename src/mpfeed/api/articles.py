"""文章 API."""

from fastapi import APIRouter, Depends, HTTPException, Query

from mpfeed.api.deps import get_services
from mpfeed.api.schemas import article_to_dict
from mpfeed.core.services import Services

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.get("")
async def list_articles(
    mp_id: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
) -> dict:
    """按发布时间倒序获取文章列表."""
    articles = await services.store.list_articles(mp_id, limit=limit, offset=offset)
    return {
        "items": [article_to_dict(a) for a in articles],
        "limit": limit,
        "offset": offset,
    }


@router.get("/{article_id}")
async def get_article(
    article_id: str,
    services: Services = Depends(get_services),
) -> dict:
    """获取文章详情."""
    article = await services.store.get_article(article_id)
    if not article:
        raise HTTPException(status_code=404, detail="文章不存在")
    return article_to_dict(article)


@router.delete("/{article_id}")
async def delete_article(
    article_id: str,
    services: Services = Depends(get_services),
) -> dict:
    """删除文章."""
    deleted = await services.store.delete_article(article_id)
    return {"id": article_id, "deleted": deleted}
