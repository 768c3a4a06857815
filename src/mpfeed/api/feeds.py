"""订阅源管理 API."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from mpfeed.api.deps import get_services
from mpfeed.api.schemas import feed_to_dict
from mpfeed.core.services import Services
from mpfeed.models.feed import FeedStatus

router = APIRouter(prefix="/api/feeds", tags=["feeds"])


class FeedCreate(BaseModel):
    """添加订阅源请求."""

    id: str = Field(min_length=1, max_length=255)
    mp_name: str = Field(min_length=1)
    mp_cover: str = ""
    mp_intro: str = ""
    update_time: int = 0
    sync_time: int | None = None
    status: int = FeedStatus.ENABLE


class FeedUpdate(BaseModel):
    """编辑订阅源请求."""

    mp_name: str | None = None
    mp_cover: str | None = None
    mp_intro: str | None = None
    status: int | None = None
    sync_time: int | None = None
    update_time: int | None = None
    has_history: int | None = None


@router.get("")
async def list_feeds(
    status: int | None = None,
    services: Services = Depends(get_services),
) -> dict:
    """获取订阅源列表."""
    feeds = await services.store.list_feeds(status=status)
    return {
        "total": len(feeds),
        "items": [feed_to_dict(f) for f in feeds],
    }


@router.get("/{mp_id}")
async def get_feed(
    mp_id: str,
    services: Services = Depends(get_services),
) -> dict:
    """获取订阅源详情."""
    feed = await services.store.get_feed(mp_id)
    if not feed:
        raise HTTPException(status_code=404, detail="订阅源不存在")

    data = feed_to_dict(feed)
    data["article_count"] = await services.store.count_articles(mp_id)
    return data


@router.post("")
async def add_feed(
    data: FeedCreate,
    services: Services = Depends(get_services),
) -> dict:
    """添加订阅源，已存在时更新资料."""
    feed = await services.store.upsert_feed(
        data.id,
        mp_name=data.mp_name,
        mp_cover=data.mp_cover,
        mp_intro=data.mp_intro,
        update_time=data.update_time,
        sync_time=data.sync_time,
        status=data.status,
    )
    return feed_to_dict(feed)


@router.patch("/{mp_id}")
async def edit_feed(
    mp_id: str,
    data: FeedUpdate,
    services: Services = Depends(get_services),
) -> dict:
    """编辑订阅源."""
    feed = await services.store.update_feed(
        mp_id, **data.model_dump(exclude_none=True)
    )
    if not feed:
        raise HTTPException(status_code=404, detail="订阅源不存在")
    return feed_to_dict(feed)


@router.delete("/{mp_id}")
async def delete_feed(
    mp_id: str,
    services: Services = Depends(get_services),
) -> dict:
    """删除订阅源."""
    deleted = await services.store.delete_feed(mp_id)
    return {"id": mp_id, "deleted": deleted}
