"""订阅源文档输出 - /feeds."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import Response

from mpfeed.api.deps import get_services
from mpfeed.core.errors import FeedNotFoundError
from mpfeed.core.feeds import ALL_FEED_ID
from mpfeed.core.services import Services
from mpfeed.core.sync import SyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feeds", tags=["documents"])


async def _refresh_feed(engine: SyncEngine, mp_id: str) -> None:
    try:
        await engine.sync_feed_once(mp_id)
    except Exception:
        logger.exception(f"订阅源 {mp_id} 刷新失败")


@router.get("")
async def list_documents(
    services: Services = Depends(get_services),
) -> list[dict]:
    """获取可订阅的源列表."""
    origin = services.settings.server_origin_url
    feeds = await services.store.list_feeds()
    return [
        {
            "id": feed.id,
            "name": feed.mp_name,
            "intro": feed.mp_intro,
            "cover": feed.mp_cover,
            "sync_time": feed.sync_time,
            "update_time": feed.update_time,
            "link": f"{origin}/feeds/{feed.id}.atom",
        }
        for feed in feeds
    ]


@router.get("/{feed_file}")
async def get_document(
    feed_file: str,
    background_tasks: BackgroundTasks,
    limit: int | None = Query(None, ge=1),
    page: int = Query(1, ge=1),
    mode: str | None = None,
    title_include: str | None = None,
    title_exclude: str | None = None,
    update: bool = False,
    services: Services = Depends(get_services),
) -> Response:
    """输出订阅源，文件名形如 {id}.{rss|atom|json}，id 为 all 时输出全部文章."""
    mp_id, _, feed_type = feed_file.rpartition(".")
    if not mp_id:
        mp_id, feed_type = feed_type, "atom"

    is_all = mp_id == ALL_FEED_ID
    if limit is None:
        limit = 30 if is_all else 10

    try:
        document = await services.renderer.generate(
            mp_id=None if is_all else mp_id,
            feed_type=feed_type,
            limit=limit,
            page=page,
            mode=mode,
            title_include=title_include,
            title_exclude=title_exclude,
        )
    except FeedNotFoundError as e:
        raise HTTPException(status_code=404, detail="Feed not found") from e

    if update and not is_all:
        background_tasks.add_task(_refresh_feed, services.engine, mp_id)

    return Response(content=document.content, media_type=document.mime_type)
