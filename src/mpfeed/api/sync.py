"""文章同步 API."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel

from mpfeed.api.deps import get_services
from mpfeed.core.services import Services
from mpfeed.core.sync import SyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


class RefreshRequest(BaseModel):
    """刷新请求，mp_id 为空时刷新全部订阅源."""

    mp_id: str | None = None


class HistoryRequest(BaseModel):
    """历史同步请求."""

    mp_id: str


async def _run_all_feeds(engine: SyncEngine) -> None:
    try:
        await engine.sync_all_feeds()
    except Exception:
        logger.exception("全量同步失败")


async def _run_history(engine: SyncEngine, mp_id: str) -> None:
    try:
        await engine.sync_history(mp_id)
    except Exception:
        logger.exception(f"订阅源 {mp_id} 历史同步失败")


@router.post("")
async def refresh(
    data: RefreshRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> dict:
    """刷新订阅源.

    指定 mp_id 时同步该订阅源的第一页并等待结果；否则在后台同步全部订阅源。
    """
    engine = services.engine
    if data.mp_id:
        result = await engine.sync_feed(data.mp_id)
        return {
            "mp_id": data.mp_id,
            "fetched": result.fetched,
            "has_history": result.has_history,
        }

    if engine.is_all_feeds_running:
        return {"started": False, "running": True}

    background_tasks.add_task(_run_all_feeds, engine)
    return {"started": True, "running": True}


@router.get("/status")
async def sync_status(
    services: Services = Depends(get_services),
) -> dict:
    """全量同步是否正在进行."""
    return {"running": services.engine.is_all_feeds_running}


@router.post("/history")
async def sync_history(
    data: HistoryRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> dict:
    """在后台同步订阅源的历史文章."""
    background_tasks.add_task(_run_history, services.engine, data.mp_id)
    return {"mp_id": data.mp_id, "started": True}


@router.get("/history")
async def history_in_progress(
    services: Services = Depends(get_services),
) -> dict:
    """当前正在同步历史文章的订阅源."""
    marker = services.engine.in_progress_history()
    return {"mp_id": marker.mp_id, "page": marker.page}
