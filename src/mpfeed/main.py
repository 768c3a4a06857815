"""MPFeed 主应用入口."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from mpfeed.api import (
    account_check,
    accounts,
    articles,
    documents,
    feeds,
    platform,
    sync,
)
from mpfeed.config import get_settings
from mpfeed.core.errors import (
    FeedNotFoundError,
    NoAccountAvailableError,
    PlatformError,
)
from mpfeed.core.services import create_services
from mpfeed.models.database import async_session_maker, dispose_db, init_db
from mpfeed.scheduler import create_scheduler, shutdown_scheduler

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期管理."""
    app_settings = get_settings()

    # 启动时初始化
    logger.info("正在初始化数据库...")
    await init_db(app_settings.database_url)

    services = create_services(app_settings, async_session_maker())
    app.state.services = services

    if app_settings.scheduler_enabled:
        logger.info("正在启动定时任务...")
        create_scheduler(app_settings, services)

    logger.info("MPFeed 启动完成！")
    yield

    # 关闭时清理
    logger.info("正在关闭...")
    await shutdown_scheduler()
    await services.close()
    await dispose_db()
    logger.info("MPFeed 已关闭")


app = FastAPI(
    title="MPFeed",
    description="公众号文章订阅源 - 同步公众号文章并输出 RSS / Atom / JSON",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FeedNotFoundError)
async def feed_not_found_handler(
    request: Request, exc: FeedNotFoundError
) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(NoAccountAvailableError)
async def no_account_handler(
    request: Request, exc: NoAccountAvailableError
) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(PlatformError)
async def platform_error_handler(
    request: Request, exc: PlatformError
) -> JSONResponse:
    """上游调用失败."""
    return JSONResponse(
        status_code=502,
        content={
            "detail": exc.message,
            "kind": str(exc.kind),
            "status_code": exc.status_code,
        },
    )


# 注册路由
app.include_router(documents.router)
app.include_router(accounts.router)
app.include_router(feeds.router)
app.include_router(sync.router)
app.include_router(articles.router)
app.include_router(platform.router)
app.include_router(account_check.router)


@app.get("/")
async def root() -> dict:
    """根路径."""
    return {
        "name": "MPFeed",
        "version": "0.1.0",
        "description": "公众号文章订阅源",
    }


@app.get("/health")
async def health() -> dict:
    """健康检查."""
    return {"status": "ok"}


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots() -> str:
    return "User-agent:  *\nDisallow:  /"


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mpfeed.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
