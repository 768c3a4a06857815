"""定时任务定义."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from mpfeed.config import Settings
from mpfeed.core.services import Services

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def update_feeds_task(services: Services) -> None:
    """定时同步任务：拉取所有启用订阅源的最新文章."""
    logger.info("开始定时同步任务...")
    try:
        await services.engine.sync_enabled_feeds()
    except Exception as e:
        logger.exception(f"定时同步任务失败: {e}")


async def account_check_task(services: Services) -> None:
    """账号检测任务：检测失效账号并发起重新登录."""
    logger.info("开始账号检测任务...")
    try:
        await services.monitor.run()
    except Exception as e:
        logger.exception(f"账号检测任务失败: {e}")


def create_scheduler(settings: Settings, services: Services) -> AsyncIOScheduler:
    """创建并启动定时任务调度器."""
    global _scheduler

    _scheduler = AsyncIOScheduler(timezone=settings.timezone)

    _scheduler.add_job(
        update_feeds_task,
        CronTrigger.from_crontab(settings.feed_cron, timezone=settings.timezone),
        args=[services],
        id="update_feeds_task",
        name="订阅源定时同步",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    _scheduler.add_job(
        account_check_task,
        CronTrigger.from_crontab(
            settings.account_check_cron, timezone=settings.timezone
        ),
        args=[services],
        id="account_check_task",
        name="账号有效性检测",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    _scheduler.start()
    logger.info(
        f"定时任务调度器已启动，同步: {settings.feed_cron}，"
        f"账号检测: {settings.account_check_cron} ({settings.timezone})"
    )

    return _scheduler


async def shutdown_scheduler() -> None:
    """关闭定时任务调度器."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        logger.info("定时任务调度器已关闭")
        _scheduler = None
