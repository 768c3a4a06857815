"""核心服务装配."""

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mpfeed.config import Settings
from mpfeed.core.account_check import AccountHealthMonitor
from mpfeed.core.accounts import AccountSelector
from mpfeed.core.blocklist import DailyBlocklist
from mpfeed.core.feeds import FeedRenderer
from mpfeed.core.notifier import WebhookNotifier
from mpfeed.core.platform import PlatformClient, PlatformConfig
from mpfeed.core.relogin import ReloginFlow
from mpfeed.core.store import Store
from mpfeed.core.sync import SyncContext, SyncEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """一个进程内共享的核心服务."""

    settings: Settings
    store: Store
    platform: PlatformClient
    selector: AccountSelector
    engine: SyncEngine
    notifier: WebhookNotifier
    relogin: ReloginFlow
    monitor: AccountHealthMonitor
    renderer: FeedRenderer

    async def close(self) -> None:
        """关闭后台任务和 HTTP 客户端."""
        await self.relogin.aclose()
        await self.platform.close()
        await self.notifier.close()
        await self.renderer.close()


def create_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    platform_transport: httpx.AsyncBaseTransport | None = None,
    webhook_transport: httpx.AsyncBaseTransport | None = None,
    content_transport: httpx.AsyncBaseTransport | None = None,
) -> Services:
    """根据配置创建核心服务."""
    store = Store(session_factory)
    platform = PlatformClient(
        PlatformConfig(
            base_url=settings.platform_url,
            timeout=settings.request_timeout_seconds,
        ),
        transport=platform_transport,
    )
    context = SyncContext(blocklist=DailyBlocklist(settings.timezone))
    selector = AccountSelector(store, context.blocklist)
    engine = SyncEngine(store, platform, selector, context, settings)
    notifier = WebhookNotifier(
        settings.account_check_webhook_url,
        timezone=settings.timezone,
        timeout=settings.webhook_timeout_seconds,
        transport=webhook_transport,
    )
    relogin = ReloginFlow(store, platform, selector, notifier, settings)
    monitor = AccountHealthMonitor(store, platform, selector, relogin, settings)
    renderer = FeedRenderer(store, settings, transport=content_transport)

    if settings.relogin_on_unauthorized:
        selector.on_invalid = relogin.spawn
        logger.info("同步中发现失效账号时将自动发起重新登录")

    return Services(
        settings=settings,
        store=store,
        platform=platform,
        selector=selector,
        engine=engine,
        notifier=notifier,
        relogin=relogin,
        monitor=monitor,
        renderer=renderer,
    )
