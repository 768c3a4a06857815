"""同步服务 - 从上游平台拉取公众号文章."""

import asyncio
import logging
import math
from dataclasses import dataclass, field

from mpfeed.config import Settings
from mpfeed.core.accounts import AccountSelector
from mpfeed.core.blocklist import DailyBlocklist
from mpfeed.core.errors import FeedNotFoundError, PlatformError
from mpfeed.core.platform import ArticleSummary, MpInfo, PlatformClient
from mpfeed.core.store import Store
from mpfeed.models.feed import FeedStatus
from mpfeed.utils.time import now_ts

logger = logging.getLogger(__name__)


@dataclass
class HistoryMarker:
    """正在进行的历史文章同步."""

    mp_id: str = ""
    page: int = 1
    run_id: int = 0


@dataclass
class SyncContext:
    """同步引擎的进程内状态."""

    blocklist: DailyBlocklist
    all_feeds_running: bool = False
    history: HistoryMarker = field(default_factory=HistoryMarker)
    history_runs: int = 0


@dataclass
class SyncResult:
    """单次同步结果."""

    has_history: int
    fetched: int = 0


class SyncEngine:
    """公众号文章同步引擎."""

    def __init__(
        self,
        store: Store,
        platform: PlatformClient,
        selector: AccountSelector,
        context: SyncContext,
        settings: Settings,
    ) -> None:
        self.store = store
        self.platform = platform
        self.selector = selector
        self.context = context
        self.settings = settings

    @property
    def is_all_feeds_running(self) -> bool:
        """全部订阅源同步是否正在进行."""
        return self.context.all_feeds_running

    def in_progress_history(self) -> HistoryMarker:
        """当前历史同步进度（副本）."""
        marker = self.context.history
        return HistoryMarker(
            mp_id=marker.mp_id, page=marker.page, run_id=marker.run_id
        )

    async def get_mp_articles(self, mp_id: str, page: int = 1) -> list[ArticleSummary]:
        """获取一页文章，失败时换账号重试.

        Raises:
            NoAccountAvailableError: 没有可用账号
            PlatformError: 重试次数用尽后的最后一次错误
        """
        attempts = max(1, self.settings.sync_retry_count)
        errors: list[PlatformError] = []

        for attempt in range(1, attempts + 1):
            account = await self.selector.select_account()
            result = await self.platform.fetch_articles_page(account, mp_id, page)
            if result.error is None:
                return result.unwrap()

            error = result.error
            await self.selector.handle_error(account.id, error)
            logger.warning(
                f"获取文章失败 [{attempt}/{attempts}]: mp={mp_id} page={page} "
                f"account={account.id} kind={error.kind} - {error.message}"
            )
            errors.append(error)

        raise errors[-1]

    async def sync_feed(self, mp_id: str, page: int = 1) -> SyncResult:
        """同步订阅源的一页文章并更新同步信息.

        Raises:
            FeedNotFoundError: 订阅源不存在
        """
        feed = await self.store.get_feed(mp_id)
        if feed is None:
            raise FeedNotFoundError(mp_id)

        articles = await self.get_mp_articles(mp_id, page)
        if articles:
            await self.store.upsert_articles(mp_id, articles)

        has_history = 0 if len(articles) < self.settings.page_size else 1
        # 已经没有历史文章的订阅源不会被重新标记
        stored_has_history = 0 if feed.has_history == 0 else has_history
        await self.store.update_feed(
            mp_id,
            sync_time=now_ts(),
            has_history=stored_has_history,
        )

        logger.info(
            f"同步完成: mp={mp_id} page={page} 文章数={len(articles)} "
            f"has_history={has_history}"
        )
        return SyncResult(has_history=has_history, fetched=len(articles))

    async def sync_feed_once(self, mp_id: str) -> SyncResult:
        """同步单个订阅源第一页，之后额外等待一段时间."""
        try:
            return await self.sync_feed(mp_id)
        finally:
            await asyncio.sleep(self.settings.scheduled_extra_pause_seconds)

    async def sync_all_feeds(self) -> bool:
        """依次同步全部订阅源的第一页.

        已有全量同步在运行时直接返回 False。任一订阅源失败会中止本轮同步。
        """
        if self.context.all_feeds_running:
            logger.info("已有全量同步在运行，跳过")
            return False

        self.context.all_feeds_running = True
        try:
            feeds = await self.store.list_feeds()
            logger.info(f"开始全量同步，共 {len(feeds)} 个订阅源")
            for feed in feeds:
                await self.sync_feed(feed.id)
                await asyncio.sleep(self.settings.update_delay_seconds)
            logger.info("全量同步完成")
        finally:
            self.context.all_feeds_running = False
        return True

    async def sync_enabled_feeds(self) -> None:
        """定时任务：同步所有启用的订阅源."""
        feeds = await self.store.list_feeds(status=FeedStatus.ENABLE)
        logger.info(f"开始定时同步，共 {len(feeds)} 个启用的订阅源")

        for feed in feeds:
            try:
                await self.sync_feed(feed.id)
                await asyncio.sleep(self.settings.update_delay_seconds)
            finally:
                await asyncio.sleep(self.settings.scheduled_extra_pause_seconds)

        logger.info("定时同步完成")

    async def sync_history(self, mp_id: str) -> None:
        """向前翻页同步订阅源的历史文章.

        同一时间只有一个订阅源在同步历史；对另一个订阅源发起的同步会接管，
        原来的循环在下一轮检查时退出。每次运行持有自己的编号，
        只有仍持有标记的运行才会推进或清除它。
        """
        marker = self.context.history
        if marker.mp_id == mp_id:
            logger.info(f"订阅源 {mp_id} 的历史同步已在进行，跳过")
            return

        if marker.mp_id:
            logger.info(f"历史同步由 {marker.mp_id} 切换到 {mp_id}")
        self.context.history_runs += 1
        run_id = self.context.history_runs
        marker.mp_id = mp_id
        marker.page = 1
        marker.run_id = run_id

        try:
            feed = await self.store.get_feed(mp_id)
            if feed is None:
                logger.warning(f"订阅源 {mp_id} 不存在，跳过历史同步")
                return
            if feed.has_history == 0:
                logger.info(f"订阅源 {mp_id} 没有更早的文章")
                return

            total = await self.store.count_articles(mp_id)
            page = max(1, math.ceil(total / self.settings.page_size))
            if marker.run_id == run_id:
                marker.page = page

            for _ in range(self.settings.history_max_pages):
                if marker.run_id != run_id:
                    logger.info(f"订阅源 {mp_id} 的历史同步被接管，停止于第 {page} 页")
                    break

                result = await self.sync_feed(mp_id, page)
                if result.has_history < 1:
                    logger.info(f"订阅源 {mp_id} 历史同步完成，共 {page} 页")
                    break

                page += 1
                if marker.run_id == run_id:
                    marker.page = page
                await asyncio.sleep(self.settings.update_delay_seconds)
        finally:
            if marker.run_id == run_id:
                marker.mp_id = ""
                marker.page = 1
                marker.run_id = 0

    async def get_mp_info(self, url: str) -> list[MpInfo]:
        """通过文章链接查询公众号资料.

        Raises:
            NoAccountAvailableError: 没有可用账号
            PlatformError: 上游调用失败
        """
        account = await self.selector.select_account()
        result = await self.platform.fetch_mp_info(account, url)
        if result.error is not None:
            await self.selector.handle_error(account.id, result.error)
        return result.unwrap()
