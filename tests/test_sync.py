"""测试 SyncEngine."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

from mpfeed.config import Settings
from mpfeed.core.accounts import AccountSelector
from mpfeed.core.blocklist import DailyBlocklist
from mpfeed.core.errors import (
    ErrorKind,
    FeedNotFoundError,
    NoAccountAvailableError,
    PlatformError,
    PlatformResult,
)
from mpfeed.core.platform import ArticleSummary, MpInfo
from mpfeed.core.store import Store
from mpfeed.core.sync import SyncContext, SyncEngine
from mpfeed.models.account import Account, AccountStatus
from mpfeed.models.feed import Feed, FeedStatus


def page_of(prefix: str, count: int) -> list[ArticleSummary]:
    return [
        ArticleSummary(
            id=f"{prefix}-{i}",
            title=f"文章 {prefix} {i}",
            publish_time=1700000000 - i,
        )
        for i in range(count)
    ]


def success(articles: list[ArticleSummary]) -> PlatformResult[list[ArticleSummary]]:
    return PlatformResult.success(articles)


def failure(kind: ErrorKind, status_code: int = 500) -> PlatformResult:
    return PlatformResult.failure(
        PlatformError(kind, f"error {status_code}", status_code=status_code)
    )


@pytest.fixture
def platform() -> MagicMock:
    platform = MagicMock()
    platform.fetch_articles_page = AsyncMock(return_value=success([]))
    platform.fetch_mp_info = AsyncMock()
    return platform


@pytest.fixture
def engine(
    store: Store,
    platform: MagicMock,
    selector: AccountSelector,
    blocklist: DailyBlocklist,
    settings: Settings,
) -> SyncEngine:
    return SyncEngine(
        store, platform, selector, SyncContext(blocklist=blocklist), settings
    )


async def add_feed(store: Store, mp_id: str, status: int = FeedStatus.ENABLE) -> Feed:
    return await store.upsert_feed(
        mp_id, mp_name=mp_id, mp_cover="", mp_intro="", update_time=0, status=status
    )


class TestSyncFeed:
    """测试单个订阅源同步."""

    async def test_full_page_keeps_history(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        platform.fetch_articles_page.return_value = success(page_of("a", 20))

        result = await engine.sync_feed(sample_feed.id)

        assert result.has_history == 1
        assert result.fetched == 20
        assert await store.count_articles(sample_feed.id) == 20
        feed = await store.get_feed(sample_feed.id)
        assert feed is not None
        assert feed.has_history == 1
        assert feed.sync_time > 0

    async def test_short_page_clears_history(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        """不足一页时标记没有更早文章."""
        platform.fetch_articles_page.return_value = success(page_of("a", 15))

        result = await engine.sync_feed(sample_feed.id)

        assert result.has_history == 0
        feed = await store.get_feed(sample_feed.id)
        assert feed is not None
        assert feed.has_history == 0

    async def test_history_never_flips_back(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        """has_history 变为 0 后不会再变回 1."""
        platform.fetch_articles_page.return_value = success(page_of("a", 15))
        await engine.sync_feed(sample_feed.id)

        platform.fetch_articles_page.return_value = success(page_of("b", 20))
        result = await engine.sync_feed(sample_feed.id)

        assert result.has_history == 1
        feed = await store.get_feed(sample_feed.id)
        assert feed is not None
        assert feed.has_history == 0

    async def test_unknown_feed(
        self, engine: SyncEngine, platform: MagicMock, sample_accounts: list[Account]
    ) -> None:
        with pytest.raises(FeedNotFoundError):
            await engine.sync_feed("missing")
        platform.fetch_articles_page.assert_not_awaited()

    async def test_no_accounts(self, engine: SyncEngine, sample_feed: Feed) -> None:
        with pytest.raises(NoAccountAvailableError):
            await engine.sync_feed(sample_feed.id)


class TestRetry:
    """测试失败后换账号重试."""

    async def test_rate_limited_account_replaced(
        self,
        engine: SyncEngine,
        blocklist: DailyBlocklist,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        platform.fetch_articles_page.side_effect = [
            failure(ErrorKind.RATE_LIMITED, 429),
            success(page_of("a", 3)),
        ]

        articles = await engine.get_mp_articles(sample_feed.id)

        assert len(articles) == 3
        calls = platform.fetch_articles_page.await_args_list
        first, second = calls[0].args[0], calls[1].args[0]
        assert first.id != second.id
        assert first.id in blocklist

    async def test_raises_last_error_after_retries(
        self,
        engine: SyncEngine,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        platform.fetch_articles_page.side_effect = [
            failure(ErrorKind.OTHER, 500),
            failure(ErrorKind.OTHER, 502),
            failure(ErrorKind.OTHER, 503),
        ]

        with pytest.raises(PlatformError) as exc_info:
            await engine.get_mp_articles(sample_feed.id)

        assert exc_info.value.status_code == 503
        assert platform.fetch_articles_page.await_count == 3

    async def test_unauthorized_exhausts_accounts(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        """所有账号都失效后不再有可用账号."""
        platform.fetch_articles_page.return_value = failure(ErrorKind.UNAUTHORIZED, 401)

        with pytest.raises(NoAccountAvailableError):
            await engine.get_mp_articles(sample_feed.id)

        assert platform.fetch_articles_page.await_count == 2
        enabled = await store.list_accounts(status=AccountStatus.ENABLE)
        assert enabled == []


class TestSyncAllFeeds:
    """测试全量同步."""

    async def test_back_to_back_runs_once(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        """连续两次触发只执行一轮."""
        gate = asyncio.Event()

        async def fetch(account, mp_id, page):
            await gate.wait()
            return success([])

        platform.fetch_articles_page.side_effect = fetch

        first = asyncio.create_task(engine.sync_all_feeds())
        await asyncio.sleep(0)
        assert engine.is_all_feeds_running

        assert await engine.sync_all_feeds() is False

        gate.set()
        assert await first is True
        assert platform.fetch_articles_page.await_count == 1
        assert not engine.is_all_feeds_running

    async def test_includes_disabled_feeds(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
    ) -> None:
        await add_feed(store, "MP_A")
        await add_feed(store, "MP_B", FeedStatus.DISABLE)

        assert await engine.sync_all_feeds() is True

        synced = {c.args[1] for c in platform.fetch_articles_page.await_args_list}
        assert synced == {"MP_A", "MP_B"}

    async def test_failure_aborts_and_clears_flag(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
    ) -> None:
        await add_feed(store, "MP_A")
        await add_feed(store, "MP_B")
        platform.fetch_articles_page.return_value = failure(ErrorKind.OTHER)

        with pytest.raises(PlatformError):
            await engine.sync_all_feeds()

        assert not engine.is_all_feeds_running
        synced = {c.args[1] for c in platform.fetch_articles_page.await_args_list}
        assert synced == {"MP_A"}

    async def test_sync_enabled_feeds_skips_disabled(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
    ) -> None:
        await add_feed(store, "MP_A")
        await add_feed(store, "MP_B", FeedStatus.DISABLE)

        await engine.sync_enabled_feeds()

        synced = [c.args[1] for c in platform.fetch_articles_page.await_args_list]
        assert synced == ["MP_A"]


class TestSyncHistory:
    """测试历史文章同步."""

    async def test_resumes_from_stored_count(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        """已有 45 篇文章时从第 3 页开始."""
        await store.upsert_articles(sample_feed.id, page_of("old", 45))

        async def fetch(account, mp_id, page):
            if page == 3:
                return success(page_of("p3", 20))
            return success(page_of("p4", 5))

        platform.fetch_articles_page.side_effect = fetch

        await engine.sync_history(sample_feed.id)

        pages = [c.args[2] for c in platform.fetch_articles_page.await_args_list]
        assert pages == [3, 4]
        feed = await store.get_feed(sample_feed.id)
        assert feed is not None
        assert feed.has_history == 0
        assert engine.in_progress_history().mp_id == ""

    async def test_starts_at_first_page_when_empty(
        self,
        engine: SyncEngine,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        await engine.sync_history(sample_feed.id)

        pages = [c.args[2] for c in platform.fetch_articles_page.await_args_list]
        assert pages == [1]

    async def test_skips_feed_without_history(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        await store.update_feed(sample_feed.id, has_history=0)

        await engine.sync_history(sample_feed.id)

        platform.fetch_articles_page.assert_not_awaited()
        assert engine.in_progress_history().mp_id == ""

    async def test_same_feed_is_noop(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
    ) -> None:
        """同一订阅源正在同步时再次触发不做任何事."""
        await add_feed(store, "MP_A")
        gate = asyncio.Event()
        entered = asyncio.Event()

        async def fetch(account, mp_id, page):
            entered.set()
            await gate.wait()
            return success(page_of(f"{mp_id}-{page}", 5))

        platform.fetch_articles_page.side_effect = fetch

        task = asyncio.create_task(engine.sync_history("MP_A"))
        await entered.wait()

        await engine.sync_history("MP_A")
        assert engine.in_progress_history().mp_id == "MP_A"

        gate.set()
        await task
        assert platform.fetch_articles_page.await_count == 1

    async def test_other_feed_takes_over(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
    ) -> None:
        """另一个订阅源的历史同步会接管，原循环在当前页后退出."""
        await add_feed(store, "MP_A")
        await add_feed(store, "MP_B")
        gate = asyncio.Event()
        entered = asyncio.Event()

        async def fetch(account, mp_id, page):
            if mp_id == "MP_A":
                entered.set()
                await gate.wait()
                return success(page_of(f"A-{page}", 20))
            return success(page_of(f"B-{page}", 5))

        platform.fetch_articles_page.side_effect = fetch

        task = asyncio.create_task(engine.sync_history("MP_A"))
        await entered.wait()
        assert engine.in_progress_history().mp_id == "MP_A"

        await engine.sync_history("MP_B")

        gate.set()
        await task

        calls = [
            (c.args[1], c.args[2])
            for c in platform.fetch_articles_page.await_args_list
        ]
        assert calls == [("MP_A", 1), ("MP_B", 1)]
        assert engine.in_progress_history().mp_id == ""

    async def test_returning_feed_does_not_revive_old_loop(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
    ) -> None:
        """A、B、A 依次触发时，第一轮 A 的循环不会被第二轮 A 续上."""
        await add_feed(store, "MP_A")
        await add_feed(store, "MP_B")
        first_gate = asyncio.Event()
        second_gate = asyncio.Event()
        first_entered = asyncio.Event()
        second_entered = asyncio.Event()

        async def fetch(account, mp_id, page):
            if mp_id == "MP_A" and page == 1:
                if not first_entered.is_set():
                    first_entered.set()
                    await first_gate.wait()
                else:
                    second_entered.set()
                    await second_gate.wait()
            count = 5 if mp_id == "MP_B" or page >= 3 else 20
            return success(page_of(f"{mp_id}-{page}", count))

        platform.fetch_articles_page.side_effect = fetch

        first = asyncio.create_task(engine.sync_history("MP_A"))
        await first_entered.wait()
        await engine.sync_history("MP_B")
        second = asyncio.create_task(engine.sync_history("MP_A"))
        await second_entered.wait()
        owner = engine.in_progress_history()
        assert owner.mp_id == "MP_A"

        first_gate.set()
        await first
        # 旧循环退出时不能清除新一轮的标记
        assert engine.in_progress_history() == owner

        second_gate.set()
        await second

        pages = [
            c.args[2]
            for c in platform.fetch_articles_page.await_args_list
            if c.args[1] == "MP_A"
        ]
        assert pages == [1, 1, 2, 3]
        assert engine.in_progress_history().mp_id == ""


class TestPacing:
    """测试同步之间的等待."""

    @pytest.fixture
    def paced_engine(
        self,
        store: Store,
        platform: MagicMock,
        selector: AccountSelector,
        blocklist: DailyBlocklist,
        settings: Settings,
    ) -> SyncEngine:
        paced = settings.model_copy(
            update={
                "update_delay_seconds": 60,
                "scheduled_extra_pause_seconds": 30,
                "history_max_pages": 2,
            }
        )
        return SyncEngine(
            store, platform, selector, SyncContext(blocklist=blocklist), paced
        )

    async def test_enabled_feeds_pause_after_each_feed(
        self,
        paced_engine: SyncEngine,
        store: Store,
        sample_accounts: list[Account],
    ) -> None:
        await add_feed(store, "MP_A")
        await add_feed(store, "MP_B")

        with patch("mpfeed.core.sync.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await paced_engine.sync_enabled_feeds()

        assert sleep.await_args_list == [call(60), call(30), call(60), call(30)]

    async def test_enabled_feeds_pause_even_on_failure(
        self,
        paced_engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
    ) -> None:
        """同步失败时仍然等待额外的间隔."""
        await add_feed(store, "MP_A")
        platform.fetch_articles_page.return_value = failure(ErrorKind.OTHER)

        with patch("mpfeed.core.sync.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(PlatformError):
                await paced_engine.sync_enabled_feeds()

        assert sleep.await_args_list == [call(30)]

    async def test_all_feeds_delay_between_feeds(
        self,
        paced_engine: SyncEngine,
        store: Store,
        sample_accounts: list[Account],
    ) -> None:
        await add_feed(store, "MP_A")
        await add_feed(store, "MP_B")

        with patch("mpfeed.core.sync.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await paced_engine.sync_all_feeds() is True

        assert sleep.await_args_list == [call(60), call(60)]

    async def test_single_scheduled_sync_pauses_on_failure(
        self,
        paced_engine: SyncEngine,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        platform.fetch_articles_page.return_value = failure(ErrorKind.OTHER)

        with patch("mpfeed.core.sync.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(PlatformError):
                await paced_engine.sync_feed_once(sample_feed.id)

        assert sleep.await_args_list == [call(30)]

    async def test_history_stops_at_page_cap(
        self,
        paced_engine: SyncEngine,
        platform: MagicMock,
        sample_accounts: list[Account],
        sample_feed: Feed,
    ) -> None:
        """上游一直返回整页时，翻到页数上限就停止."""

        async def fetch(account, mp_id, page):
            return success(page_of(f"p{page}", 20))

        platform.fetch_articles_page.side_effect = fetch

        with patch("mpfeed.core.sync.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await paced_engine.sync_history(sample_feed.id)

        pages = [c.args[2] for c in platform.fetch_articles_page.await_args_list]
        assert pages == [1, 2]
        assert sleep.await_args_list == [call(60), call(60)]
        assert paced_engine.in_progress_history().mp_id == ""


class TestGetMpInfo:
    """测试公众号资料查询."""

    async def test_returns_info(
        self, engine: SyncEngine, platform: MagicMock, sample_accounts: list[Account]
    ) -> None:
        info = MpInfo(id="MP_1", name="测试", update_time=1)
        platform.fetch_mp_info.return_value = PlatformResult.success([info])

        assert await engine.get_mp_info("https://mp.weixin.qq.com/s/x") == [info]

    async def test_unauthorized_marks_account(
        self,
        engine: SyncEngine,
        store: Store,
        platform: MagicMock,
        sample_accounts: list[Account],
    ) -> None:
        platform.fetch_mp_info.return_value = failure(ErrorKind.UNAUTHORIZED, 401)

        with pytest.raises(PlatformError):
            await engine.get_mp_info("https://mp.weixin.qq.com/s/x")

        invalid = await store.list_accounts(status=AccountStatus.INVALID)
        assert len(invalid) == 1
