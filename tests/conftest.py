"""测试配置和 fixtures."""

import random
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import mpfeed.models  # noqa: F401
from mpfeed.config import Settings
from mpfeed.core.accounts import AccountSelector
from mpfeed.core.blocklist import DailyBlocklist
from mpfeed.core.store import Store
from mpfeed.models.account import Account
from mpfeed.models.feed import Feed


class FakeClock:
    """可手动推进的时钟."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeUpstream:
    """模拟上游平台的 httpx handler.

    responses 以请求路径为键覆盖默认响应，值为 (状态码, JSON 体)。
    """

    def __init__(self) -> None:
        self.articles: dict[str, list[dict[str, Any]]] = {}
        self.responses: dict[str, tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.responses:
            status_code, body = self.responses[path]
            return httpx.Response(status_code, json=body)

        if path.startswith("/api/v2/platform/mps/"):
            mp_id = path.split("/")[5]
            return httpx.Response(200, json=self.articles.get(mp_id, []))

        if path == "/api/v2/platform/wxs2mp":
            return httpx.Response(
                200,
                json=[
                    {
                        "id": "MP_WXS_1",
                        "name": "测试公众号",
                        "cover": "https://example.com/cover.png",
                        "intro": "测试简介",
                        "updateTime": 1700000000,
                    }
                ],
            )

        if path == "/api/v2/login/platform":
            return httpx.Response(
                200,
                json={
                    "uuid": "uuid-1",
                    "scanUrl": "https://example.com/confirm/uuid-1",
                },
            )

        if path.startswith("/api/v2/login/platform/"):
            return httpx.Response(200, json={"message": "waiting"})

        return httpx.Response(404, json={"message": "Not Found"})


def make_articles(prefix: str, count: int, start: int = 0) -> list[dict[str, Any]]:
    """生成上游格式的文章列表，发布时间递减."""
    return [
        {
            "id": f"{prefix}-{i}",
            "title": f"文章 {prefix} {i}",
            "picUrl": f"https://example.com/{prefix}-{i}.jpg",
            "publishTime": 1700000000 - i * 60,
        }
        for i in range(start, start + count)
    ]


@pytest.fixture
def settings() -> Settings:
    """不带等待时间的测试配置."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        server_origin_url="http://mpfeed.test",
        update_delay_seconds=0,
        scheduled_extra_pause_seconds=0,
        account_check_interval_seconds=0,
        login_poll_attempts=10,
        login_poll_interval_seconds=0,
        scheduler_enabled=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    """上海时间 2024-01-01 10:00."""
    return FakeClock(datetime(2024, 1, 1, 2, 0, tzinfo=UTC))


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """创建测试用的内存数据库."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await engine.dispose()


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> Store:
    return Store(session_factory)


@pytest.fixture
def blocklist(clock: FakeClock) -> DailyBlocklist:
    return DailyBlocklist("Asia/Shanghai", clock=clock)


@pytest.fixture
def selector(store: Store, blocklist: DailyBlocklist) -> AccountSelector:
    return AccountSelector(store, blocklist, rng=random.Random(0))


@pytest_asyncio.fixture
async def sample_accounts(store: Store) -> list[Account]:
    """创建两个启用的账号."""
    return [
        await store.upsert_account("1", "token-1", "账号一"),
        await store.upsert_account("2", "token-2", "账号二"),
    ]


@pytest_asyncio.fixture
async def sample_feed(store: Store) -> Feed:
    """创建测试用的订阅源."""
    return await store.upsert_feed(
        "MP_1",
        mp_name="测试公众号",
        mp_cover="https://example.com/cover.png",
        mp_intro="测试简介",
        update_time=1700000000,
    )

