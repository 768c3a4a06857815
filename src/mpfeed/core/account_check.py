"""账号有效性检测."""

import asyncio
import logging
from dataclasses import dataclass, field

from mpfeed.config import Settings
from mpfeed.core.accounts import AccountSelector
from mpfeed.core.errors import ErrorKind, PlatformError
from mpfeed.core.platform import PlatformClient
from mpfeed.core.relogin import ReloginFlow
from mpfeed.core.store import Store
from mpfeed.models.account import Account, AccountStatus
from mpfeed.models.feed import FeedStatus
from mpfeed.utils.qr import generate_qrcode_base64

logger = logging.getLogger(__name__)

# 没有订阅源时用于探测的公众号 ID
PLACEHOLDER_MP_ID = "gh_test"
TEST_ACCOUNT_ID = "TEST_ACCOUNT_ID"
TEST_ACCOUNT_NAME = "测试微信账号"


@dataclass
class AccountCheckReport:
    """一轮账号检测的结果."""

    checked: int = 0
    invalidated: list[str] = field(default_factory=list)
    recovered: list[str] = field(default_factory=list)


class AccountHealthMonitor:
    """定时检测账号，失效时发起重新登录.

    每轮先检测启用的账号（发现新失效），再尝试恢复已失效的账号。
    """

    def __init__(
        self,
        store: Store,
        platform: PlatformClient,
        selector: AccountSelector,
        relogin: ReloginFlow,
        settings: Settings,
    ) -> None:
        self.store = store
        self.platform = platform
        self.selector = selector
        self.relogin = relogin
        self.settings = settings
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def probe(self, account: Account) -> PlatformError | None:
        """用一个已有订阅源请求文章列表，返回上游错误（成功时为 None）."""
        feeds = await self.store.list_feeds(status=FeedStatus.ENABLE)
        test_mp_id = feeds[0].id if feeds else PLACEHOLDER_MP_ID
        result = await self.platform.fetch_articles_page(account, test_mp_id, 1)
        return result.error

    async def check_validity(self, account: Account) -> bool:
        """检测账号是否有效，只有明确的 401 才判定为失效."""
        error = await self.probe(account)
        if error is None:
            return True

        if error.kind == ErrorKind.UNAUTHORIZED:
            logger.warning(f"账号 {account.id} 检测到失效 (401)")
            return False

        if error.status_code == 404:
            logger.debug(f"账号 {account.id} 检测时公众号不存在，但 token 可能有效")
        else:
            logger.debug(
                f"账号 {account.id} 检测时出现其他错误: {error.message} "
                f"(status: {error.status_code})"
            )
        return True

    async def check_and_handle(
        self, account: Account, *, background: bool = False
    ) -> bool:
        """检测单个账号，失效时标记并发起重新登录，返回账号是否有效.

        background 为 True 时重新登录在后台进行，不等待扫码结果。
        """
        logger.debug(f"开始检测账号: {account.id} ({account.name})")

        if await self.check_validity(account):
            logger.debug(f"账号 {account.id} ({account.name}) 状态正常")
            return True

        logger.warning(f"账号 {account.id} ({account.name}) 已失效，开始处理")
        await self.store.update_account(account.id, status=AccountStatus.INVALID)
        if background:
            self.relogin.spawn(account.id)
        else:
            await self.relogin.run(account)
        return False

    async def run_detection(self, report: AccountCheckReport) -> None:
        """检测所有启用的账号."""
        accounts = await self.store.list_accounts(status=AccountStatus.ENABLE)
        logger.info(f"找到 {len(accounts)} 个启用状态的账号，开始检测")

        for account in accounts:
            report.checked += 1
            if not await self.check_and_handle(account):
                report.invalidated.append(account.id)
            await asyncio.sleep(self.settings.account_check_interval_seconds)

    async def run_recovery(self, report: AccountCheckReport) -> None:
        """尝试恢复已失效的账号.

        探测成功的账号直接恢复为启用；仍然返回 401 的账号发起重新登录；
        其他结果无法判断，保持失效状态等待下一轮。
        """
        accounts = await self.store.list_accounts(status=AccountStatus.INVALID)
        # 本轮刚检测为失效的账号已经发起过重新登录
        pending = [a for a in accounts if a.id not in report.invalidated]
        logger.info(f"找到 {len(pending)} 个失效账号，尝试恢复")

        for account in pending:
            report.checked += 1
            error = await self.probe(account)
            if error is None:
                await self.store.update_account(account.id, status=AccountStatus.ENABLE)
                self.selector.release(account.id)
                report.recovered.append(account.id)
                logger.info(f"账号 {account.id} 已恢复可用")
            elif error.kind == ErrorKind.UNAUTHORIZED:
                if await self.relogin.run(account):
                    report.recovered.append(account.id)
            else:
                logger.debug(f"账号 {account.id} 探测结果不确定，保持失效: {error.message}")
            await asyncio.sleep(self.settings.account_check_interval_seconds)

    async def run(self) -> AccountCheckReport | None:
        """执行一轮账号检测，已有检测在运行时返回 None."""
        if self._running:
            logger.info("已有账号检测在运行，跳过")
            return None

        self._running = True
        report = AccountCheckReport()
        logger.info("开始执行账号检测")
        try:
            await self.run_detection(report)
            await self.run_recovery(report)
        finally:
            self._running = False

        logger.info(
            f"账号检测完成: 检测={report.checked}, "
            f"失效={len(report.invalidated)}, 恢复={len(report.recovered)}"
        )
        return report

    async def manual_check(self, account_id: str) -> bool:
        """手动检测单个账号，失效时在后台发起重新登录.

        Raises:
            LookupError: 账号不存在
        """
        account = await self.store.get_account(account_id)
        if account is None:
            msg = f"账号不存在: {account_id}"
            raise LookupError(msg)
        return await self.check_and_handle(account, background=True)

    async def test_notification(self) -> bool:
        """使用真实登录二维码发送一条测试通知.

        Raises:
            PlatformError: 创建登录二维码失败
        """
        login = (await self.platform.create_login_url()).unwrap()
        qr_code = generate_qrcode_base64(login.scan_url)
        return await self.relogin.notifier.notify(
            TEST_ACCOUNT_ID,
            TEST_ACCOUNT_NAME,
            qr_code,
            login.scan_url,
        )
