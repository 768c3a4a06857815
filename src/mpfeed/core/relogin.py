"""失效账号扫码重新登录."""

import asyncio
import logging

from mpfeed.config import Settings
from mpfeed.core.accounts import AccountSelector
from mpfeed.core.notifier import WebhookNotifier
from mpfeed.core.platform import LoginResult, PlatformClient
from mpfeed.core.store import Store
from mpfeed.models.account import Account, AccountStatus
from mpfeed.utils.qr import generate_qrcode_base64

logger = logging.getLogger(__name__)


class ReloginFlow:
    """生成登录二维码、推送通知并轮询扫码结果.

    整个流程尽力而为：任何失败都只记录日志并返回 False，
    下一轮账号检测会再次发起。
    """

    def __init__(
        self,
        store: Store,
        platform: PlatformClient,
        selector: AccountSelector,
        notifier: WebhookNotifier,
        settings: Settings,
    ) -> None:
        self.store = store
        self.platform = platform
        self.selector = selector
        self.notifier = notifier
        self.settings = settings
        self._active: set[str] = set()
        self._tasks: set[asyncio.Task[bool]] = set()

    def is_active(self, account_id: str) -> bool:
        """账号是否正在重新登录."""
        return account_id in self._active

    async def run(self, account: Account) -> bool:
        """为账号执行一次重新登录，成功时返回 True."""
        if account.id in self._active:
            logger.info(f"账号 {account.id} 已在重新登录中，跳过")
            return False

        self._active.add(account.id)
        try:
            return await self._run(account)
        except Exception:
            logger.exception(f"账号 {account.id} 重新登录出错")
            return False
        finally:
            self._active.discard(account.id)

    async def _run(self, account: Account) -> bool:
        session_result = await self.platform.create_login_url()
        if session_result.error is not None:
            logger.error(f"创建登录二维码失败: {session_result.error.message}")
            return False

        login = session_result.unwrap()
        qr_code = generate_qrcode_base64(login.scan_url)
        await self.notifier.notify(account.id, account.name, qr_code, login.scan_url)

        return await self.wait_for_login(account.id, login.uuid)

    async def wait_for_login(self, account_id: str, uuid: str) -> bool:
        """轮询扫码结果，扫码账号与 account_id 一致时更新 token."""
        attempts = self.settings.login_poll_attempts

        for attempt in range(1, attempts + 1):
            result = await self.platform.get_login_result(
                uuid,
                timeout=self.settings.login_timeout_seconds,
            )

            if result.error is not None:
                if not result.error.timed_out:
                    logger.warning(
                        f"查询扫码结果失败，放弃本次重新登录: {result.error.message}"
                    )
                    return False
                logger.debug(f"等待扫码超时 [{attempt}/{attempts}]，继续等待")
            else:
                login = result.unwrap()
                if login.completed:
                    return await self._apply_login(account_id, str(login.vid), login)
                logger.debug(f"等待扫码 [{attempt}/{attempts}]: {login.message}")

            await asyncio.sleep(self.settings.login_poll_interval_seconds)

        logger.warning(f"账号 {account_id} 等待扫码超时")
        return False

    async def _apply_login(
        self, account_id: str, vid: str, login: LoginResult
    ) -> bool:
        if vid != account_id:
            logger.warning(f"扫码账号 {vid} 与失效账号 {account_id} 不一致，忽略")
            return False

        await self.store.update_account(
            account_id,
            token=login.token,
            name=login.username,
            status=AccountStatus.ENABLE,
        )
        self.selector.release(account_id)
        logger.info(f"账号 {account_id} 重新登录成功")
        return True

    def spawn(self, account_id: str) -> None:
        """在后台为账号发起重新登录."""
        if account_id in self._active:
            return
        task = asyncio.get_running_loop().create_task(self._run_by_id(account_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_by_id(self, account_id: str) -> bool:
        try:
            account = await self.store.get_account(account_id)
        except Exception:
            logger.exception(f"读取账号 {account_id} 失败")
            return False
        if account is None:
            return False
        return await self.run(account)

    async def aclose(self) -> None:
        """取消后台重新登录任务."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
