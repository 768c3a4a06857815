"""上游账号选择与状态维护."""

import logging
import random
from collections.abc import Callable

from mpfeed.core.blocklist import DailyBlocklist
from mpfeed.core.errors import ErrorKind, NoAccountAvailableError, PlatformError
from mpfeed.core.store import Store
from mpfeed.models.account import Account, AccountStatus

logger = logging.getLogger(__name__)


class AccountSelector:
    """从启用账号中随机选择一个未被屏蔽的账号."""

    def __init__(
        self,
        store: Store,
        blocklist: DailyBlocklist,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.blocklist = blocklist
        self._rng = rng or random.Random()
        # 账号被判定失效时的回调，参数为账号 ID
        self.on_invalid: Callable[[str], None] | None = None

    async def select_account(self) -> Account:
        """选择一个可用账号.

        Raises:
            NoAccountAvailableError: 没有启用且今天未被屏蔽的账号
        """
        blocked = self.blocklist.today()
        accounts = await self.store.list_accounts(
            status=AccountStatus.ENABLE,
            exclude_ids=blocked,
        )
        if not accounts:
            raise NoAccountAvailableError()
        return self._rng.choice(accounts)

    async def handle_error(self, account_id: str, error: PlatformError) -> None:
        """根据上游错误分类更新账号状态."""
        if error.kind == ErrorKind.UNAUTHORIZED:
            await self.store.update_account(account_id, status=AccountStatus.INVALID)
            logger.warning(f"账号 {account_id} 已失效: {error.message}")
            if self.on_invalid is not None:
                self.on_invalid(account_id)
        elif error.kind == ErrorKind.RATE_LIMITED:
            self.blocklist.add(account_id)
            logger.warning(f"账号 {account_id} 被限流，今日不再使用: {error.message}")

    def release(self, account_id: str) -> None:
        """将账号移出今日屏蔽列表."""
        self.blocklist.discard(account_id)

    def blocked_ids(self) -> list[str]:
        """今日被屏蔽的账号 ID."""
        return self.blocklist.today()
