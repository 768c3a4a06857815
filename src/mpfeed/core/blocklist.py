"""按天重置的账号屏蔽列表."""

import logging
from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from mpfeed.utils.time import utc_now

logger = logging.getLogger(__name__)


class DailyBlocklist:
    """当天被上游限流的账号集合.

    以固定时区的日期为键，跨天后自动使用新的空集合。
    仅保存在进程内存中。
    """

    def __init__(
        self,
        timezone: str = "Asia/Shanghai",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._tz = ZoneInfo(timezone)
        self._clock = clock
        self._entries: dict[str, set[str]] = {}

    def today_key(self) -> str:
        """当前日期键，格式 YYYY-MM-DD."""
        return self._clock().astimezone(self._tz).strftime("%Y-%m-%d")

    def today(self) -> list[str]:
        """今天被屏蔽的账号 ID."""
        return sorted(self._entries.get(self.today_key(), set()))

    def add(self, account_id: str) -> None:
        """将账号加入今天的屏蔽列表."""
        today = self.today_key()
        # 丢弃过期日期的记录
        for key in [k for k in self._entries if k != today]:
            del self._entries[key]
        self._entries.setdefault(today, set()).add(account_id)
        logger.info(f"账号 {account_id} 今日已被屏蔽 ({today})")

    def discard(self, account_id: str) -> None:
        """将账号移出今天的屏蔽列表."""
        blocked = self._entries.get(self.today_key())
        if blocked is not None:
            blocked.discard(account_id)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._entries.get(self.today_key(), set())
