"""时间工具."""

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """当前 UTC 时间."""
    return datetime.now(UTC)


def now_ts() -> int:
    """当前 Unix 时间戳（秒）."""
    return int(time.time())


def ts_to_datetime(ts: int) -> datetime:
    """Unix 时间戳（秒）转为 UTC datetime."""
    return datetime.fromtimestamp(ts, UTC)
