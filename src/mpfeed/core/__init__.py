"""核心业务逻辑."""

from mpfeed.core.account_check import AccountHealthMonitor
from mpfeed.core.accounts import AccountSelector
from mpfeed.core.blocklist import DailyBlocklist
from mpfeed.core.errors import (
    ErrorKind,
    FeedNotFoundError,
    MPFeedError,
    NoAccountAvailableError,
    PlatformError,
    PlatformResult,
)
from mpfeed.core.feeds import FeedRenderer
from mpfeed.core.platform import PlatformClient, PlatformConfig
from mpfeed.core.relogin import ReloginFlow
from mpfeed.core.services import Services, create_services
from mpfeed.core.store import Store
from mpfeed.core.sync import SyncContext, SyncEngine

__all__ = [
    "AccountHealthMonitor",
    "AccountSelector",
    "DailyBlocklist",
    "ErrorKind",
    "FeedNotFoundError",
    "FeedRenderer",
    "MPFeedError",
    "NoAccountAvailableError",
    "PlatformClient",
    "PlatformConfig",
    "PlatformError",
    "PlatformResult",
    "ReloginFlow",
    "Services",
    "Store",
    "SyncContext",
    "SyncEngine",
    "create_services",
]
