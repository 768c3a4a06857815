"""错误类型与上游调用结果."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# 上游在错误信息中携带的标记
UNAUTHORIZED_MARKER = "WeReadError401"
RATE_LIMITED_MARKER = "WeReadError429"


class ErrorKind(StrEnum):
    """上游错误分类."""

    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    OTHER = "other"


class MPFeedError(Exception):
    """MPFeed 基础异常."""


class NoAccountAvailableError(MPFeedError):
    """没有可用的上游账号."""

    def __init__(self, message: str = "暂无可用读书账号!") -> None:
        super().__init__(message)


class FeedNotFoundError(MPFeedError):
    """订阅源不存在."""

    def __init__(self, mp_id: str) -> None:
        super().__init__(f"不存在该feed: {mp_id}")
        self.mp_id = mp_id


class PlatformError(MPFeedError):
    """上游平台调用失败.

    Attributes:
        kind: 错误分类，决定账号状态如何变化
        status_code: 上游返回的 HTTP 状态码，网络错误时为 None
        timed_out: 是否因请求超时失败（分类仍为 OTHER）
        data: 上游返回的原始错误体
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        timed_out: bool = False,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.timed_out = timed_out
        self.data = data


def classify_error(status_code: int | None, message: str = "") -> ErrorKind:
    """根据 HTTP 状态码和错误信息对上游错误分类."""
    if status_code == 401 or UNAUTHORIZED_MARKER in message:
        return ErrorKind.UNAUTHORIZED
    if status_code == 429 or RATE_LIMITED_MARKER in message:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.OTHER


@dataclass
class PlatformResult(Generic[T]):
    """上游调用结果：成功时携带 value，失败时携带 error."""

    value: T | None = None
    error: PlatformError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "PlatformResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: PlatformError) -> "PlatformResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """返回结果值，失败时抛出 PlatformError."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
