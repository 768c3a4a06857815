"""Account 上游账号模型."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from mpfeed.utils.time import utc_now


class AccountStatus:
    """账号状态枚举."""

    INVALID = 0
    ENABLE = 1
    DISABLE = 2


class Account(SQLModel, table=True):
    """上游平台访问账号."""

    __tablename__ = "accounts"  # type: ignore[assignment]

    id: str = Field(
        primary_key=True, max_length=32, description="账号 ID，请求时作为 xid"
    )
    token: str = Field(description="Bearer token")
    name: str = Field(description="账号名称")
    status: int = Field(
        default=AccountStatus.ENABLE,
        index=True,
        description="状态: 0 失效 | 1 启用 | 2 禁用",
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
