"""Feed 公众号订阅源模型."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from mpfeed.utils.time import utc_now


class FeedStatus:
    """Feed 状态枚举."""

    ENABLE = 1
    DISABLE = 2


class Feed(SQLModel, table=True):
    """公众号订阅源."""

    __tablename__ = "feeds"  # type: ignore[assignment]

    id: str = Field(primary_key=True, description="上游公众号 ID")
    mp_name: str = Field(description="公众号名称")
    mp_cover: str = Field(default="", description="封面图 URL")
    mp_intro: str = Field(default="", description="简介")
    status: int = Field(
        default=FeedStatus.ENABLE, index=True, description="1 启用 | 2 禁用"
    )
    sync_time: int = Field(default=0, description="最近同步时间（秒）")
    update_time: int = Field(default=0, description="上游更新时间（秒）")
    has_history: int = Field(
        default=1,
        description="历史文章: -1 聚合源 | 0 无更早文章 | 1 还有更早文章",
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
