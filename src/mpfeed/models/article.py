"""Article 文章模型."""

from datetime import datetime

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from mpfeed.utils.time import utc_now


class Article(SQLModel, table=True):
    """公众号文章."""

    __tablename__ = "articles"  # type: ignore[assignment]
    __table_args__ = (
        Index("idx_articles_mp_id_publish_time", "mp_id", "publish_time"),
    )

    id: str = Field(primary_key=True, description="上游文章 ID")
    mp_id: str = Field(description="所属公众号 ID")
    title: str = Field(description="标题")
    pic_url: str = Field(default="", description="封面图 URL")
    publish_time: int = Field(description="发布时间（秒）")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
