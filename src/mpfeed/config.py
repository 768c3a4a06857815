"""应用配置管理."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置（环境变量）."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 上游平台配置
    platform_url: str = "https://weread.111965.xyz"
    request_timeout_seconds: float = 15.0
    login_timeout_seconds: float = 120.0

    # 应用配置
    database_url: str = "sqlite+aiosqlite:///./mpfeed.db"
    server_origin_url: str = ""
    timezone: str = "Asia/Shanghai"

    # 同步配置
    page_size: int = 20
    update_delay_seconds: float = 60.0
    scheduled_extra_pause_seconds: float = 30.0
    sync_retry_count: int = 3
    history_max_pages: int = 1000

    # Feed 输出配置
    feed_mode: str = ""  # fulltext 时输出全文
    enable_clean_html: bool = False

    # 账号检测与重新登录
    account_check_interval_seconds: float = 5.0
    account_check_webhook_url: str = ""
    webhook_timeout_seconds: float = 10.0
    login_poll_attempts: int = 60
    login_poll_interval_seconds: float = 5.0
    relogin_on_unauthorized: bool = True

    # 定时任务
    scheduler_enabled: bool = True
    feed_cron: str = "35 5,17 * * *"
    account_check_cron: str = "0 2,14 * * *"


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()
