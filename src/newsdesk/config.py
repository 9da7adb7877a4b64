from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    notion_api_key: str = ""
    notion_database_id: str = ""
    notion_api_version: str = "2022-06-28"
    notion_base_url: str = "https://api.notion.com/v1"
    notion_timeout_seconds: float = 30.0
    database_url: str = "sqlite:///./newsdesk.db"
    sync_page_size: int = 100
    block_batch_size: int = 5
    max_blocks_per_article: int = 1000
    sync_interval_minutes: int = 10
    full_sync_hour: Optional[int] = 4  # FULL_SYNC_HOUR=none disables the nightly full sync
    cache_ttl_seconds: int = 40 * 60
    cache_max_entries: int = 512
    run_scheduler: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_parse_none_str = "none"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
