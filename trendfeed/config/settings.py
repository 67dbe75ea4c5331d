"""Application settings with environment variable support."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


# Compute base_dir at module level
_BASE_DIR = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TF_",  # TF_DATABASE_URL, TF_ADAPTER_TIMEOUT_SECONDS, etc.
    )

    # Paths - computed from base_dir
    base_dir: Path = _BASE_DIR
    data_dir: Path = _BASE_DIR / "data"
    config_dir: Path = _BASE_DIR / "config"

    # Database
    database_url: str = f"sqlite:///{_BASE_DIR / 'data' / 'trendfeed.db'}"

    # Fetching
    adapter_timeout_seconds: float = 10.0
    fetch_max_retries: int = 3
    fetch_user_agent: str = "TrendfeedBot/1.0"

    # Freshness windows per source category (seconds)
    freshness_community_seconds: int = 5 * 60
    freshness_social_seconds: int = 15 * 60
    freshness_news_seconds: int = 15 * 60
    freshness_ai_labs_seconds: int = 15 * 60
    freshness_dev_platforms_seconds: int = 15 * 60
    freshness_newsletters_seconds: int = 30 * 60
    freshness_leaderboards_seconds: int = 60 * 60

    # Result cache
    feed_cache_ttl_seconds: float = 5 * 60
    feed_cache_max_size: int = 30
    cache_sweep_interval_seconds: float = 60.0

    # Refresh progress session
    refresh_session_timeout_seconds: float = 90.0
    refresh_session_grace_seconds: float = 10.0

    # Source health
    health_failure_threshold: int = 3

    # Scoring
    weight_priority: float = 0.15
    weight_engagement: float = 0.50
    weight_recency: float = 0.25
    weight_keyword: float = 0.10
    recency_half_life_hours: float = 24.0

    # Retention
    content_retention_days: int = 7
    snapshot_retention_days: int = 7
    cleanup_interval_hours: int = 24

    # Query
    default_time_range: str = "24h"
    max_items_per_query: int = 2000
    max_items_per_source: int = 50


settings = Settings()
