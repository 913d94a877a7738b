from pydantic_settings import BaseSettings
from typing import Dict, List


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./data/creator_stats.db"

    # App settings
    app_name: str = "Creator Stats"
    debug: bool = False

    # Upstream web APIs
    games_api_url: str = "https://games.roproxy.com"
    groups_api_url: str = "https://groups.roproxy.com"
    thumbnails_api_url: str = "https://thumbnails.roproxy.com"
    request_timeout: float = 15.0

    # Cache lifetimes in seconds (totals change constantly, content rarely)
    content_cache_ttl: float = 60
    totals_cache_ttl: float = 55

    # Waits between attempts when the upstream API rate limits us
    rate_limit_retry_delays: List[float] = [0.5, 1.0, 2.0]

    # Max ids per icon / live counters request
    batch_chunk_size: int = 100

    games_page_limit: int = 50
    games_access_filter: int = 2  # public only
    icon_size: str = "512x512"

    # Reward name -> cumulative visits needed to earn it
    milestones: Dict[str, int] = {
        "OneThousandVisits": 1_000,
        "TenThousandVisits": 10_000,
        "OneHundredThousandVisits": 100_000,
        "OneMillionVisits": 1_000_000,
    }
    welcome_reward: str = "Welcome"

    # Background refresh
    refresh_interval: float = 60
    initial_refresh_delay: float = 2.0

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()
