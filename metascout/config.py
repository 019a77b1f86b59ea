from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="METASCOUT_")

    app_name: str = "metascout"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./metascout.db"

    # Source site
    base_url: str = "https://www.mtggoldfish.com"
    format_name: str = "standard"
    max_decks: int = 20

    # Fetching
    fetch_timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_jitter_seconds: float = 0.0
    min_body_length: int = 0

    # CORS relay prefixes, tried in order. Empty means direct requests.
    # Example: ["https://api.allorigins.win/raw?url=", "https://corsproxy.io/?"]
    egress_relays: list[str] = []

    # Delay between deck page requests
    rate_limit_seconds: float = 1.0
    rate_limit_jitter_seconds: float = 0.5

    # Snapshot cache
    cache_ttl_hours: float = 24.0
    use_fallback_data: bool = True


settings = Settings()


# =============================================================================
# STORAGE KEYS
# =============================================================================

META_DATA_KEY = "metascout_meta_data"
LAST_UPDATE_KEY = "metascout_last_update"
UPDATE_STATUS_KEY = "metascout_update_status"
