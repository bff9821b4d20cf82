from pydantic_settings import BaseSettings
from functools import lru_cache


# Values shipped in the sample .env; treated as "not configured"
PLACEHOLDER_VALUES = {
    "your_refresh_token",
    "your_access_token",
    "your_webhook_secret",
    "your_verify_token",
    "your_openai_api_key",
}


def is_configured(value: str | None) -> bool:
    """True when value is set and is not a sample placeholder."""
    return bool(value and value.strip() and value.strip() not in PLACEHOLDER_VALUES)


class Settings(BaseSettings):
    # Supabase
    supabase_url: str
    supabase_service_role_key: str

    # Zalo Official Account
    zalo_oa_id: str = ""
    zalo_app_id: str = ""
    zalo_access_token: str = ""  # Optional: seed token, refreshed on first use
    zalo_refresh_token: str = ""
    zalo_api_base_url: str = "https://openapi.zalo.me/v3.0/oa"
    zalo_oauth_url: str = "https://oauth.zalo.me/v4/oa/access_token"
    zalo_request_timeout: float = 10.0
    token_safety_margin_seconds: int = 60

    # Webhook
    webhook_secret: str = ""  # Optional: signature verification is skipped when empty
    webhook_verify_token: str = ""

    # OpenAI (message analyzer)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    analyzer_timeout_seconds: float = 30.0
    analysis_temperature: float = 0.3
    query_temperature: float = 0.7
    max_output_tokens: int = 2000

    # Public URLs for exported files
    server_url: str = ""
    port: int = 3000

    # Exports
    exports_dir: str = "data/exports"
    exports_keep_count: int = 100

    # Deduplication window
    dedup_max_age_seconds: int = 600
    dedup_sweep_interval_seconds: int = 600

    # /t queries load at most this many messages
    query_history_limit: int = 1000

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def public_base_url(self) -> str:
        """Base URL used in links sent to groups, without trailing slash."""
        base = self.server_url or f"http://localhost:{self.port}"
        return base.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
