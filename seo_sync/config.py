"""
Configuration management for the SEO integrations sync service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "SEO Integrations Sync"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: Optional[str] = None  # e.g. "logs" to enable file sinks

    # Database
    database_url: str = "sqlite:///./seo_sync.db"

    # Google OAuth (shared by Search Console and GA4)
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:3000/api/auth/callback/google"

    # Where the callback handler sends the browser afterwards
    frontend_url: str = "http://localhost:3000"
    integrations_status_path: str = "/dashboard/integrations"

    # Flow-state binding: authorize sets a nonce cookie the callback must echo
    oauth_state_cookie_name: str = "oauth_state_nonce"
    oauth_enforce_state_binding: bool = True
    oauth_state_cookie_max_age: int = 600

    # Token refresh
    token_refresh_skew_seconds: int = 300

    # Provider HTTP
    provider_request_timeout: float = 30.0
    sync_retry_max_attempts: int = 3
    sync_retry_base_delay: float = 1.0
    sync_retry_max_delay: float = 30.0
    sync_retry_jitter: float = 0.25  # Fraction of the delay added at random

    # Sync behaviour
    sync_batch_size: int = 500
    sync_default_days: int = 30
    sync_max_days: int = 480  # Search Console keeps 16 months
    sync_timezone: str = "UTC"
    sync_use_advisory_lock: bool = True
    sync_request_timeout: Optional[float] = 600.0  # Manual sync endpoint; None disables
    gsc_row_limit: int = 25000  # API maximum per page
    ga4_page_size: int = 10000

    # Scheduler
    scheduler_enabled: bool = True
    sync_gsc_schedule: str = "0 2 * * *"
    sync_ga4_schedule: str = "30 2 * * *"
    daily_sync_days: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
