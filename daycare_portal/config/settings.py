from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for auth admin lookups (check-email)

    # Record store tables
    users_table: str = "user_profiles"
    issues_table: str = "issues"
    change_log_table: str = "user_change_log"

    # App
    app_name: str = "daycare-portal"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    rate_limit_enabled: bool = True
    check_email_rate_limit: str = "20/minute"
    admin_search_limit: int = 50
    auth_cache_ttl_seconds: int = 60

    # Client
    api_url: str = "http://localhost:8000"
    request_timeout_seconds: float = 15.0
    profile_sync_interval_seconds: float = 10.0
    issues_sync_interval_seconds: float = 5.0
    session_timeout_seconds: float = 300.0
    activity_throttle_seconds: float = 30.0
    silent_failure_threshold: int = 5
    session_storage_path: Optional[str] = None  # None keeps client bookkeeping in memory

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
