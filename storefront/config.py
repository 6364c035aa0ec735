from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Local state store (per-user cart / schedule / selections)
    database_url: str = Field(
        default="sqlite:///./storefront.db",
        alias="DATABASE_URL"
    )

    # Auth tokens are issued by the external auth service; we only verify them
    auth_secret_key: str = Field(
        default="dev-auth-secret-key-at-least-32-characters-long",
        alias="AUTH_SECRET_KEY"
    )
    auth_algorithm: str = Field(default="HS256", alias="AUTH_ALGORITHM")

    # ==============================================
    # External data / sync service
    # ==============================================
    data_service_url: str = Field(
        default="http://localhost:8080/api",
        alias="DATA_SERVICE_URL"
    )
    data_service_api_key: str = Field(default="", alias="DATA_SERVICE_API_KEY")
    data_service_timeout_seconds: float = Field(default=10.0, alias="DATA_SERVICE_TIMEOUT_SECONDS")

    # Subscription polling (seconds between collection fingerprints)
    sync_enabled: bool = Field(default=True, alias="SYNC_ENABLED")
    sync_poll_interval: float = Field(default=15.0, alias="SYNC_POLL_INTERVAL")

    # Wait for the source of truth to settle after a damage report
    damage_settle_seconds: float = Field(default=1.0, alias="DAMAGE_SETTLE_SECONDS")

    # Carts kept bound in memory; older ones are rebuilt from saved state on demand
    max_bound_carts: int = Field(default=500, alias="MAX_BOUND_CARTS")

    # Longest booking document expanded into booked days
    max_booking_span_days: int = Field(default=366, alias="MAX_BOOKING_SPAN_DAYS")

    # "Today" for the booking calendar
    store_timezone: str = Field(default="Asia/Manila", alias="STORE_TIMEZONE")

    # Navigation targets returned to the UI
    login_path: str = "/login-register"
    dashboard_path: str = "/userDashboard"
    schedule_path: str = "/rent-schedule"
    confirmation_path: str = "/Confirmation"

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # CORS - storefront URLs (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        alias="ALLOWED_ORIGINS"
    )

    @field_validator('auth_secret_key')
    @classmethod
    def validate_auth_secret_key(cls, v: str) -> str:
        """The shared token secret must be strong enough to be meaningful"""
        if not v:
            raise ValueError("AUTH_SECRET_KEY is required and cannot be empty")
        if len(v) < 32:
            raise ValueError("AUTH_SECRET_KEY must be at least 32 characters long")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        if not self.allowed_origins:
            return ["http://localhost:3000"]

        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)

        return origins or ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
