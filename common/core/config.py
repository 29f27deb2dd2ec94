from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "hris-billing"
    api_version: str = "v1"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "hris"
    db_use_nullpool: bool = (
        False  # True for workers (sequential), False for API (concurrent)
    )
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @property
    def redis_connection_url(self) -> str:
        """Construct Redis URL from components."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Tenant locks (owner actions, webhooks and the sweep share them)
    tenant_lock_ttl_seconds: int = 30
    tenant_lock_acquire_timeout_seconds: float = 5.0

    # OpenTelemetry
    otel_service_name: str = "hris-billing"
    otel_service_version: str = "0.1.0"

    # Axiom (exporters are only attached when a token is set)
    axiom_token: Optional[str] = None
    axiom_dataset: str = "hris-billing"

    # JWT verification (issuance lives in the auth service)
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"

    # Payment provider - Xendit
    xendit_api_key: str = ""
    xendit_base_url: str = "https://api.xendit.co"
    xendit_callback_token: str = ""
    xendit_invoice_expiry_hours: int = 24
    xendit_success_redirect_url: str = "http://localhost:3000/billing/success"
    xendit_failure_redirect_url: str = "http://localhost:3000/billing/failed"
    xendit_request_timeout_seconds: float = 15.0
    billing_currency: str = "IDR"

    # Billing lifecycle
    trial_plan_id: str = "trial"
    trial_duration_days: int = 14
    trial_default_seats: int = 5
    grace_period_days: int = 7
    stale_invoice_ttl_hours: int = 24
    billing_sweep_interval_seconds: int = 300
    billing_sweep_record_timeout_seconds: float = 10.0

    @property
    def cors_allowed_origins(self) -> List[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return ["https://app.hris.example"]


settings = Settings()
