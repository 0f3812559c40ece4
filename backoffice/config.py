import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str = Field(default=os.getenv("DATABASE_URL", "sqlite+pysqlite://"))

    # Simulated store latency, applied to every repository call
    store_latency_min_ms: int = Field(
        default=int(os.getenv("STORE_LATENCY_MIN_MS", "200")), ge=0
    )
    store_latency_max_ms: int = Field(
        default=int(os.getenv("STORE_LATENCY_MAX_MS", "600")), ge=0
    )

    default_org_id: str = Field(default=os.getenv("DEFAULT_ORG_ID", "org-default"))
    default_actor_id: str = Field(default=os.getenv("DEFAULT_ACTOR_ID", "ops-admin"))

    billing_currency: str = Field(default=os.getenv("BILLING_CURRENCY", "JPY"))
    billing_timezone: str = Field(default=os.getenv("BILLING_TIMEZONE", "Asia/Tokyo"))

    # Overdue board urgency thresholds (days past due)
    overdue_warning_days: int = Field(default=int(os.getenv("OVERDUE_WARNING_DAYS", "7")))
    overdue_critical_days: int = Field(default=int(os.getenv("OVERDUE_CRITICAL_DAYS", "14")))

    seed_on_startup: bool = Field(default=_env_bool("SEED_ON_STARTUP", "true"))
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))

    celery_broker_url: str = Field(default=os.getenv("CELERY_BROKER_URL", "memory://"))
    celery_result_backend: str = Field(
        default=os.getenv("CELERY_RESULT_BACKEND", "cache+memory://")
    )

    @model_validator(mode="after")
    def _validate_windows(self) -> "Settings":
        if self.store_latency_min_ms > self.store_latency_max_ms:
            raise ValueError("STORE_LATENCY_MIN_MS cannot exceed STORE_LATENCY_MAX_MS")
        if self.overdue_warning_days > self.overdue_critical_days:
            raise ValueError("OVERDUE_WARNING_DAYS cannot exceed OVERDUE_CRITICAL_DAYS")
        return self


settings = Settings()
