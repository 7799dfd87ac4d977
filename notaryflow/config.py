import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/notaryflow"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))
    # Upper bound on waiting for a document row lock (PostgreSQL only)
    db_lock_timeout_ms: int = int(os.getenv("DB_LOCK_TIMEOUT_MS", "5000"))

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv(
        "LOG_FORMAT", "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    # Custody workflow
    custody_privileged_roles: str = os.getenv("CUSTODY_PRIVILEGED_ROLES", "admin,cs")
    custody_default_storage_location: str = os.getenv(
        "CUSTODY_DEFAULT_STORAGE_LOCATION", "General Storage"
    )
    custody_require_return_location: bool = _env_bool(
        "CUSTODY_REQUIRE_RETURN_LOCATION", "true"
    )

    # Branding
    brand_name: str = os.getenv("BRAND_NAME", "NotaryFlow")


settings = Settings()
