"""
Application configuration using pydantic-settings.
"""
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator, model_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

from spacesync.models.enums import RewriteStrategy

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_URL = "sqlite:///./data/spacesync.db"

# Tables owned by SpaceSync itself; never scanned for media references
INTERNAL_TABLES = ["media_items", "app_options", "alembic_version"]

REQUIRED_SPACES_SETTINGS = (
    "spaces_access_key",
    "spaces_secret_key",
    "spaces_endpoint",
    "spaces_bucket",
)

# Define the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "SpaceSync Service"
    app_version: str = "0.3.0"
    debug: bool = False
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"

    # Database Configuration
    database_url: str = DEFAULT_SQLITE_URL
    postgres_url: Optional[str] = None

    # Redis / Celery
    redis_url: Optional[str] = None  # e.g., "redis://localhost:6379/0"
    celery_broker_url: Optional[str] = None
    celery_result_backend: Optional[str] = None
    celery_task_serializer: str = "json"
    celery_result_serializer: str = "json"
    celery_accept_content: List[str] = ["json"]
    celery_timezone: str = "UTC"
    celery_enable_utc: bool = True
    migration_queue: str = "spacesync"
    task_time_limit: int = 3600

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./data/logs"
    log_sql_requests: bool = False

    # Local media library
    media_root: str = "./data/uploads"
    media_base_url: str = "http://localhost:8000/uploads"

    # Spaces (S3-compatible object storage)
    spaces_access_key: Optional[str] = None
    spaces_secret_key: Optional[str] = None
    spaces_endpoint: Optional[str] = None  # e.g. "nyc3.digitaloceanspaces.com"
    spaces_bucket: Optional[str] = None
    spaces_cname: Optional[str] = None  # Optional custom domain, e.g. "https://cdn.example.com"
    spaces_region: str = "us-east-1"
    spaces_acl: str = "public-read"
    spaces_max_attempts: int = 3

    # Migration
    migration_chunk_size: int = 100
    migration_chunk_stagger_seconds: int = 10
    migration_state_max_attempts: int = 50
    migration_state_retry_delay: float = 0.02  # Base seconds for jittered backoff between counter write attempts
    default_rewrite_strategy: RewriteStrategy = RewriteStrategy.NAIVE

    # Scan / rewrite
    core_tables: List[str] = ["content_entries", "content_meta"]
    scan_exclude_tables: List[str] = []
    scan_path_marker: str = "uploads"
    scan_extensions: List[str] = ["jpg", "jpeg", "png"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def database_type(self) -> str:
        """Detect database type from configuration."""
        url = self.effective_database_url
        if url.startswith(("postgresql", "postgres")):
            return "postgresql"
        if url.startswith("mysql"):
            return "mysql"
        return "sqlite"

    @property
    def effective_database_url(self) -> str:
        """PostgreSQL override wins over the primary database URL."""
        if self.postgres_url:
            return self.postgres_url
        return self.database_url

    @property
    def spaces_configured(self) -> bool:
        return not self.missing_spaces_settings()

    def missing_spaces_settings(self) -> List[str]:
        """Names of required Spaces settings that are empty."""
        return [name for name in REQUIRED_SPACES_SETTINGS if not getattr(self, name)]

    @property
    def scan_patterns(self) -> List[str]:
        """LIKE fragments matching local media references, e.g. 'uploads%.jpg'."""
        marker = self.scan_path_marker.strip("/")
        return [f"{marker}%.{ext.lstrip('.')}" for ext in self.scan_extensions]

    @field_validator(
        'core_tables', 'scan_exclude_tables', 'scan_extensions', 'celery_accept_content',
        mode='before',
    )
    @classmethod
    def parse_list_fields(cls, v):
        """Parse list fields from string or list."""
        if v is None:
            return []

        if isinstance(v, str):
            if not v.strip():
                return []
            # Remove brackets if present
            v = v.strip('[]')
            return [item.strip().strip('"').strip("'") for item in v.split(',') if item.strip()]

        if isinstance(v, list):
            return v

        return []

    @field_validator('scan_extensions')
    @classmethod
    def validate_scan_extensions(cls, v: List[str]) -> List[str]:
        """Provide defaults for scan_extensions if not set."""
        if not v:
            return ["jpg", "jpeg", "png"]
        return [ext.lower().lstrip('.') for ext in v]

    @field_validator('core_tables')
    @classmethod
    def validate_core_tables(cls, v: List[str]) -> List[str]:
        if not v:
            return ["content_entries", "content_meta"]
        return v

    @field_validator('spaces_endpoint')
    @classmethod
    def validate_spaces_endpoint(cls, v: Optional[str]) -> Optional[str]:
        """Endpoint is a bare host; the scheme is always https."""
        if not v or not v.strip():
            return None
        v = v.strip()
        if v.startswith("http://") or v.startswith("https://"):
            raise ValueError(
                "SPACES_ENDPOINT must not contain a scheme (http:// or https://). "
                f"Got: {v}"
            )
        return v.rstrip("/")

    @field_validator('spaces_cname')
    @classmethod
    def validate_spaces_cname(cls, v: Optional[str]) -> Optional[str]:
        """Remove trailing slash; empty means no custom domain."""
        if not v or not v.strip():
            return None
        return v.strip().rstrip("/")

    @field_validator('media_base_url')
    @classmethod
    def validate_media_base_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("MEDIA_BASE_URL must not be empty")
        return v

    @field_validator('default_rewrite_strategy', mode='before')
    @classmethod
    def parse_rewrite_strategy(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('migration_chunk_size')
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("MIGRATION_CHUNK_SIZE must be positive")
        if v > 1000:
            raise ValueError("MIGRATION_CHUNK_SIZE cannot exceed 1000")
        return v

    @field_validator('migration_chunk_stagger_seconds', 'migration_state_max_attempts', 'spaces_max_attempts')
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name.upper()} must be positive")
        return v

    @field_validator('migration_state_retry_delay')
    @classmethod
    def validate_retry_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("MIGRATION_STATE_RETRY_DELAY cannot be negative")
        return v

    @field_validator('celery_broker_url', 'celery_result_backend')
    @classmethod
    def validate_celery_urls(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Auto-configure Celery from redis_url if not explicitly set."""
        if v:
            return v

        redis_url = info.data.get('redis_url')
        if redis_url:
            logger.info(f"{info.field_name.upper()} not set. Defaulting to REDIS_URL")
            return redis_url

        return v

    @model_validator(mode='after')
    def default_scan_exclusions(self) -> 'Settings':
        """Core content tables and internal tables are never part of a scan."""
        if not self.scan_exclude_tables:
            self.scan_exclude_tables = list(dict.fromkeys(self.core_tables + INTERNAL_TABLES))
        return self

    @model_validator(mode='after')
    def validate_production_settings(self) -> 'Settings':
        if self.environment != "production":
            return self

        if self.debug:
            raise ValueError("DEBUG must be False in production.")

        warnings = []
        if not self.celery_broker_url:
            warnings.append("CELERY_BROKER_URL not configured. Chunked migrations require Celery with Redis.")
        missing = self.missing_spaces_settings()
        if missing:
            warnings.append(f"Spaces settings incomplete: {', '.join(missing)}. Uploads will be skipped.")
        if self.database_type == "sqlite":
            warnings.append(
                "Using SQLite in production. Concurrent Celery workers will serialize on the database lock."
            )

        for warning in warnings:
            logger.warning(f"Production configuration warning: {warning}")

        return self


# Create settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
