import logging
import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource
from typing_extensions import Self

DEFAULT_FIELDS = [
    "ClientIP",
    "ClientRequestHost",
    "ClientRequestMethod",
    "ClientRequestURI",
    "EdgeEndTimestamp",
    "EdgeResponseBytes",
    "EdgeResponseStatus",
    "EdgeStartTimestamp",
    "RayID",
]


# =============================================================================
# Upstream Configuration
# =============================================================================


class UpstreamConfig(BaseModel):
    """Log-pull API configuration (nested in Config, uses env_nested_delimiter)."""

    base_url: str = "https://api.cloudflare.com/client/v4"
    api_token: str = ""
    request_timeout: float = 30.0  # Seconds
    max_window: timedelta = timedelta(hours=1)  # Longest window served per call
    min_delay: timedelta = timedelta(minutes=1)  # Logs are not served until this old
    retention_days: int = 7  # Upstream keeps logs this long, so no backfill beyond it
    fields: list[str] = Field(default_factory=lambda: list(DEFAULT_FIELDS))
    error_snippet_bytes: int = 4096  # Cap on error bodies carried in exceptions


# =============================================================================
# Storage Configuration
# =============================================================================


class S3ProviderConfig(BaseModel):
    """S3-compatible bucket (AWS S3, R2, MinIO, ...)."""

    kind: Literal["s3"] = "s3"
    name: str = "s3"  # Provider label recorded on jobs
    bucket: str
    region: str = "auto"
    endpoint: str | None = None  # None = AWS default endpoint
    access_key_id: str = ""
    secret_access_key: str = ""
    force_path_style: bool = False  # MinIO needs path-style addressing
    storage_class: str | None = None


class FilesystemProviderConfig(BaseModel):
    """Local directory. No object lock, files are only made read-only."""

    kind: Literal["filesystem"] = "filesystem"
    name: str = "filesystem"
    root: Path


AnyProviderConfig = Annotated[
    Union[S3ProviderConfig, FilesystemProviderConfig],
    Field(discriminator="kind"),
]


class StorageConfig(BaseModel):
    """Archive storage configuration.

    Providers are tried in list order on upload. Reads and deletes go to the
    provider named on the job, so labels must stay stable once jobs exist.
    """

    providers: list[AnyProviderConfig] = []
    object_lock_days: int = 366  # Compliance lock retain-until = window end + this

    @model_validator(mode="after")
    def unique_names(self) -> Self:
        names = [p.name for p in self.providers]
        if len(names) != len(set(names)):
            raise ValueError(f"storage provider names must be unique, got {names}")
        return self


# =============================================================================
# Application Configuration
# =============================================================================


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from YAML file specified by LOGVAULT_CONFIG_FILE env var."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get the value for a field from the YAML config."""
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML file."""
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load config from YAML file if specified."""
        config_file = os.environ.get("LOGVAULT_CONFIG_FILE")
        if config_file:
            path = Path(config_file)
            if path.exists():
                return yaml.safe_load(path.read_text()) or {}
        return {}


class DatabaseConfig(BaseModel):
    """Database configuration (nested in Config, uses env_nested_delimiter).

    The url field uses empty string as sentinel to indicate "derive from data_dir".
    When user doesn't override via LOGVAULT_DATABASE__URL, we compute the actual path
    in Config's model_validator.
    """

    url: str = ""  # Empty string = derive from data_dir; explicit value = use as-is
    echo: bool = False
    auto_migrate: bool = True  # Auto-migrate for SQLite, manual for PostgreSQL


class LoggingConfig(BaseModel):
    """Logging configuration (nested in Config, uses env_nested_delimiter)."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @property
    def file(self) -> str | None:
        """Get log file path from LOGVAULT_LOG_FILE env var."""
        return os.environ.get("LOGVAULT_LOG_FILE")


class WorkerConfig(BaseModel):
    """Background worker configuration (nested in Config, uses env_nested_delimiter)."""

    poll_interval: float = 0.5  # Seconds between outbox polls when idle
    stale_claim_interval: float = 60.0  # Seconds between stale-claim sweeps
    max_retries: int | None = None  # None = each handler's own default
    # Workers started per handler in each lane
    concurrency: dict[str, int] = Field(
        default_factory=lambda: {"critical": 6, "default": 3, "low": 1}
    )


class SchedulerConfig(BaseModel):
    """Zone scheduler configuration."""

    enabled: bool = True
    interval: float = 60.0  # Seconds between ticks
    window: timedelta = timedelta(hours=1)  # Length of each pulled window


class RetentionConfig(BaseModel):
    default_days: int = 395  # Applied to tenants created without an explicit retention


class Config(BaseSettings):
    # These are BaseModel, so env_nested_delimiter handles their env vars
    data_dir: Path = Path("~/.local/share/logvault")
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    upstream: UpstreamConfig = UpstreamConfig()
    storage: StorageConfig = StorageConfig()
    worker: WorkerConfig = WorkerConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    retention: RetentionConfig = RetentionConfig()

    model_config = {
        "env_prefix": "LOGVAULT_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",  # Allows LOGVAULT_DATABASE__URL override
    }

    @model_validator(mode="after")
    def derive_database_url(self) -> Self:
        """Derive database URL from data_dir if not explicitly set."""
        if not self.database.url:
            db_file = self.data_dir.expanduser() / "logvault.db"
            self.database = DatabaseConfig(
                url=f"sqlite+aiosqlite:///{db_file}",
                echo=self.database.echo,
                auto_migrate=self.database.auto_migrate,
            )
        return self

    @model_validator(mode="after")
    def scheduler_window_within_upstream(self) -> Self:
        if self.scheduler.window > self.upstream.max_window:
            raise ValueError(
                f"scheduler.window ({self.scheduler.window}) exceeds "
                f"upstream.max_window ({self.upstream.max_window})"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - LOGVAULT_CONFIG_FILE yaml
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def configure_logging(config: LoggingConfig) -> None:
    """Configure Python logging based on config.

    Should be called once at process start, before workers or the scheduler
    start, so every module logger picks up the configuration.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(config.level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(config.level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)  # Suppress job completion spam

    logging.debug("Logging configured: level=%s, file=%s", config.level, config.file)
