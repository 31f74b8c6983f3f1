"""
Pydantic configuration models for leiharvest.

These models provide type-safe configuration with validation for:
- Registry API access and timeouts
- Rate limiting and retry policy
- Job chunking and skip budget
- Input/output file locations
- Logging and scheduler settings
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Registry API Configuration
# =============================================================================


class ApiConfig(BaseModel):
    """Registry API endpoint and HTTP client settings."""

    base_url: str = Field(
        default="https://api.gleif.org/api/v1",
        description="Registry API base URL",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120.0,
        description="Connection timeout in seconds",
    )
    read_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Read timeout in seconds",
    )
    user_agent: str | None = Field(
        default=None,
        description="Custom User-Agent header",
    )

    @field_validator("base_url")
    @classmethod
    def base_url_is_http(cls, v: str) -> str:
        """Ensure the base URL is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")


# =============================================================================
# Politeness Configuration
# =============================================================================


class RateLimitSettings(BaseModel):
    """Global outbound rate limit."""

    permits_per_second: float = Field(
        default=1.0,
        gt=0,
        le=50.0,
        description="Outbound calls allowed per second, shared by all calls",
    )


class RetrySettings(BaseModel):
    """Retry policy for transient failures."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts per call, first call included",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay before the first retry",
    )
    multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff multiplier",
    )
    max_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Upper bound for a single backoff delay",
    )
    retry_status_codes: list[int] = Field(
        default_factory=lambda: [429, 500, 502, 503, 504],
        description="HTTP status codes treated as transient (every 5xx is transient)",
    )

    @field_validator("max_delay_seconds")
    @classmethod
    def max_delay_gte_base(cls, v: float, info) -> float:
        """Ensure max delay is at least the base delay."""
        base = info.data.get("base_delay_seconds", 0)
        if v < base:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return v


# =============================================================================
# Job Configuration
# =============================================================================


class JobConfig(BaseModel):
    """Chunking and fault tolerance for one run."""

    chunk_size: int = Field(
        default=2,
        ge=1,
        le=1000,
        description="Identifiers per output flush",
    )
    skip_limit: int = Field(
        default=100,
        ge=0,
        description="Skipped identifiers tolerated before the run aborts",
    )


# =============================================================================
# Input / Output Configuration
# =============================================================================


class InputConfig(BaseModel):
    """Identifier source settings."""

    path: Path = Field(
        default=Path("data/input/lei_ids.csv"),
        description="Delimited file with a header line and one LEI per row",
    )
    column: str = Field(
        default="lei_id",
        description="Header name of the identifier column",
    )
    delimiter: str = Field(
        default=",",
        min_length=1,
        max_length=1,
        description="Field delimiter",
    )


class OutputConfig(BaseModel):
    """Output and failure log file locations."""

    lei_records: Path = Field(
        default=Path("output/lei_records.csv"),
        description="One row per fully aggregated record",
    )
    relationship_records: Path = Field(
        default=Path("output/relationship_records.csv"),
        description="One row per relationship resource",
    )
    failed_records: Path = Field(
        default=Path("output/failed_leis.csv"),
        description="LEIs whose primary record could not be fetched",
    )
    failed_urls: Path = Field(
        default=Path("output/failed_urls.log"),
        description="Relationship URLs that could not be fetched",
    )

    def all_paths(self) -> list[Path]:
        return [self.lei_records, self.relationship_records, self.failed_records, self.failed_urls]


# =============================================================================
# Scheduler Configuration
# =============================================================================


class SchedulerConfig(BaseModel):
    """Periodic trigger settings."""

    enabled: bool = Field(
        default=True,
        description="Master scheduler enable/disable",
    )
    cron: str = Field(
        default="0 2 * * *",
        description="Five-field crontab expression",
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone for the cron expression",
    )
    jitter_minutes: int = Field(
        default=0,
        ge=0,
        le=60,
        description="Random jitter window in minutes",
    )

    @field_validator("cron")
    @classmethod
    def cron_has_five_fields(cls, v: str) -> str:
        """Ensure the expression is a standard five-field crontab."""
        if len(v.split()) != 5:
            raise ValueError("cron must have five fields: minute hour day month day_of_week")
        return v


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/leiharvest.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def level_is_known(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    job: JobConfig = Field(default_factory=JobConfig)
    input: InputConfig = Field(default_factory=InputConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.input.path.parent.mkdir(parents=True, exist_ok=True)
        for path in self.output.all_paths():
            path.parent.mkdir(parents=True, exist_ok=True)

        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
