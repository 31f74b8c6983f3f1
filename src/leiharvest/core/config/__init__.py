"""Configuration loading and validation."""

from .loader import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    load_app_config,
    validate_config_file,
    write_default_config,
)
from .models import (
    ApiConfig,
    AppConfig,
    InputConfig,
    JobConfig,
    LoggingConfig,
    OutputConfig,
    RateLimitSettings,
    RetrySettings,
    SchedulerConfig,
)

__all__ = [
    # Config models
    "ApiConfig",
    "AppConfig",
    "InputConfig",
    "JobConfig",
    "LoggingConfig",
    "OutputConfig",
    "RateLimitSettings",
    "RetrySettings",
    "SchedulerConfig",
    # Loaders
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "load_app_config",
    "validate_config_file",
    "write_default_config",
]
