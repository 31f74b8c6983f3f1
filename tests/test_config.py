"""Tests for configuration models and the YAML loader."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from leiharvest.core.config import (
    AppConfig,
    ConfigError,
    RetrySettings,
    SchedulerConfig,
    load_app_config,
    validate_config_file,
    write_default_config,
)


class TestDefaults:
    """Defaults match the registry's politeness requirements."""

    def test_default_values(self):
        config = AppConfig()

        assert config.api.base_url == "https://api.gleif.org/api/v1"
        assert config.api.connect_timeout_seconds == 10
        assert config.api.read_timeout_seconds == 30
        assert config.rate_limit.permits_per_second == 1.0
        assert config.retry.max_attempts == 3
        assert config.retry.base_delay_seconds == 1
        assert config.retry.multiplier == 2
        assert config.job.chunk_size == 2
        assert config.job.skip_limit == 100
        assert config.scheduler.cron == "0 2 * * *"

    def test_base_url_trailing_slash_removed(self):
        config = AppConfig.model_validate({"api": {"base_url": "http://localhost:8080/api/v1/"}})

        assert config.api.base_url == "http://localhost:8080/api/v1"


class TestValidation:
    """Invalid values are rejected."""

    def test_base_url_must_be_http(self):
        with pytest.raises(ValidationError):
            AppConfig.model_validate({"api": {"base_url": "ftp://example.test"}})

    def test_max_delay_not_below_base(self):
        with pytest.raises(ValidationError):
            RetrySettings(base_delay_seconds=5, max_delay_seconds=1)

    def test_cron_needs_five_fields(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(cron="0 2 * *")

    def test_log_level_normalized(self):
        config = AppConfig.model_validate({"logging": {"level": "debug"}})

        assert config.logging.level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            AppConfig.model_validate({"logging": {"level": "chatty"}})


class TestLoader:
    """YAML loading with environment expansion."""

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("job:\n  chunk_size: 10\n  skip_limit: 5\n")

        config = load_app_config(path)

        assert config.job.chunk_size == 10
        assert config.job.skip_limit == 5
        assert config.retry.max_attempts == 3

    def test_expands_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_REGISTRY_URL", "http://mock.test/api")
        path = tmp_path / "app.yaml"
        path.write_text(
            "api:\n"
            "  base_url: ${TEST_REGISTRY_URL}\n"
            "output:\n"
            "  lei_records: ${TEST_UNSET_DIR:-out}/records.csv\n"
        )

        config = load_app_config(path)

        assert config.api.base_url == "http://mock.test/api"
        assert config.output.lei_records == Path("out/records.csv")

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_app_config(tmp_path / "missing.yaml")

    def test_default_file_absent_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert load_app_config() == AppConfig()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("job: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            load_app_config(path)

        assert exc_info.value.details

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError):
            load_app_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("rate_limit:\n  permits_per_second: 0\n")

        with pytest.raises(ConfigError):
            load_app_config(path)

    def test_validate_config_file_lists_errors(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("job:\n  chunk_size: 0\n")

        errors = validate_config_file(path)

        assert len(errors) == 1
        assert errors[0].startswith("job.chunk_size")


class TestDefaultConfigFile:
    """The generated app.yaml loads back to the defaults."""

    def test_written_file_matches_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GLEIF_API_BASE_URL", raising=False)
        path = tmp_path / "configs" / "app.yaml"

        assert write_default_config(path) is True
        assert write_default_config(path) is False

        assert load_app_config(path) == AppConfig()

    def test_force_overwrites(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("job:\n  chunk_size: 9\n")

        assert write_default_config(path, force=True) is True
        assert load_app_config(path).job.chunk_size == 2
