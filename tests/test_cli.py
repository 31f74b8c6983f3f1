"""Tests for the typer CLI."""

import pytest
from typer.testing import CliRunner

from leiharvest import __version__
from leiharvest.cli.main import app
from leiharvest.core.orchestrator import RunSummary

runner = CliRunner()


@pytest.fixture
def workdir(tmp_path, monkeypatch, reset_logging):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GLEIF_API_BASE_URL", raising=False)
    return tmp_path


def write_config(path, **sections):
    lines = ["logging:", "  file: null", "  rich_console: false"]
    for section, values in sections.items():
        lines.append(f"{section}:")
        lines.extend(f"  {key}: {value}" for key, value in values.items())
    path.write_text("\n".join(lines) + "\n")
    return path


class TestBasics:
    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_creates_config_and_directories(self, workdir):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert (workdir / "configs" / "app.yaml").exists()
        assert (workdir / "data" / "input").is_dir()
        assert (workdir / "output").is_dir()

    def test_init_reports_invalid_existing_config(self, workdir):
        config = workdir / "configs" / "app.yaml"
        config.parent.mkdir()
        config.write_text("job:\n  chunk_size: 0\n")

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 1
        assert "job.chunk_size" in result.output
        assert config.read_text() == "job:\n  chunk_size: 0\n"

    def test_init_force_replaces_invalid_config(self, workdir):
        config = workdir / "configs" / "app.yaml"
        config.parent.mkdir()
        config.write_text("job:\n  chunk_size: 0\n")

        result = runner.invoke(app, ["init", "--force"])

        assert result.exit_code == 0
        assert "chunk_size: 2" in config.read_text()


class TestRunCommand:
    def test_missing_input_exits_with_error(self, workdir):
        config = write_config(workdir / "app.yaml", input={"path": "absent.csv"})

        result = runner.invoke(app, ["run", "--config", str(config)])

        assert result.exit_code == 1

    def test_invalid_config_exits_with_error(self, workdir):
        config = workdir / "app.yaml"
        config.write_text("job:\n  chunk_size: 0\n")

        result = runner.invoke(app, ["run", "--config", str(config)])

        assert result.exit_code == 1

    def test_aborted_run_exits_with_error(self, workdir, monkeypatch):
        (workdir / "ids.csv").write_text("lei_id\nA\n")
        config = write_config(workdir / "app.yaml", input={"path": "ids.csv"})
        seen = {}

        async def fake_run_once(app_config, identifiers):
            seen["identifiers"] = list(identifiers)
            seen["skip_limit"] = app_config.job.skip_limit
            return RunSummary(run_id="r", processed=1, skipped=1, aborted=True)

        monkeypatch.setattr("leiharvest.core.orchestrator.run_once", fake_run_once)

        result = runner.invoke(app, ["run", "--config", str(config), "--skip-limit", "0"])

        assert result.exit_code == 1
        assert seen == {"identifiers": ["A"], "skip_limit": 0}

    def test_completed_run_exits_cleanly(self, workdir, monkeypatch):
        (workdir / "ids.csv").write_text("lei_id\nA\nB\n")
        config = write_config(workdir / "app.yaml", input={"path": "ids.csv"})

        async def fake_run_once(app_config, identifiers):
            count = len(list(identifiers))
            return RunSummary(run_id="r", processed=count, written=count)

        monkeypatch.setattr("leiharvest.core.orchestrator.run_once", fake_run_once)

        result = runner.invoke(app, ["run", "--config", str(config)])

        assert result.exit_code == 0
        assert "Harvesting 2 LEI(s)" in result.output


class TestFailuresCommand:
    def test_no_failures(self, workdir):
        config = write_config(workdir / "app.yaml")

        result = runner.invoke(app, ["failures", "--config", str(config)])

        assert result.exit_code == 0
        assert "No failures recorded" in result.output

    def test_summarises_logs(self, workdir):
        config = write_config(workdir / "app.yaml")
        (workdir / "output").mkdir()
        (workdir / "output" / "failed_leis.csv").write_text("X,404 Not Found\nY,404 Not Found\n")

        result = runner.invoke(app, ["failures", "--config", str(config)])

        assert result.exit_code == 0
        assert "Failed LEIs: 2" in result.output
        assert "404 Not Found" in result.output
