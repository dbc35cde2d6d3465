"""Unit tests for the main entry point.

Tests the main() function including:
- Configuration loading with log level priority (CLI > env > config)
- Manual tick mode, with and without --now
- Content event mode
- Daemon mode wiring of the scheduler
- Exit code handling
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch

import pytest

from fanout.audience.exceptions import DataSourceUnavailableError
from fanout.config.environment import EnvironmentConfig
from fanout.config.models import AppConfig, LoggingConfig
from fanout.domain.models import ContentEvent
from fanout.main import load_runtime_config, main
from fanout.pipeline.models import ContentDispatchResult


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        """
poll_interval: 5m
dispatcher:
  max_workers: 2
  max_concurrent_ticks: 3
logging:
  level: INFO
  format: json
"""
    )
    return path


@pytest.fixture
def runtime():
    """Patch the collaborators main() wires together."""
    with patch("fanout.main.configure_logging") as configure_logging, \
            patch("fanout.main.init_database") as init_database, \
            patch("fanout.main.close_database") as close_database, \
            patch("fanout.main.SqlDataSource") as data_source, \
            patch("fanout.main.SqlNotificationSink") as sink, \
            patch("fanout.main.FanoutDispatcher") as dispatcher_cls:
        dispatcher = dispatcher_cls.return_value
        dispatcher.run_tick.return_value = Mock(
            had_errors=False,
            events_considered=1,
            reminders_due=1,
            notifications_written=2,
            events_failed=0,
            events_skipped=0,
            total_duration_seconds=0.01,
        )
        yield MagicMock(
            configure_logging=configure_logging,
            init_database=init_database,
            close_database=close_database,
            data_source=data_source,
            sink=sink,
            dispatcher_cls=dispatcher_cls,
            dispatcher=dispatcher,
        )


class TestLoadRuntimeConfig:
    """Test suite for load_runtime_config helper."""

    def test_log_level_priority(self, tmp_path):
        """Test log level priority: CLI > env > config."""
        app_config = AppConfig(logging=LoggingConfig(level="WARNING", format="key-value"))
        env_config = EnvironmentConfig(log_level="INFO")

        with patch("fanout.main.load_config", return_value=(app_config, env_config)):
            _, env = load_runtime_config(tmp_path / "config.yaml", "DEBUG")
            assert env.log_level == "DEBUG"

            env_config.log_level = "INFO"
            _, env = load_runtime_config(tmp_path / "config.yaml", None)
            assert env.log_level == "INFO"

            env_config.log_level = None
            _, env = load_runtime_config(tmp_path / "config.yaml", None)
            assert env.log_level == "WARNING"


class TestManualRun:
    """Tests for --manual-run."""

    def test_manual_run_with_explicit_now(self, config_file, runtime):
        """Test --now is parsed and passed to the tick."""
        exit_code = main(["--config", str(config_file), "--manual-run", "--now", "2025-01-09T10:00:00Z"])

        assert exit_code == 0
        runtime.dispatcher.run_tick.assert_called_once_with(
            datetime(2025, 1, 9, 10, 0, tzinfo=timezone.utc)
        )
        runtime.close_database.assert_called_once()

    def test_manual_run_defaults_to_current_window(self, config_file, runtime):
        """Test the tick instant is aligned to the window grid."""
        fixed = datetime(2025, 1, 9, 10, 3, 17, tzinfo=timezone.utc)

        with patch("fanout.main.utc_now", return_value=fixed):
            main(["--config", str(config_file), "--manual-run"])

        runtime.dispatcher.run_tick.assert_called_once_with(
            datetime(2025, 1, 9, 10, 0, tzinfo=timezone.utc)
        )

    def test_manual_run_errors_exit_nonzero(self, config_file, runtime):
        runtime.dispatcher.run_tick.return_value.had_errors = True

        assert main(["--config", str(config_file), "--manual-run"]) == 1

    def test_invalid_now_is_configuration_error(self, config_file, runtime, capsys):
        exit_code = main(["--config", str(config_file), "--manual-run", "--now", "not-a-date"])

        assert exit_code == 1
        assert "Invalid --now value" in capsys.readouterr().err
        runtime.dispatcher.run_tick.assert_not_called()

    def test_now_requires_manual_run(self, config_file, runtime):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(config_file), "--now", "2025-01-09T10:00:00Z"])

        assert exc_info.value.code == 2

    def test_wiring_uses_configuration(self, config_file, runtime, monkeypatch):
        """Test database URL, logging format and batch size come from configuration."""
        monkeypatch.setenv("DATABASE_URL", "sqlite:///./data/test.db")
        monkeypatch.setenv("ENVIRONMENT", "staging")
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        main(["--config", str(config_file), "--manual-run"])

        runtime.init_database.assert_called_once_with("sqlite:///./data/test.db")
        runtime.configure_logging.assert_called_once_with(
            level="INFO", format_type="json", environment="staging"
        )
        runtime.sink.assert_called_once_with(batch_size=100)


class TestContentMode:
    """Tests for --post-id."""

    def test_content_dispatch(self, config_file, runtime, capsys):
        runtime.dispatcher.dispatch_content.return_value = ContentDispatchResult(
            post_id="P", actor_id="A", recipient_count=3, notifications_written=3
        )

        exit_code = main([
            "--config", str(config_file),
            "--post-id", "P",
            "--actor-id", "A",
            "--organization-id", "B",
        ])

        assert exit_code == 0
        runtime.dispatcher.dispatch_content.assert_called_once_with(
            ContentEvent(post_id="P", actor_id="A", organization_id="B")
        )
        assert "3 notifications written" in capsys.readouterr().out
        runtime.dispatcher.run_tick.assert_not_called()

    def test_content_failure_exits_nonzero(self, config_file, runtime):
        runtime.dispatcher.dispatch_content.side_effect = DataSourceUnavailableError("down")

        exit_code = main(["--config", str(config_file), "--post-id", "P", "--actor-id", "A"])

        assert exit_code == 1
        runtime.close_database.assert_called_once()

    def test_post_id_requires_actor(self, config_file, runtime):
        with pytest.raises(SystemExit):
            main(["--config", str(config_file), "--post-id", "P"])


class TestDaemonMode:
    """Tests for the default scheduler mode."""

    def test_scheduler_started_with_configuration(self, config_file, runtime):
        """Test the scheduler gets the tick, interval and concurrency limit."""
        with patch("fanout.main.SchedulerService") as scheduler_cls, \
                patch("fanout.main.signal.signal"), \
                patch("fanout.main.threading.Event") as event_cls:
            event_cls.return_value.wait.return_value = True

            exit_code = main(["--config", str(config_file)])

        assert exit_code == 0
        scheduler_cls.assert_called_once_with(
            tick_callable=runtime.dispatcher.run_tick,
            interval_seconds=300,
            shutdown_event=event_cls.return_value,
            max_instances=3,
        )
        scheduler_cls.return_value.start.assert_called_once()
        runtime.close_database.assert_called_once()


class TestErrors:
    """Tests for startup failures."""

    def test_missing_config_file(self, tmp_path, runtime, capsys):
        exit_code = main(["--config", str(tmp_path / "missing.yaml"), "--manual-run"])

        assert exit_code == 1
        assert "Configuration Error" in capsys.readouterr().err
        runtime.init_database.assert_not_called()

    def test_invalid_config_value(self, tmp_path, runtime):
        config = tmp_path / "config.yaml"
        config.write_text("poll_interval: 10s\n")

        assert main(["--config", str(config), "--manual-run"]) == 1

    def test_database_failure_is_fatal(self, config_file, runtime, capsys):
        runtime.init_database.side_effect = RuntimeError("cannot open")

        assert main(["--config", str(config_file), "--manual-run"]) == 1
        assert "Fatal error" in capsys.readouterr().err
