from pathlib import Path

import pytest

from flag_logging import ConfigurationError, FlagSettings, LogConfig, LoggerConfig
from flag_logging.config import FileHandlerConfig

EXAMPLE_CONFIG = Path(__file__).parent.parent / "config" / "flag_logging.toml"


@pytest.fixture
def write_toml(tmp_path):
    def _write(content):
        path = tmp_path / "config.toml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write


class TestLogConfig:
    def test_example_file(self):
        config = LogConfig.from_toml(EXAMPLE_CONFIG)

        assert config.level == "INFO"
        assert config.console.colors is True
        assert config.file.enabled is True
        assert config.file.path == Path("logs/app.log")

    def test_defaults_when_sections_missing(self, write_toml):
        config = LogConfig.from_toml(write_toml('[logging]\nlevel = "debug"\n'))

        assert config.level == "DEBUG"
        assert config.file.enabled is False
        assert config.console.rich_tracebacks is True

    def test_invalid_level(self, write_toml):
        with pytest.raises(ConfigurationError, match="Invalid"):
            LogConfig.from_toml(write_toml('[logging]\nlevel = "LOUD"\n'))

    def test_missing_logging_table(self, write_toml):
        with pytest.raises(ConfigurationError, match="logging"):
            LogConfig.from_toml(write_toml("[flags]\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            LogConfig.from_toml(tmp_path / "absent.toml")

    def test_malformed_toml(self, write_toml):
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            LogConfig.from_toml(write_toml("[logging\n"))

    @pytest.mark.parametrize("max_size, backup_count", [(0, 1), (10, -1)])
    def test_file_handler_validation(self, max_size, backup_count):
        with pytest.raises(ConfigurationError):
            FileHandlerConfig(path=Path("x.log"), max_size=max_size, backup_count=backup_count)


class TestLoggerConfig:
    def test_keys_are_optional(self):
        config = LoggerConfig(console_log_flag_key="x")

        assert config.sdk_log_flag_key is None

    def test_empty_key_rejected(self):
        with pytest.raises(ConfigurationError, match="sdk_log_flag_key"):
            LoggerConfig(console_log_flag_key="x", sdk_log_flag_key="")


class TestFlagSettings:
    def test_example_file(self):
        settings = FlagSettings.from_toml(EXAMPLE_CONFIG)

        assert settings.client_id == "client-side-id"
        assert settings.init_timeout == 2.0
        assert settings.store_path == Path(".flag_logging/store.json")
        assert settings.logger_config() == LoggerConfig(
            console_log_flag_key="console-log-level",
            sdk_log_flag_key="sdk-log-level",
        )

    def test_missing_flags_table(self, write_toml):
        with pytest.raises(ConfigurationError, match="flags"):
            FlagSettings.from_toml(write_toml('[logging]\nlevel = "INFO"\n'))

    def test_from_env(self):
        settings = FlagSettings.from_env({
            "FLAG_LOGGING_CLIENT_ID": "abc",
            "FLAG_LOGGING_CONSOLE_LOG_FLAG_KEY": "console",
            "FLAG_LOGGING_SDK_LOG_FLAG_KEY": "",
            "FLAG_LOGGING_INIT_TIMEOUT": "5",
            "UNRELATED": "ignored",
        })

        assert settings.client_id == "abc"
        assert settings.console_log_flag_key == "console"
        assert settings.sdk_log_flag_key is None
        assert settings.init_timeout == 5.0
        assert settings.store_path is None

    def test_from_env_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("FLAG_LOGGING_CLIENT_ID", "from-env")

        assert FlagSettings.from_env().client_id == "from-env"

    @pytest.mark.parametrize("raw", ["soon", "0", "-1"])
    def test_invalid_timeout(self, raw):
        with pytest.raises(ConfigurationError, match="init_timeout"):
            FlagSettings.from_env({"FLAG_LOGGING_INIT_TIMEOUT": raw})
