import pytest

from flag_logging import (
    ConfigurationError,
    InMemoryFlagClient,
    Logger,
    LoggerConfig,
    LogLevel,
    MissingFallbackError,
    NotInitializedError,
)

from .conftest import CONSOLE_FLAG, SDK_FLAG


@pytest.fixture
def client():
    return InMemoryFlagClient()


@pytest.fixture
def logger(sink, client):
    instance = Logger(LoggerConfig(console_log_flag_key=CONSOLE_FLAG, sdk_log_flag_key=SDK_FLAG), sink)
    instance.set_client(client)
    return instance


def written(capturing_logger):
    return [(call.method_name, call.args[0]) for call in capturing_logger.calls]


class TestThreshold:
    def test_no_client_uses_error_fallback(self, sink, capturing_logger):
        logger = Logger(LoggerConfig(console_log_flag_key="x"), sink)

        logger.info("a")
        logger.error("b")

        assert written(capturing_logger) == [("error", "🔴 b")]

    def test_flag_value_controls_threshold(self, logger, client, capturing_logger):
        client.flags[CONSOLE_FLAG] = LogLevel.INFO

        logger.debug("test debug")
        logger.info("test info")
        logger.error("test error")

        assert written(capturing_logger) == [
            ("info", "🔵 test info"),
            ("error", "🔴 test error"),
        ]

    def test_unset_flag_uses_error_fallback(self, logger, capturing_logger):
        logger.warn("w")
        logger.error("e")

        assert written(capturing_logger) == [("error", "🔴 e")]

    def test_threshold_is_read_on_every_call(self, logger, client, capturing_logger):
        client.flags[CONSOLE_FLAG] = LogLevel.ERROR
        logger.info("hidden")
        client.set_flag(CONSOLE_FLAG, LogLevel.INFO)
        logger.info("shown")

        assert written(capturing_logger) == [("info", "🔵 shown")]

    def test_malformed_flag_value_degrades_to_fallback(self, logger, client, capturing_logger):
        client.flags[CONSOLE_FLAG] = "loud"

        logger.warn("w")
        logger.fatal("f")

        assert written(capturing_logger) == [("critical", "💀 f")]

    def test_detaching_client_restores_fallback(self, logger, client, capturing_logger):
        client.flags[CONSOLE_FLAG] = LogLevel.TRACE
        logger.set_client(None)

        logger.info("hidden")

        assert capturing_logger.calls == []
        assert logger.client is None

    def test_missing_console_flag_key_fails_on_emit(self, sink):
        logger = Logger(LoggerConfig(sdk_log_flag_key=SDK_FLAG), sink)

        with pytest.raises(ConfigurationError, match="console_log_flag_key"):
            logger.info("a")

    def test_missing_config_fails_at_construction(self, sink):
        with pytest.raises(ConfigurationError):
            Logger(None, sink)


class TestMethods:
    @pytest.fixture(autouse=True)
    def trace_everything(self, client):
        client.flags[CONSOLE_FLAG] = LogLevel.TRACE

    @pytest.mark.parametrize(
        "method, channel, glyph",
        [
            ("fatal", "critical", "💀"),
            ("error", "error", "🔴"),
            ("warn", "warning", "🟡"),
            ("warning", "warning", "🟡"),
            ("info", "info", "🔵"),
            ("log", "info", "🔵"),
            ("debug", "debug", "⚪"),
            ("trace", "debug", "🟣"),
        ],
    )
    def test_level_methods(self, logger, capturing_logger, method, channel, glyph):
        getattr(logger, method)("message", 42)

        assert written(capturing_logger) == [(channel, f"{glyph} message 42")]

    def test_trace_includes_stack(self, logger, capturing_logger):
        logger.trace("here")

        assert capturing_logger.calls[0].kwargs == {"stack_info": True}

    def test_group_and_time(self, logger, capturing_logger):
        logger.group("outer")
        logger.info("inside")
        logger.group_end()
        logger.time("work")
        logger.time_end("work")

        calls = written(capturing_logger)
        assert calls[0] == ("info", "outer")
        assert calls[1] == ("info", "  🔵 inside")
        assert calls[2][1].startswith("work: ")
        assert calls[2][1].endswith(" ms")

    def test_context_managers_pair_calls(self, logger, sink, capturing_logger):
        with logger.grouped("block"):
            assert sink.depth == 1
            with logger.timed("step"):
                pass

        assert sink.depth == 0
        assert capturing_logger.calls[-1].args[0].startswith("  step: ")


class TestBrackets:
    @pytest.mark.parametrize("level, expected_calls", [(LogLevel.INFO, 0), (LogLevel.DEBUG, 1)])
    def test_brackets_gated_at_debug(self, logger, client, capturing_logger, level, expected_calls):
        client.flags[CONSOLE_FLAG] = level

        logger.group("g")
        logger.group_end()

        assert len(capturing_logger.calls) == expected_calls

    def test_unmatched_brackets_are_tolerated(self, logger, client, capturing_logger):
        client.flags[CONSOLE_FLAG] = LogLevel.DEBUG

        logger.group_end()
        logger.time_end("never-started")

        assert written(capturing_logger) == [
            ("warning", "Timer 'never-started' does not exist"),
        ]


class TestSdkLogLevel:
    def test_requires_client(self, sink):
        logger = Logger(LoggerConfig(sdk_log_flag_key=SDK_FLAG), sink)

        with pytest.raises(NotInitializedError):
            logger.get_sdk_log_level("info")

    def test_requires_sdk_flag_key(self, sink, client):
        logger = Logger(LoggerConfig(console_log_flag_key=CONSOLE_FLAG), sink)
        logger.set_client(client)

        with pytest.raises(ConfigurationError, match="sdk_log_flag_key"):
            logger.get_sdk_log_level("info")

    def test_returns_flag_value(self, logger, client):
        client.flags[SDK_FLAG] = "debug"

        assert logger.get_sdk_log_level("info") == "debug"

    def test_returns_fallback_when_unset(self, logger):
        assert logger.get_sdk_log_level("warn") == "warn"

    def test_missing_value_without_fallback(self, logger):
        with pytest.raises(MissingFallbackError):
            logger.get_sdk_log_level()

    def test_value_is_not_validated(self, logger, client):
        client.flags[SDK_FLAG] = "LOUD"

        assert logger.get_sdk_log_level("info") == "LOUD"
