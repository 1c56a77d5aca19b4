import asyncio

import pytest

from flag_logging import (
    ClientLifecycle,
    InMemoryFlagClient,
    Logger,
    LoggerConfig,
    LogLevel,
    ReactionMode,
    ReadyGate,
    use_logger,
)

from .conftest import CONSOLE_FLAG, SDK_FLAG


class TestReadyGate:
    @pytest.mark.asyncio
    async def test_placeholder_until_ready(self, factory, context):
        release = asyncio.Event()

        async def slow_factory(options):
            await release.wait()
            return await factory(options)

        lifecycle = ClientLifecycle(
            client_id="test-client-id",
            create_context=lambda: context,
            client_factory=slow_factory,
        )
        gate = ReadyGate(lifecycle, render=lambda client: ("app", client), placeholder="loading")
        assert gate.view() == "loading"

        start = asyncio.create_task(lifecycle.start())
        await asyncio.sleep(0)
        assert gate.view() == "loading"

        release.set()
        client = await start
        assert gate.view() == ("app", client)

    @pytest.mark.asyncio
    async def test_default_placeholder_is_none(self):
        lifecycle = ClientLifecycle(existing_client=InMemoryFlagClient())

        assert ReadyGate(lifecycle, render=lambda client: "app").view() is None

    @pytest.mark.asyncio
    async def test_renders_once_per_handle(self, factory, context):
        renders = []
        lifecycle = ClientLifecycle(
            client_id="test-client-id",
            create_context=lambda: context,
            client_factory=factory,
            sdk_log_flag_key=SDK_FLAG,
            mode=ReactionMode.RECREATE,
        )
        gate = ReadyGate(lifecycle, render=lambda client: renders.append(client) or client)
        first = await lifecycle.start()

        assert gate.view() is first
        assert gate.view() is first
        first.set_flag(SDK_FLAG, "warn")
        second = await lifecycle.wait_ready()
        assert gate.view() is second

        assert renders == [first, second]


class TestUseLogger:
    def test_attaches_and_clears(self, sink, capturing_logger):
        logger = Logger(LoggerConfig(console_log_flag_key=CONSOLE_FLAG), sink)
        client = InMemoryFlagClient(flags={CONSOLE_FLAG: LogLevel.INFO})

        with use_logger(logger, client):
            logger.info("inside")
        logger.info("outside")

        assert [call.args[0] for call in capturing_logger.calls] == ["🔵 inside"]
        assert logger.client is None

    def test_clears_on_error(self, sink):
        logger = Logger(LoggerConfig(console_log_flag_key=CONSOLE_FLAG), sink)

        with pytest.raises(KeyError), use_logger(logger, InMemoryFlagClient()):
            raise KeyError("boom")

        assert logger.client is None

    def test_without_client_leaves_logger_alone(self, sink):
        logger = Logger(LoggerConfig(console_log_flag_key=CONSOLE_FLAG), sink)
        existing = InMemoryFlagClient()
        logger.set_client(existing)

        with use_logger(logger, None) as bound:
            assert bound is logger

        assert logger.client is existing
