"""Initialization lifecycle of the flag client.

``ClientLifecycle`` either adopts a caller-supplied handle or builds one with a
client factory, then follows the SDK log level flag. Every change is persisted
when valid and forwarded to the caller. In ``ReactionMode.RECREATE`` a valid
change also closes the current handle and creates a new one configured with
the new level.

States:
    IDLE -> ADOPTING_EXISTING -> READY
    IDLE -> VALIDATING_INPUTS -> CREATING -> READY | FAILED
    READY -> CREATING -> READY | FAILED     (recreate mode only)
    any -> STOPPED                          (stop())

Example:
    ```python
    lifecycle = ClientLifecycle(
        client_id="client-side-id",
        create_context=lambda: {"kind": "user", "key": "anonymous"},
        client_factory=InMemoryFlagClient.factory({"sdk-log-level": "warn"}),
        sdk_log_flag_key="sdk-log-level",
        mode=ReactionMode.RECREATE,
    )
    async with lifecycle:
        client = await lifecycle.wait_ready()
    ```
"""

import asyncio
from collections.abc import Callable
from enum import Enum
from functools import partial
from typing import Any

from .client import ChangeCallback, ClientFactory, ClientHandle, ClientOptions, change_event
from .config import DEFAULT_INIT_TIMEOUT, FlagSettings
from .errors import ConfigurationError, FlagLoggingError, InitializationError, NotInitializedError
from .factory import get_logger
from .logger import Logger
from .log_levels import SdkLogLevel, is_valid_remote_level
from .persistence import JsonFileStore, KeyValueStore, LevelPersistence, MemoryStore

ContextFactory = Callable[[], Any]
LevelChangeCallback = Callable[[Any], None]
ReadyCallback = Callable[[ClientHandle], None]


class LifecycleState(Enum):
    IDLE = "idle"
    ADOPTING_EXISTING = "adopting_existing"
    VALIDATING_INPUTS = "validating_inputs"
    CREATING = "creating"
    READY = "ready"
    FAILED = "failed"
    STOPPED = "stopped"


class ReactionMode(Enum):
    """What to do with the running handle when the SDK log level changes."""

    NOTIFY = "notify"
    RECREATE = "recreate"


class ClientLifecycle:
    """Produces exactly one current flag client and follows its log level flag.

    Args:
        existing_client:    Handle to adopt instead of creating one
        client_id:          Client-side identifier, required when creating
        create_context:     Builds the evaluation context, required when creating
        client_factory:     Coroutine function constructing a handle from ClientOptions
        persistence:        Slot holding the last valid SDK log level
        sdk_log_flag_key:   Flag to follow; without it no subscription is made
        on_level_change:    Receives every raw flag value, valid or not
        on_ready:           Called with the handle each time READY is reached
        mode:               Reaction to valid level changes
        timeout:            Seconds passed to the factory as the initialization bound
        logger:             Logger to attach the current handle to
    """

    def __init__(
            self,
            *,
            existing_client: ClientHandle | None = None,
            client_id: str | None = None,
            create_context: ContextFactory | None = None,
            client_factory: ClientFactory | None = None,
            persistence: LevelPersistence | None = None,
            sdk_log_flag_key: str | None = None,
            on_level_change: LevelChangeCallback | None = None,
            on_ready: ReadyCallback | None = None,
            mode: ReactionMode = ReactionMode.NOTIFY,
            timeout: float = DEFAULT_INIT_TIMEOUT,
            logger: Logger | None = None,
    ) -> None:
        self._existing_client = existing_client
        self._client_id = client_id
        self._create_context = create_context
        self._client_factory = client_factory
        self._persistence = persistence if persistence is not None else LevelPersistence()
        self._sdk_log_flag_key = sdk_log_flag_key
        self._on_level_change = on_level_change
        self._on_ready = on_ready
        self._mode = mode
        self._timeout = timeout
        self._logger = logger

        self._state = LifecycleState.IDLE
        self._client: ClientHandle | None = None
        self._owned = False
        self._error: BaseException | None = None
        self._subscription: tuple[ClientHandle, str, ChangeCallback] | None = None
        # Bumped by every creation and by stop(); a resolution with an older
        # generation is stale and gets discarded.
        self._generation = 0
        self._transition_lock = asyncio.Lock()
        self._settled = asyncio.Event()
        self._pending: set[asyncio.Task] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._log = get_logger(__name__).bind(client_id=client_id)

    @classmethod
    def from_settings(
            cls,
            settings: FlagSettings,
            *,
            store: KeyValueStore | None = None,
            **kwargs: Any
    ) -> "ClientLifecycle":
        """Build a lifecycle from FlagSettings.

        The persistence slot uses ``store`` if given, otherwise a JsonFileStore at
        ``settings.store_path``, otherwise a MemoryStore.
        """
        if store is None:
            store = (
                JsonFileStore(settings.store_path)
                if settings.store_path is not None
                else MemoryStore()
            )
        kwargs.setdefault("client_id", settings.client_id)
        kwargs.setdefault("sdk_log_flag_key", settings.sdk_log_flag_key)
        kwargs.setdefault("timeout", settings.init_timeout)
        return cls(persistence=LevelPersistence(store), **kwargs)

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def client(self) -> ClientHandle | None:
        return self._client

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def is_ready(self) -> bool:
        return self._state is LifecycleState.READY and self._client is not None

    @property
    def mode(self) -> ReactionMode:
        return self._mode

    async def start(self) -> ClientHandle:
        """Adopt or create the flag client.

        Runs at most once. Later calls wait for the outcome of the first one.
        Input validation happens before anything is awaited.

        Returns:
            The current handle

        Raises:
            ConfigurationError:     If client_id, create_context or client_factory is missing
            InitializationError:    If the factory raised or was rejected
            NotInitializedError:    If stop() was called before the handle was installed
        """
        if self._state is not LifecycleState.IDLE:
            return await self.wait_ready()

        self._loop = asyncio.get_running_loop()

        if self._existing_client is not None:
            try:
                self._adopt(self._existing_client)
            except Exception as e:
                self._fail(e)
                raise
            return self._existing_client

        self._set_state(LifecycleState.VALIDATING_INPUTS)
        try:
            self._validate_inputs()
            level = self._persistence.resolve()
        except ConfigurationError as e:
            self._fail(e)
            raise

        return await self._create(level)

    async def wait_ready(self) -> ClientHandle:
        """Wait until the lifecycle settles and return the handle.

        Raises:
            FlagLoggingError:       The stored error if the lifecycle FAILED
            NotInitializedError:    If the lifecycle was not started or was stopped
        """
        if self._state is LifecycleState.IDLE:
            msg = "Client lifecycle has not been started"
            raise NotInitializedError(msg)

        while True:
            await self._settled.wait()
            if self._state is LifecycleState.READY and self._client is not None:
                return self._client
            if self._state is LifecycleState.FAILED and self._error is not None:
                raise self._error
            if self._state is LifecycleState.STOPPED:
                msg = "Client lifecycle was stopped"
                raise NotInitializedError(msg)

    async def stop(self) -> None:
        """Tear down the lifecycle.

        Pending recreations are cancelled, the subscription is removed, the
        logger is detached and a handle created by this lifecycle is closed.
        Adopted handles are left open.
        """
        if self._state is LifecycleState.STOPPED:
            return

        self._generation += 1
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        async with self._transition_lock:
            outgoing, owned = self._client, self._owned
            self._detach_current()
            self._set_state(LifecycleState.STOPPED)
            self._settled.set()
            if outgoing is not None and owned:
                await outgoing.close()

    async def __aenter__(self) -> "ClientLifecycle":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def _validate_inputs(self) -> None:
        if not self._client_id:
            msg = "client_id is required when not using an existing client"
            raise ConfigurationError(msg)

        if self._create_context is None:
            msg = "create_context is required when not using an existing client"
            raise ConfigurationError(msg)

        if self._client_factory is None:
            msg = "client_factory is required when not using an existing client"
            raise ConfigurationError(msg)

    def _adopt(self, client: ClientHandle) -> None:
        self._set_state(LifecycleState.ADOPTING_EXISTING)
        if self._follows_level_flag(client):
            # Pick up the value the handle already holds before any change event.
            value = client.evaluate(self._sdk_log_flag_key, None)
            self._handle_level_value(value)
        self._install(client, owned=False)

    async def _create(self, level: SdkLogLevel) -> ClientHandle:
        self._generation += 1
        generation = self._generation
        self._set_state(LifecycleState.CREATING)
        self._settled.clear()
        self._log.info("flag_client_creating", log_level=level, timeout=self._timeout)

        try:
            options = ClientOptions(
                client_id=self._client_id,
                context=self._create_context(),
                timeout=self._timeout,
                log_level=level,
            )
            client = await asyncio.wait_for(self._client_factory(options), self._timeout)
        except Exception as e:
            if generation != self._generation:
                msg = "Client lifecycle was stopped"
                raise NotInitializedError(msg) from e
            if isinstance(e, TimeoutError):
                msg = f"Flag client did not initialize within {self._timeout}s"
            else:
                msg = f"Failed to initialize the flag client: {e}"
            error = InitializationError(msg)
            self._fail(error)
            raise error from e

        if generation != self._generation:
            self._log.info("stale_flag_client_discarded")
            await client.close()
            msg = "Client lifecycle was stopped before the flag client was ready"
            raise NotInitializedError(msg)

        self._install(client, owned=True)
        return client

    async def _recreate(self, level: SdkLogLevel) -> None:
        async with self._transition_lock:
            if self._state in (LifecycleState.FAILED, LifecycleState.STOPPED):
                self._settled.set()
                return

            outgoing, owned = self._client, self._owned
            self._detach_current()
            self._set_state(LifecycleState.CREATING)

            # Errors are kept on the lifecycle and re-raised by wait_ready().
            try:
                if outgoing is not None and owned:
                    await outgoing.close()
                    self._log.info("flag_client_closed_for_recreate", log_level=level)
                await self._create(level)
            except FlagLoggingError as e:
                self._log.error("flag_client_recreate_failed", error=str(e))
            except Exception as e:
                msg = f"Failed to recreate the flag client: {e}"
                error = InitializationError(msg)
                error.__cause__ = e
                self._fail(error)

    def _install(self, client: ClientHandle, *, owned: bool) -> None:
        self._client = client
        self._owned = owned
        self._error = None

        if self._follows_level_flag(client):
            self._subscribe(client)
        if self._logger is not None:
            self._logger.set_client(client)

        self._set_state(LifecycleState.READY)
        self._settled.set()
        if self._on_ready is not None:
            self._on_ready(client)

    def _detach_current(self) -> None:
        self._settled.clear()
        self._unsubscribe()
        if self._logger is not None:
            self._logger.set_client(None)
        self._client = None
        self._owned = False

    def _follows_level_flag(self, client: ClientHandle) -> bool:
        return bool(self._sdk_log_flag_key) and client.supports_subscriptions

    def _subscribe(self, client: ClientHandle) -> None:
        event_name = change_event(self._sdk_log_flag_key)
        callback = partial(self._on_flag_change, client)
        client.subscribe(event_name, callback)
        self._subscription = (client, event_name, callback)
        self._log.debug("flag_change_subscribed", event_name=event_name)

    def _unsubscribe(self) -> None:
        if self._subscription is None:
            return
        client, event_name, callback = self._subscription
        self._subscription = None
        client.unsubscribe(event_name, callback)

    def _on_flag_change(self, source: ClientHandle, value: Any) -> None:
        if source is not self._client:
            return

        is_valid = self._handle_level_value(value)
        if is_valid and self._mode is ReactionMode.RECREATE and self._owned:
            self._schedule_recreate(value)

    def _handle_level_value(self, value: Any) -> bool:
        is_valid = is_valid_remote_level(value)
        if is_valid:
            try:
                self._persistence.write_level(value)
            except (ConfigurationError, OSError) as e:
                self._log.warning("sdk_log_level_not_persisted", value=value, error=str(e))
        else:
            self._log.warning("invalid_sdk_log_level_not_persisted", value=value)

        if self._on_level_change is not None:
            self._on_level_change(value)
        return is_valid

    def _schedule_recreate(self, level: SdkLogLevel) -> None:
        # Waiters block from here until the replacement handle is installed.
        self._settled.clear()
        task = self._loop.create_task(self._recreate(level))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _fail(self, error: BaseException) -> None:
        if self._client is not None:
            self._detach_current()
        self._error = error
        self._set_state(LifecycleState.FAILED)
        self._settled.set()
        self._log.error("flag_client_initialization_failed", error=str(error))

    def _set_state(self, state: LifecycleState) -> None:
        if state is self._state:
            return
        self._log.debug(
            "lifecycle_state_changed",
            from_state=self._state.value,
            to_state=state.value,
        )
        self._state = state
