"""Flag client contract and a local in-memory implementation.

A ``ClientHandle`` is the object produced once the flag service is initialized.
Handles declare whether they can deliver change notifications through the
``supports_subscriptions`` class attribute instead of being probed at runtime.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal, TypeVar

from .factory import get_logger
from .log_levels import SdkLogLevel

T = TypeVar("T")

ChangeCallback = Callable[[Any], None]
Bootstrap = Literal["local_storage"]

CHANGE_EVENT_PREFIX = "change:"


def change_event(flag_key: str) -> str:
    """Build the subscription event name for changes to ``flag_key``."""
    return f"{CHANGE_EVENT_PREFIX}{flag_key}"


class ClientHandle(ABC):
    """Evaluation and subscription capability of an initialized flag client."""

    supports_subscriptions: ClassVar[bool] = True

    @abstractmethod
    def evaluate(self, flag_key: str, fallback: T) -> Any | T:
        """Evaluate a flag, returning ``fallback`` when it has no value.

        Must not raise.
        """

    @abstractmethod
    def subscribe(self, event_name: str, callback: ChangeCallback) -> None:
        """Register a callback receiving the raw new value for ``event_name``."""

    @abstractmethod
    def unsubscribe(self, event_name: str, callback: ChangeCallback) -> None:
        """Remove a callback registered with ``subscribe``."""

    async def close(self) -> None:
        """Release the client's resources."""


@dataclass(frozen=True, slots=True)
class ClientOptions:
    """Everything a client factory needs to construct a handle.

    Attributes:
        client_id:  Client-side identifier for the flag service
        context:    Evaluation context built by the caller's context function
        timeout:    Seconds the client may wait for its initial flag values
        log_level:  Level for the client's own internal logging
        bootstrap:  Where the client hydrates local bootstrap state from
    """

    client_id: str
    context: Any
    timeout: float
    log_level: SdkLogLevel
    bootstrap: Bootstrap = "local_storage"


ClientFactory = Callable[[ClientOptions], Awaitable[ClientHandle]]


@dataclass(eq=False)
class InMemoryFlagClient(ClientHandle):
    """Flag client serving values from a local dictionary.

    ``set_flag`` notifies change subscribers synchronously, which makes this
    handle suitable for tests and offline development.

    Attributes:
        flags:      Current flag values
        options:    Options the handle was created with, if any
        closed:     Whether close() has been awaited
    """

    flags: dict[str, Any] = field(default_factory=dict)
    options: ClientOptions | None = None
    closed: bool = False
    _listeners: dict[str, list[ChangeCallback]] = field(
        default_factory=dict, init=False, repr=False
    )

    def evaluate(self, flag_key: str, fallback: T) -> Any | T:
        value = self.flags.get(flag_key)
        return fallback if value is None else value

    def subscribe(self, event_name: str, callback: ChangeCallback) -> None:
        self._listeners.setdefault(event_name, []).append(callback)

    def unsubscribe(self, event_name: str, callback: ChangeCallback) -> None:
        callbacks = self._listeners.get(event_name, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    def set_flag(self, flag_key: str, value: Any) -> None:
        """Change a flag value and notify its subscribers."""
        self.flags[flag_key] = value
        for callback in list(self._listeners.get(change_event(flag_key), ())):
            callback(value)

    async def close(self) -> None:
        self._listeners.clear()
        self.closed = True
        get_logger(__name__).debug("flag_client_closed", client_id=self._client_id)

    @property
    def _client_id(self) -> str | None:
        return self.options.client_id if self.options is not None else None

    @classmethod
    def factory(cls, flags: Mapping[str, Any] | None = None) -> ClientFactory:
        """Build a client factory producing handles seeded with ``flags``."""

        async def create(options: ClientOptions) -> "InMemoryFlagClient":
            get_logger(__name__).debug(
                "flag_client_created",
                client_id=options.client_id,
                log_level=options.log_level,
            )
            return cls(flags=dict(flags or {}), options=options)

        return create
