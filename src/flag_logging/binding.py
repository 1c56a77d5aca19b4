"""Glue between a ClientLifecycle, a Logger and whatever renders the application."""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

from .client import ClientHandle
from .lifecycle import ClientLifecycle
from .logger import Logger

V = TypeVar("V")


class ReadyGate(Generic[V]):
    """Shows a placeholder until the lifecycle is ready, then the rendered view.

    ``render`` is called once per handle; while a handle is being recreated the
    placeholder is shown again.

    Args:
        lifecycle:      Lifecycle to observe
        render:         Builds the view from the ready handle
        placeholder:    View shown in every state before READY
    """

    def __init__(
            self,
            lifecycle: ClientLifecycle,
            render: Callable[[ClientHandle], V],
            placeholder: V | None = None
    ) -> None:
        self._lifecycle = lifecycle
        self._render = render
        self._placeholder = placeholder
        self._rendered_for: ClientHandle | None = None
        self._view: V | None = None

    def view(self) -> V | None:
        client = self._lifecycle.client
        if not self._lifecycle.is_ready or client is None:
            return self._placeholder

        if client is not self._rendered_for:
            self._view = self._render(client)
            self._rendered_for = client
        return self._view


@contextmanager
def use_logger(logger: Logger, client: ClientHandle | None) -> Iterator[Logger]:
    """Attach ``client`` to ``logger`` for the duration of the block.

    A None client leaves the logger untouched, mirroring a scope where no
    ambient client exists yet.
    """
    if client is None:
        yield logger
        return

    logger.set_client(client)
    try:
        yield logger
    finally:
        logger.set_client(None)
