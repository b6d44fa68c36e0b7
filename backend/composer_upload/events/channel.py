"""Typed observer channel used for every lifecycle signal.

A NotificationChannel maps an event kind (an Enum member) to an ordered list of
listeners. It carries three kinds of traffic in this package:
    - transport notifications (file-added, upload-success, cancel-all, ...)
    - host commands (add-files, cancel-upload, paste)
    - host notifications produced by the session manager

Delivery rules:
    - Listeners run in registration order, on the caller's event loop.
    - emit() is synchronous; a listener that returns an awaitable is scheduled
      as a task so the emitter never blocks.
    - emit_async() awaits awaitable results in order, which lets a transport
      hold its transfer task open until the manager's handler has settled.
    - A failing listener is logged and never stops delivery to the others.

Thread Safety:
    Designed for a single asyncio event loop. NOT thread-safe.
"""
import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Set, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Enum)

Listener = Callable[..., Any]


class NotificationChannel(Generic[K]):
    """Ordered fan-out of events to registered listeners."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: Dict[K, List[Listener]] = {}
        # Keeps scheduled listener tasks alive until they finish
        self._pending: Set[asyncio.Task] = set()

    def on(self, kind: K, listener: Listener) -> None:
        """Register a listener for an event kind."""
        self._listeners.setdefault(kind, []).append(listener)

    def off(self, kind: K, listener: Listener) -> bool:
        """Unregister a listener.

        Returns:
            True if the listener was registered, False otherwise.
        """
        listeners = self._listeners.get(kind, [])
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def clear(self) -> None:
        self._listeners.clear()

    def listener_count(self, kind: K = None) -> int:
        if kind is not None:
            return len(self._listeners.get(kind, []))
        return sum(len(listeners) for listeners in self._listeners.values())

    def emit(self, kind: K, *args: Any) -> None:
        """Deliver an event synchronously.

        Awaitable listener results are scheduled on the running loop.
        """
        for listener in list(self._listeners.get(kind, [])):
            result = self._safe_call(kind, listener, args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(self._safe_await(kind, result))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def emit_async(self, kind: K, *args: Any) -> None:
        """Deliver an event, awaiting each awaitable listener result in turn."""
        for listener in list(self._listeners.get(kind, [])):
            result = self._safe_call(kind, listener, args)
            if inspect.isawaitable(result):
                await self._safe_await(kind, result)

    async def drain(self) -> None:
        """Wait for listener tasks scheduled by emit()."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _safe_call(self, kind: K, listener: Listener, args: tuple) -> Any:
        try:
            return listener(*args)
        except Exception:
            logger.exception(f"[{self.name}] listener failed for {kind.value}")
            return None

    async def _safe_await(self, kind: K, awaitable) -> None:
        try:
            await awaitable
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"[{self.name}] async listener failed for {kind.value}")
