import asyncio
import inspect
import logging
from typing import Dict, List, Callable

logger = logging.getLogger(__name__)

BUSY = "busy"
FREE = "free"


class EventEmitter:
    """Simple event emitter for upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners, in subscription order."""
        if event_name not in self._listeners:
            return

        for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
            try:
                result = callback(*args, **kwargs)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}")


class EditorSignals(EventEmitter):
    """
    Busy/free channel shared between the uploader and co-located editor logic.

    Autosave or version polling subscribe with on_busy/on_free and pause while
    a transfer or delete is on the wire. Busy calls nest: only the outermost
    free() is broadcast.
    """

    def __init__(self):
        super().__init__()
        self._depth = 0

    @property
    def is_busy(self) -> bool:
        return self._depth > 0

    def on_busy(self, callback: Callable[[], None]):
        self.on(BUSY, callback)

    def on_free(self, callback: Callable[[], None]):
        self.on(FREE, callback)

    async def busy(self):
        self._depth += 1
        if self._depth == 1:
            await self.emit(BUSY)

    async def free(self):
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            await self.emit(FREE)
