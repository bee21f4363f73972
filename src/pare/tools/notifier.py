"""
notifier.py - Debounced "tool list changed" notifications

Several discovery calls in quick succession each change the tool manifest.
ToolListChangedNotifier coalesces changes inside ``debounce_seconds`` into a
single notification so clients do not refetch the tool list repeatedly.

    LazyToolManager --notify--> ToolListChangedNotifier --send_tool_list_changed--> registry
"""

from __future__ import annotations

import asyncio
import inspect
import time

from ..config.logging import get_logger
from .registry import ToolRegistry

logger = get_logger("pare.tools.notifier")


class ToolListChangedNotifier:
    """
    Forwards manifest changes to the registry with debouncing.

    The first change outside the debounce window is sent immediately. Changes
    inside the window restart a timer; one notification goes out when it
    expires.
    """

    def __init__(self, registry: ToolRegistry, debounce_seconds: float = 1.0):
        self.registry = registry
        self.debounce_seconds = debounce_seconds
        self._last_notification: float | None = None
        self._debounce_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    async def __call__(self) -> None:
        await self.on_tools_changed()

    async def on_tools_changed(self) -> None:
        async with self._lock:
            now = time.monotonic()
            recent = (
                self._last_notification is not None
                and now - self._last_notification < self.debounce_seconds
            )
            if not recent:
                self._last_notification = now
                await self._send()
                return

            if self._debounce_task is not None and not self._debounce_task.done():
                self._debounce_task.cancel()
            logger.debug("notifier.debounced", debounce_seconds=self.debounce_seconds)
            self._debounce_task = asyncio.create_task(self._debounced_send())

    async def _debounced_send(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        async with self._lock:
            self._debounce_task = None
            self._last_notification = time.monotonic()
        await self._send()

    async def _send(self) -> None:
        result = self.registry.send_tool_list_changed()
        if inspect.isawaitable(result):
            await result

    @property
    def pending(self) -> bool:
        return self._debounce_task is not None and not self._debounce_task.done()

    async def flush(self) -> None:
        """Send a pending debounced notification now."""
        task = self._debounce_task
        if task is None or task.done():
            return
        task.cancel()
        async with self._lock:
            self._debounce_task = None
            self._last_notification = time.monotonic()
        await self._send()


__all__ = ["ToolListChangedNotifier"]
