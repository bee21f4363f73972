"""test_notifier.py - Debounced tool-list notifications."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pare.tools.notifier import ToolListChangedNotifier


@pytest.fixture
def registry():
    registry = MagicMock()
    registry.send_tool_list_changed = AsyncMock()
    return registry


class TestToolListChangedNotifier:
    @pytest.mark.asyncio
    async def test_first_change_sent_immediately(self, registry):
        notifier = ToolListChangedNotifier(registry, debounce_seconds=0.05)

        await notifier()

        registry.send_tool_list_changed.assert_awaited_once()
        assert notifier.pending is False

    @pytest.mark.asyncio
    async def test_burst_is_coalesced(self, registry):
        notifier = ToolListChangedNotifier(registry, debounce_seconds=0.05)

        await notifier()
        await notifier()
        await notifier()
        assert registry.send_tool_list_changed.await_count == 1
        assert notifier.pending is True

        await asyncio.sleep(0.15)

        assert registry.send_tool_list_changed.await_count == 2
        assert notifier.pending is False

    @pytest.mark.asyncio
    async def test_changes_outside_window_sent_directly(self, registry):
        notifier = ToolListChangedNotifier(registry, debounce_seconds=0.01)

        await notifier()
        await asyncio.sleep(0.05)
        await notifier()

        assert registry.send_tool_list_changed.await_count == 2
        assert notifier.pending is False

    @pytest.mark.asyncio
    async def test_flush_sends_pending(self, registry):
        notifier = ToolListChangedNotifier(registry, debounce_seconds=10)
        await notifier()
        await notifier()

        await notifier.flush()

        assert registry.send_tool_list_changed.await_count == 2
        assert notifier.pending is False

    @pytest.mark.asyncio
    async def test_flush_without_pending_is_noop(self, registry):
        notifier = ToolListChangedNotifier(registry)

        await notifier.flush()

        registry.send_tool_list_changed.assert_not_called()

    @pytest.mark.asyncio
    async def test_sync_registry_method(self):
        registry = MagicMock()
        registry.send_tool_list_changed = MagicMock(return_value=None)
        notifier = ToolListChangedNotifier(registry)

        await notifier.on_tools_changed()

        registry.send_tool_list_changed.assert_called_once_with()
