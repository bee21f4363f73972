"""
lazy.py - Lazy Tool Manager

Keeps the tool manifest small: only core tools are registered at startup,
everything else waits in a deferred set until ``discover-tools`` asks for it.

State per tool name:

    DEFERRED --claim--> LOADING --register ok--> REGISTERED
                           |
                           +--register raised--> DEFERRED (error re-raised)

The claim is an atomic check-and-set under a lock, so concurrent discovery
calls never register the same tool twice. Registering an already registered
name is a no-op and is not reported as loaded.

A tool is visible iff it is core or has been discovered during this server's
lifetime.
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import Iterable
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from ..config.logging import get_logger
from ..types import OrjsonModel, ToolDescriptor
from .registry import ToolRegistry

logger = get_logger("pare.tools.lazy")

LOAD_ALL = "all"


class ToolState(str, Enum):
    DEFERRED = "deferred"
    LOADING = "loading"
    REGISTERED = "registered"


class LazyToolInfo(OrjsonModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str


class DiscoveryResult(OrjsonModel):
    """Outcome of one discovery call."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    available: list[LazyToolInfo] = Field(default_factory=list)
    loaded: list[str] = Field(default_factory=list)
    visible: list[str] = Field(default_factory=list)

    @computed_field(alias="totalAvailable")
    @property
    def total_available(self) -> int:
        return len(self.available)


class LazyToolManager:
    """Tracks core and deferred tools for one server's registry."""

    def __init__(
        self,
        registry: ToolRegistry,
        notify: Optional[Callable[[], Any]] = None,
    ):
        self.registry = registry
        self._notify = notify if notify is not None else registry.send_tool_list_changed
        self._lock = threading.Lock()
        self._descriptors: dict[str, ToolDescriptor] = {}
        self._states: dict[str, ToolState] = {}
        self._visible: dict[str, None] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_lazy(self, descriptor: ToolDescriptor) -> bool:
        """Defer ``descriptor``. Returns False when the name is already known."""
        with self._lock:
            if descriptor.name in self._states:
                return False
            self._descriptors[descriptor.name] = descriptor
            self._states[descriptor.name] = ToolState.DEFERRED
        logger.debug("lazy.deferred", tool=descriptor.name)
        return True

    def register_core(self, descriptor: ToolDescriptor) -> bool:
        """Register ``descriptor`` right away. Returns False if already registered.

        Core tools are registered while the server is being built, outside any
        event loop, so an async ``register`` raises TypeError.
        """
        name = descriptor.name
        with self._lock:
            previous = self._states.get(name)
            if previous in (ToolState.REGISTERED, ToolState.LOADING):
                return False
            previous_descriptor = self._descriptors.get(name)
            self._descriptors[name] = descriptor
            self._states[name] = ToolState.LOADING
        try:
            result = descriptor.register(self.registry)
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise TypeError(f"Core tool '{name}' needs a synchronous register callable")
        except BaseException:
            with self._lock:
                if previous is None:
                    del self._states[name]
                    del self._descriptors[name]
                else:
                    self._states[name] = previous
                    self._descriptors[name] = previous_descriptor
            raise
        self._complete(name)
        logger.debug("lazy.core", tool=name)
        return True

    def _complete(self, name: str) -> None:
        with self._lock:
            self._states[name] = ToolState.REGISTERED
            self._visible[name] = None

    def _rollback(self, name: str) -> None:
        with self._lock:
            self._states[name] = ToolState.DEFERRED

    def _claim(self, name: str) -> Optional[ToolDescriptor]:
        with self._lock:
            if self._states.get(name) is not ToolState.DEFERRED:
                return None
            self._states[name] = ToolState.LOADING
            return self._descriptors[name]

    async def _materialize(self, name: str) -> bool:
        descriptor = self._claim(name)
        if descriptor is None:
            return False
        try:
            result = descriptor.register(self.registry)
            if inspect.isawaitable(result):
                await result
        except BaseException:
            self._rollback(name)
            logger.warning("lazy.load_failed", tool=name)
            raise
        self._complete(name)
        logger.info("lazy.loaded", tool=name)
        return True

    async def _send_notification(self) -> None:
        result = self._notify()
        if inspect.isawaitable(result):
            await result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_deferred_tools(self) -> bool:
        with self._lock:
            return any(s is ToolState.DEFERRED for s in self._states.values())

    def list_lazy(self) -> list[LazyToolInfo]:
        with self._lock:
            return [
                LazyToolInfo(name=name, description=self._descriptors[name].description)
                for name, state in self._states.items()
                if state is ToolState.DEFERRED
            ]

    def visible_tools(self) -> list[str]:
        with self._lock:
            return list(self._visible)

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return self._states.get(name) is ToolState.REGISTERED

    def state_of(self, name: str) -> Optional[ToolState]:
        with self._lock:
            return self._states.get(name)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_tool(self, name: str) -> bool:
        """Register one deferred tool. False for unknown or already loaded names."""
        loaded = await self._materialize(name)
        if loaded:
            await self._send_notification()
        return loaded

    async def load_all(self) -> int:
        """Register every deferred tool; one notification for the whole batch."""
        return len(await self._load_many(self._deferred_names()))

    async def discover(self, names: Optional[Iterable[str]] = None) -> DiscoveryResult:
        """Load the requested names (``"all"`` loads everything) and report state.

        Unknown and already registered names are skipped silently.
        """
        requested = list(dict.fromkeys(names or ()))
        if LOAD_ALL in requested:
            requested = self._deferred_names()
        loaded = await self._load_many(requested)
        return DiscoveryResult(
            available=self.list_lazy(),
            loaded=loaded,
            visible=self.visible_tools(),
        )

    def _deferred_names(self) -> list[str]:
        with self._lock:
            return [n for n, s in self._states.items() if s is ToolState.DEFERRED]

    async def _load_many(self, names: Iterable[str]) -> list[str]:
        loaded: list[str] = []
        try:
            for name in names:
                if await self._materialize(name):
                    loaded.append(name)
        finally:
            if loaded:
                await self._send_notification()
        return loaded


__all__ = [
    "LOAD_ALL",
    "DiscoveryResult",
    "LazyToolInfo",
    "LazyToolManager",
    "ToolState",
]
