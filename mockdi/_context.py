"""Per-scope storage of built instances and the resources they own."""

from __future__ import annotations

import contextlib
import threading
from types import TracebackType
from typing import Any

import anyio
import anyio.to_thread
from typing_extensions import Self

from ._types import NOT_SET, Scope


class TaskLock:
    """An async lock the holding task may acquire again without blocking."""

    __slots__ = ("_lock", "_holder", "_depth")

    def __init__(self) -> None:
        self._lock = anyio.Lock()
        self._holder: anyio.TaskInfo | None = None
        self._depth = 0

    async def __aenter__(self) -> Self:
        task = anyio.get_current_task()
        if self._holder != task:
            await self._lock.acquire()
            self._holder = task
        self._depth += 1
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._depth -= 1
        if not self._depth:
            self._holder = None
            self._lock.release()


class ScopeContext:
    """Instances cached for one scope, with the exit stacks of their resources.

    Closing drops every cached instance and exits the entered resources in
    reverse order, synchronous ones first. A closed context can be reused.
    """

    __slots__ = ("scope", "_instances", "_stack", "_async_stack", "_lock", "_alock")

    def __init__(self, scope: Scope) -> None:
        self.scope = scope
        self._instances: dict[Any, Any] = {}
        self._stack: contextlib.ExitStack | None = None
        self._async_stack: contextlib.AsyncExitStack | None = None
        self._lock: threading.RLock | None = None
        self._alock: TaskLock | None = None

    def get(self, interface: Any, default: Any = NOT_SET) -> Any:
        return self._instances.get(interface, default)

    def set(self, interface: Any, instance: Any) -> None:
        self._instances[interface] = instance

    def forget(self, interface: Any) -> None:
        """Drop the cached instance; its resource stays open until close."""
        self._instances.pop(interface, None)

    def __contains__(self, interface: Any) -> bool:
        return interface in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def enter(self, cm: contextlib.AbstractContextManager[Any]) -> Any:
        """Enter `cm` and keep it open until the context closes."""
        if self._stack is None:
            self._stack = contextlib.ExitStack()
        return self._stack.enter_context(cm)

    async def aenter(self, cm: contextlib.AbstractAsyncContextManager[Any]) -> Any:
        """Enter the async `cm` and keep it open until the context closes."""
        if self._async_stack is None:
            self._async_stack = contextlib.AsyncExitStack()
        return await self._async_stack.enter_async_context(cm)

    def lock(self) -> threading.RLock:
        if self._lock is None:
            self._lock = threading.RLock()
        return self._lock

    def alock(self) -> TaskLock:
        if self._alock is None:
            self._alock = TaskLock()
        return self._alock

    # == Closing ==

    def close(self) -> None:
        self.__exit__(None, None, None)

    async def aclose(self) -> None:
        await self.__aexit__(None, None, None)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        self._instances.clear()
        stack, self._stack = self._stack, None
        if stack is None:
            return False
        return bool(stack.__exit__(exc_type, exc_val, exc_tb))

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        # Sync resources are exited in a worker thread
        suppressed = await anyio.to_thread.run_sync(
            self.__exit__, exc_type, exc_val, exc_tb
        )
        async_stack, self._async_stack = self._async_stack, None
        if async_stack is not None:
            suppressed = bool(
                await async_stack.__aexit__(exc_type, exc_val, exc_tb)
            ) or suppressed
        return suppressed
