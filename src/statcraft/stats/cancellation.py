"""Cooperative cancellation for timed waits and tick loops."""

import asyncio
from collections.abc import Awaitable
from typing import Any


class CancellationHandle:
    """
    Advisory cancellation signal threaded through every suspension point.

    Cancelling a handle never interrupts anything by itself; code that
    suspends checks :attr:`cancelled` at its boundaries, or races its wait
    against the handle with :meth:`race`. Handles form a tree: cancelling a
    parent cancels every child created from it.
    """

    def __init__(self, parent: "CancellationHandle | None" = None) -> None:
        self._event = asyncio.Event()
        self._children: list[CancellationHandle] = []
        self._parent = parent

        if parent is not None:
            if parent.cancelled:
                self._event.set()
            else:
                parent._children.append(self)

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def child(self) -> "CancellationHandle":
        """Create a handle that is cancelled together with this one."""
        return CancellationHandle(parent=self)

    def cancel(self) -> bool:
        """
        Request cancellation of this handle and all of its children.

        Returns:
            True if this call changed the state, False if already cancelled
        """
        if self._event.is_set():
            return False

        self._event.set()
        children, self._children = self._children, []
        for child in children:
            child.cancel()
        self.detach()
        return True

    def detach(self) -> None:
        """Stop following the parent handle."""
        if self._parent is not None:
            try:
                self._parent._children.remove(self)
            except ValueError:
                pass
            self._parent = None

    async def wait(self) -> None:
        """Suspend until cancellation is requested."""
        await self._event.wait()

    async def race(self, awaitable: Awaitable[Any]) -> bool:
        """
        Await ``awaitable`` unless this handle is cancelled first.

        Args:
            awaitable: The wait to run, typically a sleep

        Returns:
            True if the awaitable finished, False if cancellation won
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return False

        work = asyncio.ensure_future(awaitable)
        signal = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, signal}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (work, signal):
                if not task.done():
                    task.cancel()

        if work in done:
            work.result()
            return True
        return False
