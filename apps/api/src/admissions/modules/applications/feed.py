"""
Live Dashboard Feed

Every write to the applications table calls notify_change(), which wakes
any open ApplicationSubscription. A subscription yields the full, filtered
result set each time it wakes, and also on a fixed refresh interval so that
writes made by other API processes are picked up.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.config import settings
from admissions.modules.applications import repository
from admissions.modules.applications.helpers import filter_applications
from admissions.modules.applications.models import Application, ApplicationStatus

logger = logging.getLogger(__name__)


class ChangeBroadcaster:
    """In-process fan-out of "something changed" signals."""

    def __init__(self) -> None:
        self._listeners: set[asyncio.Event] = set()

    def register(self) -> asyncio.Event:
        event = asyncio.Event()
        self._listeners.add(event)
        return event

    def unregister(self, event: asyncio.Event) -> None:
        self._listeners.discard(event)

    def notify(self) -> None:
        for event in self._listeners:
            event.set()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


broadcaster = ChangeBroadcaster()


def notify_change() -> None:
    """Wake every open subscription in this process."""
    broadcaster.notify()


class ApplicationSubscription:
    """
    Cancellable handle over a live stream of dashboard snapshots.

    Usage:
        subscription = ApplicationSubscription(async_session_maker, status=None, search="das")
        async for snapshot in subscription:
            ...  # list[Application], newest first

        subscription.cancel()  # from another task; the loop above ends

    Each ``async for`` starts a fresh stream, so a cancelled subscription can
    be iterated again. The stream never ends on its own.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        status: ApplicationStatus | None = None,
        search: str | None = None,
        refresh_seconds: float | None = None,
        change_broadcaster: ChangeBroadcaster | None = None,
    ):
        self.session_factory = session_factory
        self.status = status
        self.search = search
        self.refresh_seconds = (
            refresh_seconds if refresh_seconds is not None else settings.feed_refresh_seconds
        )
        self._broadcaster = change_broadcaster or broadcaster
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop the active stream after its current snapshot."""
        self._cancelled.set()

    async def snapshot(self) -> list[Application]:
        """Query the store and apply the dashboard filter once."""
        async with self.session_factory() as session:
            records = await repository.list_applications(session, status=self.status)
        return filter_applications(records, self.status, self.search)

    def __aiter__(self) -> AsyncIterator[list[Application]]:
        self._cancelled.clear()
        return self._stream()

    async def _stream(self) -> AsyncIterator[list[Application]]:
        changed = self._broadcaster.register()
        try:
            while not self._cancelled.is_set():
                changed.clear()
                yield await self.snapshot()
                await self._wait_for_change(changed)
        finally:
            self._broadcaster.unregister(changed)

    async def _wait_for_change(self, changed: asyncio.Event) -> None:
        change_wait = asyncio.ensure_future(changed.wait())
        cancel_wait = asyncio.ensure_future(self._cancelled.wait())
        try:
            await asyncio.wait(
                {change_wait, cancel_wait},
                timeout=self.refresh_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in (change_wait, cancel_wait):
                waiter.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await waiter
