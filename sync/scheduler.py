from __future__ import annotations

import asyncio
import contextlib
import logging

from persistence.document_store import DocumentStore, serialize_document

from .remote import RemoteSyncClient

logger = logging.getLogger(__name__)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class DebouncedSyncScheduler:
    """
    Coalesces local writes into pushes to the remote.

    - request_sync() (re)arms a debounce timer; only the last request in a burst fires.
    - A periodic tick pushes whenever the stored document differs from the last
      content the remote accepted, covering timers lost to suspension.
    - At most one push runs at a time. A trigger during a push queues exactly one
      follow-up push, which reloads the latest document.
    """

    def __init__(
        self,
        store: DocumentStore,
        client: RemoteSyncClient,
        *,
        debounce_seconds: float = 1.0,
        interval_seconds: float = 5.0,
    ):
        self._store = store
        self._client = client
        self._debounce = max(0.0, debounce_seconds)
        self._interval = interval_seconds
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self._push_task: asyncio.Task[None] | None = None
        self._follow_up = False
        self._stopping = False
        self.pushes_started = 0

    @property
    def client(self) -> RemoteSyncClient:
        return self._client

    @property
    def running(self) -> bool:
        return self._loop is not None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def pushing(self) -> bool:
        return self._push_task is not None and not self._push_task.done()

    def start(self) -> None:
        """Bind to the running event loop and start the periodic tick."""
        if self._loop is not None:
            return
        self._loop = asyncio.get_running_loop()
        if self._interval > 0:
            self._tick_task = self._loop.create_task(self._tick_loop())
        logger.info(
            "SYNC: scheduler started (debounce=%.2fs interval=%.2fs remote=%s)",
            self._debounce,
            self._interval,
            self._client.remote_url or "disabled",
        )

    async def stop(self, *, flush: bool = False) -> None:
        if self._loop is None or self._stopping:
            return
        # From here on request_sync() is dropped, so no timer can outlive stop().
        self._stopping = True
        self._cancel_timer()
        if self._tick_task is not None:
            self._tick_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._tick_task
            self._tick_task = None
        if flush:
            self._trigger("flush")
        if self._push_task is not None:
            await self._push_task
            self._push_task = None
        self._cancel_timer()
        self._loop = None
        self._stopping = False
        logger.info("SYNC: scheduler stopped")

    def request_sync(self) -> None:
        """Non-blocking; may be called from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed() or self._stopping:
            logger.debug("SYNC: scheduler not running, sync request dropped")
            return
        if _running_loop() is loop:
            self._arm()
        else:
            loop.call_soon_threadsafe(self._arm)

    async def flush(self) -> None:
        """Push now, skipping the quiet period, and wait for it to finish."""
        self._cancel_timer()
        self._trigger("flush")
        while self._push_task is not None and not self._push_task.done():
            await self._push_task

    def check_divergence(self) -> bool:
        if not self._client.enabled:
            return False
        serialized = serialize_document(self._store.load())
        if not self._client.has_diverged(serialized):
            return False
        self._trigger("interval")
        return True

    def _arm(self) -> None:
        if self._loop is None or self._stopping:
            return
        self._cancel_timer()
        self._timer = self._loop.call_later(self._debounce, self._on_quiet_period)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_quiet_period(self) -> None:
        self._timer = None
        self._trigger("debounce")

    def _trigger(self, reason: str) -> None:
        if self._loop is None:
            return
        if self.pushing:
            self._follow_up = True
            logger.debug("SYNC: push in flight, queued follow-up (%s)", reason)
            return
        self._push_task = self._loop.create_task(self._push_loop(reason))

    async def _push_loop(self, reason: str) -> None:
        while True:
            self._follow_up = False
            self.pushes_started += 1
            try:
                doc = self._store.load()
                await self._client.push(doc)
            except Exception:
                logger.exception("SYNC: push (%s) failed unexpectedly", reason)
            if not self._follow_up:
                return
            reason = "follow-up"

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.check_divergence()
            except Exception:
                logger.exception("SYNC: divergence check failed")
