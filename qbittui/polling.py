"""
Background polling of the remote torrent list.

The scheduler has two halves:

- ``run()`` is a timer task that emits a Tick event every POLL_INTERVAL
  seconds. It never touches the network itself.
- ``request(context)`` is called by the event loop (on a Tick, or when the user
  forces a refresh) and starts a list fetch on the thread pool, unless one is
  already in flight. Skipped requests are dropped, not queued, so the display
  is never more than two intervals behind even on a slow link.

Completed fetches are reported back as PollCompleted events.
"""

import asyncio
from concurrent.futures import Executor
from typing import Optional

from .base_client import RemoteService
from .config import Config
from .errors import PollError, PollErrorKind, RemoteError, RemoteErrorKind
from .events import EventChannel, PollCompleted, Tick
from .logger import logger
from .models import SessionContext, Snapshot


POLL_INTERVAL = Config.POLL_INTERVAL


class PollScheduler:
    def __init__(
        self,
        client: RemoteService,
        channel: EventChannel,
        executor: Executor,
        interval: float = POLL_INTERVAL,
    ):
        self.client = client
        self.channel = channel
        self.interval = interval
        self._executor = executor
        self._in_flight = False
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _poll_sync(self, context: SessionContext) -> Snapshot:
        """
        Synchronously fetch one snapshot (runs in thread pool).

        Transfer info is best effort: only an authorization failure there
        fails the poll.
        """
        torrents = self.client.list_torrents(context)

        try:
            server_state = self.client.transfer_info(context)
        except RemoteError as e:
            if e.kind is RemoteErrorKind.UNAUTHORIZED:
                raise
            logger.debug(f"Failed to fetch transfer info: {e}")
            server_state = None

        return Snapshot(torrents=tuple(torrents), server_state=server_state)

    def request(self, context: Optional[SessionContext]) -> bool:
        """
        Start a poll unless one is in flight or there is no valid session.

        Returns:
            True if a fetch was started
        """
        if context is None:
            return False
        if self._in_flight:
            logger.debug("Poll skipped: previous poll still in flight")
            return False

        self._in_flight = True
        self._task = asyncio.get_running_loop().create_task(self._poll(context))
        return True

    async def _poll(self, context: SessionContext) -> None:
        loop = asyncio.get_running_loop()
        try:
            snapshot = await loop.run_in_executor(self._executor, self._poll_sync, context)
        except RemoteError as e:
            logger.error(f"Failed to poll {context.base_url}: {e}")
            event = PollCompleted(context.generation, error=e.as_poll_error())
        except Exception as e:
            logger.exception(f"Unexpected error polling {context.base_url}")
            event = PollCompleted(context.generation, error=PollError(PollErrorKind.NETWORK, str(e)))
        else:
            event = PollCompleted(context.generation, snapshot=snapshot)
        finally:
            self._in_flight = False

        self.channel.emit(event)

    async def run(self) -> None:
        """Main timer loop."""
        self._running = True
        logger.info(f"Poll scheduler started (interval: {self.interval}s)")

        while self._running:
            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            self.channel.emit(Tick())

        logger.info("Poll scheduler stopped")

    def stop(self) -> None:
        """Signal the timer loop to stop."""
        self._running = False
