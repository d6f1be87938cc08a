"""
Fire-and-forget dispatch of user commands to the remote service.

Each dispatched command registers a PendingAction per target handle in the
shared pending map, runs on the thread pool, and reports back with an
ActionCompleted event. The event loop removes the pending entries when it
processes that event. A command targeting a handle that is still pending is
refused synchronously, without touching the network.
"""

import asyncio
import functools
from concurrent.futures import Executor
from typing import Dict, Iterable, Optional, Set, Tuple

from .base_client import RemoteService
from .errors import ActionError, ActionErrorKind, RemoteError
from .events import ActionCompleted, EventChannel
from .logger import logger
from .models import ActionKind, PendingAction, SessionContext


def add_key(path: str) -> str:
    """Pending key for an add request, which has no torrent handle yet."""
    return f"add:{path}"


class ActionDispatcher:
    def __init__(
        self,
        client: RemoteService,
        channel: EventChannel,
        executor: Executor,
        pending: Dict[str, PendingAction],
    ):
        self.client = client
        self.channel = channel
        self.pending = pending
        self._executor = executor
        self._tasks: Set[asyncio.Task] = set()

    def is_pending(self, handle: str) -> bool:
        return handle in self.pending

    def dispatch(
        self,
        context: SessionContext,
        handles: Iterable[str],
        kind: ActionKind,
        path: Optional[str] = None,
        delete_files: bool = False,
    ) -> bool:
        """
        Issue a remote action without waiting for it.

        Args:
            context: Authenticated session snapshot
            handles: Target torrent hashes (ignored for ADD)
            kind: PAUSE, RESUME, DELETE or ADD
            path: For ADD, a .torrent path, magnet URI or URL
            delete_files: For DELETE, also remove downloaded data

        Returns:
            False if any target is already pending (or the ADD path is empty),
            True once the request has been started
        """
        if kind is ActionKind.ADD:
            path = (path or "").strip()
            if not path:
                return False
            handles = ()
            keys: Tuple[str, ...] = (add_key(path),)
        else:
            handles = tuple(handles)
            if not handles:
                return False
            keys = handles

        busy = [key for key in keys if key in self.pending]
        if busy:
            logger.debug(f"Refusing {kind.value}: already pending for {', '.join(busy)}")
            return False

        for key in keys:
            self.pending[key] = PendingAction(key=key, handles=handles, kind=kind)

        job = functools.partial(self._apply, context, handles, kind, path, delete_files)
        task = asyncio.get_running_loop().create_task(self._run(context, keys, handles, kind, job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    def _apply(self, context, handles, kind, path, delete_files) -> None:
        """Perform the request (runs in thread pool)."""
        if kind is ActionKind.ADD:
            self.client.add_torrent(context, path)
        else:
            self.client.apply_action(context, handles, kind, delete_files=delete_files)

    async def _run(self, context, keys, handles, kind, job) -> None:
        loop = asyncio.get_running_loop()
        error = None
        try:
            await loop.run_in_executor(self._executor, job)
        except RemoteError as e:
            logger.error(f"Failed to {kind.value} {', '.join(keys)}: {e}")
            error = e.as_action_error()
        except Exception as e:
            logger.exception(f"Unexpected error during {kind.value}")
            error = ActionError(ActionErrorKind.REJECTED, str(e))

        self.channel.emit(
            ActionCompleted(
                keys=keys,
                handles=handles,
                kind=kind,
                generation=context.generation,
                error=error,
            )
        )
