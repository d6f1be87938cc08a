"""
Abstract base class defining the interface for the remote torrent service.

The event loop, poll scheduler and action dispatcher only ever talk to this
interface. QBittorrentClient implements it over the qBittorrent WebUI API;
tests substitute an in-memory fake.

Every method raises ``RemoteError`` on failure, with kind UNAUTHORIZED kept
distinct from the other failures so callers can trigger re-authentication.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List

from .models import ActionKind, ServerState, SessionContext, Torrent


class RemoteService(ABC):
    """Abstract base class for remote torrent service implementations."""

    @abstractmethod
    def login(self, base_url: str, username: str, password: str) -> SessionContext:
        """
        Exchange credentials for an authenticated context.

        Raises:
            AuthError: INVALID_CREDENTIALS or UNREACHABLE
        """
        pass

    @abstractmethod
    def logout(self, context: SessionContext) -> None:
        """End the remote session."""
        pass

    @abstractmethod
    def app_version(self, context: SessionContext) -> str:
        """Return the remote application version string."""
        pass

    @abstractmethod
    def list_torrents(self, context: SessionContext) -> List[Torrent]:
        """Fetch the full torrent list, in the order the service reports it."""
        pass

    @abstractmethod
    def transfer_info(self, context: SessionContext) -> ServerState:
        """Fetch global transfer statistics."""
        pass

    @abstractmethod
    def apply_action(
        self,
        context: SessionContext,
        handles: Iterable[str],
        kind: ActionKind,
        delete_files: bool = False,
    ) -> None:
        """
        Pause, resume or delete the given torrents.

        Args:
            context: Authenticated session snapshot
            handles: Torrent info hashes
            kind: PAUSE, RESUME or DELETE
            delete_files: For DELETE, also remove downloaded data
        """
        pass

    @abstractmethod
    def add_torrent(self, context: SessionContext, path: str) -> None:
        """
        Add a torrent from a local .torrent path, magnet URI or http(s) URL.

        The path is passed through; the service decides whether it is valid.
        """
        pass
