"""
Data model for the client.

Includes the remote snapshot types (Torrent, ServerState, Snapshot), the
authentication session (Session and the immutable SessionContext handed to
network tasks), and the UI enums (ScreenMode, Severity, ActionKind).
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class TorrentState(Enum):
    DOWNLOADING = "downloading"
    UPLOADING = "uploading"
    PAUSED_DOWNLOAD = "paused download"
    PAUSED_UPLOAD = "paused upload"
    STALLED_UPLOAD = "stalled upload"
    QUEUED_DOWNLOAD = "queued download"
    QUEUED_UPLOAD = "queued upload"
    ERROR = "error"
    OTHER = "other"

    @classmethod
    def from_remote(cls, value: Optional[str]) -> "TorrentState":
        return _REMOTE_STATES.get(value or "", cls.OTHER)

    @property
    def is_paused(self) -> bool:
        return self in (TorrentState.PAUSED_DOWNLOAD, TorrentState.PAUSED_UPLOAD)

    @property
    def color_class(self) -> str:
        return _COLOR_CLASSES[self]


# qBittorrent 5 renamed paused* to stopped*; both are accepted.
_REMOTE_STATES = {
    "downloading": TorrentState.DOWNLOADING,
    "forcedDL": TorrentState.DOWNLOADING,
    "metaDL": TorrentState.DOWNLOADING,
    "forcedMetaDL": TorrentState.DOWNLOADING,
    "uploading": TorrentState.UPLOADING,
    "forcedUP": TorrentState.UPLOADING,
    "pausedDL": TorrentState.PAUSED_DOWNLOAD,
    "stoppedDL": TorrentState.PAUSED_DOWNLOAD,
    "pausedUP": TorrentState.PAUSED_UPLOAD,
    "stoppedUP": TorrentState.PAUSED_UPLOAD,
    "stalledUP": TorrentState.STALLED_UPLOAD,
    "queuedDL": TorrentState.QUEUED_DOWNLOAD,
    "queuedUP": TorrentState.QUEUED_UPLOAD,
    "error": TorrentState.ERROR,
    "missingFiles": TorrentState.ERROR,
}

_COLOR_CLASSES = {
    TorrentState.DOWNLOADING: "green",
    TorrentState.UPLOADING: "blue",
    TorrentState.STALLED_UPLOAD: "blue",
    TorrentState.PAUSED_DOWNLOAD: "yellow",
    TorrentState.PAUSED_UPLOAD: "yellow",
    TorrentState.ERROR: "red",
    TorrentState.QUEUED_DOWNLOAD: "cyan",
    TorrentState.QUEUED_UPLOAD: "cyan",
    TorrentState.OTHER: "white",
}


@dataclass(frozen=True)
class Torrent:
    hash: str
    name: str
    state: TorrentState
    progress: float
    dlspeed: int
    upspeed: int
    size: int
    raw_state: str = ""
    eta: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Torrent":
        """Build a Torrent from one entry of /api/v2/torrents/info."""
        raw_state = data.get("state") or ""
        progress = float(data.get("progress") or 0.0)
        return cls(
            hash=data["hash"],
            name=data.get("name") or "",
            state=TorrentState.from_remote(raw_state),
            progress=min(max(progress, 0.0), 1.0),
            dlspeed=int(data.get("dlspeed") or 0),
            upspeed=int(data.get("upspeed") or 0),
            size=int(data.get("size") or 0),
            raw_state=raw_state,
            eta=data.get("eta"),
        )


@dataclass(frozen=True)
class ServerState:
    """Global transfer info from /api/v2/transfer/info."""
    connection_status: str
    dl_info_speed: int = 0
    up_info_speed: int = 0
    dl_info_data: int = 0
    up_info_data: int = 0
    dht_nodes: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ServerState":
        return cls(
            connection_status=data.get("connection_status") or "unknown",
            dl_info_speed=int(data.get("dl_info_speed") or 0),
            up_info_speed=int(data.get("up_info_speed") or 0),
            dl_info_data=int(data.get("dl_info_data") or 0),
            up_info_data=int(data.get("up_info_data") or 0),
            dht_nodes=data.get("dht_nodes"),
        )


@dataclass(frozen=True)
class Snapshot:
    """The result of one successful poll."""
    torrents: Tuple[Torrent, ...]
    server_state: Optional[ServerState] = None
    fetched_at: float = field(default_factory=time.time)


class AuthStatus(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionContext:
    """
    Immutable view of an authenticated session.

    A fresh instance is handed to every network task, so workers never read
    state the event loop may be changing.
    """
    base_url: str
    cookies: Tuple[Tuple[str, str], ...] = ()
    generation: int = 0

    def cookie_dict(self) -> Dict[str, str]:
        return dict(self.cookies)


@dataclass
class Session:
    base_url: str
    username: str = ""
    status: AuthStatus = AuthStatus.UNAUTHENTICATED
    last_error: Optional[str] = None
    context: Optional[SessionContext] = None
    generation: int = 0
    version: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED


class ActionKind(Enum):
    PAUSE = "pause"
    RESUME = "resume"
    DELETE = "delete"
    ADD = "add"


@dataclass(frozen=True)
class PendingAction:
    key: str
    handles: Tuple[str, ...]
    kind: ActionKind
    submitted_at: float = field(default_factory=time.time)


class Severity(Enum):
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class StatusMessage:
    text: str
    severity: Severity = Severity.INFO


class ScreenMode(Enum):
    LOGIN = "login"
    LIST = "list"
    SEARCH = "search"
    CONFIRM_DELETE = "confirm delete"
    ADD_TORRENT = "add torrent"
