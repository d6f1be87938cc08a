"""
In-memory application state.

AppState is the single source of truth the renderer draws from. It is owned by
the event loop: nothing else mutates it, so none of it is locked.

The filtered view is derived from the torrent list and the search query and is
recomputed whenever either changes. The selected index always points into the
filtered view, or is 0 when that view is empty.
"""

from typing import Dict, List, Optional

from .config import Config
from .models import (
    PendingAction,
    ScreenMode,
    ServerState,
    Session,
    Severity,
    Snapshot,
    StatusMessage,
    Torrent,
)


MIN_WIDTH = Config.MIN_WIDTH
MIN_HEIGHT = Config.MIN_HEIGHT

# title + server info + column header + rule + status banner + key help
LIST_RESERVED_ROWS = 6

LOGIN_FIELDS = ("url", "username", "password")


def filter_torrents(torrents: List[Torrent], query: str) -> List[Torrent]:
    """Case-insensitive substring match on name or remote state."""
    if not query:
        return list(torrents)
    needle = query.lower()
    return [
        t for t in torrents
        if needle in t.name.lower() or needle in t.raw_state.lower()
    ]


class LoginForm:
    def __init__(self, url: str = "", username: str = ""):
        self.url = url
        self.username = username
        self.password = ""
        self.focus = "username" if url else "url"
        self.show_password = False

    @property
    def complete(self) -> bool:
        return bool(self.url.strip() and self.username and self.password)

    def cycle(self, step: int = 1) -> None:
        index = LOGIN_FIELDS.index(self.focus)
        self.focus = LOGIN_FIELDS[(index + step) % len(LOGIN_FIELDS)]

    def insert(self, char: str) -> None:
        setattr(self, self.focus, getattr(self, self.focus) + char)

    def backspace(self) -> None:
        setattr(self, self.focus, getattr(self, self.focus)[:-1])


class AppState:
    def __init__(self, session: Session, min_width: int = MIN_WIDTH, min_height: int = MIN_HEIGHT):
        self.session = session
        self.mode = ScreenMode.LOGIN
        self.should_quit = False

        self.torrents: List[Torrent] = []
        self.filtered: List[Torrent] = []
        self.server_state: Optional[ServerState] = None
        self.last_update: Optional[float] = None
        self.query = ""

        self.selected = 0
        self.scroll_offset = 0
        self.min_width = min_width
        self.min_height = min_height
        self.width = min_width
        self.height = min_height
        self.visible_rows = max(min_height - LIST_RESERVED_ROWS, 1)

        self.pending: Dict[str, PendingAction] = {}
        self.status: Optional[StatusMessage] = None
        self.status_origin = ""

        self.login = LoginForm(url=session.base_url, username=session.username)
        self.path_input = ""
        self.delete_target: Optional[Torrent] = None

    # -------------------------------------------------------------------------
    # Torrent list
    # -------------------------------------------------------------------------

    def replace_torrents(self, snapshot: Snapshot) -> None:
        """Replace the list wholesale, keeping the cursor on the same torrent if it survives."""
        current = self.current_torrent()
        self.torrents = list(snapshot.torrents)
        if snapshot.server_state is not None:
            self.server_state = snapshot.server_state
        self.last_update = snapshot.fetched_at
        self._refilter(keep=current.hash if current else None)

    def clear_torrents(self) -> None:
        self.torrents = []
        self.server_state = None
        self.last_update = None
        self._refilter()

    def set_query(self, query: str) -> None:
        self.query = query
        self.selected = 0
        self.scroll_offset = 0
        self._refilter()

    def _refilter(self, keep: Optional[str] = None) -> None:
        self.filtered = filter_torrents(self.torrents, self.query)
        if keep is not None:
            for index, torrent in enumerate(self.filtered):
                if torrent.hash == keep:
                    self.selected = index
                    break
        self._clamp()

    def current_torrent(self) -> Optional[Torrent]:
        if 0 <= self.selected < len(self.filtered):
            return self.filtered[self.selected]
        return None

    def find(self, handle: str) -> Optional[Torrent]:
        for torrent in self.torrents:
            if torrent.hash == handle:
                return torrent
        return None

    def visible_torrents(self) -> List[Torrent]:
        return self.filtered[self.scroll_offset:self.scroll_offset + self.visible_rows]

    # -------------------------------------------------------------------------
    # Cursor movement
    # -------------------------------------------------------------------------

    def move(self, delta: int) -> None:
        self.selected += delta
        self._clamp()

    def page_down(self) -> None:
        self.move(self.visible_rows)

    def page_up(self) -> None:
        self.move(-self.visible_rows)

    def home(self) -> None:
        self.selected = 0
        self._clamp()

    def end(self) -> None:
        self.selected = len(self.filtered) - 1
        self._clamp()

    def _clamp(self) -> None:
        count = len(self.filtered)
        if count == 0:
            self.selected = 0
            self.scroll_offset = 0
            return

        self.selected = min(max(self.selected, 0), count - 1)

        if self.selected < self.scroll_offset:
            self.scroll_offset = self.selected
        elif self.selected >= self.scroll_offset + self.visible_rows:
            self.scroll_offset = self.selected - self.visible_rows + 1
        self.scroll_offset = min(self.scroll_offset, max(count - self.visible_rows, 0))

    # -------------------------------------------------------------------------
    # Terminal surface
    # -------------------------------------------------------------------------

    def set_viewport(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.visible_rows = max(height - LIST_RESERVED_ROWS, 1)
        self._clamp()

    @property
    def too_small(self) -> bool:
        return self.width < self.min_width or self.height < self.min_height

    # -------------------------------------------------------------------------
    # Status banner
    # -------------------------------------------------------------------------

    def set_status(self, text: str, severity: Severity = Severity.INFO, origin: str = "") -> None:
        self.status = StatusMessage(text, severity)
        self.status_origin = origin

    def clear_status(self, origin: Optional[str] = None) -> None:
        """Clear the banner; with origin, only if that origin set it."""
        if origin is not None and self.status_origin != origin:
            return
        self.status = None
        self.status_origin = ""
