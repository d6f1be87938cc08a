"""
Rendering of AppState into a terminal frame.

``render(state)`` is a pure function: it reads the state and returns a Frame,
a list of styled text spans plus an optional cursor position. Painting the
frame is the terminal adapter's job. Style names are symbolic ("title",
"selected", "green", ...) and mapped to colors by the adapter.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .models import AuthStatus, ScreenMode, Severity, Torrent
from .state import AppState
from .utils import format_eta, format_size, format_speed, truncate


# Columns after the name: (title, width), right aligned except State
COLUMNS = (("Done", 5), ("Size", 10), ("Down", 12), ("Up", 12), ("State", 11), ("ETA", 7))
ROW_PREFIX = 2
MIN_NAME_WIDTH = 14


@dataclass(frozen=True)
class Span:
    row: int
    col: int
    text: str
    style: str = "default"


@dataclass
class Frame:
    width: int
    height: int
    spans: List[Span] = field(default_factory=list)
    cursor: Optional[Tuple[int, int]] = None
    too_small: bool = False

    def put(self, row: int, col: int, text: str, style: str = "default") -> int:
        """Add a span clipped to the frame; returns the column after it."""
        if row < 0 or row >= self.height or col >= self.width or not text:
            return col + len(text)
        clipped = text[:self.width - col]
        self.spans.append(Span(row, col, clipped, style))
        return col + len(text)

    def center(self, row: int, text: str, style: str = "default") -> None:
        self.put(row, max((self.width - len(text)) // 2, 0), text, style)

    def line(self, row: int) -> str:
        """Plain text of one row, spans overlaid left to right."""
        cells = [" "] * self.width
        for span in self.spans:
            if span.row == row:
                for offset, char in enumerate(span.text):
                    if span.col + offset < self.width:
                        cells[span.col + offset] = char
        return "".join(cells).rstrip()

    def text(self) -> str:
        return "\n".join(self.line(row) for row in range(self.height))


def render(state: AppState) -> Frame:
    frame = Frame(state.width, state.height)

    if state.too_small:
        _draw_too_small(frame, state)
        return frame

    if state.mode is ScreenMode.LOGIN:
        _draw_login(frame, state)
        return frame

    _draw_main(frame, state)
    if state.mode is ScreenMode.SEARCH:
        _draw_search(frame, state)
    elif state.mode is ScreenMode.CONFIRM_DELETE:
        _draw_confirm_delete(frame, state)
    elif state.mode is ScreenMode.ADD_TORRENT:
        _draw_add_torrent(frame, state)
    return frame


def _draw_too_small(frame: Frame, state: AppState) -> None:
    frame.too_small = True
    lines = [
        "Terminal too small!",
        f"Minimum size: {state.min_width}x{state.min_height}",
        f"Current: {state.width}x{state.height}",
        "Resize the terminal or press Ctrl+Q to quit.",
    ]
    top = max((frame.height - len(lines)) // 2, 0)
    for offset, text in enumerate(lines):
        frame.center(top + offset, text, "error")


def _box(frame: Frame, top: int, width: int, height: int, title: str, style: str = "border") -> int:
    """Draw a centered box and return its left column."""
    width = min(width, frame.width)
    left = max((frame.width - width) // 2, 0)
    inner = width - 2
    label = f" {title} " if title else ""
    frame.put(top, left, "┌" + label + "─" * max(inner - len(label), 0) + "┐", style)
    for row in range(top + 1, top + height - 1):
        frame.put(row, left, "│" + " " * inner + "│", style)
    frame.put(top + height - 1, left, "└" + "─" * inner + "┘", style)
    return left


def _draw_banner(frame: Frame, row: int, state: AppState) -> None:
    if state.status is None:
        return
    style = "error" if state.status.severity is Severity.ERROR else "info"
    frame.put(row, 0, truncate(state.status.text, frame.width), style)


def _draw_login(frame: Frame, state: AppState) -> None:
    form = state.login
    width = min(70, frame.width)
    height = 12
    top = max((frame.height - height) // 2, 0)
    left = _box(frame, top, width, height, "qBittorrent Login")
    field_width = width - 18

    password = form.password if form.show_password else "●" * len(form.password)
    fields = (
        ("url", "WebUI URL", form.url),
        ("username", "Username", form.username),
        ("password", "Password", password),
    )
    for offset, (name, label, value) in enumerate(fields):
        row = top + 2 + offset * 2
        focused = form.focus == name
        marker = ">" if focused else " "
        frame.put(row, left + 2, f"{marker} {label:<10}", "focus" if focused else "default")
        shown = value[-field_width:] if len(value) > field_width else value
        frame.put(row, left + 15, shown or " ", "input")
        if focused:
            frame.cursor = (row, left + 15 + len(shown))

    if state.session.status is AuthStatus.AUTHENTICATING:
        frame.put(top + 8, left + 2, "Logging in...", "info")
    elif state.status is not None:
        style = "error" if state.status.severity is Severity.ERROR else "info"
        frame.put(top + 8, left + 2, truncate(state.status.text, width - 4), style)

    frame.put(top + 10, left + 2, truncate("Tab: next field | Enter: login | Ctrl+T: show/hide | Esc: quit", width - 4), "dim")


def _name_width(width: int) -> int:
    fixed = sum(w for _, w in COLUMNS) + len(COLUMNS)
    return max(width - ROW_PREFIX - fixed, MIN_NAME_WIDTH)


def _cell(title: str, text: str, width: int) -> str:
    return f"{text:<{width}}" if title == "State" else f"{text:>{width}}"


def _draw_main(frame: Frame, state: AppState) -> None:
    _draw_header(frame, state)

    name_width = _name_width(frame.width)
    header = " " * ROW_PREFIX + f"{'Name':<{name_width}}"
    for title, width in COLUMNS:
        header += " " + _cell(title, title, width)
    frame.put(2, 0, header, "header")
    frame.put(3, 0, "─" * frame.width, "border")

    first_row = 4
    if not state.filtered:
        if state.query:
            message = f"No torrents match '{state.query}'"
        elif state.last_update is None:
            message = "Loading torrents..."
        else:
            message = "No torrents found"
        frame.center(first_row + state.visible_rows // 2 - 1, message, "dim")
        frame.center(first_row + state.visible_rows // 2, "Press 'a' to add a torrent", "dim")
    else:
        for offset, torrent in enumerate(state.visible_torrents()):
            index = state.scroll_offset + offset
            _draw_torrent_row(frame, first_row + offset, torrent, index == state.selected,
                              torrent.hash in state.pending, name_width)

    banner_row = frame.height - 2
    if state.status is not None:
        _draw_banner(frame, banner_row, state)
    elif state.query:
        frame.put(banner_row, 0, f"Filter: '{state.query}' ({len(state.filtered)}/{len(state.torrents)})", "info")

    frame.put(frame.height - 1, 0, truncate(_help_text(state.mode), frame.width), "dim")


def _draw_header(frame: Frame, state: AppState) -> None:
    session = state.session
    title = f" qbittui  {session.base_url}"
    if session.username:
        title += f"  ({session.username})"
    if session.version:
        title += f"  qBittorrent {session.version}"
    frame.put(0, 0, title.ljust(frame.width), "title")

    col = 0
    server = state.server_state
    if server is not None:
        col = frame.put(1, col, "Status: ", "cyan")
        col = frame.put(1, col, server.connection_status)
        col = frame.put(1, col, "  |  Down: ", "green")
        col = frame.put(1, col, format_speed(server.dl_info_speed) or "0 B/s")
        col = frame.put(1, col, "  |  Up: ", "red")
        col = frame.put(1, col, format_speed(server.up_info_speed) or "0 B/s")
        col = frame.put(1, col, "  |  ")
    col = frame.put(1, col, "Torrents: ", "yellow")
    col = frame.put(1, col, str(len(state.torrents)))
    if len(state.filtered) > state.visible_rows:
        last = min(state.scroll_offset + state.visible_rows, len(state.filtered))
        col = frame.put(1, col, f" [{state.scroll_offset + 1}-{last}/{len(state.filtered)}]")
    if state.pending:
        col = frame.put(1, col, f"  |  Pending: {len(state.pending)}", "magenta")
    if state.last_update is not None:
        updated = "Updated " + time.strftime("%H:%M:%S", time.localtime(state.last_update))
        if col + 2 + len(updated) <= frame.width:
            frame.put(1, frame.width - len(updated), updated, "dim")


def _draw_torrent_row(frame: Frame, row: int, torrent: Torrent, selected: bool, pending: bool,
                      name_width: int) -> None:
    prefix = "→ " if selected else ("* " if pending else "  ")
    values = {
        "Done": f"{int(torrent.progress * 100)}%",
        "Size": format_size(torrent.size),
        "Down": format_speed(torrent.dlspeed),
        "Up": format_speed(torrent.upspeed),
        "State": torrent.raw_state or torrent.state.value,
        "ETA": format_eta(torrent.eta, torrent.raw_state),
    }
    styles = {"State": torrent.state.color_class, "ETA": "magenta"}

    col = frame.put(row, 0, f"{prefix}{truncate(torrent.name, name_width):<{name_width}}",
                    "selected" if selected else "default")
    for title, width in COLUMNS:
        style = "selected" if selected else styles.get(title, "default")
        col = frame.put(row, col, " " + _cell(title, truncate(values[title], width), width), style)


def _draw_search(frame: Frame, state: AppState) -> None:
    width = min(60, frame.width - 4)
    top = max((frame.height - 3) // 2, 0)
    left = _box(frame, top, width, 3, f"Search Torrents ({len(state.filtered)})", "input")
    visible = state.query[-(width - 4):] if len(state.query) > width - 4 else state.query
    frame.put(top + 1, left + 2, visible, "input")
    frame.cursor = (top + 1, left + 2 + len(visible))


def _draw_confirm_delete(frame: Frame, state: AppState) -> None:
    width = min(60, frame.width - 4)
    top = max((frame.height - 6) // 2, 0)
    left = _box(frame, top, width, 6, "Confirm Delete", "error")
    name = state.delete_target.name if state.delete_target else ""
    frame.put(top + 2, left + 2, truncate(f"Delete '{name}'?", width - 4))
    frame.put(top + 3, left + 2, truncate("y/Enter: delete | Y: delete with files | other: cancel", width - 4), "dim")


def _draw_add_torrent(frame: Frame, state: AppState) -> None:
    width = min(70, frame.width - 4)
    top = max((frame.height - 6) // 2, 0)
    left = _box(frame, top, width, 6, "Add Torrent")
    frame.put(top + 1, left + 2, "Torrent file path, magnet link or URL:")
    room = width - 4
    visible = state.path_input[-room:] if len(state.path_input) > room else state.path_input
    frame.put(top + 2, left + 2, visible or " ", "input")
    frame.cursor = (top + 2, left + 2 + len(visible))
    frame.put(top + 4, left + 2, "Enter: add | Esc: cancel", "dim")


def _help_text(mode: ScreenMode) -> str:
    if mode is ScreenMode.SEARCH:
        return "Type to filter | Enter: keep filter | Esc: clear filter | Ctrl+Q: quit"
    if mode is ScreenMode.CONFIRM_DELETE:
        return "y/Enter: delete | Y: delete with files | any other key: cancel"
    if mode is ScreenMode.ADD_TORRENT:
        return "Enter: add torrent | Esc: cancel"
    return (
        "q/Ctrl+Q: quit | r: refresh | ↑↓/jk: move | PgUp/PgDn | Home/End | Space: pause/resume"
        " | d: delete | a: add | Ctrl+F: search | Ctrl+L: logout"
    )
