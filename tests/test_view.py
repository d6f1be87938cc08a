"""
Tests for frame rendering.
"""

from qbittui.models import AuthStatus, PendingAction, ActionKind, ScreenMode, ServerState, Session, Severity, Snapshot
from qbittui.state import AppState
from qbittui.view import Frame, render

from conftest import make_torrent


def make_state(width=80, height=24, torrents=()):
    state = AppState(Session(base_url="http://nas:8080", username="admin", version="v5.0.0"))
    state.set_viewport(width, height)
    if torrents:
        state.replace_torrents(Snapshot(torrents=tuple(torrents)))
    state.mode = ScreenMode.LIST
    return state


class TestFrame:
    def test_put_clips_to_width(self):
        frame = Frame(10, 2)
        frame.put(0, 6, "abcdefgh")
        assert frame.line(0) == "      abcd"

    def test_put_outside_is_dropped(self):
        frame = Frame(10, 2)
        frame.put(5, 0, "x")
        frame.put(0, 12, "x")
        assert frame.spans == []


class TestRender:
    def test_too_small(self):
        state = make_state(width=60, height=20)
        frame = render(state)
        assert frame.too_small
        assert "Terminal too small!" in frame.text()
        assert "Current: 60x20" in frame.text()

    def test_login_masks_password(self):
        state = make_state()
        state.mode = ScreenMode.LOGIN
        state.login.password = "hunter2"
        text = render(state).text()

        assert "qBittorrent Login" in text
        assert "hunter2" not in text
        assert "●" * 7 in text

        state.login.show_password = True
        assert "hunter2" in render(state).text()

    def test_login_shows_progress_and_cursor(self):
        state = make_state()
        state.mode = ScreenMode.LOGIN
        state.session.status = AuthStatus.AUTHENTICATING
        frame = render(state)
        assert "Logging in..." in frame.text()
        assert frame.cursor is not None

    def test_list_rows(self):
        torrents = [
            make_torrent("a" * 40, name="ubuntu-24.04.iso", raw_state="downloading", progress=0.42,
                         dlspeed=1536, size=4 * 1024 ** 3, eta=90),
            make_torrent("b" * 40, name="debian-12.iso", raw_state="pausedDL", progress=1.0),
        ]
        state = make_state(torrents=torrents)
        state.server_state = ServerState(connection_status="connected")
        frame = render(state)

        header = frame.line(0)
        assert "http://nas:8080" in header and "(admin)" in header and "v5.0.0" in header
        assert "Torrents: 2" in frame.line(1)

        first = frame.line(4)
        assert first.startswith("→ ubuntu-24.04.")
        assert "42%" in first
        assert "4.0 GiB" in first
        assert "1.5 KiB/s" in first
        assert "1m" in first
        assert len(first) <= 80

        second = frame.line(5)
        assert second.startswith("  debian-12.iso")
        assert "pausedDL" in second
        assert "100%" in second

    def test_pending_marker(self):
        handle = "b" * 40
        state = make_state(torrents=[make_torrent("a" * 40), make_torrent(handle)])
        state.pending[handle] = PendingAction(key=handle, handles=(handle,), kind=ActionKind.PAUSE)
        frame = render(state)
        assert frame.line(5).startswith("* ")
        assert "Pending: 1" in frame.line(1)

    def test_empty_states(self):
        state = make_state()
        assert "Loading torrents..." in render(state).text()

        state.replace_torrents(Snapshot(torrents=()))
        assert "No torrents found" in render(state).text()

        state.set_query("abc")
        assert "No torrents match 'abc'" in render(state).text()

    def test_filter_line(self):
        state = make_state(torrents=[make_torrent("h1", name="Ubuntu"), make_torrent("h2", name="Debian")])
        state.set_query("ubu")
        assert "Filter: 'ubu' (1/2)" in render(state).line(22)

    def test_banner_replaces_filter_line(self):
        state = make_state(torrents=[make_torrent("h1")])
        state.set_query("h")
        state.set_status("Delete failed for x: 500", Severity.ERROR)
        line = render(state).line(22)
        assert line == "Delete failed for x: 500"
        styles = [s.style for s in render(state).spans if s.row == 22]
        assert styles == ["error"]

    def test_overlays(self):
        state = make_state(torrents=[make_torrent("h1", name="Ubuntu")])

        state.mode = ScreenMode.SEARCH
        assert "Search Torrents" in render(state).text()

        state.mode = ScreenMode.CONFIRM_DELETE
        state.delete_target = state.current_torrent()
        assert "Delete 'Ubuntu'?" in render(state).text()

        state.mode = ScreenMode.ADD_TORRENT
        state.path_input = "/tmp/x.torrent"
        frame = render(state)
        assert "/tmp/x.torrent" in frame.text()
        assert frame.cursor is not None

    def test_scroll_indicator(self):
        torrents = [make_torrent(f"h{i:02d}") for i in range(30)]
        state = make_state(torrents=torrents)
        state.end()
        assert "[13-30/30]" in render(state).line(1)
