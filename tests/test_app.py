"""
Tests for the event loop: key handling, login, polling and action results.
"""

import asyncio
import json

import pytest

from qbittui.app import App
from qbittui.logger import logger
from qbittui.errors import ActionError, ActionErrorKind, PollError, PollErrorKind, RemoteError, RemoteErrorKind
from qbittui.events import ActionCompleted, Key, KeyPressed, LoginCompleted, PollCompleted, Resized
from qbittui.models import ActionKind, AuthStatus, ScreenMode, Severity, Snapshot
from qbittui.settings import Settings

from conftest import BASE_URL, FakeTerminal, make_torrent, next_event, sign_in, wait_for


def press(app, name, char=""):
    app.handle(KeyPressed(Key(name, char)))


def type_text(app, text):
    for char in text:
        app.handle(KeyPressed(Key.of(char)))


@pytest.fixture
def app(remote, terminal, tmp_path):
    application = App(
        remote,
        terminal,
        settings=Settings(),
        settings_path=str(tmp_path / "config.json"),
        url=BASE_URL,
        username="admin",
        poll_interval=60,
    )
    application.state.set_viewport(100, 30)
    yield application
    remote.gate.set()
    application._executor.shutdown(wait=True)


async def login(app, password="secret"):
    app.state.login.password = password
    press(app, "enter")
    return await next_event(app, LoginCompleted)


class TestLogin:
    @pytest.mark.asyncio
    async def test_wrong_password_stays_on_login_with_error(self, app):
        """Wrong password shows an error banner and stays on Login."""
        await login(app, password="wrong")

        assert app.state.mode is ScreenMode.LOGIN
        assert app.state.session.status is AuthStatus.UNAUTHENTICATED
        assert app.state.status.severity is Severity.ERROR
        assert "Login failed" in app.state.status.text
        assert "Invalid username or password" in app.state.status.text

    @pytest.mark.asyncio
    async def test_successful_login_switches_to_list_and_polls(self, app, remote, tmp_path):
        """Login success saves settings and fetches the list right away."""
        await login(app)

        assert app.state.mode is ScreenMode.LIST
        assert app.state.session.is_authenticated
        assert app.state.session.version == "v5.0.0"
        assert app.state.login.password == ""

        saved = json.loads((tmp_path / "config.json").read_text())
        assert saved["url"] == BASE_URL
        assert saved["username"] == "admin"
        assert "password" not in saved

        await next_event(app, PollCompleted)
        assert [t.name for t in app.state.torrents] == ["ubuntu-24.04.iso", "debian-12.iso", "fedora-40.iso"]
        assert app.state.server_state.connection_status == "connected"

    @pytest.mark.asyncio
    async def test_incomplete_form_is_not_submitted(self, app, remote):
        press(app, "enter")

        assert remote.calls["login"] == 0
        assert app.state.status.severity is Severity.ERROR

    @pytest.mark.asyncio
    async def test_invalid_url_is_reported(self, app, remote):
        app.state.login.url = "ftp://nas"
        app.state.login.password = "secret"
        press(app, "enter")

        assert remote.calls["login"] == 0
        assert "Unsupported URL scheme" in app.state.status.text

    def test_form_editing(self, app):
        assert app.state.login.focus == "username"
        press(app, "backspace")
        type_text(app, "min2")
        assert app.state.login.username == "admimin2"

        press(app, "tab")
        type_text(app, "pw")
        assert app.state.login.password == "pw"

        press(app, "ctrl+t")
        assert app.state.login.show_password

        press(app, "btab")
        press(app, "btab")
        assert app.state.login.focus == "url"

    def test_escape_quits_from_login(self, app):
        press(app, "esc")
        assert app.state.should_quit

    def test_stray_login_result_is_ignored(self, app):
        app.handle(LoginCompleted(session=None, error=None))
        assert app.state.session.status is AuthStatus.UNAUTHENTICATED


class TestPolling:
    def test_poll_without_missing_handle_removes_it(self, app):
        sign_in(app)
        generation = app.state.session.generation
        first = (make_torrent("h1"), make_torrent("h2"), make_torrent("h3"))

        app.handle(PollCompleted(generation, snapshot=Snapshot(torrents=first)))
        app.handle(PollCompleted(generation, snapshot=Snapshot(torrents=first[::2])))

        assert [t.hash for t in app.state.filtered] == ["h1", "h3"]

    def test_stale_generation_is_discarded(self, app):
        sign_in(app)
        stale = app.state.session.generation - 1

        app.handle(PollCompleted(stale, snapshot=Snapshot(torrents=(make_torrent("h1"),))))

        assert app.state.torrents == []

    def test_network_error_sets_banner_and_success_clears_it(self, app):
        sign_in(app)
        generation = app.state.session.generation

        app.handle(PollCompleted(generation, error=PollError(PollErrorKind.NETWORK, "Could not connect")))
        assert app.state.status.severity is Severity.ERROR
        assert "Could not connect" in app.state.status.text
        assert app.state.mode is ScreenMode.LIST

        app.handle(PollCompleted(generation, snapshot=Snapshot(torrents=())))
        assert app.state.status is None

    def test_success_keeps_unrelated_banner(self, app):
        sign_in(app)
        app.state.set_status("Pause requested: x")

        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=())))

        assert app.state.status.text == "Pause requested: x"

    @pytest.mark.asyncio
    async def test_refresh_key_polls(self, app, remote):
        sign_in(app)
        press(app, "char", "r")
        await next_event(app, PollCompleted)
        assert remote.calls["list_torrents"] == 1
        assert len(app.state.torrents) == 3


class TestExpiry:
    def test_unauthorized_results_move_to_login_once(self, app):
        """However many tasks report Unauthorized, the switch happens once."""
        sign_in(app)
        generation = app.state.session.generation
        unauthorized = ActionError(ActionErrorKind.UNAUTHORIZED)

        app.handle(ActionCompleted(("h1",), ("h1",), ActionKind.PAUSE, generation, error=unauthorized))
        assert app.state.mode is ScreenMode.LOGIN
        assert app.state.session.status is AuthStatus.EXPIRED
        assert "expired" in app.state.status.text

        # User starts typing; later reports must not disturb the form
        app.state.clear_status()
        app.state.login.focus = "url"
        app.handle(ActionCompleted(("h2",), ("h2",), ActionKind.DELETE, generation, error=unauthorized))
        app.handle(PollCompleted(generation, error=PollError(PollErrorKind.UNAUTHORIZED)))

        assert app.state.status is None
        assert app.state.login.focus == "url"
        assert app.state.pending == {}

    def test_late_success_after_expiry_is_discarded(self, app):
        sign_in(app)
        generation = app.state.session.generation
        app.handle(PollCompleted(generation, error=PollError(PollErrorKind.UNAUTHORIZED)))

        app.handle(PollCompleted(generation, snapshot=Snapshot(torrents=(make_torrent("h1"),))))

        assert app.state.torrents == []
        assert app.state.mode is ScreenMode.LOGIN

    def test_action_without_session_goes_to_login(self, app):
        app.state.mode = ScreenMode.LIST
        assert app.dispatch(["h1"], ActionKind.PAUSE) is False
        assert app.state.mode is ScreenMode.LOGIN


class TestActions:
    @pytest.mark.asyncio
    async def test_second_space_is_rejected_while_pending(self, app, remote):
        """Space pauses a downloading torrent; a repeat before the result is refused."""
        await login(app)
        await next_event(app, PollCompleted)
        remote.gate.clear()

        assert app.state.current_torrent().name == "ubuntu-24.04.iso"
        press(app, "char", " ")
        handle = "a" * 40
        assert handle in app.state.pending
        await wait_for(lambda: remote.calls["apply_action"] == 1)

        press(app, "char", " ")
        assert "pending" in app.state.status.text

        remote.gate.set()
        await next_event(app, ActionCompleted)

        assert remote.calls["apply_action"] == 1
        assert remote.actions == [((handle,), ActionKind.PAUSE, False)]
        assert app.state.pending == {}
        assert app.state.status.text == "Pause requested: ubuntu-24.04.iso"

    @pytest.mark.asyncio
    async def test_space_resumes_paused_torrent(self, app, remote):
        sign_in(app)
        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=tuple(remote.torrents))))
        press(app, "down")

        press(app, "char", " ")
        await next_event(app, ActionCompleted)

        assert remote.actions == [(("b" * 40,), ActionKind.RESUME, False)]

    @pytest.mark.asyncio
    async def test_delete_with_files(self, app, remote):
        sign_in(app)
        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=tuple(remote.torrents))))

        press(app, "char", "d")
        assert app.state.mode is ScreenMode.CONFIRM_DELETE
        press(app, "char", "Y")
        assert app.state.mode is ScreenMode.LIST
        await next_event(app, ActionCompleted)

        assert remote.actions == [(("a" * 40,), ActionKind.DELETE, True)]

    @pytest.mark.asyncio
    async def test_delete_cancelled_by_other_key(self, app, remote):
        sign_in(app)
        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=tuple(remote.torrents))))

        press(app, "delete")
        press(app, "char", "n")

        assert app.state.mode is ScreenMode.LIST
        assert app.state.pending == {}
        await asyncio.sleep(0)
        assert remote.calls["apply_action"] == 0

    @pytest.mark.asyncio
    async def test_add_torrent(self, app, remote):
        sign_in(app)

        press(app, "char", "a")
        assert app.state.mode is ScreenMode.ADD_TORRENT
        type_text(app, "magnet:?xt=urn:btih:abc")
        press(app, "enter")
        assert app.state.mode is ScreenMode.LIST
        await next_event(app, ActionCompleted)

        assert remote.added == ["magnet:?xt=urn:btih:abc"]
        assert app.state.status.text == "Add requested: magnet:?xt=urn:btih:abc"

    def test_add_with_empty_path_stays_open(self, app, remote):
        sign_in(app)
        press(app, "char", "a")
        press(app, "enter")

        assert app.state.mode is ScreenMode.ADD_TORRENT
        assert app.state.status.severity is Severity.ERROR
        assert remote.calls["add_torrent"] == 0

    def test_not_found_is_informational(self, app):
        sign_in(app)
        error = ActionError(ActionErrorKind.NOT_FOUND, "Torrent no longer exists")

        app.handle(ActionCompleted(("h1",), ("h1",), ActionKind.PAUSE, app.state.session.generation, error=error))

        assert app.state.status.severity is Severity.INFO
        assert "no longer exists" in app.state.status.text

    @pytest.mark.asyncio
    async def test_rejected_action_shows_error(self, app, remote):
        sign_in(app)
        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=tuple(remote.torrents))))
        remote.action_error = RemoteError(RemoteErrorKind.REJECTED, "409 Conflict")

        press(app, "char", " ")
        await next_event(app, ActionCompleted)

        assert app.state.status.severity is Severity.ERROR
        assert app.state.status.text == "Pause failed for ubuntu-24.04.iso: 409 Conflict"
        # No optimistic change to the list
        assert app.state.torrents[0].raw_state == "downloading"


class TestNavigation:
    def test_search_filters_live_and_escape_clears(self, app, remote):
        sign_in(app)
        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=tuple(remote.torrents))))

        press(app, "char", "/")
        assert app.state.mode is ScreenMode.SEARCH
        type_text(app, "DEB")
        assert [t.name for t in app.state.filtered] == ["debian-12.iso"]

        press(app, "esc")
        assert app.state.mode is ScreenMode.LIST
        assert app.state.query == ""
        assert len(app.state.filtered) == 3

    def test_enter_keeps_filter(self, app, remote):
        sign_in(app)
        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=tuple(remote.torrents))))

        press(app, "ctrl+f")
        type_text(app, "iso")
        press(app, "backspace")
        press(app, "enter")

        assert app.state.mode is ScreenMode.LIST
        assert app.state.query == "is"

    def test_movement_keys(self, app, remote):
        sign_in(app)
        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=tuple(remote.torrents))))

        press(app, "char", "j")
        press(app, "down")
        press(app, "down")
        assert app.state.selected == 2
        press(app, "char", "k")
        assert app.state.selected == 1
        press(app, "home")
        assert app.state.selected == 0
        press(app, "end")
        assert app.state.selected == 2

    def test_resize_updates_viewport(self, app):
        app.handle(Resized(120, 40))
        assert (app.state.width, app.state.height) == (120, 40)
        assert app.state.visible_rows == 34

    @pytest.mark.asyncio
    async def test_logout(self, app, remote):
        sign_in(app)
        app.handle(PollCompleted(app.state.session.generation, snapshot=Snapshot(torrents=tuple(remote.torrents))))

        press(app, "ctrl+l")

        assert app.state.mode is ScreenMode.LOGIN
        assert app.state.session.status is AuthStatus.UNAUTHENTICATED
        assert app.state.torrents == []
        await wait_for(lambda: remote.calls["logout"] == 1)

    def test_q_quits_from_list(self, app):
        sign_in(app)
        press(app, "char", "q")
        assert app.state.should_quit

    def test_ctrl_q_quits_from_any_mode(self, app):
        sign_in(app)
        press(app, "char", "a")
        press(app, "ctrl+q")
        assert app.state.should_quit


class TestRun:
    @pytest.mark.asyncio
    async def test_one_redraw_per_event(self, remote, tmp_path):
        terminal = FakeTerminal()
        app = App(remote, terminal, settings_path=str(tmp_path / "config.json"),
                  url=BASE_URL, username="ad", poll_interval=60)

        for char in "min":
            app.channel.emit(KeyPressed(Key.of(char)))
        app.channel.emit(KeyPressed(Key("ctrl+q")))

        await asyncio.wait_for(app.run(), 2)

        # initial frame plus one per handled event; quitting does not redraw
        assert len(terminal.frames) == 4
        assert app.state.login.username == "admin"
        assert terminal.emit is None

    @pytest.mark.asyncio
    async def test_autologin_with_password(self, remote, tmp_path):
        terminal = FakeTerminal()
        app = App(remote, terminal, settings_path=str(tmp_path / "config.json"),
                  url=BASE_URL, username="admin", password="secret", poll_interval=60)

        task = asyncio.create_task(app.run())
        await wait_for(lambda: app.state.mode is ScreenMode.LIST and app.state.torrents)
        app.channel.emit(KeyPressed(Key("ctrl+q")))
        await asyncio.wait_for(task, 2)

        assert remote.calls["login"] == 1
        assert "Loading torrents..." not in terminal.frames[-1].text()

    @pytest.mark.asyncio
    async def test_quit_with_request_in_flight_is_logged(self, remote, tmp_path):
        terminal = FakeTerminal()
        app = App(remote, terminal, settings_path=str(tmp_path / "config.json"),
                  url=BASE_URL, username="admin", poll_interval=60)
        sign_in(app)
        remote.gate.clear()
        messages = []
        sink = logger.add(messages.append, format="{message}")

        app.channel.emit(KeyPressed(Key.of("r")))
        app.channel.emit(KeyPressed(Key("ctrl+q")))
        try:
            await asyncio.wait_for(app.run(), 2)
        finally:
            logger.remove(sink)
            remote.gate.set()

        assert app.poller.in_flight
        assert any("in-flight requests" in message for message in messages)
