"""
The event loop.

App owns the AppState and is the only code that mutates it. Terminal input,
timer ticks, poll results, login results and action results all arrive as
events on one EventChannel; the loop takes exactly one event per iteration,
applies it, and redraws exactly once.

Network work (login, polls, actions, logout) runs on a shared thread pool and
reports back through the channel. Results that belong to an earlier login
(older session generation) or arrive after the session expired are discarded,
except for an authorization failure from the current generation, which moves
the session to Expired and the screen to Login exactly once.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Set

from .base_client import RemoteService
from .config import Config
from .dispatcher import ActionDispatcher
from .errors import ActionErrorKind, AuthError, AuthErrorKind, RemoteError
from .events import (
    ActionCompleted,
    EventChannel,
    Key,
    KeyPressed,
    LoginCompleted,
    PollCompleted,
    Resized,
    Tick,
)
from .logger import logger
from .models import ActionKind, AuthStatus, ScreenMode, Session, SessionContext, Severity
from .polling import PollScheduler
from .session import SessionManager
from .settings import CONFIG_PATH, Settings, save as save_settings
from .state import AppState
from .utils import normalize_url
from .view import render


POLL_INTERVAL = Config.POLL_INTERVAL
WORKERS = Config.WORKERS
REQUEST_TIMEOUT = Config.REQUEST_TIMEOUT

POLL_ORIGIN = "poll"


class App:
    def __init__(
        self,
        client: RemoteService,
        terminal=None,
        settings: Optional[Settings] = None,
        settings_path: str = CONFIG_PATH,
        url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        poll_interval: float = POLL_INTERVAL,
        workers: int = WORKERS,
        renderer=render,
    ):
        self.client = client
        self.terminal = terminal
        self.settings = settings or Settings()
        self.settings_path = settings_path
        self.renderer = renderer

        session = Session(
            base_url=url or self.settings.url or Config.DEFAULT_URL,
            username=username if username is not None else (self.settings.username or ""),
        )
        self.state = AppState(session)
        self.session_manager = SessionManager(client)

        self.channel = EventChannel()
        self._executor = ThreadPoolExecutor(max_workers=workers)
        self.poller = PollScheduler(client, self.channel, self._executor, poll_interval)
        self.dispatcher = ActionDispatcher(client, self.channel, self._executor, self.state.pending)
        self._tasks: Set[asyncio.Task] = set()

        if password:
            self.state.login.password = password
        self._autologin = bool(password and self.state.login.username)

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        width, height = self.terminal.size()
        self.state.set_viewport(width, height)

        self.terminal.attach(loop, self.channel.emit)
        ticker = loop.create_task(self.poller.run())
        logger.info("Event loop started")

        if self._autologin:
            self.submit_login()

        try:
            self.redraw()
            while True:
                event = await self.channel.get()
                self.handle(event)
                if self.state.should_quit:
                    break
                self.redraw()
        finally:
            self.poller.stop()
            ticker.cancel()
            self.terminal.detach(loop)
            # Requests already running cannot be interrupted; the interpreter
            # joins their worker threads at exit.
            if self.poller.in_flight or self.state.pending or self._tasks:
                logger.info(f"Waiting up to {REQUEST_TIMEOUT}s for in-flight requests before exit")
            self._executor.shutdown(wait=False, cancel_futures=True)
            logger.info("Event loop stopped")

    def redraw(self) -> None:
        self.terminal.draw(self.renderer(self.state))

    def handle(self, event) -> None:
        """Apply one event to the state."""
        if isinstance(event, KeyPressed):
            self.handle_key(event.key)
        elif isinstance(event, Tick):
            self.request_poll()
        elif isinstance(event, PollCompleted):
            self._on_poll(event)
        elif isinstance(event, ActionCompleted):
            self._on_action(event)
        elif isinstance(event, LoginCompleted):
            self._on_login(event)
        elif isinstance(event, Resized):
            self.state.set_viewport(event.width, event.height)
        else:
            logger.error(f"Ignoring unknown event {event!r}")

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def _context(self) -> Optional[SessionContext]:
        try:
            return self.session_manager.ensure_valid(self.state.session)
        except AuthError:
            return None

    def _is_stale(self, generation: int) -> bool:
        session = self.state.session
        return generation != session.generation or not session.is_authenticated

    def _expire(self) -> None:
        session = self.state.session
        if not self.session_manager.mark_expired(session):
            return
        self.state.mode = ScreenMode.LOGIN
        self.state.login.focus = "password"
        self.state.set_status(session.last_error, Severity.ERROR)

    def _require_login(self) -> None:
        self.state.mode = ScreenMode.LOGIN
        self.state.set_status("Not logged in", Severity.ERROR)

    def submit_login(self) -> None:
        session = self.state.session
        form = self.state.login
        if session.status is AuthStatus.AUTHENTICATING:
            return
        if not form.complete:
            self.state.set_status("URL, username and password are required", Severity.ERROR)
            return

        try:
            url = normalize_url(form.url)
        except ValueError as e:
            self.state.set_status(str(e), Severity.ERROR)
            return

        form.url = url
        self.session_manager.begin(session, url, form.username)
        self.state.clear_status()
        self._spawn(self._login(url, form.username, form.password))

    async def _login(self, url: str, username: str, password: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            session = await loop.run_in_executor(
                self._executor, self.session_manager.authenticate, url, username, password
            )
        except AuthError as e:
            self.channel.emit(LoginCompleted(error=e))
        except Exception as e:
            logger.exception(f"Unexpected error logging in to {url}")
            self.channel.emit(LoginCompleted(error=AuthError(AuthErrorKind.UNREACHABLE, str(e))))
        else:
            self.channel.emit(LoginCompleted(session=session))

    def _on_login(self, event: LoginCompleted) -> None:
        session = self.state.session
        if session.status is not AuthStatus.AUTHENTICATING:
            logger.debug("Discarding login result: no login in progress")
            return

        if event.error is not None:
            self.session_manager.reject(session, event.error)
            self.state.mode = ScreenMode.LOGIN
            self.state.set_status(f"Login failed: {event.error.reason}", Severity.ERROR)
            return

        self.session_manager.accept(session, event.session)
        self.state.login.password = ""
        self.state.clear_torrents()
        self.state.mode = ScreenMode.LIST
        self.state.set_status(f"Connected to {session.base_url}")

        self.settings.update_connection_info(session.base_url, session.username)
        try:
            save_settings(self.settings, self.settings_path)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

        self.request_poll()

    def logout(self) -> None:
        context = self.session_manager.logout(self.state.session)
        self.state.clear_torrents()
        self.state.set_query("")
        self.state.mode = ScreenMode.LOGIN
        self.state.login.focus = "password"
        self.state.set_status("Logged out")
        if context is not None:
            self._spawn(self._logout(context))

    async def _logout(self, context: SessionContext) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, self.client.logout, context)
        except RemoteError as e:
            logger.error(f"Remote logout failed: {e}")

    # -------------------------------------------------------------------------
    # Polling and actions
    # -------------------------------------------------------------------------

    def request_poll(self) -> bool:
        return self.poller.request(self._context())

    def _on_poll(self, event: PollCompleted) -> None:
        stale = self._is_stale(event.generation)

        if event.error is not None:
            if event.error.is_unauthorized and event.generation == self.state.session.generation:
                self._expire()
            elif not stale:
                self.state.set_status(f"Refresh failed: {event.error.reason}", Severity.ERROR, POLL_ORIGIN)
            return

        if stale:
            logger.debug("Discarding stale poll result")
            return

        self.state.replace_torrents(event.snapshot)
        self.state.clear_status(POLL_ORIGIN)

    def dispatch(self, handles: Iterable[str], kind: ActionKind, path: Optional[str] = None,
                 delete_files: bool = False) -> bool:
        context = self._context()
        if context is None:
            self._require_login()
            return False
        return self.dispatcher.dispatch(context, handles, kind, path=path, delete_files=delete_files)

    def _describe(self, event: ActionCompleted) -> str:
        if event.kind is ActionKind.ADD:
            return event.keys[0][len("add:"):]
        names = []
        for handle in event.handles:
            torrent = self.state.find(handle)
            names.append(torrent.name if torrent else handle[:8])
        return ", ".join(names)

    def _on_action(self, event: ActionCompleted) -> None:
        for key in event.keys:
            self.state.pending.pop(key, None)

        stale = self._is_stale(event.generation)
        error = event.error
        if error is not None and error.is_unauthorized:
            if event.generation == self.state.session.generation:
                self._expire()
            return
        if stale:
            logger.debug(f"Discarding stale {event.kind.value} result")
            return

        label = event.kind.value.capitalize()
        target = self._describe(event)
        if error is None:
            self.state.set_status(f"{label} requested: {target}")
            self.request_poll()
        elif error.kind is ActionErrorKind.NOT_FOUND:
            self.state.set_status(f"{label} skipped for {target}: {error.reason}")
        else:
            self.state.set_status(f"{label} failed for {target}: {error.reason}", Severity.ERROR)

    def toggle_selected(self) -> bool:
        torrent = self.state.current_torrent()
        if torrent is None:
            return False
        kind = ActionKind.RESUME if torrent.state.is_paused else ActionKind.PAUSE
        if self.dispatch([torrent.hash], kind):
            return True
        if self.dispatcher.is_pending(torrent.hash):
            self.state.set_status(f"'{torrent.name}' already has a pending action")
        return False

    # -------------------------------------------------------------------------
    # Key handling
    # -------------------------------------------------------------------------

    def handle_key(self, key: Key) -> None:
        if key.name in ("ctrl+q", "ctrl+c"):
            self.state.should_quit = True
            return

        handlers = {
            ScreenMode.LOGIN: self._login_key,
            ScreenMode.LIST: self._list_key,
            ScreenMode.SEARCH: self._search_key,
            ScreenMode.CONFIRM_DELETE: self._confirm_delete_key,
            ScreenMode.ADD_TORRENT: self._add_torrent_key,
        }
        handlers[self.state.mode](key)

    def _login_key(self, key: Key) -> None:
        form = self.state.login
        if key.name == "esc":
            self.state.should_quit = True
        elif key.name in ("tab", "down"):
            form.cycle(1)
        elif key.name in ("btab", "up"):
            form.cycle(-1)
        elif key.name == "ctrl+t":
            form.show_password = not form.show_password
        elif key.name == "enter":
            self.submit_login()
        elif key.name == "backspace":
            form.backspace()
        elif key.is_char:
            form.insert(key.char)

    def _list_key(self, key: Key) -> None:
        state = self.state
        if key.name == "up" or key.char == "k":
            state.move(-1)
        elif key.name == "down" or key.char == "j":
            state.move(1)
        elif key.name == "pageup":
            state.page_up()
        elif key.name == "pagedown":
            state.page_down()
        elif key.name == "home":
            state.home()
        elif key.name == "end":
            state.end()
        elif key.char == " ":
            self.toggle_selected()
        elif key.name == "delete" or key.char == "d":
            torrent = state.current_torrent()
            if torrent is not None:
                state.delete_target = torrent
                state.mode = ScreenMode.CONFIRM_DELETE
        elif key.char == "a":
            state.path_input = ""
            state.mode = ScreenMode.ADD_TORRENT
        elif key.char == "r":
            self.request_poll()
        elif key.name == "ctrl+f" or key.char == "/":
            state.mode = ScreenMode.SEARCH
        elif key.name == "esc" and state.query:
            state.set_query("")
        elif key.name == "ctrl+l":
            self.logout()
        elif key.char == "q":
            state.should_quit = True

    def _search_key(self, key: Key) -> None:
        state = self.state
        if key.name == "esc":
            state.set_query("")
            state.mode = ScreenMode.LIST
        elif key.name == "enter":
            state.mode = ScreenMode.LIST
        elif key.name == "backspace":
            state.set_query(state.query[:-1])
        elif key.name == "up":
            state.move(-1)
        elif key.name == "down":
            state.move(1)
        elif key.is_char:
            state.set_query(state.query + key.char)

    def _confirm_delete_key(self, key: Key) -> None:
        state = self.state
        target = state.delete_target
        state.delete_target = None
        state.mode = ScreenMode.LIST

        if target is None:
            return
        if key.name == "enter" or key.char in ("y", "Y"):
            delete_files = key.char == "Y"
            if not self.dispatch([target.hash], ActionKind.DELETE, delete_files=delete_files):
                if self.dispatcher.is_pending(target.hash):
                    state.set_status(f"'{target.name}' already has a pending action")

    def _add_torrent_key(self, key: Key) -> None:
        state = self.state
        if key.name == "esc":
            state.mode = ScreenMode.LIST
        elif key.name == "enter":
            path = state.path_input.strip()
            if not path:
                state.set_status("Enter a torrent file path, magnet link or URL", Severity.ERROR)
                return
            state.mode = ScreenMode.LIST
            if not self.dispatch((), ActionKind.ADD, path=path) and state.mode is ScreenMode.LIST:
                state.set_status(f"'{path}' is already being added")
        elif key.name == "backspace":
            state.path_input = state.path_input[:-1]
        elif key.is_char:
            state.path_input += key.char
