import asyncio
import threading
from collections import Counter

import pytest

from qbittui.base_client import RemoteService
from qbittui.errors import AuthError, AuthErrorKind
from qbittui.models import (
    AuthStatus,
    ScreenMode,
    ServerState,
    Session,
    SessionContext,
    Torrent,
    TorrentState,
)


BASE_URL = "http://nas:8080"


def make_torrent(handle, name=None, raw_state="downloading", progress=0.5, **kwargs):
    """Build a Torrent the way the API would describe it."""
    return Torrent(
        hash=handle,
        name=name or f"torrent-{handle}",
        state=TorrentState.from_remote(raw_state),
        progress=progress,
        dlspeed=kwargs.pop("dlspeed", 0),
        upspeed=kwargs.pop("upspeed", 0),
        size=kwargs.pop("size", 1024),
        raw_state=raw_state,
        **kwargs,
    )


class FakeRemote(RemoteService):
    """
    In-memory RemoteService.

    Clearing ``gate`` makes list/action/add calls block on the worker thread
    until it is set again, which keeps requests in flight for as long as a test
    needs.
    """

    def __init__(self, torrents=None, password="secret"):
        self.torrents = list(torrents or [])
        self.password = password
        self.calls = Counter()
        self.actions = []
        self.added = []
        self.gate = threading.Event()
        self.gate.set()
        self.list_error = None
        self.transfer_error = None
        self.action_error = None
        self.version_error = None

    def login(self, base_url, username, password):
        self.calls["login"] += 1
        if password != self.password:
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS, "Invalid username or password")
        return SessionContext(base_url=base_url, cookies=(("SID", "abc123"),))

    def logout(self, context):
        self.calls["logout"] += 1

    def app_version(self, context):
        if self.version_error is not None:
            raise self.version_error
        return "v5.0.0"

    def list_torrents(self, context):
        self.calls["list_torrents"] += 1
        self.gate.wait(5)
        if self.list_error is not None:
            raise self.list_error
        return list(self.torrents)

    def transfer_info(self, context):
        self.calls["transfer_info"] += 1
        if self.transfer_error is not None:
            raise self.transfer_error
        return ServerState(connection_status="connected", dl_info_speed=2048, up_info_speed=1024)

    def apply_action(self, context, handles, kind, delete_files=False):
        self.calls["apply_action"] += 1
        self.actions.append((tuple(handles), kind, delete_files))
        self.gate.wait(5)
        if self.action_error is not None:
            raise self.action_error

    def add_torrent(self, context, path):
        self.calls["add_torrent"] += 1
        self.added.append(path)
        self.gate.wait(5)
        if self.action_error is not None:
            raise self.action_error


class FakeTerminal:
    """Records frames instead of painting them."""

    def __init__(self, width=100, height=30):
        self.width = width
        self.height = height
        self.frames = []
        self.emit = None

    def size(self):
        return self.width, self.height

    def attach(self, loop, emit):
        self.emit = emit

    def detach(self, loop):
        self.emit = None

    def draw(self, frame):
        self.frames.append(frame)


def sign_in(app):
    """Put an App straight into the Authenticated state without a login exchange."""
    session = app.state.session
    authenticated = Session(
        base_url=session.base_url,
        username=session.username or "admin",
        status=AuthStatus.AUTHENTICATED,
        context=SessionContext(base_url=session.base_url, cookies=(("SID", "abc123"),)),
    )
    app.session_manager.accept(session, authenticated)
    app.state.mode = ScreenMode.LIST
    return session.context


async def next_event(app, kind, timeout=2.0):
    """Handle events from the app's channel until one of type kind arrives."""
    while True:
        event = await asyncio.wait_for(app.channel.get(), timeout)
        app.handle(event)
        if isinstance(event, kind):
            return event


async def wait_for(predicate, timeout=2.0):
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def remote():
    fake = FakeRemote(
        torrents=[
            make_torrent("a" * 40, name="ubuntu-24.04.iso", raw_state="downloading"),
            make_torrent("b" * 40, name="debian-12.iso", raw_state="pausedDL"),
            make_torrent("c" * 40, name="fedora-40.iso", raw_state="uploading"),
        ]
    )
    yield fake
    fake.gate.set()


@pytest.fixture
def terminal():
    return FakeTerminal()
