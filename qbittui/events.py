"""
Events consumed by the event loop and the channel that carries them.

Terminal input, timer ticks, poll results and action results all become one of
the event types below and are pushed onto a single EventChannel. The event loop
is the only consumer, so ordering is plain arrival order.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ActionError, AuthError, PollError
from .models import ActionKind, Session, Snapshot


@dataclass(frozen=True)
class Key:
    """
    A decoded key press.

    ``name`` is "char" for printable input (with the character in ``char``),
    "ctrl+<letter>" for control chords, or a special key name such as
    "enter", "esc", "backspace", "tab", "btab", "up", "down", "pageup",
    "pagedown", "home", "end" or "delete".
    """
    name: str
    char: str = ""

    @classmethod
    def of(cls, char: str) -> "Key":
        return cls("char", char)

    @property
    def is_char(self) -> bool:
        return self.name == "char"


@dataclass(frozen=True)
class KeyPressed:
    key: Key


@dataclass(frozen=True)
class Resized:
    width: int
    height: int


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class LoginCompleted:
    session: Optional[Session] = None
    error: Optional[AuthError] = None


@dataclass(frozen=True)
class PollCompleted:
    generation: int
    snapshot: Optional[Snapshot] = None
    error: Optional[PollError] = None


@dataclass(frozen=True)
class ActionCompleted:
    keys: Tuple[str, ...]
    handles: Tuple[str, ...]
    kind: ActionKind
    generation: int
    error: Optional[ActionError] = None


class EventChannel:
    """One-way, unbounded FIFO from producers to the event loop."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()

    def emit(self, event) -> None:
        self._queue.put_nowait(event)

    async def get(self):
        return await self._queue.get()
