"""
Curses adapter for the event loop.

Translates raw curses input into Key events and paints Frames produced by the
renderer. Input is read on the asyncio thread: stdin is registered with
``loop.add_reader`` and drained with non-blocking ``get_wch`` calls, since
curses must not be used from more than one thread.
"""

import curses
import os
import signal
import sys
from typing import Callable, Optional, Tuple, Union

from .events import Key, KeyPressed, Resized
from .logger import logger
from .view import Frame


SPECIAL_KEYS = {
    curses.KEY_UP: "up",
    curses.KEY_DOWN: "down",
    curses.KEY_LEFT: "left",
    curses.KEY_RIGHT: "right",
    curses.KEY_PPAGE: "pageup",
    curses.KEY_NPAGE: "pagedown",
    curses.KEY_HOME: "home",
    curses.KEY_END: "end",
    curses.KEY_DC: "delete",
    curses.KEY_BTAB: "btab",
    curses.KEY_ENTER: "enter",
    curses.KEY_BACKSPACE: "backspace",
}

CONTROL_KEYS = {
    9: "tab",
    10: "enter",
    13: "enter",
    27: "esc",
    8: "backspace",
    127: "backspace",
}

# style -> (foreground, background, extra attributes)
STYLES = {
    "title": (curses.COLOR_BLACK, curses.COLOR_CYAN, curses.A_BOLD),
    "header": (curses.COLOR_CYAN, -1, curses.A_BOLD),
    "selected": (curses.COLOR_WHITE, curses.COLOR_BLUE, curses.A_BOLD),
    "border": (curses.COLOR_CYAN, -1, 0),
    "focus": (curses.COLOR_YELLOW, -1, curses.A_BOLD),
    "input": (curses.COLOR_WHITE, -1, curses.A_UNDERLINE),
    "info": (curses.COLOR_GREEN, -1, 0),
    "error": (curses.COLOR_RED, -1, curses.A_BOLD),
    "dim": (curses.COLOR_WHITE, -1, curses.A_DIM),
    "green": (curses.COLOR_GREEN, -1, 0),
    "blue": (curses.COLOR_BLUE, -1, 0),
    "yellow": (curses.COLOR_YELLOW, -1, 0),
    "red": (curses.COLOR_RED, -1, 0),
    "cyan": (curses.COLOR_CYAN, -1, 0),
    "white": (curses.COLOR_WHITE, -1, 0),
    "magenta": (curses.COLOR_MAGENTA, -1, 0),
}


def translate_key(value: Union[str, int]) -> Optional[Key]:
    """Map a get_wch() result to a Key, or None for input we ignore."""
    if isinstance(value, str):
        if len(value) != 1:
            return None
        code = ord(value)
        if code >= 32 and code != 127:
            return Key.of(value) if value.isprintable() else None
        value = code

    if value in SPECIAL_KEYS:
        return Key(SPECIAL_KEYS[value])
    if value in CONTROL_KEYS:
        return Key(CONTROL_KEYS[value])
    if 1 <= value <= 26:
        return Key(f"ctrl+{chr(value + 96)}")
    if 32 <= value < 127:
        return Key.of(chr(value))
    return None


class CursesTerminal:
    def __init__(self):
        self.screen = None
        self._attrs = {}
        self._fd = sys.stdin.fileno()

    def start(self) -> None:
        """
        Take over the terminal.

        Raises:
            curses.error: if the terminal cannot be initialised
        """
        os.environ.setdefault("ESCDELAY", "25")
        self.screen = curses.initscr()
        curses.noecho()
        curses.cbreak()
        curses.raw()
        self.screen.keypad(True)
        self.screen.nodelay(True)
        self._init_colors()

    def stop(self) -> None:
        if self.screen is None:
            return
        self.screen.keypad(False)
        curses.noraw()
        curses.nocbreak()
        curses.echo()
        curses.endwin()
        self.screen = None

    def _init_colors(self) -> None:
        if not curses.has_colors():
            self._attrs = {name: extra for name, (_, _, extra) in STYLES.items()}
            return
        curses.start_color()
        curses.use_default_colors()
        for pair, (name, (fg, bg, extra)) in enumerate(STYLES.items(), start=1):
            curses.init_pair(pair, fg, bg)
            self._attrs[name] = curses.color_pair(pair) | extra

    def size(self) -> Tuple[int, int]:
        height, width = self.screen.getmaxyx()
        return width, height

    def attach(self, loop, emit: Callable) -> None:
        """Start delivering input (and resize) events to emit on loop."""
        loop.add_reader(self._fd, self._drain, emit)
        loop.add_signal_handler(signal.SIGWINCH, self._on_resize, emit)

    def detach(self, loop) -> None:
        loop.remove_reader(self._fd)
        loop.remove_signal_handler(signal.SIGWINCH)

    def _drain(self, emit: Callable) -> None:
        while True:
            try:
                value = self.screen.get_wch()
            except curses.error:
                # nodelay: no more buffered input
                return
            if value == curses.KEY_RESIZE:
                width, height = self.size()
                emit(Resized(width, height))
                continue
            key = translate_key(value)
            if key is not None:
                emit(KeyPressed(key))

    def _on_resize(self, emit: Callable) -> None:
        try:
            columns, lines = os.get_terminal_size(self._fd)
        except OSError as e:
            logger.debug(f"Could not read terminal size: {e}")
            return
        curses.resizeterm(lines, columns)
        emit(Resized(columns, lines))

    def draw(self, frame: Frame) -> None:
        self.screen.erase()
        for span in frame.spans:
            try:
                self.screen.addstr(span.row, span.col, span.text, self._attrs.get(span.style, 0))
            except curses.error:
                # Writing the bottom-right cell moves the cursor off screen
                pass

        if frame.cursor is not None:
            row, col = frame.cursor
            self._set_cursor(1)
            try:
                self.screen.move(row, col)
            except curses.error:
                self._set_cursor(0)
        else:
            self._set_cursor(0)
        self.screen.refresh()

    def _set_cursor(self, visibility: int) -> None:
        try:
            curses.curs_set(visibility)
        except curses.error:
            logger.debug("Terminal does not support cursor visibility changes")
