"""
Operator terminal.

Input is read through the event loop (add_reader) into a character queue so
that keystroke waits never block the loop. Terminal settings are saved on
attach and restored by context managers on every exit path.
"""

import asyncio
import codecs
import logging
import os
import sys
import termios
from contextlib import contextmanager
from typing import Iterator, List, Optional, TextIO

logger = logging.getLogger("tdd_relay.terminal")


class Terminal:
    """
    POSIX terminal with raw (keystroke) and line (canonical, echoing) modes.

    Usage:
        with terminal.attached():
            with terminal.raw_mode():
                key = await terminal.read_key()
    """

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._fd = self._stdin.fileno()
        self._is_tty = os.isatty(self._fd)
        self._saved: Optional[List] = None
        self._chars: asyncio.Queue = asyncio.Queue()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._eof = False

    @property
    def is_tty(self) -> bool:
        return self._is_tty

    def write(self, text: str) -> None:
        self._stdout.write(text)
        self._stdout.flush()

    @contextmanager
    def attached(self) -> Iterator["Terminal"]:
        """Start reading input; restore the original settings on exit."""
        self._loop = asyncio.get_running_loop()
        if self._is_tty:
            self._saved = termios.tcgetattr(self._fd)
        self._loop.add_reader(self._fd, self._on_readable)
        try:
            yield self
        finally:
            self._loop.remove_reader(self._fd)
            self._restore()
            logger.debug("Terminal restored")

    @contextmanager
    def raw_mode(self) -> Iterator["Terminal"]:
        """Byte-at-a-time input without local echo."""
        self._set_raw()
        try:
            yield self
        finally:
            self._restore()

    @contextmanager
    def line_mode(self) -> Iterator["Terminal"]:
        """Temporarily return to buffered, echoing input (e.g. inside raw_mode)."""
        self._restore()
        try:
            yield self
        finally:
            self._set_raw()

    async def read_key(self) -> str:
        """
        Wait for one keystroke, without timeout.

        Raises:
            EOFError: On end of input
        """
        ch = await self._chars.get()
        if ch is None:
            self._chars.put_nowait(None)
            raise EOFError("end of terminal input")
        return ch

    async def read_line(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Read one line including its newline.

        Only the wait for the first character is bounded by timeout; once
        input has started the rest of the line is awaited.

        Returns:
            The line, or None if nothing arrived within timeout

        Raises:
            EOFError: On end of input before any character
        """
        try:
            first = await asyncio.wait_for(self.read_key(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

        chars = [first]
        while chars[-1] != "\n":
            try:
                chars.append(await self.read_key())
            except EOFError:
                break
        return "".join(chars)

    def _on_readable(self) -> None:
        try:
            data = os.read(self._fd, 1024)
        except OSError as e:
            logger.error(f"Terminal read error: {e}")
            data = b""

        if not data:
            if not self._eof:
                self._eof = True
                self._loop.remove_reader(self._fd)
                self._chars.put_nowait(None)
            return

        for ch in self._decoder.decode(data):
            self._chars.put_nowait(ch)

    def _set_raw(self) -> None:
        if not self._is_tty or self._saved is None:
            return
        attrs = termios.tcgetattr(self._fd)
        attrs[3] &= ~(termios.ICANON | termios.ECHO)
        attrs[6][termios.VMIN] = 1
        attrs[6][termios.VTIME] = 0
        termios.tcsetattr(self._fd, termios.TCSANOW, attrs)

    def _restore(self) -> None:
        if not self._is_tty or self._saved is None:
            return
        termios.tcsetattr(self._fd, termios.TCSANOW, self._saved)
