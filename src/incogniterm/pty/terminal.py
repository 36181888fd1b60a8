"""Raw-mode controller for the real terminal."""

from __future__ import annotations

import logging
import os
import termios
import tty
from dataclasses import dataclass
from typing import Any

from incogniterm.errors import TerminalModeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminalState:
    """Opaque snapshot of a terminal's termios attributes."""

    fd: int
    attrs: list[Any]


class RawMode:
    """Put a terminal into raw mode and give it back afterwards.

    ``enter()`` captures the current mode exactly once. ``restore()``
    reinstates it and is a no-op when nothing was captured, so it can sit
    on every exit path. Also works as a context manager.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self.state: TerminalState | None = None

    def enter(self) -> TerminalState:
        if self.state is not None:
            return self.state
        if not os.isatty(self.fd):
            raise TerminalModeError(f"fd {self.fd} is not a terminal")
        try:
            attrs = termios.tcgetattr(self.fd)
            tty.setraw(self.fd, termios.TCSAFLUSH)
        except termios.error as e:
            raise TerminalModeError(f"cannot switch fd {self.fd} to raw mode: {e}") from e
        self.state = TerminalState(fd=self.fd, attrs=attrs)
        logger.debug("Terminal fd=%d switched to raw mode", self.fd)
        return self.state

    def restore(self, state: TerminalState | None = None) -> None:
        """Reinstate the captured mode.

        Raises ``TerminalModeError`` if the terminal rejects it; the saved
        state is dropped either way so a second call never re-applies it.
        """
        state = state or self.state
        self.state = None
        if state is None:
            return
        try:
            termios.tcsetattr(state.fd, termios.TCSAFLUSH, state.attrs)
        except termios.error as e:
            raise TerminalModeError(f"cannot restore fd {state.fd}: {e}") from e
        logger.debug("Terminal fd=%d restored", state.fd)

    @property
    def active(self) -> bool:
        return self.state is not None

    def __enter__(self) -> TerminalState:
        return self.enter()

    def __exit__(self, *exc: object) -> None:
        self.restore()
