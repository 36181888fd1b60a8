"""Geometry synchronizer: keep the PTY's size in step with the real terminal."""

from __future__ import annotations

import asyncio
import contextlib
import fcntl
import logging
import signal
import struct
import termios
from dataclasses import dataclass

from incogniterm.errors import GeometryError

logger = logging.getLogger(__name__)

_WINSIZE = "HHHH"  # rows, cols, xpixel, ypixel


@dataclass(frozen=True)
class Geometry:
    rows: int
    cols: int


def read_geometry(fd: int) -> Geometry:
    """Read the window size of the terminal behind ``fd``."""
    try:
        packed = fcntl.ioctl(fd, termios.TIOCGWINSZ, struct.pack(_WINSIZE, 0, 0, 0, 0))
    except OSError as e:
        raise GeometryError(f"cannot read window size of fd {fd}: {e}") from e
    rows, cols, _, _ = struct.unpack(_WINSIZE, packed)
    return Geometry(rows=rows, cols=cols)


def push_geometry(fd: int, geometry: Geometry) -> None:
    """Set the window size of the PTY behind ``fd``."""
    try:
        fcntl.ioctl(
            fd, termios.TIOCSWINSZ, struct.pack(_WINSIZE, geometry.rows, geometry.cols, 0, 0)
        )
    except OSError as e:
        raise GeometryError(f"cannot set window size of fd {fd}: {e}") from e


class GeometrySync:
    """Background task copying the real terminal's size onto the PTY.

    ``start()`` pushes the current size right away, then a task re-pushes
    it after every SIGWINCH. ``stop()`` detaches the signal handler and
    cancels the task; notifications after that are dropped. Push failures
    are logged and never raised.
    """

    def __init__(
        self,
        source_fd: int,
        master_fd: int,
        signum: int = signal.SIGWINCH,
    ) -> None:
        self.source_fd = source_fd
        self.master_fd = master_fd
        self.signum = signum
        self.last: Geometry | None = None
        self._event: asyncio.Event | None = None
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stopped = False

    def start(self) -> Geometry | None:
        """Push the initial geometry and start reacting to resizes."""
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._event = asyncio.Event()
        initial = self.sync()
        loop.add_signal_handler(self.signum, self.notify)
        self._task = asyncio.create_task(self._run(), name="geometry-sync")
        return initial

    def notify(self) -> None:
        """Mark the geometry as stale; the task re-syncs on its next turn."""
        if self._stopped or self._event is None:
            return
        self._event.set()

    def sync(self) -> Geometry | None:
        if self._stopped:
            return None
        try:
            geometry = read_geometry(self.source_fd)
            push_geometry(self.master_fd, geometry)
        except GeometryError as e:
            logger.debug("Geometry sync skipped: %s", e)
            return None
        self.last = geometry
        logger.debug("PTY resized to %dx%d", geometry.cols, geometry.rows)
        return geometry

    async def _run(self) -> None:
        assert self._event is not None
        while not self._stopped:
            await self._event.wait()
            self._event.clear()
            self.sync()

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._loop is not None:
            self._loop.remove_signal_handler(self.signum)
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
