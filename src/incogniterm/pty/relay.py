"""I/O relay: byte pumps between the real terminal and the PTY.

Each pump is a reader callback on the event loop: whenever its source fd is
readable it moves one chunk to the destination fd. A pump ends quietly on
EOF or on any I/O error (EIO from a PTY whose subordinate side is gone, a
closed descriptor, a broken pipe).
"""

from __future__ import annotations

import asyncio
import logging
import os
import select

from incogniterm.errors import RelayError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        try:
            written = os.write(fd, view)
        except BlockingIOError:
            # Destination shares a non-blocking open file description.
            select.select([], [fd], [])
            continue
        view = view[written:]


def copy_chunk(src: int, dst: int, size: int = CHUNK_SIZE) -> int | None:
    """Move one read's worth of bytes from ``src`` to ``dst``.

    Returns the number of bytes moved, ``0`` at EOF, or ``None`` when the
    source had nothing to read after all.

    Raises:
        RelayError: reading or writing failed.
    """
    try:
        data = os.read(src, size)
    except BlockingIOError:
        return None
    except OSError as e:
        raise RelayError(f"read from fd {src} failed: {e}") from e
    if not data:
        return 0
    try:
        _write_all(dst, data)
    except OSError as e:
        raise RelayError(f"write to fd {dst} failed: {e}") from e
    return len(data)


class Pump:
    """One direction of the relay."""

    def __init__(self, src: int, dst: int, name: str, chunk_size: int = CHUNK_SIZE) -> None:
        self.src = src
        self.dst = dst
        self.name = name
        self.chunk_size = chunk_size
        self.transferred = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._done: asyncio.Future[int] | None = None

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._done = self._loop.create_future()
        self._loop.add_reader(self.src, self._on_readable)

    def _on_readable(self) -> None:
        try:
            moved = copy_chunk(self.src, self.dst, self.chunk_size)
        except RelayError as e:
            logger.debug("%s pump ended: %s", self.name, e)
            self._finish()
            return
        if moved is None:
            return
        if moved == 0:
            logger.debug("%s pump reached EOF", self.name)
            self._finish()
            return
        self.transferred += moved

    def _finish(self) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.remove_reader(self.src)
        if self._done is not None and not self._done.done():
            self._done.set_result(self.transferred)

    def stop(self) -> None:
        """Stop pumping; safe to call more than once."""
        self._finish()

    @property
    def finished(self) -> bool:
        return self._done is not None and self._done.done()

    async def wait(self) -> int:
        """Wait for the pump to end and return the bytes it moved."""
        if self._done is None:
            raise RuntimeError(f"{self.name} pump was never started")
        # Shielded so a timed-out waiter does not end the pump itself.
        return await asyncio.shield(self._done)


class IORelay:
    """Both pumps for one session.

    The output pump (PTY → terminal) ending means the visible session is
    over. The input pump is simply stopped at teardown, never joined.
    """

    def __init__(self, master_fd: int, stdin_fd: int = 0, stdout_fd: int = 1) -> None:
        self.input = Pump(stdin_fd, master_fd, "input")
        self.output = Pump(master_fd, stdout_fd, "output")

    def start(self) -> None:
        self.output.start()
        self.input.start()

    async def wait_output(self, timeout: float | None = None) -> bool:
        """Wait for the output pump to end. Returns False on timeout."""
        try:
            await asyncio.wait_for(self.output.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def stop(self) -> None:
        self.input.stop()
        self.output.stop()
