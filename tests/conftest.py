"""Shared fixtures: a stand-in "real terminal" backed by a PTY pair."""

from __future__ import annotations

import os
import pty
from collections.abc import Iterator
from dataclasses import dataclass

import pytest

from incogniterm.pty.geometry import Geometry, push_geometry


@dataclass
class FakeTerminal:
    """The operator's terminal: ``fd`` is what incogniterm sees as stdin."""

    fd: int
    peer: int

    def resize(self, rows: int, cols: int) -> None:
        push_geometry(self.fd, Geometry(rows=rows, cols=cols))


@pytest.fixture
def terminal() -> Iterator[FakeTerminal]:
    peer, fd = pty.openpty()
    term = FakeTerminal(fd=fd, peer=peer)
    term.resize(24, 80)
    yield term
    for f in (fd, peer):
        try:
            os.close(f)
        except OSError:
            pass


@pytest.fixture
def output_pipe() -> Iterator[tuple[int, int]]:
    """A pipe standing in for stdout: (read_fd, write_fd)."""
    r, w = os.pipe()
    yield r, w
    for f in (r, w):
        try:
            os.close(f)
        except OSError:
            pass


def drain(fd: int) -> bytes:
    """Read everything currently buffered on ``fd`` without blocking."""
    os.set_blocking(fd, False)
    chunks = []
    while True:
        try:
            data = os.read(fd, 4096)
        except (BlockingIOError, OSError):
            break
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("INCOGNITERM_"):
            monkeypatch.delenv(key)
