"""Session launcher: start the child shell on a fresh PTY."""

from __future__ import annotations

import fcntl
import logging
import os
import pty
import subprocess
import termios
from dataclasses import dataclass

from incogniterm.environment import LaunchSpec
from incogniterm.errors import LaunchError

logger = logging.getLogger(__name__)


@dataclass
class LaunchedProcess:
    """The controlling side of the PTY and the child attached to it."""

    master_fd: int
    process: subprocess.Popen

    @property
    def pid(self) -> int:
        return self.process.pid


def _acquire_controlling_tty() -> None:
    # Runs in the child after setsid() and after stdin was dup'ed onto the
    # subordinate side, so job control in the shell works.
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def launch(spec: LaunchSpec) -> LaunchedProcess:
    """Allocate a PTY pair and start ``spec`` on its subordinate side.

    Raises:
        LaunchError: PTY allocation or process start failed. Only the
            descriptors opened here are closed; nothing else is rolled back.
    """
    try:
        master_fd, slave_fd = pty.openpty()
    except OSError as e:
        raise LaunchError(f"failed to allocate pty: {e}") from e

    try:
        # Use subprocess.Popen instead of pty.fork so the child gets
        # its environment and cwd without any code running between fork
        # and exec beyond the controlling-tty ioctl.
        process = subprocess.Popen(
            spec.argv,
            stdin=slave_fd,
            stdout=slave_fd,
            stderr=slave_fd,
            start_new_session=True,
            preexec_fn=_acquire_controlling_tty,
            env=dict(spec.bundle.env),
            cwd=spec.bundle.cwd,
        )
    except (OSError, subprocess.SubprocessError) as e:
        os.close(master_fd)
        raise LaunchError(f"failed to start {spec.executable}: {e}") from e
    finally:
        # Parent always closes slave fd
        os.close(slave_fd)

    logger.info(
        "Launched pid=%d on pty master_fd=%d cmd=%s",
        process.pid,
        master_fd,
        " ".join(spec.argv),
    )
    return LaunchedProcess(master_fd=master_fd, process=process)
