"""Ephemeral home directory: temp HOME, wrapper scripts and rc file."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import tempfile
from pathlib import Path

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from incogniterm.identity import FakeIdentity
from incogniterm.shells import ShellDescriptor

logger = logging.getLogger(__name__)

HOME_PREFIX = "incogniterm-home-"

# Identity commands answered by wrapper scripts in $HOME/bin.
WRAPPED_COMMANDS = ("id", "whoami", "hostname")


def _wrapper_scripts(identity: FakeIdentity) -> dict[str, str]:
    user = identity.user
    return {
        "id": f"uid=1000({user}) gid=1000({user}) groups=1000({user})",
        "whoami": user,
        "hostname": identity.host,
    }


class EphemeralHome:
    """A throwaway HOME that lives for exactly one session.

    ``create()`` makes the directory tree; ``remove()`` deletes it and is
    safe to call any number of times.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.bin_dir = path / "bin"

    @classmethod
    def create(cls, parent: str | None = None) -> EphemeralHome:
        path = Path(tempfile.mkdtemp(prefix=HOME_PREFIX, dir=parent))
        home = cls(path)
        home.bin_dir.mkdir(mode=0o755, exist_ok=True)
        logger.debug("Created ephemeral home %s", path)
        return home

    def write_wrappers(self, identity: FakeIdentity) -> None:
        """Write the ``id``, ``whoami`` and ``hostname`` wrappers."""
        for name, output in _wrapper_scripts(identity).items():
            script = self.bin_dir / name
            script.write_text(f"#!/bin/sh\nprintf '%s\\n' {shlex.quote(output)}\n")
            script.chmod(0o755)

    def write_rc(self, descriptor: ShellDescriptor, identity: FakeIdentity) -> Path:
        """Write the shell rc file and return its path."""
        rc_file = self.path / descriptor.rc_name
        rc_file.write_text(descriptor.render_rc(identity, self.path))
        rc_file.chmod(0o600)
        return rc_file

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def remove(self) -> None:
        """Delete the home tree. A missing tree is not an error."""
        if not os.path.lexists(self.path):
            return
        _rmtree(self.path)
        logger.debug("Removed ephemeral home %s", self.path)


@retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def _rmtree(path: Path) -> None:
    # A shell's background jobs may still be writing history files here.
    if os.path.lexists(path):
        shutil.rmtree(path)
