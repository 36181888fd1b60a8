"""PTY session core: launch, raw mode, geometry sync, relay and supervision.

The shell runs on a pseudo-terminal while the real terminal is in raw
mode. Every exit path restores the terminal, the working directory and
removes the ephemeral home.
"""

from incogniterm.pty.geometry import Geometry, GeometrySync
from incogniterm.pty.launcher import LaunchedProcess, launch
from incogniterm.pty.relay import IORelay, Pump
from incogniterm.pty.session import EXIT_INDETERMINATE, Session, SessionState
from incogniterm.pty.terminal import RawMode, TerminalState

__all__ = [
    "EXIT_INDETERMINATE",
    "Geometry",
    "GeometrySync",
    "IORelay",
    "LaunchedProcess",
    "Pump",
    "RawMode",
    "Session",
    "SessionState",
    "TerminalState",
    "launch",
]
