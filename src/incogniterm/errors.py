"""Exception hierarchy for incogniterm.

Setup errors abort startup. Relay and geometry errors are absorbed where
they happen. Teardown errors are logged and never stop later steps.
"""

from __future__ import annotations


class IncognitermError(Exception):
    """Base exception for all incogniterm errors."""


class ConfigError(IncognitermError):
    """Raised when the configuration file or an env override is invalid."""


class SetupError(IncognitermError):
    """Raised when the session cannot be set up."""


class LaunchError(SetupError):
    """Raised when PTY allocation or child process start fails."""


class TerminalModeError(SetupError):
    """Raised when the real terminal is not a TTY or rejects raw mode."""


class RelayError(IncognitermError):
    """Raised when a relay pump hits a broken pipe or closed descriptor."""


class GeometryError(IncognitermError):
    """Raised when the window size cannot be read or pushed to the PTY."""


class TeardownError(IncognitermError):
    """Raised when one teardown step fails."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


class IndeterminateExit(IncognitermError):
    """Raised when the child's exit status cannot be turned into a code."""
