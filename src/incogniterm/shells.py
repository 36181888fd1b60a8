"""Shell descriptors: how each supported shell is configured and launched.

Supporting a new shell means adding a ``ShellKind`` member and a
``ShellDescriptor`` entry to ``SHELLS``. Anything unrecognised falls back to
``DEFAULT_SHELL``.
"""

from __future__ import annotations

import enum
import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from incogniterm.identity import FakeIdentity

FALLBACK_SHELL = "/bin/bash"


class ShellKind(enum.StrEnum):
    BASH = "bash"
    ZSH = "zsh"


@dataclass(frozen=True)
class ShellDescriptor:
    """Per-shell conventions.

    ``prompt_template`` is a ``str.format`` template receiving ``user`` and
    ``host``. ``launch_flags`` may reference ``{rc_file}``. ``rc_env_var``
    names an environment variable that must point at the rc file for the
    shell to read it (``None`` when the shell finds it under ``$HOME``).
    """

    rc_name: str
    history_name: str
    prompt_var: str
    prompt_template: str
    launch_flags: tuple[str, ...]
    export_prompt: bool = True
    rc_env_var: str | None = None

    def prompt(self, identity: FakeIdentity) -> str:
        return self.prompt_template.format(user=identity.user, host=identity.host)

    def launch_args(self, rc_file: Path) -> list[str]:
        return [flag.format(rc_file=rc_file) for flag in self.launch_flags]

    def render_rc(self, identity: FakeIdentity, home: Path) -> str:
        """Render the rc file body that re-asserts the fake identity."""
        prompt_line = f"{self.prompt_var}={shlex.quote(self.prompt(identity))}"
        if self.export_prompt:
            prompt_line = f"export {prompt_line}"
        lines = [
            "",
            f"export USER={shlex.quote(identity.user)}",
            f"export LOGNAME={shlex.quote(identity.user)}",
            f"export HOSTNAME={shlex.quote(identity.host)}",
            prompt_line,
            f"export HISTFILE={shlex.quote(str(home / self.history_name))}",
        ]
        return "\n".join(lines) + "\n"


_BASH_STYLE = ShellDescriptor(
    rc_name=".bashrc",
    history_name=".bash_history",
    prompt_var="PS1",
    prompt_template="[{user}@{host} \\w]\\$ ",
    launch_flags=("--rcfile", "{rc_file}", "-i"),
)

SHELLS: dict[ShellKind, ShellDescriptor] = {
    ShellKind.BASH: _BASH_STYLE,
    ShellKind.ZSH: ShellDescriptor(
        rc_name=".zshrc",
        history_name=".zsh_history",
        prompt_var="PROMPT",
        prompt_template="%F{{cyan}}[{user}@{host} %~]%f$ ",
        launch_flags=("-i",),
        export_prompt=False,
    ),
}

# POSIX shells (sh, dash, ksh) read the file named by $ENV when interactive.
DEFAULT_SHELL = ShellDescriptor(
    rc_name=".bashrc",
    history_name=".bash_history",
    prompt_var="PS1",
    prompt_template=_BASH_STYLE.prompt_template,
    launch_flags=("-i",),
    rc_env_var="ENV",
)


@dataclass(frozen=True)
class ResolvedShell:
    path: str
    name: str
    descriptor: ShellDescriptor


def lookup(name: str) -> ShellDescriptor:
    """Return the descriptor for a shell base name, or the default one."""
    try:
        return SHELLS[ShellKind(name)]
    except ValueError:
        return DEFAULT_SHELL


def resolve_shell(
    configured: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ResolvedShell:
    """Pick the shell: configured value, then ``$SHELL``, then /bin/bash."""
    if environ is None:
        environ = os.environ
    path = configured or environ.get("SHELL") or FALLBACK_SHELL
    name = os.path.basename(path)
    return ResolvedShell(path=path, name=name, descriptor=lookup(name))
