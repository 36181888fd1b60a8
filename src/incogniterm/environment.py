"""Environment builder: the child shell's environment and launch spec."""

from __future__ import annotations

import os
import types
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from incogniterm.identity import FakeIdentity
from incogniterm.shells import ResolvedShell


@dataclass(frozen=True)
class EnvironmentBundle:
    """Variables plus working directory for the child process.

    ``env`` is a read-only view; build a new bundle instead of mutating.
    """

    env: Mapping[str, str]
    cwd: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "env", types.MappingProxyType(dict(self.env)))


@dataclass(frozen=True)
class LaunchSpec:
    """Everything the launcher needs to start the child shell."""

    executable: str
    args: list[str] = field(default_factory=list)
    bundle: EnvironmentBundle = field(
        default_factory=lambda: EnvironmentBundle(env={}, cwd=".")
    )

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]


def override_env(env: dict[str, str], key: str, value: str) -> dict[str, str]:
    """Set ``key`` to ``value`` in place and return ``env``."""
    env[key] = value
    return env


def prepend_path(env: dict[str, str], directory: str) -> dict[str, str]:
    """Put ``directory`` first on PATH, creating PATH if it is missing."""
    current = env.get("PATH")
    env["PATH"] = f"{directory}{os.pathsep}{current}" if current else directory
    return env


def build_environment(
    base: Mapping[str, str],
    identity: FakeIdentity,
    home: Path,
    bin_dir: Path,
    extra: Mapping[str, str] | None = None,
) -> EnvironmentBundle:
    """Inherit ``base`` and override the identity-revealing variables."""
    env = dict(base)
    override_env(env, "USER", identity.user)
    override_env(env, "LOGNAME", identity.user)
    override_env(env, "HOME", str(home))
    override_env(env, "HOSTNAME", identity.host)
    override_env(env, "PWD", str(home))
    prepend_path(env, str(bin_dir))
    for key, value in (extra or {}).items():
        override_env(env, key, value)
    return EnvironmentBundle(env=env, cwd=str(home))


def build_launch_spec(
    shell: ResolvedShell,
    rc_file: Path,
    identity: FakeIdentity,
    home: Path,
    bin_dir: Path,
    base: Mapping[str, str] | None = None,
) -> LaunchSpec:
    """Build the interactive shell command for ``shell``."""
    descriptor = shell.descriptor
    extra = {descriptor.rc_env_var: str(rc_file)} if descriptor.rc_env_var else None
    bundle = build_environment(
        os.environ if base is None else base,
        identity,
        home,
        bin_dir,
        extra=extra,
    )
    return LaunchSpec(
        executable=shell.path,
        args=descriptor.launch_args(rc_file),
        bundle=bundle,
    )
