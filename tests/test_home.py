"""Tests for incogniterm.home.EphemeralHome."""

from __future__ import annotations

import os
import shutil
import stat
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from incogniterm.home import HOME_PREFIX, WRAPPED_COMMANDS, EphemeralHome
from incogniterm.identity import FakeIdentity
from incogniterm.shells import SHELLS, ShellKind

IDENTITY = FakeIdentity(user="ana_popescu", host="bucharest-node-4821")


class TestCreate:
    def test_creates_home_and_bin(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        assert home.path.parent == tmp_path
        assert home.path.name.startswith(HOME_PREFIX)
        assert home.bin_dir.is_dir()
        assert home.exists

    def test_fresh_home_only_has_bin(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        assert [p.name for p in home.path.iterdir()] == ["bin"]

    def test_each_home_is_distinct(self, tmp_path: Path) -> None:
        a = EphemeralHome.create(str(tmp_path))
        b = EphemeralHome.create(str(tmp_path))
        assert a.path != b.path


class TestWrappers:
    def test_wrappers_are_executable(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        home.write_wrappers(IDENTITY)
        for name in WRAPPED_COMMANDS:
            mode = (home.bin_dir / name).stat().st_mode
            assert mode & stat.S_IXUSR

    @pytest.mark.parametrize(
        "command,expected",
        [
            ("whoami", "ana_popescu"),
            ("hostname", "bucharest-node-4821"),
            ("id", "uid=1000(ana_popescu) gid=1000(ana_popescu) groups=1000(ana_popescu)"),
        ],
    )
    def test_wrapper_output(self, tmp_path: Path, command: str, expected: str) -> None:
        home = EphemeralHome.create(str(tmp_path))
        home.write_wrappers(IDENTITY)
        out = subprocess.run(
            [str(home.bin_dir / command)], capture_output=True, text=True, check=True
        )
        assert out.stdout == expected + "\n"

    @pytest.mark.parametrize("user", ["-n", "-e", "back\\tslash", "it's me", "100%s"])
    def test_wrapper_prints_user_verbatim(self, tmp_path: Path, user: str) -> None:
        home = EphemeralHome.create(str(tmp_path))
        home.write_wrappers(FakeIdentity(user=user, host="h"))
        out = subprocess.run(
            ["/bin/sh", str(home.bin_dir / "whoami")],
            capture_output=True,
            text=True,
            check=True,
        )
        assert out.stdout == user + "\n"


class TestRcFile:
    def test_bash_rc(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        rc = home.write_rc(SHELLS[ShellKind.BASH], IDENTITY)
        assert rc == home.path / ".bashrc"
        assert "export USER=ana_popescu" in rc.read_text()
        assert stat.S_IMODE(rc.stat().st_mode) == 0o600

    def test_zsh_rc(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        rc = home.write_rc(SHELLS[ShellKind.ZSH], IDENTITY)
        assert rc.name == ".zshrc"
        assert f"HISTFILE={home.path}/.zsh_history" in rc.read_text()


class TestRemove:
    def test_remove_deletes_tree(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        home.write_wrappers(IDENTITY)
        home.write_rc(SHELLS[ShellKind.BASH], IDENTITY)
        (home.path / "notes.txt").write_text("scratch")
        home.remove()
        assert not home.exists
        assert not os.path.exists(home.path)

    def test_remove_twice(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        home.remove()
        home.remove()
        assert not home.exists

    def test_remove_retries_transient_error(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        real_rmtree = shutil.rmtree
        calls = []

        def flaky(path: Path) -> None:
            calls.append(path)
            if len(calls) == 1:
                raise OSError(39, "Directory not empty")
            real_rmtree(path)

        with patch("incogniterm.home.shutil.rmtree", side_effect=flaky):
            home.remove()
        assert len(calls) == 2
        assert not home.exists

    def test_remove_gives_up(self, tmp_path: Path) -> None:
        home = EphemeralHome.create(str(tmp_path))
        with patch(
            "incogniterm.home.shutil.rmtree", side_effect=PermissionError("denied")
        ) as rmtree:
            with pytest.raises(PermissionError):
                home.remove()
        assert rmtree.call_count == 3
        home.remove()
