"""Tests for incogniterm.config.IncognitermConfig."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from incogniterm.config import IncognitermConfig
from incogniterm.errors import ConfigError


class TestDefaults:
    def test_defaults(self) -> None:
        config = IncognitermConfig.load()
        assert config.identity.user is None
        assert config.identity.seed is None
        assert config.session.shell is None
        assert config.session.poll_interval == 0.1
        assert config.session.drain_timeout == 0.5
        assert config.log_file is None


class TestFile:
    def test_load_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "identity": {"user": "ana_popescu", "seed": 5},
                    "session": {"shell": "/bin/zsh", "drain_timeout": 1.5},
                }
            )
        )
        config = IncognitermConfig.load(str(path))
        assert config.identity.user == "ana_popescu"
        assert config.identity.seed == 5
        assert config.session.shell == "/bin/zsh"
        assert config.session.drain_timeout == 1.5

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            IncognitermConfig.load(str(tmp_path / "nope.json"))

    def test_malformed_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            IncognitermConfig.load(str(path))

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            IncognitermConfig.load(str(path))

    def test_invalid_value(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"session": {"poll_interval": 0}}))
        with pytest.raises(ConfigError):
            IncognitermConfig.load(str(path))


class TestEnvOverrides:
    def test_env_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"session": {"shell": "/bin/zsh"}}))
        monkeypatch.setenv("INCOGNITERM_SHELL", "/bin/bash")
        config = IncognitermConfig.load(str(path))
        assert config.session.shell == "/bin/bash"

    def test_identity_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INCOGNITERM_USER", "ana_popescu")
        monkeypatch.setenv("INCOGNITERM_HOST", "bucharest-node-4821")
        monkeypatch.setenv("INCOGNITERM_SEED", "1234")
        config = IncognitermConfig.load()
        assert config.identity.user == "ana_popescu"
        assert config.identity.host == "bucharest-node-4821"
        assert config.identity.seed == 1234

    def test_paths_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INCOGNITERM_TMPDIR", "/var/tmp")
        monkeypatch.setenv("INCOGNITERM_LOG_FILE", "/tmp/incogniterm.log")
        config = IncognitermConfig.load()
        assert config.session.tmp_dir == "/var/tmp"
        assert config.log_file == "/tmp/incogniterm.log"

    def test_bad_seed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INCOGNITERM_SEED", "abc")
        with pytest.raises(ConfigError):
            IncognitermConfig.load()
