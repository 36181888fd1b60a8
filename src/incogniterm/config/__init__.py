"""Configuration: Pydantic models for incogniterm settings."""

from __future__ import annotations

import json
import os
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from incogniterm.errors import ConfigError


class IdentityConfig(BaseModel):
    """Fake identity settings.

    Leave ``user`` / ``host`` unset to get a fresh random identity on every
    run. ``seed`` makes the random identity reproducible, which is handy
    when re-recording the same demo.
    """

    user: str | None = Field(default=None, description="Pin the fake username")
    host: str | None = Field(default=None, description="Pin the fake hostname")
    seed: int | None = Field(
        default=None, description="Seed for the identity random generator"
    )


class SessionConfig(BaseModel):
    """PTY session tuning."""

    shell: str | None = Field(
        default=None,
        description="Shell executable (default: $SHELL, then /bin/bash)",
    )
    tmp_dir: str | None = Field(
        default=None,
        description="Parent directory for the ephemeral home (default: system temp)",
    )
    poll_interval: float = Field(
        default=0.1, gt=0, description="Seconds between child exit checks"
    )
    drain_timeout: float = Field(
        default=0.5,
        ge=0,
        description="Max seconds to wait for trailing PTY output after the shell exits",
    )
    hangup_timeout: float = Field(
        default=2.0,
        ge=0,
        description="Seconds to wait for a hung-up child before giving up on reaping it",
    )


class IncognitermConfig(BaseModel):
    """Top-level incogniterm configuration."""

    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    log_file: str | None = Field(
        default=None,
        description="Write logs here instead of stderr (stderr is raw during a session)",
    )

    @classmethod
    def load(cls, config_path: str | None = None) -> IncognitermConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            INCOGNITERM_SHELL     - Shell executable to launch
            INCOGNITERM_SEED      - Integer seed for the identity generator
            INCOGNITERM_USER      - Pin the fake username
            INCOGNITERM_HOST      - Pin the fake hostname
            INCOGNITERM_TMPDIR    - Parent directory for the ephemeral home
            INCOGNITERM_LOG_FILE  - Log file path
        """
        config_data: dict[str, Any] = {}

        if config_path:
            try:
                with open(config_path) as f:
                    config_data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigError(f"cannot read config {config_path}: {e}") from e
            if not isinstance(config_data, dict):
                raise ConfigError(f"config {config_path} must contain a JSON object")

        identity = config_data.get("identity", {})
        session = config_data.get("session", {})

        env_shell = os.environ.get("INCOGNITERM_SHELL")
        if env_shell:
            session["shell"] = env_shell

        env_tmp_dir = os.environ.get("INCOGNITERM_TMPDIR")
        if env_tmp_dir:
            session["tmp_dir"] = env_tmp_dir

        env_seed = os.environ.get("INCOGNITERM_SEED")
        if env_seed:
            try:
                identity["seed"] = int(env_seed)
            except ValueError as e:
                raise ConfigError(f"INCOGNITERM_SEED must be an integer: {env_seed!r}") from e

        env_user = os.environ.get("INCOGNITERM_USER")
        if env_user:
            identity["user"] = env_user

        env_host = os.environ.get("INCOGNITERM_HOST")
        if env_host:
            identity["host"] = env_host

        env_log_file = os.environ.get("INCOGNITERM_LOG_FILE")
        if env_log_file:
            config_data["log_file"] = env_log_file

        if identity:
            config_data["identity"] = identity
        if session:
            config_data["session"] = session

        try:
            return cls.model_validate(config_data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
