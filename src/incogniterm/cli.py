"""CLI entry point for incogniterm."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping

import typer
from rich.console import Console

from incogniterm import __version__
from incogniterm.config import IncognitermConfig
from incogniterm.environment import build_launch_spec
from incogniterm.errors import ConfigError, SetupError
from incogniterm.home import EphemeralHome
from incogniterm.identity import FakeIdentity, generate_identity, new_faker
from incogniterm.pty.session import Session
from incogniterm.shells import ResolvedShell, resolve_shell

logger = logging.getLogger(__name__)

EXIT_SETUP_FAILURE = 1

err_console = Console(stderr=True, highlight=False)

app = typer.Typer(
    name="incogniterm",
    help="Start a shell with a fake identity and a throwaway HOME for demos and recordings.",
    add_completion=False,
)


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    # The terminal is raw while the shell runs, so stay quiet on stderr
    # unless asked; a log file gets everything.
    if log_file:
        level = logging.DEBUG
    else:
        level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        filename=log_file,
    )


def _report(message: object) -> None:
    err_console.print(f"[bold red]incogniterm:[/bold red] {message}")


def _show_banner(identity: FakeIdentity, shell: ResolvedShell, home: EphemeralHome) -> None:
    err_console.print(
        f"[cyan]incogniterm {__version__}[/cyan] "
        f"{identity.user}@{identity.host} ({shell.name}, HOME={home.path})"
    )


def start_session(
    config: IncognitermConfig,
    environ: Mapping[str, str] | None = None,
    stdin_fd: int = 0,
    stdout_fd: int = 1,
) -> int:
    """Prepare the fake identity and HOME, run the shell, return its exit code.

    Raises:
        SetupError: anything before the shell was up and running failed.
            The ephemeral home is gone and the terminal untouched by then.
    """
    if environ is None:
        environ = os.environ

    try:
        original_cwd = os.getcwd()
    except OSError as e:
        raise SetupError(f"failed to get current dir: {e}") from e

    shell = resolve_shell(config.session.shell, environ)

    try:
        home = EphemeralHome.create(config.session.tmp_dir)
    except OSError as e:
        raise SetupError(f"failed to create temp home: {e}") from e

    try:
        identity = generate_identity(
            new_faker(config.identity.seed),
            user=config.identity.user,
            host=config.identity.host,
        )
        try:
            home.write_wrappers(identity)
            rc_file = home.write_rc(shell.descriptor, identity)
        except OSError as e:
            raise SetupError(f"failed to write shell files: {e}") from e

        spec = build_launch_spec(
            shell, rc_file, identity, home.path, home.bin_dir, base=environ
        )
        session = Session(
            spec=spec,
            home_dir=str(home.path),
            remove_home=home.remove,
            original_cwd=original_cwd,
            stdin_fd=stdin_fd,
            stdout_fd=stdout_fd,
            poll_interval=config.session.poll_interval,
            drain_timeout=config.session.drain_timeout,
            hangup_timeout=config.session.hangup_timeout,
        )

        _show_banner(identity, shell, home)
        code = asyncio.run(session.run())
    finally:
        # Already gone unless setup failed before the session took over.
        try:
            home.remove()
        except OSError as e:
            logger.warning("Failed to remove ephemeral home %s: %s", home.path, e)

    if session.failure is not None:
        _report(session.failure)
    return code


@app.command()
def run(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging on stderr."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path (JSON)."
    ),
) -> None:
    """Start an incognito shell session."""
    try:
        config = IncognitermConfig.load(config_file)
    except ConfigError as e:
        _report(e)
        raise typer.Exit(EXIT_SETUP_FAILURE)

    setup_logging(verbose, config.log_file)

    try:
        code = start_session(config)
    except SetupError as e:
        _report(e)
        raise typer.Exit(EXIT_SETUP_FAILURE)

    raise typer.Exit(code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
