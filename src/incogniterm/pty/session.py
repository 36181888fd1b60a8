"""Session supervisor: one interactive shell on a PTY, from launch to teardown."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import signal
import subprocess
from dataclasses import dataclass, field
from typing import Callable

from incogniterm.environment import LaunchSpec
from incogniterm.errors import IndeterminateExit, TeardownError
from incogniterm.pty.geometry import GeometrySync
from incogniterm.pty.launcher import LaunchedProcess, launch
from incogniterm.pty.relay import IORelay
from incogniterm.pty.terminal import RawMode

logger = logging.getLogger(__name__)

# Returned when the shell died by a signal or its status could not be read.
EXIT_INDETERMINATE = 255


class SessionState(enum.Enum):
    """Lifecycle states for a session."""

    CREATED = "created"
    LAUNCHED = "launched"  # PTY allocated, shell started
    RUNNING = "running"  # Geometry pushed, raw mode on, relay pumping
    TERMINATING = "terminating"
    CLOSED = "closed"


def exit_code_for(returncode: int | None) -> int:
    """Map a ``Popen.returncode`` to our own exit code.

    Raises:
        IndeterminateExit: the child has no status or was killed by a signal.
    """
    if returncode is None:
        raise IndeterminateExit("shell exit status unavailable")
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        raise IndeterminateExit(f"shell terminated by signal {name}")
    return returncode


def _noop() -> None:
    pass


@dataclass
class Session:
    """A supervised interactive shell.

    ``run()`` launches the shell described by ``spec`` inside
    ``home_dir``, relays the real terminal to it in raw mode, waits for
    it to exit and then always tears down in this order:

    1. restore the real terminal's mode
    2. chdir back to ``original_cwd``
    3. close the PTY (hanging up the shell if it is still alive)
    4. call ``remove_home``

    A failing step is logged and recorded in ``teardown_errors``; the
    remaining steps still run. Setup errors are re-raised after teardown.

    SIGTERM or SIGHUP received while running hangs up the shell's process
    group and ends supervision, so the same teardown runs. SIGHUP is sent
    because interactive shells ignore SIGTERM.
    """

    spec: LaunchSpec
    home_dir: str
    remove_home: Callable[[], None] = _noop
    original_cwd: str = field(default_factory=os.getcwd)
    stdin_fd: int = 0
    stdout_fd: int = 1
    poll_interval: float = 0.1
    drain_timeout: float = 0.5
    hangup_timeout: float = 2.0
    terminate_signals: tuple[int, ...] = (signal.SIGTERM, signal.SIGHUP)

    # Internal state
    teardown_errors: list[TeardownError] = field(default_factory=list, init=False)
    failure: IndeterminateExit | None = field(default=None, init=False)
    _state: SessionState = field(default=SessionState.CREATED, init=False)
    _launched: LaunchedProcess | None = field(default=None, init=False)
    _raw: RawMode | None = field(default=None, init=False)
    _geometry: GeometrySync | None = field(default=None, init=False)
    _relay: IORelay | None = field(default=None, init=False)
    _handled_signals: list[int] = field(default_factory=list, init=False)
    _terminate: asyncio.Event | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self._raw = RawMode(self.stdin_fd)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def launched(self) -> LaunchedProcess | None:
        return self._launched

    async def run(self) -> int:
        """Run the session to completion and return the exit code to use."""
        if self._state is not SessionState.CREATED:
            raise RuntimeError(f"session already {self._state.value}")
        try:
            self._launch()
            self._start_io()
            return await self._supervise()
        finally:
            await self._teardown()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _launch(self) -> None:
        try:
            os.chdir(self.home_dir)
        except OSError as e:
            logger.warning("Failed to chdir to ephemeral home: %s", e)
        self._launched = launch(self.spec)
        self._state = SessionState.LAUNCHED

    def _start_io(self) -> None:
        assert self._launched is not None and self._raw is not None
        master_fd = self._launched.master_fd
        loop = asyncio.get_running_loop()

        self._geometry = GeometrySync(self.stdin_fd, master_fd)
        self._geometry.start()
        self._raw.enter()

        self._terminate = asyncio.Event()
        for signum in self.terminate_signals:
            loop.add_signal_handler(signum, self._on_terminate_signal, signum)
            self._handled_signals.append(signum)

        self._relay = IORelay(master_fd, stdin_fd=self.stdin_fd, stdout_fd=self.stdout_fd)
        self._relay.start()
        self._state = SessionState.RUNNING
        logger.info("Session running: pid=%d", self._launched.pid)

    def _on_terminate_signal(self, signum: int) -> None:
        if self._launched is None or self._terminate is None:
            return
        logger.info("Received %s, hanging up shell", signal.Signals(signum).name)
        try:
            os.killpg(self._launched.pid, signal.SIGHUP)
        except ProcessLookupError:
            pass
        self._terminate.set()

    # ------------------------------------------------------------------
    # Steady state
    # ------------------------------------------------------------------

    async def _wait_for_exit(self) -> int | None:
        assert self._launched is not None
        process = self._launched.process
        try:
            while True:
                returncode = process.poll()
                if returncode is not None:
                    return returncode
                await asyncio.sleep(self.poll_interval)
        except OSError as e:
            raise IndeterminateExit(f"waiting for shell failed: {e}") from e

    async def _supervise(self) -> int:
        assert self._relay is not None and self._terminate is not None
        exit_task = asyncio.create_task(self._wait_for_exit(), name="shell-exit")
        output_task = asyncio.create_task(self._relay.output.wait(), name="relay-output")
        stop_task = asyncio.create_task(self._terminate.wait(), name="terminate-request")
        tasks = (exit_task, output_task, stop_task)
        try:
            done, _ = await asyncio.wait(set(tasks), return_when=asyncio.FIRST_COMPLETED)
            if stop_task in done and exit_task not in done:
                done, _ = await asyncio.wait({exit_task}, timeout=self.hangup_timeout)
                if exit_task not in done:
                    raise IndeterminateExit("shell did not exit after hangup")
            elif output_task not in done:
                # Shell is gone; let whatever it printed last reach the screen.
                if not await self._relay.wait_output(self.drain_timeout):
                    logger.debug("PTY still open after shell exit, not draining further")
            returncode = await exit_task
            code = exit_code_for(returncode)
        except IndeterminateExit as e:
            # The terminal is still raw here; the CLI reports it after teardown.
            self.failure = e
            logger.debug("Indeterminate exit: %s", e)
            return EXIT_INDETERMINATE
        finally:
            for task in tasks:
                task.cancel()
        logger.info("Shell exited with code %d", code)
        return code

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def _teardown(self) -> None:
        if self._state in (SessionState.TERMINATING, SessionState.CLOSED):
            return
        self._state = SessionState.TERMINATING

        if self._geometry is not None:
            try:
                await self._geometry.stop()
            except Exception as e:
                self._record("stop geometry sync", e)
        self._step("stop relay", self._stop_relay)
        self._step("stop signal handling", self._stop_signal_handling)

        self._step("restore terminal mode", self._restore_terminal)
        self._step("restore working directory", self._restore_cwd)
        self._step("release pty", self._release_pty)
        self._step("remove ephemeral home", self.remove_home)

        self._state = SessionState.CLOSED
        logger.debug("Session closed (%d teardown errors)", len(self.teardown_errors))

    def _step(self, name: str, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception as e:
            self._record(name, e)

    def _record(self, name: str, cause: Exception) -> None:
        error = TeardownError(name, cause)
        self.teardown_errors.append(error)
        logger.warning("Teardown step failed: %s", error)

    def _stop_relay(self) -> None:
        if self._relay is not None:
            self._relay.stop()

    def _stop_signal_handling(self) -> None:
        loop = asyncio.get_running_loop()
        handled, self._handled_signals = self._handled_signals, []
        for signum in handled:
            loop.remove_signal_handler(signum)

    def _restore_terminal(self) -> None:
        if self._raw is not None:
            self._raw.restore()

    def _restore_cwd(self) -> None:
        os.chdir(self.original_cwd)

    def _release_pty(self) -> None:
        if self._launched is None:
            return
        launched = self._launched
        try:
            os.close(launched.master_fd)
        finally:
            if launched.process.poll() is None:
                self._hang_up(launched.process)

    def _hang_up(self, process: subprocess.Popen) -> None:
        logger.info("Hanging up shell pid=%d", process.pid)
        try:
            os.killpg(process.pid, signal.SIGHUP)
        except ProcessLookupError:
            return
        # Raises TimeoutExpired, recorded as a teardown error.
        process.wait(timeout=self.hangup_timeout)
