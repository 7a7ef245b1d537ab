"""Single-instance child process management."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
import time
from typing import TYPE_CHECKING, Any

from devloop.shared.exceptions import (
    ChildExitError,
    SpawnError,
    SupervisorClosedError,
    TerminationTimeoutError,
)
from devloop.types import DEFAULT_GRACE_PERIOD, ExitStatus, ProcessState

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from pathlib import Path

    from devloop.types import RunSpec

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


class ManagedProcess:
    """
    One run of the supervised command.

    Lifecycle: starting -> running -> stopping -> exited. An exited instance
    is never restarted; the supervisor creates a new one for the next run.
    """

    def __init__(self, command: Sequence[str]) -> None:
        self.command = tuple(command)
        self.popen: subprocess.Popen[bytes] | None = None
        self.started_at: float | None = None
        self.state = ProcessState.STARTING
        self.exit_status: ExitStatus | None = None

    @property
    def pid(self) -> int | None:
        return self.popen.pid if self.popen is not None else None

    @property
    def pgid(self) -> int | None:
        # Started with start_new_session, so the leader's pid names the group
        return self.pid

    @property
    def is_live(self) -> bool:
        return self.state is not ProcessState.EXITED

    def attach(self, popen: subprocess.Popen[bytes], started_at: float) -> None:
        self.popen = popen
        self.started_at = started_at
        self.state = ProcessState.RUNNING

    def mark_exited(self, status: ExitStatus | None) -> None:
        self.exit_status = status
        self.state = ProcessState.EXITED

    def check_returncode(self) -> None:
        """Raise ChildExitError if the process ended unsuccessfully."""
        if self.exit_status is not None and not self.exit_status.success:
            raise ChildExitError(self.exit_status, command=self.command)

    def __repr__(self) -> str:
        return f"ManagedProcess(pid={self.pid}, state={self.state.value}, command={self.command!r})"


def _process_group_kwargs() -> dict[str, Any]:
    if IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}  # type: ignore[attr-defined]
    return {"start_new_session": True}


class ProcessSupervisor:
    """
    Owns at most one live ManagedProcess.

    ``start``, ``stop`` and ``restart`` are serialized by a lock, so
    overlapping restarts always leave exactly one live process running the
    most recent command. Termination targets the whole process group so
    anything the command spawned goes down with it.
    """

    def __init__(
        self,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        stop_signal: int = signal.SIGTERM,
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        popen_factory: Callable[..., subprocess.Popen[bytes]] = subprocess.Popen,
        clock: Callable[[], float] = time.monotonic,
        poll_step: float = 0.05,
    ) -> None:
        self.grace_period = grace_period
        self.stop_signal = stop_signal
        self.cwd = cwd
        self.env = dict(env) if env else None
        self.poll_step = poll_step
        self._popen_factory = popen_factory
        self._clock = clock

        self._lock = threading.RLock()
        self._force = threading.Event()
        self._closed = False
        self._current: ManagedProcess | None = None

    @classmethod
    def from_spec(cls, spec: RunSpec, **kwargs: Any) -> ProcessSupervisor:
        return cls(
            grace_period=spec.grace_period,
            stop_signal=spec.stop_signal,
            cwd=spec.cwd,
            env=spec.env,
            **kwargs,
        )

    @property
    def current(self) -> ManagedProcess | None:
        return self._current

    @property
    def live(self) -> bool:
        return self._current is not None and self._current.is_live

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self, command: Sequence[str]) -> ManagedProcess:
        """Spawn ``command`` in its own process group with inherited stdio.

        Raises:
            SpawnError: the executable could not be launched.
            SupervisorClosedError: shutdown already began.
            RuntimeError: a previous process is still live.
        """
        with self._lock:
            if self._closed:
                raise SupervisorClosedError("Supervisor is shutting down")
            if self.live:
                raise RuntimeError(f"{self._current!r} is still live, use restart()")

            process = ManagedProcess(command)
            self._current = process
            env = {**os.environ, **self.env} if self.env else None
            try:
                popen = self._popen_factory(
                    list(process.command), cwd=self.cwd, env=env, **_process_group_kwargs()
                )
            except OSError as e:
                process.mark_exited(None)
                self._current = None
                reason = e.strerror or str(e)
                raise SpawnError(
                    f"Cannot start {process.command[0]!r}: {reason}", command=process.command
                ) from e

            process.attach(popen, self._clock())
            logger.info("Started pid %s: %s", process.pid, " ".join(process.command))
            return process

    def stop(self, process: ManagedProcess | None = None) -> ExitStatus | None:
        """Terminate the process group and wait until the leader is reaped.

        Sends the stop signal, waits up to the grace period, then kills.
        ``force_kill()`` cuts the wait short. Stopping an exited process just
        returns its recorded status.
        """
        with self._lock:
            process = process or self._current
            if process is None:
                return None
            if not process.is_live:
                return process.exit_status
            assert process.popen is not None

            if self._has_exited(process):
                return self._reap(process)

            process.state = ProcessState.STOPPING
            logger.debug("Stopping pid %s with signal %s", process.pid, self.stop_signal)
            self._signal_group(process, self.stop_signal)

            try:
                exited = self._wait_for_exit(process)
            except TerminationTimeoutError as e:
                logger.warning("%s", e)
                exited = False
            else:
                if not exited:
                    logger.warning("Forced kill of pid %s requested", process.pid)

            if not exited:
                self._signal_group(process, None)
            return self._reap(process, forced=not exited)

    def restart(self, command: Sequence[str]) -> ManagedProcess | None:
        """Stop the current process (if any), then start ``command``.

        Returns None when shutdown began while the old process was stopping.
        """
        with self._lock:
            if self._current is not None:
                self.stop(self._current)
            if self._closed:
                logger.debug("Not restarting, supervisor closed")
                return None
            return self.start(command)

    def poll(self) -> ExitStatus | None:
        """Reap a process that exited on its own. Reports each exit once."""
        with self._lock:
            process = self._current
            if process is None or not process.is_live or process.state is ProcessState.STOPPING:
                return None
            assert process.popen is not None
            if not self._has_exited(process):
                return None
            return self._reap(process)

    def force_kill(self) -> None:
        """Skip the rest of an in-flight grace period."""
        self._force.set()

    def close(self) -> None:
        """Refuse any further start; an in-flight stop continues."""
        self._closed = True

    def _wait_for_exit(self, process: ManagedProcess) -> bool:
        deadline = self._clock() + self.grace_period
        while True:
            if self._has_exited(process):
                return True
            if self._force.is_set():
                return False
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise TerminationTimeoutError(process.pid or -1, self.grace_period)
            self._force.wait(min(self.poll_step, remaining))

    def _has_exited(self, process: ManagedProcess) -> bool:
        """Check the leader without reaping it, so its pid keeps naming the group."""
        popen = process.popen
        assert popen is not None
        if popen.returncode is not None:
            return True
        if IS_WINDOWS:
            return popen.poll() is not None
        try:
            info = os.waitid(os.P_PID, popen.pid, os.WEXITED | os.WNOHANG | os.WNOWAIT)
        except ChildProcessError:
            # Reaped elsewhere; wait() records the status
            return True
        return info is not None

    def _wait_unreaped(self, process: ManagedProcess) -> None:
        popen = process.popen
        assert popen is not None
        if IS_WINDOWS:
            popen.wait()
            return
        try:
            os.waitid(os.P_PID, popen.pid, os.WEXITED | os.WNOWAIT)
        except ChildProcessError:
            pass

    def _reap(self, process: ManagedProcess, *, forced: bool = False) -> ExitStatus:
        assert process.popen is not None
        if process.popen.returncode is None:
            self._wait_unreaped(process)
            # The zombie leader still pins the group id, so the sweep cannot
            # reach a reused group
            self._sweep_group(process)
        returncode = process.popen.wait()
        status = ExitStatus.from_returncode(returncode, forced=forced)
        process.mark_exited(status)
        self._force.clear()
        logger.debug("pid %s %s", process.pid, status.describe())
        return status

    def _signal_group(self, process: ManagedProcess, sig: int | None) -> None:
        """Signal the whole group; ``sig=None`` means an unconditional kill.

        On Windows there are no signals for a process group: the graceful
        stop only reaches the leader, while the kill takes down the whole
        process tree with ``taskkill /T``.
        """
        assert process.popen is not None
        if IS_WINDOWS:
            if sig is None:
                self._kill_tree(process)
            else:
                process.popen.terminate()
            return

        try:
            os.killpg(process.pgid, signal.SIGKILL if sig is None else sig)  # type: ignore[arg-type]
        except ProcessLookupError:
            pass
        except PermissionError as e:
            logger.warning("Cannot signal process group %s: %s", process.pgid, e)

    def _kill_tree(self, process: ManagedProcess) -> None:
        assert process.popen is not None
        result = subprocess.run(  # noqa: S603
            ["taskkill", "/T", "/F", "/PID", str(process.pid)],  # noqa: S607
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            logger.debug("taskkill for pid %s failed: %s", process.pid, result.stderr.strip())
            process.popen.kill()

    def _sweep_group(self, process: ManagedProcess) -> None:
        if IS_WINDOWS:
            return
        try:
            os.killpg(process.pgid, signal.SIGKILL)  # type: ignore[arg-type]
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug("Sweeping process group %s failed: %s", process.pgid, e)
