"""The control loop: watch, debounce, restart, shut down cleanly."""

from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from devloop.process.supervisor import ProcessSupervisor
from devloop.shared.exceptions import ChildExitError, SpawnError, SupervisorClosedError
from devloop.utils.console import dev_console
from devloop.watch.debounce import Debouncer, TriggerSlot
from devloop.watch.filter import PathFilter
from devloop.watch.source import ChangeEventSource

if TYPE_CHECKING:
    from collections.abc import Callable

    from devloop.types import ChangeEvent, RestartTrigger, RunSpec, WatchSpec
    from devloop.utils.console import DevConsole
    from devloop.watch.debounce import Scheduler

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SupervisorLoop:
    """
    Wires change source -> path filter -> debouncer -> supervisor.

    The loop thread is the only caller of ``restart``, so at most one restart
    is in flight. Triggers raised meanwhile wait in a single-slot handoff and
    collapse into one follow-up restart.

    Shutdown: the first SIGINT/SIGTERM stops event intake, drops any pending
    trigger and gracefully stops the child. A second one while the child is
    still in its grace period kills the process group immediately.
    """

    def __init__(
        self,
        watch: WatchSpec,
        run: RunSpec,
        *,
        supervisor: ProcessSupervisor | None = None,
        scheduler: Scheduler | None = None,
        source_factory: Callable[..., Any] = ChangeEventSource,
        poll_interval: float = 0.2,
        console: DevConsole = dev_console,
    ) -> None:
        self.watch = watch
        self.run_spec = run
        self.poll_interval = poll_interval
        self.console = console

        self.path_filter = PathFilter.from_spec(watch)
        self.slot = TriggerSlot()
        self.debouncer = Debouncer(watch.debounce, self._on_trigger, scheduler)
        self.supervisor = supervisor or ProcessSupervisor.from_spec(run)
        self.source = source_factory(watch.roots, self.on_change)

        self._shutdown = threading.Event()
        self._interrupts = 0
        self._restarts = 0

    @property
    def restarts(self) -> int:
        return self._restarts

    @property
    def shutting_down(self) -> bool:
        return self._shutdown.is_set()

    def on_change(self, event: ChangeEvent) -> None:
        """Entry point for the change source (called on its thread)."""
        if not self.path_filter(event):
            logger.debug("Ignoring %s %s", event.kind.value, event.path)
            return
        logger.debug("Accepted %s %s", event.kind.value, event.path)
        self.debouncer.submit(event)

    def _on_trigger(self, trigger: RestartTrigger) -> None:
        if not self.slot.put(trigger) and not self.slot.closed:
            logger.debug("Restart already pending, coalescing")

    def request_shutdown(self) -> None:
        """Ask the loop to stop. A repeated request forces the child down."""
        self._interrupts += 1
        if self._interrupts > 1:
            if self.supervisor.live:
                self.console.warning("Forcing shutdown, killing process group")
            self.supervisor.force_kill()
            return

        self.console.info("\n👋 Shutting down...")
        self._shutdown.set()
        self.supervisor.close()
        self.source.disable()
        self.slot.close()

    def run(self) -> int:
        """Run until a shutdown request. Returns the process exit status (0).

        Raises:
            WatchError: watching could not start, or every root was lost.
        """
        previous = self._install_signal_handlers()
        try:
            self.source.start()
            try:
                self._show_banner()
                self._start_initial()
                while not self._shutdown.is_set():
                    trigger = self.slot.take(timeout=self.poll_interval)
                    self._check_child()
                    self._check_watch()
                    if trigger is not None and not self._shutdown.is_set():
                        self._restart(trigger)
            finally:
                self._shutdown_sequence()
        finally:
            self._restore_signal_handlers(previous)
        return 0

    def _start_initial(self) -> None:
        self.console.command(list(self.run_spec.command))
        try:
            self.supervisor.start(self.run_spec.command)
        except SpawnError as e:
            self.console.render_exception(e)
            self.console.info("Waiting for changes...")
        except SupervisorClosedError:
            logger.debug("Shutdown requested before the first start")

    def _restart(self, trigger: RestartTrigger) -> None:
        last = self.debouncer.last_event
        changed = Path(last.path).name if last is not None else "files"
        if trigger.coalesced > 1:
            self.console.info(f"🔄 Changes detected in {changed} and others, restarting...")
        else:
            self.console.info(f"🔄 Change detected in {changed}, restarting...")

        self.console.command(list(self.run_spec.command))
        try:
            process = self.supervisor.restart(self.run_spec.command)
        except SpawnError as e:
            self.console.render_exception(e)
            self.console.info("Waiting for changes...")
            return
        except SupervisorClosedError:
            return
        if process is not None:
            self._restarts += 1

    def _check_child(self) -> None:
        status = self.supervisor.poll()
        if status is None:
            return
        process = self.supervisor.current
        try:
            if process is not None:
                process.check_returncode()
        except ChildExitError as e:
            self.console.warning(f"{e}, waiting for changes...")
        else:
            self.console.info("Process exited cleanly, waiting for changes...")

    def _check_watch(self) -> None:
        for error in self.source.check_health():
            self.console.render_exception(error)

    def _shutdown_sequence(self) -> None:
        self._shutdown.set()
        self.source.disable()
        self.debouncer.cancel()
        self.slot.close()
        if self.slot.discard() is not None:
            logger.debug("Discarded pending restart")

        self.supervisor.close()
        if self.supervisor.live:
            self.console.progress_message("Stopping process...")
            status = self.supervisor.stop()
            if status is not None:
                self.console.dim_info("Process", status.describe())

        self.source.stop()

    def _show_banner(self) -> None:
        self.console.header("devloop")
        self.console.key_value_table(
            {
                "Watching": ", ".join(str(root) for root in self.watch.roots),
                "Extensions": ", ".join(sorted(ext or "(none)" for ext in self.watch.extensions)),
                "Debounce": f"{self.watch.debounce * 1000:g}ms",
                "Grace period": f"{self.run_spec.grace_period:g}s",
            }
        )

    def _install_signal_handlers(self) -> dict[int, Any]:
        if threading.current_thread() is not threading.main_thread():
            return {}

        def handle_signal(signum: int, frame: Any) -> None:
            self.request_shutdown()

        previous: dict[int, Any] = {}
        for sig in _SHUTDOWN_SIGNALS:
            previous[sig] = signal.signal(sig, handle_signal)
        return previous

    def _restore_signal_handlers(self, previous: dict[int, Any]) -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
