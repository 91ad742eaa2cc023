"""Signal handling for operator-initiated pipeline shutdown."""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable
from typing import Any

from ..utils.logging import setup_logger

logger = setup_logger(__name__)


class GracefulShutdown:
    """
    Runs registered stop handlers once when a shutdown signal arrives.

    The first SIGINT/SIGTERM asks every handler to stop (LIFO order). A second
    signal restores the previous handlers so that another Ctrl-C interrupts
    immediately.
    """

    def __init__(self) -> None:
        self._handlers: list[Callable[[], Any]] = []
        self._previous: dict[signal.Signals, Any] = {}
        self._lock = threading.Lock()
        self._triggered = threading.Event()

    def register_handler(self, handler: Callable[[], Any]) -> None:
        """Register a callable to run when shutdown is requested."""
        self._handlers.append(handler)
        logger.debug(f"Registered shutdown handler: {handler.__name__}")

    def is_shutting_down(self) -> bool:
        return self._triggered.is_set()

    def shutdown(self) -> None:
        """Execute registered handlers in reverse order, at most once."""
        with self._lock:
            if self._triggered.is_set():
                logger.warning("Shutdown already in progress")
                return
            self._triggered.set()

        for handler in reversed(self._handlers):
            try:
                handler()
            except Exception as e:
                logger.error(
                    f"Error in shutdown handler {handler.__name__}: {e}", exc_info=True
                )

    def _handle_signal(self, signum: int, frame: Any) -> None:
        sig_name = signal.Signals(signum).name
        if self._triggered.is_set():
            logger.warning(f"Received {sig_name} again, restoring default handlers")
            self.restore()
            return
        logger.info(f"Received {sig_name}, stopping after the current batch...")
        self.shutdown()

    def install(self, signals: list[signal.Signals] | None = None) -> bool:
        """
        Install handlers for ``signals`` (defaults to SIGTERM and SIGINT).

        Returns:
            False when called outside the main thread, where Python forbids it.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.info("Skipping signal handler installation outside main thread")
            return False

        if signals is None:
            signals = [signal.SIGTERM, signal.SIGINT]

        for sig in signals:
            self._previous[sig] = signal.signal(sig, self._handle_signal)
            logger.debug(f"Installed signal handler for {sig.name}")
        return True

    def restore(self) -> None:
        """Put back whatever handlers were active before :meth:`install`."""
        if threading.current_thread() is not threading.main_thread():
            return
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)
        self._previous.clear()


def install_signal_handlers(
    on_shutdown: Callable[[], Any],
    signals: list[signal.Signals] | None = None,
) -> GracefulShutdown:
    """
    Install signal handlers that call ``on_shutdown`` on the first signal.

    Args:
        on_shutdown: Callable that requests a cooperative stop
        signals: List of signals to handle (defaults to SIGTERM and SIGINT)
    """
    manager = GracefulShutdown()
    manager.register_handler(on_shutdown)
    manager.install(signals)
    return manager
