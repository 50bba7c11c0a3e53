"""
Polling worker base.

A worker runs `run_once()` on a fixed interval in a background thread until
stopped. Stop is cooperative: the current item finishes, no new item or batch
starts, and the interval wait returns immediately.
"""

import logging
import threading

from utils.actor_context import actor_context

logger = logging.getLogger(__name__)


class PollingWorker:
    """
    Background loop around a single unit of work.

    Contract:
        - ``tick()`` runs one pass under the worker's actor and never raises.
        - ``start()`` / ``stop()`` for background thread operation.
        - Subclasses check ``stop_event`` between items.
    """

    name = "worker"

    def __init__(self, interval_seconds: float, actor: str):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.actor = actor
        self.stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> int:
        """One pass of work. Returns the number of items processed."""
        raise NotImplementedError

    def tick(self) -> int:
        """
        Run one pass (public for testing).

        A failure fetching the batch is logged and the pass counts as zero;
        the next tick tries again.
        """
        with actor_context(self.actor):
            try:
                return self.run_once()
            except Exception:
                logger.exception(f"{self.name} tick failed")
                return 0

    def start(self) -> None:
        """Start the loop in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self.stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"{self.name} started (interval {self.interval_seconds:.0f}s)")

    def stop(self, timeout: float = 30.0) -> None:
        """
        Signal stop and wait for the in-flight item to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish
        """
        self.stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info(f"{self.name} stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self.stop_event.is_set():
            self.tick()
            self.stop_event.wait(timeout=self.interval_seconds)
