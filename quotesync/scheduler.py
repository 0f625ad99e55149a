"""Periodic reconciliation scheduler.

Runs reconciliation passes on a background thread at a fixed interval and
on demand. Overlapping requests are not queued: the engine drops any pass
requested while another is in flight.
"""

import logging
import threading
from typing import Callable, Optional

from .engine import ReconciliationEngine
from .errors import ConfigError
from .types import ReconcileResult

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = 15.0


class SyncScheduler:
    """Trigger ``engine.reconcile`` every ``interval`` seconds.

    Args:
        engine: The engine to drive.
        interval: Seconds between passes.
        on_result: Optional callback invoked with every ``ReconcileResult``.
            Exceptions it raises are logged and otherwise ignored.
        max_ticks: Stop on its own after this many passes (None runs until
            ``stop``).
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        interval: float = DEFAULT_SYNC_INTERVAL,
        on_result: Optional[Callable[[ReconcileResult], None]] = None,
        max_ticks: Optional[int] = None,
    ):
        if interval <= 0:
            raise ConfigError(f"Sync interval must be positive, got {interval}")
        self.engine = engine
        self.interval = interval
        self.on_result = on_result
        self.max_ticks = max_ticks
        self.ticks = 0
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background loop; the first pass runs immediately."""
        if self.running:
            return
        self._stop.clear()
        self._wake.clear()
        self._thread = threading.Thread(target=self._run, name="quotesync-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Sync scheduler started (interval={self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop scheduling passes. A pass already running is allowed to finish."""
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("Sync scheduler stopped")

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def trigger(self) -> None:
        """Request a pass now instead of waiting for the next interval."""
        self._wake.set()

    def run_once(self) -> ReconcileResult:
        """Run one pass on the calling thread."""
        result = self.engine.reconcile()
        self.ticks += 1
        if result.skipped:
            logger.debug("Sync tick dropped, previous pass still in flight")
        elif result.unavailable:
            logger.info("Sync attempt failed (network error). Will retry.")

        if self.on_result is not None:
            try:
                self.on_result(result)
            except Exception as e:
                logger.error(f"Sync result callback failed: {e}", exc_info=True)
        return result

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Sync tick failed: {e}", exc_info=True)

            if self.max_ticks is not None and self.ticks >= self.max_ticks:
                break

            self._wake.wait(self.interval)
            self._wake.clear()
