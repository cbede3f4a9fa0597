"""Local fixed-interval trigger for dispatch cycles.

In Cloud Functions the schedule comes from Cloud Scheduler; this module
runs the same cycle from a background thread for local and long-running
deployments.
"""

import logging
import threading

from weather_alerts.orchestrator import AlertDispatcher, CycleSummary


logger = logging.getLogger(__name__)


class DispatchScheduler:
    """Runs AlertDispatcher.run_dispatch_cycle every N minutes.

    A tick that fires while a cycle is still running (for example a manual
    trigger) is dropped, never queued.
    """

    def __init__(
        self,
        dispatcher: AlertDispatcher,
        interval_minutes: float | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        minutes = interval_minutes or dispatcher.config.dispatch_interval_minutes
        self.interval_seconds = minutes * 60
        self.shutdown_flag = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> CycleSummary | None:
        """Run one scheduled cycle.

        Errors are logged so the schedule keeps running.

        Returns:
            The cycle summary, or None if the cycle could not start
        """
        try:
            summary = self.dispatcher.run_dispatch_cycle()
        except Exception:
            logger.exception("Scheduled dispatch cycle failed")
            return None

        if summary.cycle_skipped:
            logger.info("Scheduled tick dropped: previous cycle still running")
        return summary

    def _run(self, run_immediately: bool) -> None:
        if run_immediately:
            self.tick()
        while not self.shutdown_flag.wait(self.interval_seconds):
            self.tick()

    def start(self, run_immediately: bool = True) -> None:
        """Start ticking in a daemon thread."""
        if self.is_alive:
            logger.warning("Scheduler already running")
            return

        self.shutdown_flag.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(run_immediately,),
            daemon=True,
            name="DispatchScheduler",
        )
        self._thread.start()
        logger.info("Scheduler started: every %.0f seconds", self.interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        """Stop ticking; an in-flight cycle is allowed to finish."""
        self.shutdown_flag.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("Scheduler stopped")

    def run_forever(self) -> None:
        """Tick on the calling thread until stop() is called."""
        logger.info("Scheduler running in foreground: every %.0f seconds", self.interval_seconds)
        self._run(run_immediately=True)
