"""
Job Scheduler

Runs the monitor cycle and the discovery scan on fixed intervals. Each job
type is single-flight: a trigger that arrives while the job is running is
skipped, not queued.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from statarb.lifecycle.monitor import TradeMonitor
from statarb.lifecycle.schemas import utcnow
from statarb.scanner.engine import PairScanner
from statarb.scheduler.config import SchedulerConfig

LOG = logging.getLogger(__name__)


class SingleFlightGuard:
    """Runs a job unless an invocation is already in progress"""

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self.last_run: Optional[str] = None
        self.last_result: Optional[Dict[str, Any]] = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(self, job: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        """
        Run the job if idle.

        Returns:
            {'skipped': True, 'reason': 'already_running'} when busy, else
            {'success', 'duration', 'timestamp', 'result'} or
            {'success': False, 'error'} if the job raised
        """
        if not self._lock.acquire(blocking=False):
            LOG.info(f"{self.name} already running, skipping")
            return {'skipped': True, 'reason': 'already_running'}

        started = time.monotonic()
        LOG.info(f"Running {self.name} at {utcnow().isoformat()}")
        try:
            result = job()
            self.last_run = utcnow().isoformat()
            outcome = {
                'success': True,
                'duration': round(time.monotonic() - started, 1),
                'timestamp': self.last_run,
                'result': result,
            }
            LOG.info(f"{self.name} completed in {outcome['duration']}s")
        except Exception as e:
            LOG.error(f"{self.name} error: {e}", exc_info=True)
            outcome = {'success': False, 'error': str(e)}
        finally:
            self._lock.release()

        self.last_result = outcome
        return outcome

    def status(self) -> dict:
        return {
            'running': self.running,
            'last_run': self.last_run,
            'last_result': self.last_result,
        }


class JobScheduler:
    """
    Periodic monitor and scan jobs.

    The monitor's rescan requests are routed through ``request_rescan`` so
    they share the scan job's single-flight guard.
    """

    def __init__(
        self,
        monitor: TradeMonitor,
        scanner: PairScanner,
        config: Optional[SchedulerConfig] = None,
    ):
        self.monitor = monitor
        self.scanner = scanner
        self.config = config or SchedulerConfig()

        self.monitor_guard = SingleFlightGuard("monitor")
        self.scan_guard = SingleFlightGuard("scan")

        self._stop_event = threading.Event()
        self._threads = []
        self._running = False

        if monitor.rescan_requester is None:
            monitor.rescan_requester = self.request_rescan

    # ========================================
    # JOBS
    # ========================================

    def run_monitor(self) -> Dict[str, Any]:
        return self.monitor_guard.run(lambda: self.monitor.run_cycle().to_dict())

    def run_scan(self) -> Dict[str, Any]:
        return self.scan_guard.run(lambda: self.scanner.run().to_dict())

    def request_rescan(self) -> bool:
        """
        Start a scan in the background.

        Returns:
            False if a scan is already running
        """
        if self.scan_guard.running:
            LOG.info("Rescan requested while scan running, ignoring")
            return False
        thread = threading.Thread(target=self.run_scan, name="RescanJob", daemon=True)
        thread.start()
        LOG.info("Rescan started")
        return True

    # ========================================
    # LOOPS
    # ========================================

    def _monitor_loop(self):
        if self._stop_event.wait(self.config.initial_delay_seconds):
            return
        while not self._stop_event.is_set():
            self.run_monitor()
            self._stop_event.wait(self.config.monitor_interval_seconds)

    def _scan_loop(self):
        if not self.config.scan_on_start and self._stop_event.wait(self.config.scan_interval_seconds):
            return
        while not self._stop_event.is_set():
            self.run_scan()
            self._stop_event.wait(self.config.scan_interval_seconds)

    def start(self):
        """Start the monitor and scan threads"""
        if self._running:
            return

        self._running = True
        self._stop_event.clear()
        self._threads = [
            threading.Thread(target=self._monitor_loop, name="MonitorJob", daemon=True),
            threading.Thread(target=self._scan_loop, name="ScanJob", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

        LOG.info(
            f"Scheduler started: monitor every {self.config.monitor_interval_minutes:g} min, "
            f"scan every {self.config.scan_interval_hours:g} h"
        )

    def stop(self):
        """Stop the job threads; a job in progress finishes first"""
        if not self._running:
            return

        self._running = False
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=self.config.join_timeout_seconds)
        self._threads = []
        LOG.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def status(self) -> dict:
        return {
            'running': self._running,
            'monitor': {
                **self.monitor_guard.status(),
                'interval_minutes': self.config.monitor_interval_minutes,
            },
            'scan': {
                **self.scan_guard.status(),
                'interval_hours': self.config.scan_interval_hours,
            },
        }
