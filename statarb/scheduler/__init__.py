"""
Scheduler

Periodic, single-flight execution of the monitor cycle (every 15 minutes)
and the discovery scan (every 12 hours), plus on-demand rescans.
"""

from statarb.scheduler.config import SchedulerConfig
from statarb.scheduler.jobs import SingleFlightGuard, JobScheduler

__version__ = "1.0.0"

__all__ = [
    'SchedulerConfig',
    'SingleFlightGuard',
    'JobScheduler',
]
