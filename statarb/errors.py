"""
Error Taxonomy

Shared exception hierarchy for the pairs engine. Statistical edge cases are
NOT raised; they are returned as ``Metric.none(reason)`` by the fitness
engine. These exceptions cover data availability, upstream I/O and
lifecycle state conflicts.
"""

from typing import Optional


class StatArbError(Exception):
    """Base class for all engine errors"""
    pass


class InsufficientData(StatArbError):
    """Too few aligned observations for the requested window"""

    def __init__(self, message: str, available: int = 0, required: int = 0):
        super().__init__(message)
        self.available = available
        self.required = required


class UpstreamUnavailable(StatArbError):
    """Market-data or persistence call failed"""
    pass


class InvalidFitness(StatArbError):
    """Price input outside the domain of the fitness functions"""
    pass


class StateConflict(StatArbError):
    """
    Entry on an already-open pair, exit on a missing position, or an entry
    rejected by admission control.

    ``reason`` carries a short machine-readable code (e.g. ``long_conflict``).
    """

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
