"""
Historical Divergence / Reversion Profiling

Scans a historical z-score series for threshold-crossing episodes and
measures how often, and how fast, they reverted. An episode starts when
|z| reaches a threshold with no episode active and ends when |z| falls
back inside the reversion band. Episodes still open at the end of the
series count as events that did not revert.

Two reversion bands are measured:
    fixed    |z| < 0.5
    percent  |z| < 0.5 · threshold

The optimal entry threshold comes from the percentage variant.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from statarb.fitness_engine.config import DivergenceConfig
from statarb.fitness_engine.schemas import DivergenceProfile, ThresholdStats
from statarb.fitness_engine.spread import calculate_spread, rolling_zscore

LOG = logging.getLogger(__name__)


def find_episodes(
    z_series: Sequence[float],
    threshold: float,
    target: float,
) -> List[Tuple[int, Optional[int], float]]:
    """
    Locate divergence episodes.

    Returns:
        List of (start_index, revert_index or None, peak_abs_z)
    """
    episodes = []
    start = None
    peak = 0.0

    for i, z in enumerate(z_series):
        abs_z = abs(z)
        if start is None:
            if abs_z >= threshold:
                start = i
                peak = abs_z
            continue

        peak = max(peak, abs_z)
        if abs_z < target:
            episodes.append((start, i, peak))
            start = None
            peak = 0.0

    if start is not None:
        episodes.append((start, None, peak))

    return episodes


def threshold_stats(
    z_series: Sequence[float],
    threshold: float,
    target: float,
    bars_per_day: float = 1.0,
) -> ThresholdStats:
    """Reversion statistics for a single threshold and reversion band"""
    episodes = find_episodes(z_series, threshold, target)
    stats = ThresholdStats(threshold=threshold, events=len(episodes))
    if not episodes:
        return stats

    reverted = [(s, e) for s, e, _ in episodes if e is not None]
    stats.reverted = len(reverted)
    stats.rate = stats.reverted / stats.events
    stats.avg_peak_z = float(np.mean([peak for _, _, peak in episodes]))
    if reverted:
        stats.avg_time_to_revert = float(np.mean([e - s for s, e in reverted])) / bars_per_day

    return stats


def select_optimal_entry(
    stats: Dict[float, ThresholdStats],
    config: Optional[DivergenceConfig] = None,
) -> float:
    """
    Highest threshold with a qualifying reversion record.

    Strong qualification (>= 90% with >= 3 events) is preferred over the
    fallback (>= 80% with >= 2 events). The result is floored at 1.5.
    """
    config = config or DivergenceConfig()
    ordered = sorted(stats, reverse=True)

    def qualifying(min_rate: float, min_events: int) -> Optional[float]:
        for threshold in ordered:
            s = stats[threshold]
            if s.rate is not None and s.events >= min_events and s.rate >= min_rate:
                return threshold
        return None

    chosen = qualifying(config.strong_rate, config.strong_min_events)
    if chosen is None:
        chosen = qualifying(config.fallback_rate, config.fallback_min_events)
    if chosen is None:
        return config.min_entry

    return max(chosen, config.min_entry)


def analyze_divergences(
    z_series: Sequence[float],
    config: Optional[DivergenceConfig] = None,
    bars_per_day: float = 1.0,
) -> DivergenceProfile:
    """
    Build a divergence profile from a z-score series.

    Args:
        z_series: Historical z-scores, oldest first
        config: Thresholds and qualification rules
        bars_per_day: Observations per day (24 for hourly data)

    Returns:
        DivergenceProfile
    """
    config = config or DivergenceConfig()
    z = np.asarray(z_series, dtype=float)
    z = z[np.isfinite(z)]

    fixed = {}
    percent = {}
    for threshold in config.thresholds:
        fixed[threshold] = threshold_stats(z, threshold, config.fixed_target, bars_per_day)
        percent[threshold] = threshold_stats(
            z, threshold, threshold * config.percent_target, bars_per_day
        )

    profile = DivergenceProfile(
        fixed=fixed,
        percent=percent,
        optimal_entry=select_optimal_entry(percent, config),
        max_historical_z=float(np.max(np.abs(z))) if z.size else 0.0,
        current_z=float(z[-1]) if z.size else 0.0,
        observations=int(z.size),
    )
    LOG.debug(f"Divergence profile: optimal_entry={profile.optimal_entry}, "
              f"max_z={profile.max_historical_z:.2f}, n={profile.observations}")
    return profile


def profile_pair(
    p1: Sequence[float],
    p2: Sequence[float],
    beta: float,
    window: int = 30,
    bars_per_day: float = 1.0,
    config: Optional[DivergenceConfig] = None,
) -> DivergenceProfile:
    """Divergence profile of the rolling spread z-score of a pair"""
    spread = calculate_spread(p1, p2, beta)
    z = rolling_zscore(spread, window)
    return analyze_divergences(z, config, bars_per_day)


def reversion_warning(
    profile: DivergenceProfile,
    z: float,
    config: Optional[DivergenceConfig] = None,
) -> Tuple[bool, Optional[float]]:
    """
    Flag poor historical reversion at the current |z|.

    Returns:
        (warning, rate) where rate is the percentage-variant reversion rate
        of the highest threshold at or below |z|
    """
    config = config or DivergenceConfig()
    stats = profile.stats_at(z)
    if stats is None or stats.rate is None:
        return False, None

    warning = stats.events >= config.warning_min_events and stats.rate < config.warning_min_rate
    return warning, stats.rate
