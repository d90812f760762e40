"""
Lifecycle Rules

Entry validation and exit decision rules. Pure functions of the current
evaluation and position; the monitor and the command interface both go
through these.

Exit rules, first match wins:
    1. Partial exit (once):   |z| <= 0.5 x entry threshold, or PnL >= +3%
    2. Final exit (partial):  PnL >= +5%, or |z| <= 0.5
    3. Full exit (no partial): |z| <= 0.5
    4. Stop loss:             |z| >= max(1.5 x |entry z|, 1.2 x max hist z, 3.0)
    5. Time stop:             days in trade > 2 x entry half-life
    6. Correlation breakdown: correlation < 0.4
"""

from datetime import datetime
from typing import Optional, Tuple

from statarb.fitness_engine.schemas import PairEvaluation
from statarb.lifecycle.config import EntryConfig, ExitConfig
from statarb.lifecycle.schemas import (
    Direction,
    EntryValidation,
    ExitDecision,
    ExitReason,
    Position,
)


# ========================================
# ENTRY
# ========================================

def direction_for(z: float) -> Direction:
    """Negative z (spread below mean) -> long the first leg"""
    return Direction.LONG if z < 0 else Direction.SHORT


def calculate_weights(beta: float) -> Tuple[float, float]:
    """
    Leg weights (asset1, asset2) from the hedge ratio.

        w1 = 1 / (1 + |β|),  w2 = |β| / (1 + |β|)
    """
    b = abs(beta)
    return 1.0 / (1.0 + b), b / (1.0 + b)


def validate_entry(
    evaluation: PairEvaluation,
    entry_threshold: float,
    reversion_warning: bool = False,
    config: Optional[EntryConfig] = None,
) -> EntryValidation:
    """
    Check every entry condition for a watchlist pair.

    Args:
        evaluation: Current pair evaluation
        entry_threshold: Pair entry threshold
        reversion_warning: Unresolved discovery-time reversion warning
        config: Entry thresholds

    Returns:
        EntryValidation; reason is the first failing check, or "ok".
        ``is_ready`` depends only on |z| >= entry_threshold.
    """
    config = config or EntryConfig()
    z = evaluation.reactive.z_score
    z_short = evaluation.short.z_score
    min_short = config.short_confirm_ratio * entry_threshold

    checks = {
        'no_signal': abs(z) >= entry_threshold,
        'low_corr': evaluation.reactive.correlation >= config.min_correlation,
        'not_coint': evaluation.structural.is_cointegrated,
        'slow_reversion': evaluation.reactive.half_life.passes(lambda hl: hl <= config.max_half_life),
        'conflicting_tf': (z * z_short > 0) and abs(z_short) >= min_short,
        'hurst_trending': evaluation.hurst.metric.passes(lambda h: h < config.max_hurst),
        'reversion_warning': not (reversion_warning and config.block_on_reversion_warning),
    }

    reason = next((name for name, passed in checks.items() if not passed), 'ok')
    return EntryValidation(
        valid=reason == 'ok',
        reason=reason,
        is_ready=checks['no_signal'],
        checks=checks,
    )


# ========================================
# EXIT
# ========================================

def dynamic_stop(
    entry_z: Optional[float],
    max_historical_z: Optional[float],
    config: Optional[ExitConfig] = None,
) -> float:
    """Stop-loss z level: max(1.5 x |entry z|, 1.2 x max historical z, 3.0)"""
    config = config or ExitConfig()
    entry_z = abs(entry_z) if entry_z is not None else config.default_entry_z
    max_z = abs(max_historical_z) if max_historical_z else config.default_max_historical_z
    return max(
        entry_z * config.stop_entry_multiplier,
        max_z * config.stop_history_multiplier,
        config.stop_floor,
    )


def check_exit_conditions(
    position: Position,
    z: float,
    pnl: float,
    correlation: Optional[float],
    now: datetime,
    config: Optional[ExitConfig] = None,
) -> ExitDecision:
    """
    Decide whether a position should (partially) exit this cycle.

    Args:
        position: Open position
        z: Current reactive z-score
        pnl: Current full-position PnL, percent
        correlation: Current reactive correlation (None skips breakdown)
        now: Evaluation time
        config: Exit thresholds

    Returns:
        ExitDecision
    """
    config = config or ExitConfig()
    abs_z = abs(z)

    if not position.partial_exit_taken:
        partial_band = config.partial_z_ratio * position.entry_threshold
        if abs_z <= partial_band:
            return ExitDecision(
                should_exit=True,
                reason=ExitReason.PARTIAL_REVERSION,
                is_partial=True,
                exit_size=config.partial_size,
                message=f"Z reverted to {z:.2f} (band {partial_band:.2f})",
            )
        if pnl >= config.partial_pnl:
            return ExitDecision(
                should_exit=True,
                reason=ExitReason.PARTIAL_TP,
                is_partial=True,
                exit_size=config.partial_size,
                message=f"PnL +{pnl:.2f}% reached partial target",
            )

    if position.partial_exit_taken:
        if pnl >= config.final_pnl:
            return ExitDecision(
                should_exit=True,
                reason=ExitReason.FINAL_TP,
                exit_size=1.0,
                message=f"PnL +{pnl:.2f}% reached final target",
            )
        if abs_z <= config.exit_threshold:
            return ExitDecision(
                should_exit=True,
                reason=ExitReason.TARGET,
                exit_size=1.0,
                message=f"Full reversion after partial (z={z:.2f})",
            )
    elif abs_z <= config.exit_threshold:
        return ExitDecision(
            should_exit=True,
            reason=ExitReason.TARGET,
            exit_size=1.0,
            message=f"Full reversion (z={z:.2f})",
        )

    stop = dynamic_stop(position.entry_z_score, position.max_historical_z, config)
    if abs_z >= stop:
        return ExitDecision(
            should_exit=True,
            reason=ExitReason.STOP_LOSS,
            exit_size=1.0,
            message=f"|z|={abs_z:.2f} beyond stop {stop:.2f}",
        )

    half_life = position.half_life or config.default_half_life
    max_days = half_life * config.time_stop_multiplier
    days = position.days_in_trade(now)
    if days > max_days:
        return ExitDecision(
            should_exit=True,
            reason=ExitReason.TIME_STOP,
            exit_size=1.0,
            message=f"{days:.1f} days in trade exceeds {max_days:.1f}",
        )

    if correlation is not None and correlation < config.breakdown_correlation:
        return ExitDecision(
            should_exit=True,
            reason=ExitReason.BREAKDOWN,
            exit_size=1.0,
            message=f"Correlation {correlation:.2f} below {config.breakdown_correlation}",
        )

    return ExitDecision.hold()
