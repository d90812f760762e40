"""
Position Health

Additive diagnostic score from six independent checks. Reporting only;
health never drives a state transition.

    check                 +2            +1             -1
    z reversion           >= 25%        > 0            diverged > 10%
    PnL                   >= +1%        > 0            <= -2%
    correlation                         >= 0.7         < 0.5 or missing
    half-life ratio                     <= 1.2         > 2.0 or missing
    Hurst                               < 0.45         >= 0.5
    beta drift                          < 0.15         > 0.30

Bands: >= 5 STRONG, 2-4 OK, 0-1 WEAK, < 0 BROKEN.
"""

from typing import List, Optional

from statarb.lifecycle.schemas import HealthReport, HealthStatus, Position


def health_status(score: int) -> HealthStatus:
    if score >= 5:
        return HealthStatus.STRONG
    if score >= 2:
        return HealthStatus.OK
    if score >= 0:
        return HealthStatus.WEAK
    return HealthStatus.BROKEN


def calculate_health(
    position: Position,
    z: float,
    pnl: float,
    correlation: Optional[float],
    half_life: Optional[float],
    hurst: Optional[float],
    beta_drift: Optional[float],
) -> HealthReport:
    """
    Score the health of an open position.

    Args:
        position: Open position (entry z and half-life are read from it)
        z: Current z-score
        pnl: Current PnL, percent
        correlation: Current correlation
        half_life: Current half-life (None = not mean-reverting)
        hurst: Current Hurst exponent
        beta_drift: Current beta drift

    Returns:
        HealthReport with score, band and readable signals
    """
    score = 0
    signals: List[str] = []

    entry_z = abs(position.entry_z_score)
    if entry_z > 0:
        reversion = (entry_z - abs(z)) / entry_z
        if reversion >= 0.25:
            score += 2
            signals.append(f"Z reverting {reversion:.0%}")
        elif reversion > 0:
            score += 1
            signals.append(f"Z reverting {reversion:.0%}")
        elif reversion < -0.10:
            score -= 1
            signals.append(f"Z diverging {-reversion:.0%}")

    if pnl >= 1.0:
        score += 2
        signals.append(f"PnL {pnl:+.1f}%")
    elif pnl > 0:
        score += 1
        signals.append(f"PnL {pnl:+.1f}%")
    elif pnl <= -2.0:
        score -= 1
        signals.append(f"PnL {pnl:+.1f}%")

    if correlation is None or correlation < 0.5:
        score -= 1
        signals.append("Correlation weak" if correlation is not None else "Correlation unknown")
    elif correlation >= 0.7:
        score += 1
        signals.append(f"Corr {correlation:.2f}")

    if half_life is None:
        score -= 1
        signals.append("Half-life undefined")
    elif position.half_life:
        ratio = half_life / position.half_life
        if ratio <= 1.2:
            score += 1
            signals.append(f"HL stable ({ratio:.1f}x)")
        elif ratio > 2.0:
            score -= 1
            signals.append(f"HL inflated {ratio:.1f}x")

    if hurst is not None:
        if hurst < 0.45:
            score += 1
            signals.append(f"Hurst {hurst:.2f}")
        elif hurst >= 0.5:
            score -= 1
            signals.append(f"Hurst {hurst:.2f} trending!")

    if beta_drift is not None:
        if beta_drift < 0.15:
            score += 1
            signals.append(f"Beta stable ({beta_drift:.0%})")
        elif beta_drift > 0.30:
            score -= 1
            signals.append(f"Beta drift {beta_drift:.0%}")

    return HealthReport(score=score, status=health_status(score), signals=signals)
