"""
Message Formatting

Plain-text (Telegram HTML-safe) messages for entries, exits and monitor
cycle reports.
"""

from typing import List

from statarb.lifecycle.schemas import CycleResult, HistoryRecord, Position


def format_entry(position: Position) -> str:
    return (
        f"🟢 ENTRY {position.pair} ({position.source})\n"
        f"Long {position.long_asset} {position.long_weight:.0%} / "
        f"Short {position.short_asset} {position.short_weight:.0%}\n"
        f"Z {position.entry_z_score:+.2f} (threshold {position.entry_threshold:.2f})"
        + (f", HL {position.half_life:.1f}d" if position.half_life else "")
    )


def format_partial(position: Position) -> str:
    pnl = position.partial_exit_pnl or 0.0
    return (
        f"🟡 PARTIAL EXIT {position.pair}\n"
        f"50% closed at {pnl:+.2f}% (z {position.current_z:+.2f})"
    )


def format_exit(record: HistoryRecord) -> str:
    icon = "✅" if record.total_pnl > 0 else "🔴"
    exit_z = f"{record.exit_z_score:+.2f}" if record.exit_z_score is not None else "n/a"
    return (
        f"{icon} EXIT {record.pair} [{record.exit_reason.value}]\n"
        f"PnL {record.total_pnl:+.2f}% after {record.days_in_trade:.1f}d (z {exit_z})"
    )


def format_position_line(position: Position) -> str:
    z = f"{position.current_z:+.2f}" if position.current_z is not None else "n/a"
    health = position.health_status or "?"
    partial = " [partial]" if position.partial_exit_taken else ""
    funding = ""
    if position.net_funding_8h is not None:
        funding = f", funding {position.net_funding_8h:+.4f}%/8h"
    return (
        f"{position.pair}{partial}: PnL {position.current_pnl:+.2f}%, "
        f"z {z}, health {health} ({position.health_score}){funding}"
    )


def format_cycle_report(result: CycleResult, positions: List[Position], max_positions: int) -> str:
    """Monitor cycle summary"""
    lines = [f"📊 Monitor: {len(positions)}/{max_positions} positions"]
    lines.extend(format_position_line(p) for p in positions)

    if result.entries:
        lines.append(f"Entered: {', '.join(result.entries)}")
    if result.partial_exits:
        lines.append(f"Partial: {', '.join(result.partial_exits)}")
    if result.exits:
        lines.append("Closed: " + ", ".join(f"{e['pair']} ({e['reason']})" for e in result.exits))
    if result.approaching:
        approaching = [
            f"{a['pair']} z {a['z_score']:+.2f}/{a['entry_threshold']:.1f}"
            + (" [hurst]" if a.get('hurst_blocked') else "")
            + (f" [{a['overlap']}]" if a.get('overlap') else "")
            for a in result.approaching
        ]
        lines.append("Approaching: " + "; ".join(approaching))
    if result.skipped:
        lines.append(f"Skipped: {len(result.skipped)} pairs")
    if result.rescan_requested:
        lines.append("🔄 Capacity free with no enterable pair, rescan requested")
    if result.error:
        lines.append(f"⚠️ {result.error}")

    return "\n".join(lines)
