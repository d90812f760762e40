"""
Scan Report
"""

from statarb.scanner.schemas import ScanResult


def format_scan_report(result: ScanResult) -> str:
    """Discovery scan summary"""
    if result.error and not result.universe_size:
        return f"⚠️ Scan failed: {result.error}"

    lines = [
        f"🔍 Scan: {result.universe_size} assets, {result.liquid_assets} liquid, "
        f"{result.candidates} pairs",
        f"Evaluated {result.evaluated}, passed {result.passed}, "
        f"selected {len(result.selected)} ({result.duration_seconds:.0f}s)",
    ]
    for entry in result.selected:
        ready = " ✅" if entry.is_ready else ""
        warning = " ⚠️" if entry.reversion_warning else ""
        lines.append(
            f"{entry.pair} [{entry.sector}] conv {entry.conviction:.0f}, "
            f"z {entry.z_score:+.2f}/{entry.entry_threshold:.1f}{ready}{warning}"
        )
    if result.removed:
        lines.append(f"Removed: {', '.join(result.removed)}")
    if result.kept_for_positions:
        lines.append(f"Kept (open positions): {', '.join(result.kept_for_positions)}")
    if result.error:
        lines.append(f"⚠️ {result.error}")
    return "\n".join(lines)
