"""
Admission Control

Overlap and capacity constraints on new positions. Each check returns an
``OverlapCheck``; the first violation rejects the entry.

    active_trade     the pair itself is already open
    long_conflict    the asset to long is the short leg of an open position
    short_conflict   the asset to short is the long leg of an open position
    max_exposure     either asset already appears in 2 open positions
    capacity         open positions at the configured maximum
"""

import logging
from typing import Iterable, List, Optional

from statarb.lifecycle.config import AdmissionConfig
from statarb.lifecycle.schemas import ConflictType, OverlapCheck, Position

LOG = logging.getLogger(__name__)


def asset_exposure(positions: Iterable[Position], asset: str) -> int:
    """Number of open positions that include the asset on either leg"""
    return sum(1 for p in positions if asset in (p.long_asset, p.short_asset))


def check_overlap(
    long_asset: str,
    short_asset: str,
    positions: List[Position],
    max_per_asset: int = 2,
) -> OverlapCheck:
    """
    Check a prospective long/short pair against open positions.

    Args:
        long_asset: Asset to go long
        short_asset: Asset to go short
        positions: Open positions
        max_per_asset: Maximum concurrent positions per asset

    Returns:
        OverlapCheck
    """
    members = frozenset((long_asset, short_asset))
    for p in positions:
        if p.members == members:
            return OverlapCheck(
                allowed=False,
                conflict_type=ConflictType.ACTIVE_TRADE,
                message=f"{p.pair} is already open",
            )

    for p in positions:
        if p.short_asset == long_asset:
            return OverlapCheck(
                allowed=False,
                conflict_type=ConflictType.LONG_CONFLICT,
                conflict_asset=long_asset,
                message=f"{long_asset} is short in {p.pair}",
            )
        if p.long_asset == short_asset:
            return OverlapCheck(
                allowed=False,
                conflict_type=ConflictType.SHORT_CONFLICT,
                conflict_asset=short_asset,
                message=f"{short_asset} is long in {p.pair}",
            )

    for asset in (long_asset, short_asset):
        count = asset_exposure(positions, asset)
        if count >= max_per_asset:
            return OverlapCheck(
                allowed=False,
                conflict_type=ConflictType.MAX_EXPOSURE,
                conflict_asset=asset,
                message=f"{asset} already in {count} positions",
            )

    return OverlapCheck(allowed=True)


def check_capacity(open_count: int, max_positions: int) -> OverlapCheck:
    """Reject when the position pool is full"""
    if open_count >= max_positions:
        return OverlapCheck(
            allowed=False,
            conflict_type=ConflictType.CAPACITY,
            message=f"{open_count}/{max_positions} positions open",
        )
    return OverlapCheck(allowed=True)


def admit(
    long_asset: str,
    short_asset: str,
    positions: List[Position],
    config: Optional[AdmissionConfig] = None,
) -> OverlapCheck:
    """Overlap checks followed by the capacity check"""
    config = config or AdmissionConfig()
    overlap = check_overlap(long_asset, short_asset, positions, config.max_positions_per_asset)
    if not overlap.allowed:
        LOG.debug(f"Admission rejected {long_asset}/{short_asset}: {overlap.message}")
        return overlap
    return check_capacity(len(positions), config.max_positions)
