"""
Universe Construction

Liquidity filtering, sector grouping and candidate pair generation.
"""

import logging
from itertools import combinations
from typing import Dict, Iterable, List, Tuple

from statarb.market_data.schemas import AssetContext
from statarb.scanner.schemas import CandidatePair

LOG = logging.getLogger(__name__)


def filter_liquid(
    contexts: Iterable[AssetContext],
    min_volume: float,
    min_open_interest: float,
    blacklist: Iterable[str] = (),
) -> List[AssetContext]:
    """Assets meeting the volume and open-interest floors, minus the blacklist"""
    blocked = set(blacklist)
    return [
        ctx for ctx in contexts
        if ctx.volume_24h >= min_volume
        and ctx.open_interest >= min_open_interest
        and ctx.symbol not in blocked
    ]


def group_by_sector(
    assets: Iterable[AssetContext],
    symbol_to_sector: Dict[str, str],
) -> Tuple[Dict[str, List[AssetContext]], List[str]]:
    """
    Group assets by sector, most liquid first.

    Returns:
        (sector -> assets, unmapped symbols)
    """
    groups: Dict[str, List[AssetContext]] = {}
    unmapped = []
    for asset in assets:
        sector = symbol_to_sector.get(asset.symbol)
        if sector is None:
            unmapped.append(asset.symbol)
            continue
        groups.setdefault(sector, []).append(asset)

    for members in groups.values():
        members.sort(key=lambda a: a.volume_24h, reverse=True)

    if unmapped:
        LOG.debug(f"Unmapped symbols: {', '.join(sorted(unmapped))}")
    return groups, unmapped


def generate_candidates(
    groups: Dict[str, List[AssetContext]],
    enable_cross_sector: bool = False,
    cross_sector_top_k: int = 3,
) -> List[CandidatePair]:
    """
    Same-sector combinations, plus cross-sector pairs among the top-K most
    liquid assets of each sector when enabled.

    Within a pair the more liquid asset is asset1.
    """
    candidates = []
    for sector, assets in groups.items():
        for a1, a2 in combinations(assets, 2):
            candidates.append(CandidatePair(sector=sector, asset1=a1, asset2=a2))

    if enable_cross_sector:
        leaders = [
            (sector, asset)
            for sector, assets in groups.items()
            for asset in assets[:cross_sector_top_k]
        ]
        for (s1, a1), (s2, a2) in combinations(leaders, 2):
            if s1 == s2:
                continue
            if a2.volume_24h > a1.volume_24h:
                (s1, a1), (s2, a2) = (s2, a2), (s1, a1)
            candidates.append(
                CandidatePair(sector=f"{s1}/{s2}", asset1=a1, asset2=a2, cross_sector=True)
            )

    return candidates
