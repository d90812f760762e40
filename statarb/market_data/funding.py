"""
Funding Carry

Funding on perpetuals is paid hourly. A pair position receives the short
leg's funding and pays the long leg's.
"""

from typing import Dict, Optional

from statarb.market_data.schemas import AssetContext, NetFunding


def annualize(rate_hourly: float) -> float:
    """Hourly funding rate as annual percentage"""
    return rate_hourly * 24 * 365 * 100


def funding_spread(rate1: float, rate2: float) -> float:
    """Annualized funding of asset1 minus asset2, in percent"""
    return annualize(rate1) - annualize(rate2)


def pair_funding_spread(
    contexts: Dict[str, AssetContext],
    asset1: str,
    asset2: str,
) -> Optional[float]:
    """Funding spread from asset contexts; None if either is missing"""
    if asset1 not in contexts or asset2 not in contexts:
        return None
    return funding_spread(contexts[asset1].funding_rate, contexts[asset2].funding_rate)


def calculate_net_funding(long_ctx: AssetContext, short_ctx: AssetContext) -> NetFunding:
    """
    Net funding received by a long/short pair, in percent.

    net_8h = (short_rate - long_rate) * 8 hours; daily = 3 x net_8h,
    monthly = 30 x daily.
    """
    net_8h = (short_ctx.funding_rate - long_ctx.funding_rate) * 8 * 100
    daily = net_8h * 3
    return NetFunding(
        long_asset=long_ctx.symbol,
        short_asset=short_ctx.symbol,
        net_8h=net_8h,
        daily=daily,
        monthly=daily * 30,
    )
