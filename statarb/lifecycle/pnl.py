"""
Position PnL

PnL is expressed in percent of position notional:

    long leg   w_long  · (current - entry) / entry
    short leg  w_short · (entry - current) / entry
"""

from statarb.lifecycle.schemas import Position


def calculate_pnl(position: Position, price1: float, price2: float) -> float:
    """Current full-position PnL (percent) from asset1/asset2 prices"""
    long_price, short_price = position.leg_prices(price1, price2)

    long_return = (long_price - position.long_entry_price) / position.long_entry_price
    short_return = (position.short_entry_price - short_price) / position.short_entry_price

    return 100.0 * (position.long_weight * long_return + position.short_weight * short_return)


def blended_pnl(position: Position, current_pnl: float, partial_size: float = 0.5) -> float:
    """
    Realized PnL of the whole position at final exit.

    After a partial exit: partial_size x partial PnL + (1 - partial_size)
    x current PnL. Without a partial, the current PnL.
    """
    if not position.partial_exit_taken or position.partial_exit_pnl is None:
        return current_pnl
    return partial_size * position.partial_exit_pnl + (1.0 - partial_size) * current_pnl
