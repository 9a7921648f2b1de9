"""
Moving Average Crossover Strategy
Trend-following long-only system.

Entry: Buy when the fast SMA crosses above the slow SMA (golden cross)
Exit: Sell the whole position when it crosses back below (death cross),
      or earlier on an optional stop-loss, take-profit or holding limit
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from cryptopulse.core.errors import ConfigurationError
from cryptopulse.shared.models import Bar, OrderSide, PortfolioSnapshot, TradeIntent
from cryptopulse.strategy.base import PositionSizer, Strategy
from cryptopulse.strategy.exits import ExitRules
from cryptopulse.strategy.indicators import sma

logger = logging.getLogger(__name__)


class MovingAverageCrossover(Strategy):
    """
    Moving Average Crossover

    Rules:
    - Long Entry: fast SMA crosses above slow SMA while flat
    - Long Exit: fast SMA crosses below slow SMA while long

    Crosses are detected from the previous bar, so the window holds
    ``slow + 1`` bars.
    """

    name = "ma_crossover"

    def __init__(
        self,
        fast: int = 10,
        slow: int = 30,
        allocation: Decimal = Decimal("0.95"),
        quantity: Optional[Decimal] = None,
        lot_size: Decimal = Decimal("0.0001"),
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None,
        max_hold_hours: Optional[Decimal] = None,
    ) -> None:
        self.fast = int(fast)
        self.slow = int(slow)
        if self.fast < 1:
            raise ConfigurationError("fast period must be at least 1")
        if self.fast >= self.slow:
            raise ConfigurationError(
                f"fast period ({self.fast}) must be shorter than slow period ({self.slow})"
            )
        self._sizer = PositionSizer(allocation=allocation, quantity=quantity, lot_size=lot_size)
        self._exits = ExitRules(stop_loss, take_profit, max_hold_hours)

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "fast": self.fast,
            "slow": self.slow,
            **self._sizer.as_dict(),
            **self._exits.as_dict(),
        }

    @property
    def window_size(self) -> int:
        return self.slow + 1

    def decide(self, window: Sequence[Bar], portfolio: PortfolioSnapshot) -> List[TradeIntent]:
        bar = window[-1]
        position = portfolio.position(bar.symbol)

        exit_intent = self._exits.check(bar, position)
        if exit_intent is not None:
            return [exit_intent]

        if len(window) < self.window_size:
            return []

        closes = [b.close for b in window]
        fast_now = sma(closes, self.fast)
        slow_now = sma(closes, self.slow)
        fast_prev = sma(closes[:-1], self.fast)
        slow_prev = sma(closes[:-1], self.slow)

        # Golden cross
        if fast_prev <= slow_prev and fast_now > slow_now and position.is_flat:
            quantity = self._sizer.size(portfolio.cash, bar.close)
            if quantity <= 0:
                return []
            return [
                TradeIntent(
                    symbol=bar.symbol,
                    side=OrderSide.BUY,
                    quantity=quantity,
                    reason=f"golden cross: SMA{self.fast} {fast_now:.2f} > SMA{self.slow} {slow_now:.2f}",
                )
            ]

        # Death cross
        if fast_prev >= slow_prev and fast_now < slow_now and position.quantity > 0:
            return [
                TradeIntent(
                    symbol=bar.symbol,
                    side=OrderSide.SELL,
                    quantity=position.quantity,
                    reason=f"death cross: SMA{self.fast} {fast_now:.2f} < SMA{self.slow} {slow_now:.2f}",
                )
            ]

        return []
