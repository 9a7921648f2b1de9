"""
RSI Threshold Strategy
Mean-reversion long-only system on Wilder's RSI.

Entry: Buy when RSI drops below the oversold level while flat
Exit: Sell the whole position when RSI rises above the overbought level
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from cryptopulse.core.errors import ConfigurationError
from cryptopulse.shared.models import Bar, OrderSide, PortfolioSnapshot, TradeIntent
from cryptopulse.strategy.base import PositionSizer, Strategy
from cryptopulse.strategy.exits import ExitRules
from cryptopulse.strategy.indicators import rsi


class RsiThreshold(Strategy):
    """
    RSI Threshold

    The window is ``lookback`` bars; a longer lookback gives Wilder's
    smoothing more history to converge.
    """

    name = "rsi_threshold"

    def __init__(
        self,
        period: int = 14,
        oversold: Decimal = Decimal("30"),
        overbought: Decimal = Decimal("70"),
        lookback: Optional[int] = None,
        allocation: Decimal = Decimal("0.95"),
        quantity: Optional[Decimal] = None,
        lot_size: Decimal = Decimal("0.0001"),
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None,
        max_hold_hours: Optional[Decimal] = None,
    ) -> None:
        self.period = int(period)
        self.oversold = Decimal(str(oversold))
        self.overbought = Decimal(str(overbought))
        self.lookback = int(lookback) if lookback is not None else self.period * 3

        if self.period < 1:
            raise ConfigurationError("RSI period must be at least 1")
        if not 0 <= self.oversold < self.overbought <= 100:
            raise ConfigurationError(
                f"need 0 <= oversold ({self.oversold}) < overbought ({self.overbought}) <= 100"
            )
        if self.lookback < self.period + 1:
            raise ConfigurationError(f"lookback must be at least period + 1 ({self.period + 1})")
        self._sizer = PositionSizer(allocation=allocation, quantity=quantity, lot_size=lot_size)
        self._exits = ExitRules(stop_loss, take_profit, max_hold_hours)

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "oversold": self.oversold,
            "overbought": self.overbought,
            "lookback": self.lookback,
            **self._sizer.as_dict(),
            **self._exits.as_dict(),
        }

    @property
    def window_size(self) -> int:
        return self.lookback

    def decide(self, window: Sequence[Bar], portfolio: PortfolioSnapshot) -> List[TradeIntent]:
        bar = window[-1]
        position = portfolio.position(bar.symbol)

        exit_intent = self._exits.check(bar, position)
        if exit_intent is not None:
            return [exit_intent]

        value = rsi([b.close for b in window], self.period)
        if value is None:
            return []

        if value < self.oversold and position.is_flat:
            quantity = self._sizer.size(portfolio.cash, bar.close)
            if quantity > 0:
                return [
                    TradeIntent(
                        symbol=bar.symbol,
                        side=OrderSide.BUY,
                        quantity=quantity,
                        reason=f"RSI{self.period} {value:.2f} < {self.oversold}",
                    )
                ]
        elif value > self.overbought and position.quantity > 0:
            return [
                TradeIntent(
                    symbol=bar.symbol,
                    side=OrderSide.SELL,
                    quantity=position.quantity,
                    reason=f"RSI{self.period} {value:.2f} > {self.overbought}",
                )
            ]

        return []
