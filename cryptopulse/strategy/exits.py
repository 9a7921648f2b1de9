"""
Protective Exits
Stop-loss, take-profit and maximum holding time for an open position.

Levels are fractions of the position's average cost. The intrabar range
decides whether a level was touched; the runner fills the exit at the bar
close like any other intent.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from cryptopulse.core.errors import ConfigurationError
from cryptopulse.shared.models import Bar, OrderSide, Position, TradeIntent


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


class ExitRules:
    """
    Exit checks shared by the built-in strategies.

    Every rule is off by default.

    Args:
        stop_loss: Adverse move from average cost that closes the position (0.02 = 2%)
        take_profit: Favourable move from average cost that closes the position
        max_hold_hours: Close once the position has been open longer than this
    """

    def __init__(
        self,
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None,
        max_hold_hours: Optional[Decimal] = None,
    ) -> None:
        self.stop_loss = _optional_decimal(stop_loss)
        self.take_profit = _optional_decimal(take_profit)
        self.max_hold_hours = _optional_decimal(max_hold_hours)

        if self.stop_loss is not None and not 0 < self.stop_loss < 1:
            raise ConfigurationError("stop_loss must be in (0, 1)")
        if self.take_profit is not None and self.take_profit <= 0:
            raise ConfigurationError("take_profit must be positive")
        if self.max_hold_hours is not None and self.max_hold_hours <= 0:
            raise ConfigurationError("max_hold_hours must be positive")

    @property
    def enabled(self) -> bool:
        return any(v is not None for v in (self.stop_loss, self.take_profit, self.max_hold_hours))

    @property
    def max_hold(self) -> Optional[timedelta]:
        if self.max_hold_hours is None:
            return None
        return timedelta(seconds=float(self.max_hold_hours * 3600))

    def stop_price(self, position: Position) -> Optional[Decimal]:
        if self.stop_loss is None or position.is_flat:
            return None
        if position.quantity > 0:
            return position.average_cost * (1 - self.stop_loss)
        return position.average_cost * (1 + self.stop_loss)

    def take_price(self, position: Position) -> Optional[Decimal]:
        if self.take_profit is None or position.is_flat:
            return None
        if position.quantity > 0:
            return position.average_cost * (1 + self.take_profit)
        return position.average_cost * (1 - self.take_profit)

    def check(self, bar: Bar, position: Position) -> Optional[TradeIntent]:
        """
        Intent closing ``position`` if an exit triggered on ``bar``, else None.

        Stop-loss is checked before take-profit, so a bar that spans both
        levels exits as a stop.
        """
        if position.is_flat:
            return None

        long = position.quantity > 0
        reason = None

        stop = self.stop_price(position)
        take = self.take_price(position)
        max_hold = self.max_hold

        if stop is not None and (bar.low <= stop if long else bar.high >= stop):
            reason = f"stop loss: {stop:.2f} touched"
        elif take is not None and (bar.high >= take if long else bar.low <= take):
            reason = f"take profit: {take:.2f} touched"
        elif (
            max_hold is not None
            and position.opened_at is not None
            and bar.timestamp - position.opened_at > max_hold
        ):
            reason = f"max hold: open since {position.opened_at.isoformat()}"

        if reason is None:
            return None
        return TradeIntent(
            symbol=position.symbol,
            side=OrderSide.SELL if long else OrderSide.BUY,
            quantity=abs(position.quantity),
            reason=reason,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "max_hold_hours": self.max_hold_hours,
        }
