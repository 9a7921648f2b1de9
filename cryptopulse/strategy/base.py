"""
Strategy Base
Interface every trading strategy implements.

A strategy is a pure function of (window, portfolio snapshot) to a list of
trade intents. It never mutates the ledger and keeps no state between bars,
so the runner can replay any run exactly.
"""

from abc import ABC, abstractmethod
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, List, Optional, Sequence

from cryptopulse.core.errors import ConfigurationError
from cryptopulse.shared.models import Bar, PortfolioSnapshot, TradeIntent


class Strategy(ABC):
    """
    Abstract strategy.

    Subclasses set ``name`` and implement ``decide``. ``window_size`` is the
    maximum number of trailing bars the runner hands to ``decide``.
    """

    name: str = "strategy"

    @property
    def parameters(self) -> Dict[str, Any]:
        """Parameters the strategy was built with (for reports and sweeps)."""
        return {}

    @property
    def window_size(self) -> int:
        return 1

    @abstractmethod
    def decide(self, window: Sequence[Bar], portfolio: PortfolioSnapshot) -> List[TradeIntent]:
        """
        Decide what to trade at the last bar of ``window``.

        Args:
            window: Trailing bars ending at the current bar, oldest first
            portfolio: Account state before any trade at the current bar

        Returns:
            Intents to execute in order; empty for no action
        """

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in self.parameters.items())
        return f"{type(self).__name__}({params})"


class PositionSizer:
    """
    Sizing shared by the built-in strategies.

    Either a fixed ``quantity`` or a fraction (``allocation``) of available
    cash at the reference price, floored to ``lot_size``.
    """

    def __init__(
        self,
        allocation: Decimal = Decimal("0.95"),
        quantity: Optional[Decimal] = None,
        lot_size: Decimal = Decimal("0.0001"),
    ) -> None:
        self.allocation = Decimal(str(allocation))
        self.quantity = Decimal(str(quantity)) if quantity is not None else None
        self.lot_size = Decimal(str(lot_size))

        if not 0 < self.allocation <= 1:
            raise ConfigurationError("allocation must be in (0, 1]")
        if self.quantity is not None and self.quantity <= 0:
            raise ConfigurationError("quantity must be positive")
        if self.lot_size <= 0:
            raise ConfigurationError("lot_size must be positive")

    def size(self, cash: Decimal, price: Decimal) -> Decimal:
        """Quantity to buy at ``price``; zero when nothing affordable."""
        if self.quantity is not None:
            return self.quantity
        if cash <= 0 or price <= 0:
            return Decimal("0")
        raw = cash * self.allocation / price
        lots = (raw / self.lot_size).to_integral_value(rounding=ROUND_DOWN)
        return lots * self.lot_size

    def as_dict(self) -> Dict[str, Any]:
        return {
            "allocation": self.allocation,
            "quantity": self.quantity,
            "lot_size": self.lot_size,
        }
