"""
Unified Fill Logic
Single source of truth for slippage, fees, and fill pricing.
Used identically by backtests and the live position tracker.

Fills are deterministic: no random variation, no wall-clock time.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Optional

from cryptopulse.shared.config import EngineSettings, FeeModel, FeeSettings, get_settings
from cryptopulse.shared.models import Liquidity, OrderSide

BPS = Decimal("10000")


@dataclass(frozen=True)
class FillQuote:
    """Priced execution for an intent, before it touches the ledger."""
    executed_price: Decimal
    slippage_bps: Decimal
    fee: Decimal

    def notional(self, quantity: Decimal) -> Decimal:
        return quantity * self.executed_price


class FillSimulator:
    """
    Prices fills with slippage and fees.

    This class is the SINGLE SOURCE for fill logic.
    """

    def __init__(
        self,
        fee: FeeSettings,
        slippage_bps: Decimal = Decimal("0"),
        price_quantum: Decimal = Decimal("0.00000001"),
    ) -> None:
        """
        Initialize fill simulator.

        Args:
            fee: Fee model settings
            slippage_bps: Adverse slippage in basis points
            price_quantum: Smallest price/money increment
        """
        self._fee = fee
        self._slippage_bps = slippage_bps
        self._quantum = price_quantum

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "FillSimulator":
        return cls(
            fee=settings.fee,
            slippage_bps=settings.slippage_bps,
            price_quantum=settings.price_quantum,
        )

    @property
    def slippage_bps(self) -> Decimal:
        return self._slippage_bps

    def quantize(self, amount: Decimal) -> Decimal:
        """Round a price or money amount to the configured precision."""
        return amount.quantize(self._quantum, rounding=ROUND_HALF_EVEN)

    def calculate_slippage(self, side: OrderSide, base_price: Decimal) -> Decimal:
        """
        Apply slippage to a base price.

        Slippage is always pessimistic:
        - Buy orders: price increases (worse fill)
        - Sell orders: price decreases (worse fill)

        Args:
            side: Order side
            base_price: Reference price, normally the bar close

        Returns:
            Adjusted execution price
        """
        # bps = 0.01%, so 10 bps = 0.1%
        adjustment = base_price * self._slippage_bps / BPS

        if side == OrderSide.BUY:
            adjusted_price = base_price + adjustment
        else:
            adjusted_price = base_price - adjustment

        return self.quantize(adjusted_price)

    def calculate_fee(
        self,
        quantity: Decimal,
        price: Decimal,
        liquidity: Liquidity = Liquidity.TAKER,
    ) -> Decimal:
        """
        Calculate the trading fee for a fill.

        Args:
            quantity: Trade quantity
            price: Execution price
            liquidity: Maker or taker, used by the maker/taker model

        Returns:
            Fee in quote currency
        """
        if self._fee.kind == FeeModel.FLAT:
            return self.quantize(self._fee.flat_fee)

        notional = quantity * price
        if self._fee.kind == FeeModel.PERCENTAGE:
            rate = self._fee.rate
        elif liquidity == Liquidity.MAKER:
            rate = self._fee.maker_rate
        else:
            rate = self._fee.taker_rate

        return self.quantize(notional * rate)

    def quote(
        self,
        side: OrderSide,
        quantity: Decimal,
        reference_price: Decimal,
        liquidity: Liquidity = Liquidity.TAKER,
    ) -> FillQuote:
        """Price an execution at ``reference_price``."""
        executed_price = self.calculate_slippage(side, reference_price)
        return FillQuote(
            executed_price=executed_price,
            slippage_bps=self._slippage_bps,
            fee=self.calculate_fee(quantity, executed_price, liquidity),
        )


def get_fill_simulator(settings: Optional[EngineSettings] = None) -> FillSimulator:
    """Build a fill simulator from settings (defaults to cached settings)."""
    if settings is None:
        settings = get_settings()
    return FillSimulator.from_settings(settings)
