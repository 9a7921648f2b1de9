"""
Portfolio Ledger
Simulated account: cash, signed positions, realized P&L and the trade log.

Per-symbol state machine {flat, long, short}; the only transition is
``apply_fill``. All arithmetic is Decimal, quantized to the configured
precision, so replays are bit-for-bit identical.
"""

import logging
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Dict, List, Mapping, Optional, Tuple

from cryptopulse.core.errors import (
    InsufficientFundsError,
    InsufficientPositionError,
    LedgerError,
    SymbolMismatchError,
)
from cryptopulse.shared.config import EngineSettings, get_settings
from cryptopulse.shared.fill_logic import FillQuote, FillSimulator
from cryptopulse.shared.models import (
    Bar,
    Fill,
    OrderSide,
    PortfolioSnapshot,
    Position,
    PositionState,
    RejectedIntent,
    TradeIntent,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class PortfolioLedger:
    """
    Mutable simulated account.

    Strategies never touch the ledger; the runner feeds it intents and
    records what it refuses.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        fill_simulator: Optional[FillSimulator] = None,
    ) -> None:
        """
        Initialize ledger.

        Args:
            settings: Engine settings (defaults to cached settings)
            fill_simulator: Override fill pricing (defaults to one built from settings)
        """
        self._settings = settings or get_settings()
        self._simulator = fill_simulator or FillSimulator.from_settings(self._settings)

        self._cash: Decimal = self._simulator.quantize(self._settings.initial_cash)
        self._positions: Dict[str, Position] = {}  # symbol -> position
        self._fills: List[Fill] = []
        self._rejected: List[RejectedIntent] = []
        self._total_fees: Decimal = ZERO

    # ── State ──

    @property
    def cash(self) -> Decimal:
        return self._cash

    @property
    def positions(self) -> Dict[str, Position]:
        """Get current positions, including flat records not yet closed."""
        return dict(self._positions)

    @property
    def fills(self) -> Tuple[Fill, ...]:
        return tuple(self._fills)

    @property
    def rejected(self) -> Tuple[RejectedIntent, ...]:
        return tuple(self._rejected)

    @property
    def total_fees(self) -> Decimal:
        return self._total_fees

    def position(self, symbol: str) -> Position:
        """Position for ``symbol``; flat if never traded."""
        return self._positions.get(symbol) or Position(symbol=symbol)

    def state(self, symbol: str) -> PositionState:
        return self.position(symbol).state

    # ── Execution ──

    def can_execute(self, intent: TradeIntent, bar: Bar) -> bool:
        """Check cash sufficiency (buys) or position sufficiency (sells) at ``bar``."""
        return self._rejection(intent, bar) is None

    def execute(self, intent: TradeIntent, bar: Bar) -> Fill:
        """
        Execute an intent in full against ``bar``.

        Args:
            intent: Intent to execute
            bar: Bar supplying the reference (close) price and timestamp

        Returns:
            The appended fill

        Raises:
            InsufficientFundsError: buy cost exceeds buying power
            InsufficientPositionError: sell exceeds holdings and shorting is disabled
            SymbolMismatchError: intent symbol differs from the bar
        """
        error = self._rejection(intent, bar)
        if error is not None:
            raise error

        quantity = self._normalize_quantity(intent.quantity)
        quote = self._quote(intent, quantity, bar)
        fill = Fill(
            sequence=len(self._fills) + 1,
            timestamp=bar.timestamp,
            symbol=intent.symbol,
            side=intent.side,
            quantity=quantity,
            price=quote.executed_price,
            fee=quote.fee,
            slippage_bps=quote.slippage_bps,
            reason=intent.reason,
        )
        return self.apply_fill(fill)

    def reject(self, intent: TradeIntent, bar: Bar, error: LedgerError) -> RejectedIntent:
        """Record an intent refused at ``bar``. Rejected intents are never retried."""
        record = RejectedIntent(
            timestamp=bar.timestamp,
            intent=intent,
            error=type(error).__name__,
            message=str(error),
        )
        self._rejected.append(record)
        logger.info(f"Rejected {intent.side.value} {intent.quantity} {intent.symbol}: {error}")
        return record

    def apply_fill(self, fill: Fill) -> Fill:
        """
        Apply a fill to cash and position using weighted-average cost basis.

        Used by ``execute`` and by live tracking of externally produced fills.
        Any ``realized_pnl`` on the incoming fill is recomputed.

        Returns:
            The fill as recorded, with ``realized_pnl`` set on closing fills
        """
        quantize = self._simulator.quantize
        current = self.position(fill.symbol)
        updated, gross_pnl, closed = _transition(
            current, fill.side, fill.quantity, fill.price, fill.timestamp, quantize
        )

        realized: Optional[Decimal] = None
        if closed > 0:
            realized = quantize(gross_pnl - fill.fee)
            updated = updated.model_copy(update={"realized_pnl": current.realized_pnl + realized})

        notional = quantize(fill.quantity * fill.price)
        if fill.side == OrderSide.BUY:
            self._cash -= notional + fill.fee
        else:
            self._cash += notional - fill.fee
        self._total_fees += fill.fee

        self._positions[fill.symbol] = updated
        recorded = fill.model_copy(update={"realized_pnl": realized})
        self._fills.append(recorded)

        logger.debug(
            f"Fill #{recorded.sequence} {fill.side.value} {fill.quantity} {fill.symbol} "
            f"@ {fill.price} fee={fill.fee} -> {updated.state.value} qty={updated.quantity}"
        )
        return recorded

    def close_position(self, symbol: str) -> None:
        """
        Drop a flat position record.

        Raises:
            LedgerError: if the position is not flat
        """
        position = self._positions.get(symbol)
        if position is None:
            return
        if not position.is_flat:
            raise LedgerError(f"Cannot close {symbol}: quantity {position.quantity} is open")
        del self._positions[symbol]

    # ── Valuation ──

    def snapshot(self, bar: Bar) -> PortfolioSnapshot:
        """Mark open positions to the bar close. Read-only."""
        return self.snapshot_at(bar.timestamp, {bar.symbol: bar.close})

    def snapshot_at(self, timestamp: datetime, prices: Mapping[str, Decimal]) -> PortfolioSnapshot:
        """
        Mark positions to ``prices``. Read-only.

        Symbols without a price are marked at their average cost.
        """
        market_value = ZERO
        gross_exposure = ZERO
        for symbol, position in self._positions.items():
            value = position.market_value(prices.get(symbol, position.average_cost))
            market_value += value
            gross_exposure += abs(value)

        return PortfolioSnapshot(
            timestamp=timestamp,
            cash=self._cash,
            positions=dict(self._positions),
            equity=self._simulator.quantize(self._cash + market_value),
            gross_exposure=self._simulator.quantize(gross_exposure),
        )

    # ── Internals ──

    def _normalize_quantity(self, quantity: Decimal) -> Decimal:
        return quantity.quantize(self._settings.quantity_quantum, rounding=ROUND_DOWN)

    def _quote(self, intent: TradeIntent, quantity: Decimal, bar: Bar) -> FillQuote:
        return self._simulator.quote(intent.side, quantity, bar.close, intent.liquidity)

    def _margin_allowance(self, bar: Bar) -> Decimal:
        """Extra buying power granted by leverage above 1x."""
        leverage = self._settings.leverage
        if leverage <= 1:
            return ZERO
        equity = self.snapshot(bar).equity
        return (leverage - 1) * max(equity, ZERO)

    def _rejection(self, intent: TradeIntent, bar: Bar) -> Optional[LedgerError]:
        if intent.symbol != bar.symbol:
            return SymbolMismatchError(
                f"Intent for {intent.symbol} cannot execute against a {bar.symbol} bar"
            )

        quantity = self._normalize_quantity(intent.quantity)
        if quantity <= 0:
            return InsufficientPositionError(
                f"Quantity {intent.quantity} rounds to zero at "
                f"{self._settings.quantity_precision} decimal places"
            )

        quote = self._quote(intent, quantity, bar)
        notional = self._simulator.quantize(quote.notional(quantity))
        floor = -self._margin_allowance(bar)

        if intent.side == OrderSide.BUY:
            cost = notional + quote.fee
            if self._cash - cost < floor:
                return InsufficientFundsError(
                    f"Buy of {quantity} {intent.symbol} costs {cost}, cash is {self._cash}"
                )
            return None

        held = max(self.position(intent.symbol).quantity, ZERO)
        if not self._settings.allow_short and quantity > held:
            return InsufficientPositionError(
                f"Sell of {quantity} {intent.symbol} exceeds held quantity {held}"
            )
        if self._cash + notional - quote.fee < floor:
            return InsufficientFundsError(
                f"Fee {quote.fee} exceeds cash after selling {quantity} {intent.symbol}"
            )
        return None


def _transition(
    position: Position,
    side: OrderSide,
    quantity: Decimal,
    price: Decimal,
    timestamp: datetime,
    quantize,
) -> Tuple[Position, Decimal, Decimal]:
    """
    Compute the position after a fill.

    Returns:
        Tuple of (new_position, gross_realized_pnl, closed_quantity)
    """
    signed = quantity if side == OrderSide.BUY else -quantity
    held = position.quantity
    cost = position.average_cost

    # Opening or adding in the same direction
    if held == 0 or (held > 0) == (signed > 0):
        new_quantity = held + signed
        average = quantize((abs(held) * cost + quantity * price) / abs(new_quantity))
        opened_at = timestamp if held == 0 else position.opened_at
        return (
            position.model_copy(
                update={"quantity": new_quantity, "average_cost": average, "opened_at": opened_at}
            ),
            ZERO,
            ZERO,
        )

    # Reducing, closing or flipping
    closed = min(quantity, abs(held))
    if held > 0:
        gross = (price - cost) * closed
    else:
        gross = (cost - price) * closed

    new_quantity = held + signed
    if new_quantity != 0 and (new_quantity > 0) != (held > 0):
        average = price  # flipped: remainder opened at fill price
        opened_at = timestamp
    elif new_quantity == 0:
        average = cost  # flat keeps cost basis until explicitly closed
        opened_at = None
    else:
        average = cost
        opened_at = position.opened_at

    return (
        position.model_copy(
            update={"quantity": new_quantity, "average_cost": average, "opened_at": opened_at}
        ),
        gross,
        closed,
    )
