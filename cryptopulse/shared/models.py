"""
Shared Models for the Engine
Pydantic schemas for all core data structures.

This module is the SINGLE SOURCE OF TRUTH for all data models.
All money, price and quantity fields are Decimal.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Enums
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class OrderSide(str, Enum):
    """Order side enum."""
    BUY = "buy"
    SELL = "sell"


class Liquidity(str, Enum):
    """Liquidity role of a fill, used by the maker/taker fee model."""
    MAKER = "maker"
    TAKER = "taker"


class PositionState(str, Enum):
    """Per-symbol ledger state."""
    FLAT = "flat"
    LONG = "long"
    SHORT = "short"


class RiskMetric(str, Enum):
    """Metrics monitored by the risk engine."""
    DRAWDOWN = "drawdown"
    VOLATILITY = "volatility"
    EXPOSURE = "exposure"
    RISK_SCORE = "risk_score"


class ComparisonOperator(str, Enum):
    """Threshold comparison operator."""
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="

    def compare(self, observed: Decimal, threshold: Decimal) -> bool:
        """Return True when ``observed`` breaches ``threshold``."""
        if self is ComparisonOperator.GT:
            return observed > threshold
        if self is ComparisonOperator.LT:
            return observed < threshold
        if self is ComparisonOperator.GE:
            return observed >= threshold
        return observed <= threshold


class AlertSeverity(str, Enum):
    """Risk alert severity."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Market Data Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Bar(BaseModel):
    """OHLCV bar. Ordering rules are enforced by PriceSeries.load."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    symbol: str
    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Intent / Fill Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TradeIntent(BaseModel):
    """Trade intent emitted by a strategy and consumed once by the ledger."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    symbol: str
    side: OrderSide
    quantity: Decimal = Field(gt=0)
    reason: str = ""
    liquidity: Liquidity = Liquidity.TAKER


class LoggedIntent(BaseModel):
    """Intent as emitted at a bar, kept for replay."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: datetime
    intent: TradeIntent


class Fill(BaseModel):
    """Fill/execution record."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    sequence: int
    timestamp: datetime
    symbol: str
    side: OrderSide
    quantity: Decimal
    price: Decimal
    fee: Decimal = Decimal("0")
    slippage_bps: Decimal = Decimal("0")
    realized_pnl: Optional[Decimal] = None  # net of fee, set on closing fills only
    reason: str = ""

    @property
    def is_closing(self) -> bool:
        """True if the fill reduced or closed an existing position."""
        return self.realized_pnl is not None

    @property
    def notional(self) -> Decimal:
        return self.quantity * self.price


class RejectedIntent(BaseModel):
    """Trade-log record of an intent the ledger refused."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: datetime
    intent: TradeIntent
    error: str  # exception class name
    message: str


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Portfolio Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Position(BaseModel):
    """Signed position; replaced (never mutated) on every fill."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    symbol: str
    quantity: Decimal = Decimal("0")
    average_cost: Decimal = Decimal("0")
    realized_pnl: Decimal = Decimal("0")
    opened_at: Optional[datetime] = None  # time of the fill that opened the current side

    @property
    def state(self) -> PositionState:
        if self.quantity > 0:
            return PositionState.LONG
        if self.quantity < 0:
            return PositionState.SHORT
        return PositionState.FLAT

    @property
    def is_flat(self) -> bool:
        return self.quantity == 0

    def market_value(self, price: Decimal) -> Decimal:
        """Signed market value at ``price``."""
        return self.quantity * price


class PortfolioSnapshot(BaseModel):
    """Mark-to-market account state at one point in time."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: datetime
    cash: Decimal
    positions: dict[str, Position] = Field(default_factory=dict)
    equity: Decimal
    gross_exposure: Decimal = Decimal("0")

    def position(self, symbol: str) -> Position:
        """Position for ``symbol``, flat if none is held."""
        return self.positions.get(symbol) or Position(symbol=symbol)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Risk Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RiskMetrics(BaseModel):
    """Risk metrics computed for one snapshot."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: datetime
    equity: Decimal
    drawdown: Decimal
    volatility: Decimal
    exposure: Decimal
    risk_score: Decimal

    def value(self, metric: RiskMetric) -> Decimal:
        return getattr(self, metric.value)


class RiskAlert(BaseModel):
    """Risk alert event."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: datetime
    metric: RiskMetric
    operator: ComparisonOperator
    threshold_value: Decimal
    observed_value: Decimal
    severity: AlertSeverity
    message: str = ""
