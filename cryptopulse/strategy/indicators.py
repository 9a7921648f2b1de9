"""Technical indicators over Decimal close prices (oldest first)."""

from decimal import Decimal
from typing import Optional, Sequence

HUNDRED = Decimal("100")


def sma(values: Sequence[Decimal], period: int) -> Optional[Decimal]:
    """Simple moving average of the last ``period`` values.

    Returns None if insufficient data.
    """
    if period < 1:
        raise ValueError("period must be at least 1")
    if len(values) < period:
        return None
    window = values[len(values) - period:]
    return sum(window, Decimal("0")) / period


def rsi(values: Sequence[Decimal], period: int = 14) -> Optional[Decimal]:
    """Relative Strength Index with Wilder's smoothing.

    RSI = 100 - (100 / (1 + RS)), RS = average gain / average loss.
    The first averages are simple means over ``period`` changes; later
    changes are smoothed as avg = (avg * (period - 1) + x) / period.

    Returns:
        RSI in [0, 100], or None if fewer than ``period + 1`` values.
        A window with no losses is 100; a flat window is 50.
    """
    if period < 1:
        raise ValueError("period must be at least 1")
    if len(values) < period + 1:
        return None

    changes = [values[i] - values[i - 1] for i in range(1, len(values))]
    gains = [max(c, Decimal("0")) for c in changes]
    losses = [max(-c, Decimal("0")) for c in changes]

    avg_gain = sum(gains[:period], Decimal("0")) / period
    avg_loss = sum(losses[:period], Decimal("0")) / period

    for i in range(period, len(changes)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return HUNDRED if avg_gain > 0 else Decimal("50")

    rs = avg_gain / avg_loss
    return HUNDRED - HUNDRED / (1 + rs)
