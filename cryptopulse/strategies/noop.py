"""No-op strategy: never trades. Baseline for equity and risk checks."""

from typing import List, Sequence

from cryptopulse.shared.models import Bar, PortfolioSnapshot, TradeIntent
from cryptopulse.strategy.base import Strategy


class NoOpStrategy(Strategy):
    name = "noop"

    def decide(self, window: Sequence[Bar], portfolio: PortfolioSnapshot) -> List[TradeIntent]:
        return []
