"""Replay strategy: re-emits a recorded intent log bar by bar."""

from collections import defaultdict
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Sequence

from cryptopulse.shared.models import Bar, LoggedIntent, PortfolioSnapshot, TradeIntent
from cryptopulse.strategy.base import Strategy

if TYPE_CHECKING:
    from cryptopulse.backtest.engine import BacktestResult


class ReplayStrategy(Strategy):
    """
    Emits, at each bar, exactly the intents logged at that bar's timestamp.

    Replaying a run's intent log over the same bars and settings reproduces
    the run's fills and equity curve.
    """

    name = "replay"

    def __init__(self, intents: Iterable[LoggedIntent], source: str = "") -> None:
        self._by_timestamp: Dict[datetime, List[TradeIntent]] = defaultdict(list)
        count = 0
        for logged in intents:
            self._by_timestamp[logged.timestamp].append(logged.intent)
            count += 1
        self._count = count
        self._source = source

    @classmethod
    def from_result(cls, result: "BacktestResult") -> "ReplayStrategy":
        """Build from a completed backtest's intent log."""
        return cls(result.intents, source=result.strategy_name)

    @property
    def parameters(self) -> Dict[str, Any]:
        return {"source": self._source, "intents": self._count}

    def decide(self, window: Sequence[Bar], portfolio: PortfolioSnapshot) -> List[TradeIntent]:
        return list(self._by_timestamp.get(window[-1].timestamp, ()))
