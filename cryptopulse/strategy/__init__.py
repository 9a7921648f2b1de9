"""Strategy interface and indicators. The registry lives in ``cryptopulse.strategy.registry``."""

from cryptopulse.strategy.base import PositionSizer, Strategy

__all__ = ["PositionSizer", "Strategy"]
