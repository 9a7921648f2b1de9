"""Built-in trading strategies."""

from cryptopulse.strategies.ma_crossover import MovingAverageCrossover
from cryptopulse.strategies.noop import NoOpStrategy
from cryptopulse.strategies.replay import ReplayStrategy
from cryptopulse.strategies.rsi_threshold import RsiThreshold

__all__ = ["MovingAverageCrossover", "NoOpStrategy", "ReplayStrategy", "RsiThreshold"]
