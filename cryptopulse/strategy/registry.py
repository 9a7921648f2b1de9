"""
Strategy Registry
Closed mapping of strategy names to implementations.

New strategies are added here explicitly; nothing is loaded by reflection.
"""

import logging
from typing import Any, Dict, List, Type

from cryptopulse.core.errors import ConfigurationError, StrategyNotFoundError
from cryptopulse.strategies.ma_crossover import MovingAverageCrossover
from cryptopulse.strategies.noop import NoOpStrategy
from cryptopulse.strategies.rsi_threshold import RsiThreshold
from cryptopulse.strategy.base import Strategy

logger = logging.getLogger(__name__)

STRATEGIES: Dict[str, Type[Strategy]] = {
    NoOpStrategy.name: NoOpStrategy,
    MovingAverageCrossover.name: MovingAverageCrossover,
    RsiThreshold.name: RsiThreshold,
}


def list_strategies() -> List[str]:
    return sorted(STRATEGIES)


def build_strategy(name: str, **params: Any) -> Strategy:
    """
    Instantiate a registered strategy.

    Args:
        name: Registry name (e.g. "ma_crossover")
        **params: Constructor parameters

    Raises:
        StrategyNotFoundError: if ``name`` is not registered
        ConfigurationError: if the parameters are invalid
    """
    try:
        strategy_cls = STRATEGIES[name]
    except KeyError:
        raise StrategyNotFoundError(
            f"Unknown strategy {name!r}; available: {', '.join(list_strategies())}"
        ) from None

    try:
        strategy = strategy_cls(**params)
    except ConfigurationError:
        raise
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise ConfigurationError(f"Invalid parameters for {name}: {exc}") from exc

    logger.debug(f"Built strategy {strategy!r}")
    return strategy
