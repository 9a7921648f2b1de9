"""
Threshold Rules
Edge-triggered alerting: a rule fires once when its condition starts to
hold and re-arms only after the condition stops holding.
"""

import logging
from typing import Dict, List, Mapping, Optional

from cryptopulse.shared.config import ThresholdRule
from cryptopulse.shared.models import RiskAlert, RiskMetric, RiskMetrics

logger = logging.getLogger(__name__)


class EdgeTrigger:
    """Breach state for one metric rule."""

    def __init__(self, metric: RiskMetric, rule: ThresholdRule) -> None:
        self.metric = metric
        self.rule = rule
        self.breached = False

    def check(self, metrics: RiskMetrics) -> Optional[RiskAlert]:
        observed = metrics.value(self.metric)
        holds = self.rule.operator.compare(observed, self.rule.value)

        if not holds:
            if self.breached:
                logger.debug(f"{self.metric.value} back within threshold ({observed})")
            self.breached = False
            return None
        if self.breached:
            return None

        self.breached = True
        return RiskAlert(
            timestamp=metrics.timestamp,
            metric=self.metric,
            operator=self.rule.operator,
            threshold_value=self.rule.value,
            observed_value=observed,
            severity=self.rule.severity,
            message=(
                f"{self.metric.value} {observed:.4f} {self.rule.operator.value} "
                f"{self.rule.value} at {metrics.timestamp.isoformat()}"
            ),
        )


class ThresholdEvaluator:
    """Evaluates all configured rules in metric order."""

    def __init__(self, thresholds: Mapping[RiskMetric, ThresholdRule]) -> None:
        self._triggers: Dict[RiskMetric, EdgeTrigger] = {
            metric: EdgeTrigger(metric, thresholds[metric])
            for metric in RiskMetric
            if metric in thresholds
        }

    @property
    def breached(self) -> Dict[RiskMetric, bool]:
        return {metric: trigger.breached for metric, trigger in self._triggers.items()}

    def evaluate(self, metrics: RiskMetrics) -> List[RiskAlert]:
        alerts = []
        for trigger in self._triggers.values():
            alert = trigger.check(metrics)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def reset(self) -> None:
        for trigger in self._triggers.values():
            trigger.breached = False
