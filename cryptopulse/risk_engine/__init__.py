"""Risk metrics, threshold alerts and live monitoring."""

from cryptopulse.risk_engine.engine import RiskEngine, RiskReport
from cryptopulse.risk_engine.monitor import LivePositionTracker, RiskMonitor

__all__ = ["LivePositionTracker", "RiskEngine", "RiskMonitor", "RiskReport"]
