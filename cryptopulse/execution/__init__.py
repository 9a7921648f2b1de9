"""Simulated execution against historical bars."""

from cryptopulse.execution.ledger import PortfolioLedger

__all__ = ["PortfolioLedger"]
