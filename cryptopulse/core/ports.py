"""Port definitions for external collaborators."""

from __future__ import annotations

from typing import Protocol, Sequence

from cryptopulse.shared.models import Bar, RiskAlert


class DataSource(Protocol):
    def get_bars(self, symbol: str) -> Sequence[Bar]:
        """Return read-only bars for a symbol, oldest first."""


class AlertSink(Protocol):
    async def publish(self, alert: RiskAlert) -> None:
        """Deliver a risk alert to a notification collaborator."""
