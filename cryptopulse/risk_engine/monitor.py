"""
Live Risk Monitor
Drives a RiskEngine from a stream of portfolio snapshots.

The monitor is the single producer for its engine. Subscribers get
read-only queues of alerts; sinks receive each alert after it is queued.
A failing sink is logged and never stops monitoring.
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterable, Dict, List, Optional, Sequence

from cryptopulse.core.ports import AlertSink
from cryptopulse.execution.ledger import PortfolioLedger
from cryptopulse.risk_engine.engine import RiskEngine
from cryptopulse.shared.models import Fill, PortfolioSnapshot, RiskAlert

logger = logging.getLogger(__name__)


class RiskMonitor:
    """Asyncio front end for one portfolio's RiskEngine."""

    def __init__(
        self,
        engine: Optional[RiskEngine] = None,
        sinks: Sequence[AlertSink] = (),
    ) -> None:
        self._engine = engine or RiskEngine()
        self._sinks = list(sinks)
        self._subscribers: List["asyncio.Queue[Optional[RiskAlert]]"] = []
        self._processed = 0

    @property
    def engine(self) -> RiskEngine:
        return self._engine

    @property
    def processed(self) -> int:
        """Number of snapshots processed."""
        return self._processed

    def add_sink(self, sink: AlertSink) -> None:
        self._sinks.append(sink)

    def subscribe(self, maxsize: int = 0) -> "asyncio.Queue[Optional[RiskAlert]]":
        """
        Register a subscriber queue.

        ``None`` is put on the queue when ``run`` finishes. With a bounded
        queue, alerts that do not fit are dropped for that subscriber.
        """
        queue: "asyncio.Queue[Optional[RiskAlert]]" = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(queue)
        return queue

    async def process(self, snapshot: PortfolioSnapshot) -> List[RiskAlert]:
        """Feed one snapshot to the engine and fan out any alerts."""
        alerts = self._engine.update(snapshot)
        self._processed += 1
        for alert in alerts:
            await self._dispatch(alert)
        return alerts

    async def run(self, snapshots: AsyncIterable[PortfolioSnapshot]) -> int:
        """
        Consume a snapshot stream until it ends.

        Returns:
            Number of snapshots processed by this call
        """
        count = 0
        logger.info("Risk monitor started")
        try:
            async for snapshot in snapshots:
                await self.process(snapshot)
                count += 1
        finally:
            for queue in self._subscribers:
                self._offer(queue, None)
            logger.info(f"Risk monitor stopped after {count} snapshots")
        return count

    async def _dispatch(self, alert: RiskAlert) -> None:
        for queue in self._subscribers:
            self._offer(queue, alert)

        for sink in self._sinks:
            try:
                await sink.publish(alert)
            except Exception as e:
                logger.error(f"Error delivering alert to {type(sink).__name__}: {e}")

    @staticmethod
    def _offer(queue: "asyncio.Queue[Optional[RiskAlert]]", item: Optional[RiskAlert]) -> None:
        try:
            queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning("Subscriber queue full, dropping alert")


class LivePositionTracker:
    """
    Turns streaming fills and price updates into snapshots for a monitor.

    Fills go through ``PortfolioLedger.apply_fill``, the same transition
    backtests use.
    """

    def __init__(self, ledger: PortfolioLedger, monitor: RiskMonitor) -> None:
        self._ledger = ledger
        self._monitor = monitor
        self._prices: Dict[str, Decimal] = {}  # symbol -> last price

    @property
    def ledger(self) -> PortfolioLedger:
        return self._ledger

    @property
    def prices(self) -> Dict[str, Decimal]:
        return dict(self._prices)

    async def on_fill(self, fill: Fill) -> List[RiskAlert]:
        """Apply an externally produced fill and re-evaluate risk."""
        self._ledger.apply_fill(fill)
        self._prices[fill.symbol] = fill.price  # last trade marks the symbol
        return await self._monitor.process(self.snapshot(fill.timestamp))

    async def on_price(self, symbol: str, price: Decimal, timestamp: datetime) -> List[RiskAlert]:
        """Mark ``symbol`` to a new price and re-evaluate risk."""
        self._prices[symbol] = price
        return await self._monitor.process(self.snapshot(timestamp))

    def snapshot(self, timestamp: datetime) -> PortfolioSnapshot:
        return self._ledger.snapshot_at(timestamp, self._prices)
