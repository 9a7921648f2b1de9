"""Cooperative cancellation for long-running backtests."""

import threading


class CancellationToken:
    """
    Thread-safe cancel flag.

    The runner checks it between bars, so a cancelled run never stops
    half way through a bar.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
