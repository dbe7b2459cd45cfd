from __future__ import annotations

from bisect import bisect_left
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable

from .transaction import RawTransaction, Symbol, TransactionType

DEFAULT_WINDOW_DAYS = 30


class SuperficialLossDetector:
    """Answers whether an instrument was bought around a given moment.

    The index is built from the complete transaction set, so purchases made
    after a disposal count just like the ones made before it.
    """

    def __init__(self, transactions: Iterable[RawTransaction], *, window_days: int = DEFAULT_WINDOW_DAYS) -> None:
        if window_days < 0:
            raise ValueError("window_days must be >= 0")
        self._window = timedelta(days=window_days)
        self._buy_times: dict[Symbol, list[datetime]] = defaultdict(list)
        for tx in transactions:
            if tx.type == TransactionType.BUY:
                self._buy_times[tx.symbol].append(tx.timestamp)
        for timestamps in self._buy_times.values():
            timestamps.sort()

    @property
    def window(self) -> timedelta:
        return self._window

    def has_repurchase(self, symbol: Symbol, at: datetime) -> bool:
        """True if a BUY of ``symbol`` falls within ``at`` +/- the window, both ends included."""
        timestamps = self._buy_times.get(symbol)
        if not timestamps:
            return False

        # Day arithmetic happens on the wall clock of ``at``, comparison on instants.
        window_start = at - self._window
        window_end = at + self._window
        idx = bisect_left(timestamps, window_start)
        return idx < len(timestamps) and timestamps[idx] <= window_end
