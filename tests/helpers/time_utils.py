from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from random import Random
from typing import Callable

from domain.transaction import CurrencyCode, RawTransaction, Symbol, TransactionType


@dataclass
class TimeGenerator:
    """Deterministic timestamp generator with random-ish gaps of whole days."""

    _current: datetime | None = None
    _rng: Random = Random(0)
    _seed: int = 0

    def __call__(self) -> datetime:
        return self.next()

    def next(self) -> datetime:
        if self._current is None:
            self._current = datetime(2024, 1, 2, 15, 30, tzinfo=timezone.utc)
        self._current += timedelta(days=self._rng.randint(1, 5))
        return self._current

    def reset(self) -> None:
        self._current = None
        self._rng = Random(self._seed)


DEFAULT_TIME_GEN = TimeGenerator()


def make_transaction(
    *,
    kind: TransactionType,
    symbol: Symbol | str,
    quantity: Decimal | str | int,
    price: Decimal | str | int = 0,
    commission: Decimal | str | int = 0,
    fx_rate: Decimal | str | int = 1,
    currency: CurrencyCode | str = "CAD",
    timestamp: datetime | None = None,
    ts_gen: Callable[[], datetime] | None = None,
) -> RawTransaction:
    """Helper to create a RawTransaction with an auto-generated timestamp."""
    if timestamp is None:
        if ts_gen is None:
            ts_gen = DEFAULT_TIME_GEN
        timestamp = ts_gen()

    return RawTransaction(
        symbol=symbol,
        currency=currency,
        timestamp=timestamp,
        type=kind,
        quantity=Decimal(quantity),
        price=Decimal(price),
        commission=Decimal(commission),
        fx_rate=Decimal(fx_rate),
    )


def buy(symbol: Symbol | str, quantity: Decimal | str | int, price: Decimal | str | int, **kwargs) -> RawTransaction:
    return make_transaction(kind=TransactionType.BUY, symbol=symbol, quantity=quantity, price=price, **kwargs)


def sell(symbol: Symbol | str, quantity: Decimal | str | int, price: Decimal | str | int, **kwargs) -> RawTransaction:
    return make_transaction(kind=TransactionType.SELL, symbol=symbol, quantity=quantity, price=price, **kwargs)


def split(symbol: Symbol | str, quantity: Decimal | str | int, **kwargs) -> RawTransaction:
    return make_transaction(kind=TransactionType.SPLIT, symbol=symbol, quantity=quantity, **kwargs)
