from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Iterable, TypeVar

from domain.ledger import LedgerEntry
from domain.transaction import RawTransaction

ALL_SYMBOLS = "ALL"

T = TypeVar("T", bound=RawTransaction)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of instants; a missing bound leaves that side open."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"Range start {self.start.isoformat()} is after end {self.end.isoformat()}")

    @classmethod
    def all_time(cls) -> DateRange:
        return cls()

    @classmethod
    def for_year(cls, year: int, tz: tzinfo = timezone.utc) -> DateRange:
        return cls(
            start=datetime(year, 1, 1, tzinfo=tz),
            end=datetime(year, 12, 31, 23, 59, 59, 999999, tzinfo=tz),
        )

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, timestamp: datetime) -> bool:
        if self.start is not None and timestamp < self.start:
            return False
        if self.end is not None and timestamp > self.end:
            return False
        return True


def tax_year(timestamp: datetime, tz: tzinfo | None = None) -> int:
    """Calendar year of ``timestamp`` in ``tz``, or in its own offset when ``tz`` is None."""
    return (timestamp.astimezone(tz) if tz is not None else timestamp).year


def filter_ledger(
    entries: Iterable[LedgerEntry],
    *,
    date_range: DateRange | None = None,
    year: int | None = None,
    tz: tzinfo | None = None,
    symbol: str = ALL_SYMBOLS,
) -> list[LedgerEntry]:
    """Select the ledger entries shown for a date range, tax year and instrument.

    ``year`` is read with the same zone policy as the tax-year summaries.
    Only ever applied to the engine's output; cost pools are computed from
    the complete history.
    """
    wanted_symbol = symbol.strip().upper()
    return [
        entry
        for entry in entries
        if (date_range is None or date_range.contains(entry.timestamp))
        and (year is None or tax_year(entry.timestamp, tz) == year)
        and (wanted_symbol == ALL_SYMBOLS or entry.symbol == wanted_symbol)
    ]


def available_years(transactions: Iterable[T], tz: tzinfo | None = None) -> list[int]:
    return sorted({tax_year(tx.timestamp, tz) for tx in transactions}, reverse=True)


def available_symbols(transactions: Iterable[T]) -> list[str]:
    return [ALL_SYMBOLS, *sorted({tx.symbol for tx in transactions})]
