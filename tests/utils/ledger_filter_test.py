from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from domain.acb import AcbEngine
from tests.constants import AAPL, SHOP
from tests.helpers.time_utils import buy, sell
from utils.ledger_filter import ALL_SYMBOLS, DateRange, available_symbols, available_years, filter_ledger, tax_year


def _transactions():
    return [
        buy(AAPL, 10, 100, timestamp=datetime(2023, 5, 1, 15, tzinfo=timezone.utc)),
        buy(SHOP, 10, 50, timestamp=datetime(2023, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)),
        sell(AAPL, 5, 110, timestamp=datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)),
        sell(SHOP, 5, 60, timestamp=datetime(2025, 2, 1, 15, tzinfo=timezone.utc)),
    ]


def test_for_year_covers_the_whole_calendar_year() -> None:
    ledger = AcbEngine().process(_transactions())

    filtered = filter_ledger(ledger, date_range=DateRange.for_year(2023))

    assert [entry.symbol for entry in filtered] == [AAPL, SHOP]


def test_symbol_filter_is_case_insensitive() -> None:
    ledger = AcbEngine().process(_transactions())

    filtered = filter_ledger(ledger, symbol="shop.to")

    assert {entry.symbol for entry in filtered} == {SHOP}
    assert len(filtered) == 2


def test_all_time_and_all_symbols_keep_everything() -> None:
    ledger = AcbEngine().process(_transactions())

    assert filter_ledger(ledger, date_range=DateRange.all_time(), symbol=ALL_SYMBOLS) == ledger
    assert filter_ledger(ledger) == ledger


def test_filtering_does_not_change_cost_pools() -> None:
    ledger = AcbEngine().process(_transactions())

    (disposal,) = filter_ledger(ledger, date_range=DateRange.for_year(2025))

    # Computed from the full history even though the purchase is outside the range
    assert disposal.realized_gain_loss == 50
    assert disposal.shares_before == 10


def test_open_ended_range() -> None:
    ledger = AcbEngine().process(_transactions())
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)

    filtered = filter_ledger(ledger, date_range=DateRange(start=start))

    assert [entry.timestamp >= start for entry in filtered] == [True, True]
    assert DateRange(start=start).is_unbounded is False
    assert DateRange.all_time().is_unbounded is True


def test_range_bounds_are_inclusive() -> None:
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    date_range = DateRange(start=moment, end=moment)

    assert date_range.contains(moment)
    assert not date_range.contains(moment + timedelta(microseconds=1))


def test_inverted_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        DateRange(start=datetime(2024, 2, 1, tzinfo=timezone.utc), end=datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_year_in_another_zone() -> None:
    eastern = timezone(timedelta(hours=-5))

    date_range = DateRange.for_year(2023, eastern)

    assert date_range.contains(datetime(2024, 1, 1, 4, 59, tzinfo=timezone.utc))
    assert not date_range.contains(datetime(2024, 1, 1, 5, 0, tzinfo=timezone.utc))


def test_available_years_and_symbols() -> None:
    transactions = _transactions()

    assert available_years(transactions) == [2025, 2024, 2023]
    assert available_symbols(transactions) == [ALL_SYMBOLS, AAPL, SHOP]
    assert available_symbols([]) == [ALL_SYMBOLS]


def test_year_filter_reads_each_timestamp_in_its_own_offset() -> None:
    eastern = timezone(timedelta(hours=-5))
    year_end_sale = datetime(2023, 12, 31, 22, 0, tzinfo=eastern)  # 2024-01-01 03:00 UTC
    ledger = AcbEngine().process(
        [
            buy(AAPL, 10, 100, timestamp=datetime(2023, 6, 1, 15, tzinfo=timezone.utc)),
            sell(AAPL, 5, 150, timestamp=year_end_sale),
        ]
    )

    assert len(filter_ledger(ledger, year=2023)) == 2
    assert filter_ledger(ledger, year=2024) == []
    assert available_years(ledger) == [2023]

    # With an explicit zone both the filter and the year list follow it
    (sale,) = filter_ledger(ledger, year=2024, tz=timezone.utc)
    assert sale.realized_gain_loss == 250
    assert available_years(ledger, timezone.utc) == [2024, 2023]


def test_tax_year() -> None:
    moment = datetime(2023, 12, 31, 22, 0, tzinfo=timezone(timedelta(hours=-5)))

    assert tax_year(moment) == 2023
    assert tax_year(moment, timezone.utc) == 2024
