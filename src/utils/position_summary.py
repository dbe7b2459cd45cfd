from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from domain.ledger import LedgerEntry
from domain.transaction import CurrencyCode, Symbol

from .formatting import format_currency, format_decimal, format_rate, render_table


@dataclass
class PositionSummary:
    symbol: Symbol
    total_shares: Decimal
    total_acb: Decimal
    total_native_cost: Decimal
    currency: CurrencyCode
    acb_per_share: Decimal
    is_foreign: bool
    last_fx_rate: Decimal


def compute_position_summaries(ledger: Iterable[LedgerEntry]) -> list[PositionSummary]:
    """Current holdings per instrument, taken from the last ledger entry of each.

    The ledger must be the full, unfiltered one in processing order.
    """
    latest: dict[Symbol, LedgerEntry] = {}
    for entry in ledger:
        latest[entry.symbol] = entry

    positions = [
        PositionSummary(
            symbol=entry.symbol,
            total_shares=entry.shares_after,
            total_acb=entry.acb_after,
            total_native_cost=entry.native_cost_after,
            currency=entry.currency,
            acb_per_share=entry.acb_per_share,
            is_foreign=entry.fx_rate != 1,
            last_fx_rate=entry.fx_rate,
        )
        for entry in latest.values()
        if entry.shares_after > 0
    ]
    positions.sort(key=lambda position: position.symbol)
    return positions


def compute_currency_exposure(positions: Iterable[PositionSummary]) -> list[tuple[CurrencyCode, Decimal]]:
    """Native cost held per native currency, largest first."""
    totals: dict[CurrencyCode, Decimal] = defaultdict(Decimal)
    for position in positions:
        totals[position.currency] += position.total_native_cost
    return sorted(totals.items(), key=lambda item: (-item[1], item[0]))


def render_position_summaries(positions: Iterable[PositionSummary], *, home_currency: str = "CAD") -> None:
    positions_list = list(positions)
    print(f"Open positions ({home_currency}):")
    if not positions_list:
        print("  (no open positions)")
        return

    rows = [
        [
            position.symbol,
            position.currency,
            format_decimal(position.total_shares),
            format_currency(position.total_acb),
            format_currency(position.acb_per_share),
            format_currency(position.total_native_cost),
            format_rate(position.last_fx_rate) if position.is_foreign else "-",
        ]
        for position in positions_list
    ]
    headers = ["Symbol", "Ccy", "Shares", "ACB", "ACB/share", "Native cost", "FX"]
    total_acb = sum((position.total_acb for position in positions_list), start=Decimal(0))

    print(render_table(headers, rows, left_aligned=2))
    print(f"Total ACB: {format_currency(total_acb)}")
