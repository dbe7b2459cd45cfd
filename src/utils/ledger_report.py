from __future__ import annotations

from typing import Iterable

from domain.ledger import LedgerEntry

from .formatting import format_currency, format_decimal, format_timestamp, render_table


def render_ledger(entries: Iterable[LedgerEntry], *, home_currency: str = "CAD") -> None:
    entries_list = list(entries)
    print(f"Ledger ({home_currency}):")
    if not entries_list:
        print("  (no transactions)")
        return

    rows = [
        [
            format_timestamp(entry.timestamp),
            entry.symbol,
            entry.type,
            format_decimal(entry.quantity),
            format_decimal(entry.price),
            format_decimal(entry.shares_after),
            format_currency(entry.acb_after),
            format_currency(entry.acb_per_share),
            format_currency(entry.realized_gain_loss),
            "SUPERFICIAL" if entry.is_superficial else "",
        ]
        for entry in entries_list
    ]
    headers = ["Date", "Symbol", "Type", "Qty", "Price", "Shares", "ACB", "ACB/share", "Gain/loss", "Flags"]
    print(render_table(headers, rows, left_aligned=3))
