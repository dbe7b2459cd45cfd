from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from decimal import Decimal
from typing import Iterable

from domain.ledger import LedgerEntry

from .formatting import format_currency, render_table
from .ledger_filter import tax_year


@dataclass
class TaxYearSummary:
    year: int
    total_realized_gains: Decimal
    total_realized_losses: Decimal
    net_gain_loss: Decimal


def compute_tax_year_summaries(ledger: Iterable[LedgerEntry], *, tz: tzinfo | None = None) -> list[TaxYearSummary]:
    """Aggregate realized gains and losses per calendar year, most recent year first.

    The year is read from the timestamp converted to ``tz``; without ``tz`` the
    timestamp's own offset decides.
    """
    yearly: dict[int, TaxYearSummary] = {}
    for entry in ledger:
        year = tax_year(entry.timestamp, tz)
        summary = yearly.get(year)
        if summary is None:
            summary = TaxYearSummary(
                year=year,
                total_realized_gains=Decimal(0),
                total_realized_losses=Decimal(0),
                net_gain_loss=Decimal(0),
            )
            yearly[year] = summary

        gain_loss = entry.realized_gain_loss
        if gain_loss > 0:
            summary.total_realized_gains += gain_loss
        elif gain_loss < 0:
            summary.total_realized_losses += abs(gain_loss)
        summary.net_gain_loss += gain_loss

    return sorted(yearly.values(), key=lambda summary: summary.year, reverse=True)


def count_superficial(ledger: Iterable[LedgerEntry]) -> int:
    return sum(1 for entry in ledger if entry.is_superficial)


def render_tax_year_summaries(summaries: Iterable[TaxYearSummary], *, home_currency: str = "CAD") -> None:
    summaries_list = list(summaries)
    print(f"Realized gains per tax year ({home_currency}):")
    if not summaries_list:
        print("  (no realized gains or losses)")
        return

    rows = [
        [
            str(summary.year),
            format_currency(summary.total_realized_gains),
            format_currency(summary.total_realized_losses),
            format_currency(summary.net_gain_loss),
        ]
        for summary in summaries_list
    ]
    print(render_table(["Year", "Gains", "Losses", "Net"], rows))
