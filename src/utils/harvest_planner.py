from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Iterable, Mapping

from domain.ledger import LedgerEntry
from domain.transaction import Symbol

from .formatting import format_currency, format_decimal, format_rate, render_table
from .position_summary import PositionSummary

FULL_OFFSET_TOLERANCE = Decimal("0.01")


@dataclass
class HarvestCandidate:
    symbol: Symbol
    target_price_home: Decimal
    unrealized_per_share: Decimal
    suggested_shares: Decimal
    predicted_deduction: Decimal
    active_fx_rate: Decimal
    is_full_offset: bool


def plan_tax_loss_harvest(
    positions: Iterable[PositionSummary],
    target_prices: Mapping[str, Decimal],
    *,
    net_realized: Decimal,
    home_currency: str,
    fx_overrides: Mapping[str, Decimal] | None = None,
) -> list[HarvestCandidate]:
    """Suggest how many shares to sell at a target price to offset realized gains.

    ``target_prices`` are per symbol in the position's native currency.
    ``fx_overrides`` replace the last seen exchange rate of a native currency,
    e.g. with a current quote.
    """
    overrides = {code.upper(): rate for code, rate in (fx_overrides or {}).items()}
    candidates: list[HarvestCandidate] = []

    for position in positions:
        target_price = target_prices.get(position.symbol)
        if target_price is None or target_price <= 0:
            continue

        if position.currency == home_currency.upper():
            fx_rate = Decimal(1)
        else:
            fx_rate = overrides.get(position.currency, position.last_fx_rate)

        target_price_home = target_price * fx_rate
        unrealized_per_share = target_price_home - position.acb_per_share
        if unrealized_per_share >= 0:
            continue

        suggested_shares = Decimal(0)
        predicted_deduction = Decimal(0)
        if net_realized > 0:
            shares_to_offset = abs(net_realized / unrealized_per_share).to_integral_value(rounding=ROUND_CEILING)
            suggested_shares = min(position.total_shares, shares_to_offset)
            proceeds = suggested_shares * target_price_home
            released_acb = suggested_shares * position.acb_per_share
            predicted_deduction = abs(proceeds - released_acb)

        candidates.append(
            HarvestCandidate(
                symbol=position.symbol,
                target_price_home=target_price_home,
                unrealized_per_share=unrealized_per_share,
                suggested_shares=suggested_shares,
                predicted_deduction=predicted_deduction,
                active_fx_rate=fx_rate,
                is_full_offset=predicted_deduction >= net_realized - FULL_OFFSET_TOLERANCE,
            )
        )

    return candidates


def realized_disposals(ledger: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    """Entries that realized a gain or loss, most recent first."""
    return sorted(
        (entry for entry in ledger if entry.realized_gain_loss != 0),
        key=lambda entry: entry.timestamp,
        reverse=True,
    )


def render_harvest_plan(candidates: Iterable[HarvestCandidate], *, net_realized: Decimal) -> None:
    candidates_list = list(candidates)
    print(f"Net realized gain to offset: {format_currency(net_realized)}")
    if not candidates_list:
        print("  (no positions trading below their ACB at the given prices)")
        return

    rows = [
        [
            candidate.symbol,
            format_currency(candidate.target_price_home),
            format_rate(candidate.active_fx_rate),
            format_currency(candidate.unrealized_per_share),
            format_decimal(candidate.suggested_shares),
            format_currency(candidate.predicted_deduction),
            "yes" if candidate.is_full_offset else "no",
        ]
        for candidate in candidates_list
    ]
    headers = ["Symbol", "Target", "FX", "Loss/share", "Shares", "Deduction", "Full offset"]
    print(render_table(headers, rows))
