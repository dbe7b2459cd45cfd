from __future__ import annotations

from decimal import Decimal

from domain.transaction import RawTransaction


class LedgerEntry(RawTransaction):
    """A transaction together with the cost pool state around it.

    All ``acb_*`` amounts and ``realized_gain_loss`` are in the home currency,
    ``native_cost_*`` in the instrument's native currency.
    """

    acb_before: Decimal
    acb_after: Decimal
    native_cost_before: Decimal
    native_cost_after: Decimal
    shares_before: Decimal
    shares_after: Decimal
    acb_per_share: Decimal
    realized_gain_loss: Decimal = Decimal(0)
    is_superficial: bool = False
    notes: str | None = None
