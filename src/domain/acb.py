from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from .ledger import LedgerEntry
from .superficial import DEFAULT_WINDOW_DAYS, SuperficialLossDetector
from .transaction import RawTransaction, Symbol, TransactionType

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
# Share counts below this magnitude are residue of division and treated as zero.
SHARE_EPSILON = Decimal("0.000001")


class InvalidTransaction(Exception):
    def __init__(self, message: str, *, transaction: object | None = None) -> None:
        super().__init__(message)
        self.transaction = transaction


@dataclass
class _CostPoolState:
    shares: Decimal = ZERO
    acb: Decimal = ZERO
    native_cost: Decimal = ZERO

    def normalize(self) -> None:
        if abs(self.shares) < SHARE_EPSILON:
            self.shares = ZERO
            self.acb = ZERO
            self.native_cost = ZERO


def order_transactions(transactions: Iterable[RawTransaction]) -> list[RawTransaction]:
    """Sort by timestamp; transactions at the same instant keep their input order."""
    return sorted(transactions, key=lambda tx: tx.timestamp)


class AcbEngine:
    """Fold transactions into a ledger of adjusted cost base snapshots."""

    def __init__(self, *, window_days: int = DEFAULT_WINDOW_DAYS) -> None:
        self._window_days = window_days

    def process(self, transactions: Iterable[RawTransaction]) -> list[LedgerEntry]:
        """Recompute the whole ledger; the input may be in any order."""
        transactions = list(transactions)
        for tx in transactions:
            self._check_transaction(tx)

        ordered = order_transactions(transactions)
        detector = SuperficialLossDetector(ordered, window_days=self._window_days)
        pools: dict[Symbol, _CostPoolState] = defaultdict(_CostPoolState)

        ledger = [self._apply(tx, pools[tx.symbol], detector) for tx in ordered]
        logger.debug("Processed %d transactions across %d instruments", len(ledger), len(pools))
        return ledger

    def _apply(self, tx: RawTransaction, state: _CostPoolState, detector: SuperficialLossDetector) -> LedgerEntry:
        before = replace(state)
        realized = ZERO
        is_superficial = False
        notes: str | None = None

        if tx.type == TransactionType.BUY:
            state.shares += tx.quantity
            state.acb += tx.quantity * tx.price * tx.fx_rate + tx.commission * tx.fx_rate
            state.native_cost += tx.quantity * tx.price + tx.commission
        elif tx.type == TransactionType.SELL:
            if before.shares <= 0:
                logger.warning(
                    "Sell of %s %s on %s with no shares held; recorded without effect",
                    tx.quantity,
                    tx.symbol,
                    tx.timestamp.isoformat(),
                )
                notes = "No shares held; disposal has no effect on the cost pool"
            else:
                if tx.quantity > before.shares:
                    logger.warning(
                        "Sell of %s %s on %s exceeds the %s shares held",
                        tx.quantity,
                        tx.symbol,
                        tx.timestamp.isoformat(),
                        before.shares,
                    )
                ratio = tx.quantity / before.shares
                released_acb = ratio * before.acb
                released_native_cost = ratio * before.native_cost
                proceeds = tx.quantity * tx.price * tx.fx_rate - tx.commission * tx.fx_rate
                realized = proceeds - released_acb

                state.shares -= tx.quantity
                state.acb -= released_acb
                state.native_cost -= released_native_cost
        elif tx.type == TransactionType.SPLIT:
            state.shares += tx.quantity
        else:
            raise InvalidTransaction(f"Unsupported transaction type {tx.type!r}", transaction=tx)

        state.normalize()

        if realized < 0 and state.shares > 0 and detector.has_repurchase(tx.symbol, tx.timestamp):
            denied = abs(realized)
            state.acb += denied
            realized = ZERO
            is_superficial = True
            notes = f"Superficial loss of {denied} added back to the cost pool"
            logger.debug("Superficial loss on %s at %s: %s denied", tx.symbol, tx.timestamp.isoformat(), denied)

        return LedgerEntry(
            **tx.model_dump(),
            acb_before=before.acb,
            acb_after=state.acb,
            native_cost_before=before.native_cost,
            native_cost_after=state.native_cost,
            shares_before=before.shares,
            shares_after=state.shares,
            acb_per_share=state.acb / state.shares if state.shares > 0 else ZERO,
            realized_gain_loss=realized,
            is_superficial=is_superficial,
            notes=notes,
        )

    @staticmethod
    def _check_transaction(tx: RawTransaction) -> None:
        """Reject anything that slipped past model validation."""
        if not isinstance(tx, RawTransaction):
            raise InvalidTransaction(f"Expected RawTransaction, got {type(tx).__name__}", transaction=tx)

        def fail(reason: str) -> InvalidTransaction:
            return InvalidTransaction(
                f"{reason} for transaction={tx.id} symbol={tx.symbol!r} @{tx.timestamp!r}",
                transaction=tx,
            )

        if not isinstance(tx.timestamp, datetime) or tx.timestamp.tzinfo is None:
            raise fail("Timestamp must be a timezone-aware datetime")
        if not tx.symbol:
            raise fail("Missing symbol")
        if not tx.currency:
            raise fail("Missing currency")
        if tx.type not in set(TransactionType):
            raise fail(f"Unknown transaction type {tx.type!r}")
        for name in ("quantity", "price", "commission", "fx_rate"):
            value = getattr(tx, name)
            if not isinstance(value, Decimal) or not value.is_finite():
                raise fail(f"{name} must be a finite decimal")
        if tx.type != TransactionType.SPLIT and tx.quantity < 0:
            raise fail("Negative quantity")
        if tx.fx_rate <= 0:
            raise fail("Non-positive fx_rate")
