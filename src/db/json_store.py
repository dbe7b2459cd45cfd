from __future__ import annotations

from pathlib import Path
from typing import Iterable

from pydantic import TypeAdapter

from domain.transaction import RawTransaction

_TRANSACTIONS_ADAPTER = TypeAdapter(list[RawTransaction])


def dump_transactions(path: Path, transactions: Iterable[RawTransaction]) -> int:
    """Write transactions as a JSON array with ISO-8601 timestamps."""
    transactions = list(transactions)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(_TRANSACTIONS_ADAPTER.dump_json(transactions, indent=2))
    return len(transactions)


def load_transactions(path: Path) -> list[RawTransaction]:
    if not path.exists():
        return []
    return _TRANSACTIONS_ADAPTER.validate_json(path.read_bytes())
