from __future__ import annotations

from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db import models
from domain.transaction import RawTransaction, TransactionType


class TransactionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, transaction: RawTransaction) -> RawTransaction:
        orm_transaction = self._to_orm(transaction)
        self._session.add(orm_transaction)
        self._session.commit()
        self._session.refresh(orm_transaction)
        return self._to_domain(orm_transaction)

    def create_many(self, transactions: Iterable[RawTransaction]) -> int:
        orm_transactions = [self._to_orm(transaction) for transaction in transactions]
        self._session.add_all(orm_transactions)
        self._session.commit()
        return len(orm_transactions)

    def get(self, transaction_id: str) -> RawTransaction | None:
        stmt = select(models.TransactionOrm).where(models.TransactionOrm.id == transaction_id)
        orm_transaction = self._session.scalars(stmt).one_or_none()
        if orm_transaction is None:
            return None
        return self._to_domain(orm_transaction)

    def list(self) -> list[RawTransaction]:
        """All stored transactions in insertion order."""
        stmt = select(models.TransactionOrm).order_by(models.TransactionOrm.seq.asc())
        return [self._to_domain(orm_transaction) for orm_transaction in self._session.scalars(stmt)]

    def delete(self, transaction_id: str) -> bool:
        result = self._session.execute(delete(models.TransactionOrm).where(models.TransactionOrm.id == transaction_id))
        self._session.commit()
        return bool(result.rowcount)

    def clear(self) -> int:
        result = self._session.execute(delete(models.TransactionOrm))
        self._session.commit()
        return result.rowcount or 0

    @staticmethod
    def _to_orm(transaction: RawTransaction) -> models.TransactionOrm:
        return models.TransactionOrm(
            id=transaction.id,
            symbol=transaction.symbol,
            currency=transaction.currency,
            timestamp=transaction.timestamp,
            type=transaction.type.value,
            quantity=transaction.quantity,
            price=transaction.price,
            commission=transaction.commission,
            fx_rate=transaction.fx_rate,
            description=transaction.description,
        )

    @staticmethod
    def _to_domain(orm_transaction: models.TransactionOrm) -> RawTransaction:
        return RawTransaction(
            id=orm_transaction.id,
            symbol=orm_transaction.symbol,
            currency=orm_transaction.currency,
            timestamp=orm_transaction.timestamp,
            type=TransactionType(orm_transaction.type),
            quantity=orm_transaction.quantity,
            price=orm_transaction.price,
            commission=orm_transaction.commission,
            fx_rate=orm_transaction.fx_rate,
            description=orm_transaction.description,
        )
