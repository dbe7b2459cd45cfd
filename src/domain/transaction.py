from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import NewType
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TransactionId = NewType("TransactionId", str)
Symbol = NewType("Symbol", str)
CurrencyCode = NewType("CurrencyCode", str)


class TransactionType(StrEnum):
    BUY = "BUY"
    SELL = "SELL"
    SPLIT = "SPLIT"


class RawTransaction(BaseModel):
    """A single buy, sell or split of one instrument.

    Amount conventions:
    - ``quantity`` is non-negative for BUY and SELL; for SPLIT it is the signed
      number of shares added (or removed) by the corporate action.
    - ``price`` and ``commission`` are in the instrument's native currency.
    - ``fx_rate`` converts native amounts into the home currency by
      multiplication, so it is 1 when both currencies are the same.
    """

    model_config = ConfigDict(frozen=True)

    id: TransactionId = Field(default_factory=lambda: TransactionId(uuid4().hex))
    symbol: Symbol
    currency: CurrencyCode
    timestamp: datetime
    type: TransactionType
    quantity: Decimal
    price: Decimal = Decimal(0)
    commission: Decimal = Decimal(0)
    fx_rate: Decimal = Decimal(1)
    description: str | None = None

    @field_validator("symbol", "currency", mode="before")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        # Naive timestamps are taken as UTC; aware ones keep their own offset.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _validate_fields(self) -> RawTransaction:
        if not self.symbol:
            raise ValueError("symbol must be non-empty")
        if not self.currency:
            raise ValueError("currency must be non-empty")
        for name in ("quantity", "price", "commission", "fx_rate"):
            if not getattr(self, name).is_finite():
                raise ValueError(f"{name} must be a finite number")
        if self.type != TransactionType.SPLIT and self.quantity < 0:
            raise ValueError(f"{self.type} quantity must be >= 0")
        if self.price < 0:
            raise ValueError("price must be >= 0")
        if self.commission < 0:
            raise ValueError("commission must be >= 0")
        if self.fx_rate <= 0:
            raise ValueError("fx_rate must be > 0")
        return self
