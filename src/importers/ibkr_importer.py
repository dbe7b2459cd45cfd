from __future__ import annotations

import logging
from csv import reader
from datetime import datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Iterator

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from domain.transaction import RawTransaction, TransactionType

logger = logging.getLogger(__name__)

CURRENCY_PAIR_SYMBOLS = {"USD.CAD", "CAD.USD"}
FORWARD_SPLIT_CODE = "FS"
DEFAULT_TIME = "120000"
_DATE_TIME_SEPARATORS = (";", ",", "T", " ")


class IbkrSection(StrEnum):
    TRADES = "TRADES"
    CORPORATE_ACTIONS = "CORPORATE_ACTIONS"


def parse_ibkr_datetime(raw: str, *, tz: tzinfo = timezone.utc) -> datetime:
    """Parse the date-time layouts found in Flex Query exports.

    Accepts ``20240115;093000``, ``2024-01-15 09:30:00``, ``2024-01-15, 09:30:00``
    and bare dates, which are placed at noon.
    """
    value = raw.strip()
    if not value:
        raise ValueError("date-time is empty")

    date_part, time_part = value, ""
    for separator in _DATE_TIME_SEPARATORS:
        if separator in value:
            date_part, time_part = value.split(separator, 1)
            break

    date_digits = date_part.strip().replace("-", "").replace("/", "")
    if len(date_digits) != 8 or not date_digits.isdigit():
        raise ValueError(f"Unrecognized date {date_part!r}")

    time_digits = time_part.strip().replace(":", "") or DEFAULT_TIME
    if len(time_digits) == 4:
        time_digits += "00"

    parsed = datetime.strptime(f"{date_digits}{time_digits}", "%Y%m%d%H%M%S")
    return parsed.replace(tzinfo=tz)


def _lenient_decimal(value: object, default: str) -> object:
    """Fall back to ``default`` for blank or unparseable optional amounts."""
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(default)
    if not isinstance(value, str):
        return value
    try:
        parsed = Decimal(value.strip().replace(",", ""))
    except InvalidOperation:
        return Decimal(default)
    if not parsed.is_finite():
        return Decimal(default)
    return parsed


def _default_currency(symbol: str) -> str:
    return "CAD" if symbol.upper().endswith(".TO") else "USD"


def _strip_number(value: object) -> object:
    if isinstance(value, str):
        return value.strip().replace(",", "")
    return value


def _parse_date(value: object, info: ValidationInfo) -> object:
    if isinstance(value, str):
        tz = (info.context or {}).get("tz", timezone.utc)
        return parse_ibkr_datetime(value, tz=tz)
    return value


IbkrDateTime = Annotated[datetime, BeforeValidator(_parse_date)]
IbkrQuantity = Annotated[Decimal, BeforeValidator(_strip_number)]


class _IbkrRow(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class IbkrTradeRow(_IbkrRow):
    currency: str = Field(default="", alias="CurrencyPrimary")
    fx_rate: Decimal = Field(default=Decimal(1), alias="FXRateToBase")
    symbol: str = Field(alias="Symbol")
    date_time: IbkrDateTime = Field(alias="DateTime")
    quantity: IbkrQuantity = Field(alias="Quantity")
    price: Decimal = Field(default=Decimal(0), alias="TradePrice")
    commission: Decimal = Field(default=Decimal(0), alias="IBCommission")

    @field_validator("fx_rate", mode="before")
    @classmethod
    def _parse_fx_rate(cls, value: object) -> object:
        parsed = _lenient_decimal(value, "1")
        # A zero rate would wipe the home currency amounts.
        if isinstance(parsed, Decimal) and parsed == 0:
            return Decimal(1)
        return parsed

    @field_validator("price", "commission", mode="before")
    @classmethod
    def _parse_amount(cls, value: object) -> object:
        return _lenient_decimal(value, "0")


class IbkrCorporateActionRow(_IbkrRow):
    currency: str = Field(default="", alias="CurrencyPrimary")
    symbol: str = Field(alias="Symbol")
    report_date: IbkrDateTime = Field(alias="Report Date")
    quantity: IbkrQuantity = Field(alias="Quantity")
    description: str = Field(default="", alias="Description")
    action_type: str = Field(default="", alias="Type")


class IbkrImporter:
    """Read trades and forward splits from an Interactive Brokers Flex Query CSV.

    Rows that cannot be turned into a valid transaction are skipped.
    """

    def __init__(self, source_path: str | Path, *, tz: tzinfo = timezone.utc) -> None:
        self._source_path = Path(source_path)
        self._tz = tz

    def load_transactions(self) -> list[RawTransaction]:
        transactions: list[RawTransaction] = []
        skipped = 0

        for section, line_number, row in self._read_sections():
            try:
                if section == IbkrSection.TRADES:
                    transaction = self._trade_transaction(row)
                elif section == IbkrSection.CORPORATE_ACTIONS:
                    transaction = self._split_transaction(row)
                else:
                    raise ValueError(f"Unsupported IBKR section {section}")
            except ValidationError as err:
                skipped += 1
                logger.debug("Skipping %s row at line %d: %s", section, line_number, err)
                continue

            if transaction is not None:
                transactions.append(transaction)

        logger.info(
            "Read %d transactions from %s (%d malformed rows skipped)",
            len(transactions),
            self._source_path,
            skipped,
        )
        return transactions

    def _read_sections(self) -> Iterator[tuple[IbkrSection, int, dict[str, str]]]:
        section: IbkrSection | None = None
        header: list[str] = []

        with self._source_path.open(encoding="utf-8-sig", newline="") as handle:
            for line_number, cells in enumerate(reader(handle), start=1):
                cells = [cell.strip() for cell in cells]
                if not any(cells):
                    continue

                detected = self._detect_header(cells)
                if detected is not None:
                    section, header = detected, cells
                    continue
                if section is None:
                    continue

                yield section, line_number, dict(zip(header, cells))

    @staticmethod
    def _detect_header(cells: list[str]) -> IbkrSection | None:
        lowered = ",".join(cells).lower()
        if "fxratetobase" in lowered and "tradeprice" in lowered:
            return IbkrSection.TRADES
        if "report date" in lowered and "quantity" in lowered and "description" in lowered:
            return IbkrSection.CORPORATE_ACTIONS
        return None

    def _trade_transaction(self, row: dict[str, str]) -> RawTransaction | None:
        trade = IbkrTradeRow.model_validate(row, context={"tz": self._tz})
        if not trade.symbol or trade.symbol in CURRENCY_PAIR_SYMBOLS:
            return None
        if trade.quantity == 0:
            logger.debug("Skipping zero quantity trade of %s at %s", trade.symbol, trade.date_time.isoformat())
            return None

        return RawTransaction(
            symbol=trade.symbol,
            currency=trade.currency or _default_currency(trade.symbol),
            timestamp=trade.date_time,
            type=TransactionType.BUY if trade.quantity > 0 else TransactionType.SELL,
            quantity=abs(trade.quantity),
            price=trade.price,
            commission=abs(trade.commission),
            fx_rate=trade.fx_rate,
        )

    def _split_transaction(self, row: dict[str, str]) -> RawTransaction | None:
        action = IbkrCorporateActionRow.model_validate(row, context={"tz": self._tz})
        if not action.symbol or action.action_type.strip().upper() != FORWARD_SPLIT_CODE:
            return None

        return RawTransaction(
            symbol=action.symbol,
            currency=action.currency or _default_currency(action.symbol),
            timestamp=action.report_date,
            type=TransactionType.SPLIT,
            quantity=action.quantity,
            description=action.description or None,
        )
