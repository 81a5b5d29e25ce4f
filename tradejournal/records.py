"""
Ledger records: trades, withdrawals and deposits.

Storage hands us loosely-typed rows (one table for all three kinds, told apart
by ``type``). Everything past this module works on the typed variants below.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date as date_cls, datetime
from enum import Enum
from typing import ClassVar, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)


class RecordKind(str, Enum):
    TRADE = "trade"
    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"


class ValidationError(ValueError):
    """A ledger row could not be turned into a record."""

    def __init__(self, message, index=None, field=None):
        self.index = index
        self.field = field
        if index is not None:
            message = f"row {index}: {message}"
        super().__init__(message)


@dataclass(frozen=True)
class TradeEvent:
    date: datetime
    symbol: str
    profit_loss: float
    instrument: str = "stock"
    side: Optional[str] = None
    qty: Optional[float] = None
    price: Optional[float] = None
    mood: Optional[str] = None
    description: str = ""

    kind: ClassVar[RecordKind] = RecordKind.TRADE


@dataclass(frozen=True)
class WithdrawalEvent:
    date: datetime
    amount: float
    note: str = ""

    kind: ClassVar[RecordKind] = RecordKind.WITHDRAWAL


@dataclass(frozen=True)
class DepositEvent:
    date: datetime
    amount: float
    note: str = ""

    kind: ClassVar[RecordKind] = RecordKind.DEPOSIT


Record = Union[TradeEvent, WithdrawalEvent, DepositEvent]


_DATE_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%m/%d/%Y", "%m/%d/%Y %H:%M")


def parse_date(value) -> Optional[datetime]:
    """Coerce a stored date into a naive datetime, keeping its wall-clock time."""
    if value is None:
        return None
    # pandas.Timestamp is a datetime subclass
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date_cls):
        dt = datetime(value.year, value.month, value.day)
    else:
        s = str(value).strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1]
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            dt = None
            for fmt in _DATE_FORMATS:
                try:
                    dt = datetime.strptime(s, fmt)
                    break
                except ValueError:
                    continue
            if dt is None:
                return None
    if dt.tzinfo is not None:
        dt = dt.replace(tzinfo=None)
    return dt


def _number(row, key, index, required=True):
    raw = row.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            raise ValidationError(f"{key} is missing or non-numeric", index, key)
        return None
    try:
        val = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be numeric, got {raw!r}", index, key) from None
    if math.isnan(val):
        if required:
            raise ValidationError(f"{key} is missing or non-numeric", index, key)
        return None
    if math.isinf(val):
        raise ValidationError(f"{key} must be finite", index, key)
    return val


def _text(row, key, default=""):
    raw = row.get(key)
    if raw is None or (isinstance(raw, float) and math.isnan(raw)):
        return default
    return str(raw).strip()


def is_deleted(row) -> bool:
    flag = row.get("deleted", row.get("is_deleted", False))
    if isinstance(flag, str):
        return flag.strip().lower() in ("1", "true", "yes")
    if isinstance(flag, float) and math.isnan(flag):
        return False
    return bool(flag)


def active_rows(rows: Iterable[dict]) -> List[dict]:
    """Drop soft-deleted rows."""
    return [r for r in rows if not is_deleted(r)]


def record_from_row(row: dict, index=None) -> Record:
    """
    Build a typed record from a storage row.

    Trades need ``symbol``, ``date`` and a finite ``pl``. Withdrawals and
    deposits need ``date`` and a non-negative ``price`` (the amount moved).
    """
    kind_raw = _text(row, "type", "trade").lower()
    try:
        kind = RecordKind(kind_raw)
    except ValueError:
        raise ValidationError(f"unknown record type {kind_raw!r}", index, "type") from None

    when = parse_date(row.get("date"))
    if when is None:
        raise ValidationError(f"date is missing or unparseable: {row.get('date')!r}", index, "date")

    if kind is RecordKind.TRADE:
        symbol = _text(row, "symbol").upper()
        if not symbol:
            raise ValidationError("symbol is required", index, "symbol")
        side = _text(row, "side") or None
        mood = _text(row, "mood").upper() or None
        return TradeEvent(
            date=when,
            symbol=symbol,
            profit_loss=_number(row, "pl", index),
            instrument=_text(row, "instrument") or "stock",
            side=side,
            qty=_number(row, "qty", index, required=False),
            price=_number(row, "price", index, required=False),
            mood=mood,
            description=_text(row, "description"),
        )

    amount = _number(row, "price", index)
    if amount < 0:
        raise ValidationError(f"{kind.value} amount must not be negative", index, "price")
    note = _text(row, "description")
    if kind is RecordKind.WITHDRAWAL:
        return WithdrawalEvent(date=when, amount=amount, note=note)
    return DepositEvent(date=when, amount=amount, note=note)


def load_records(rows: Iterable[dict]) -> List[Record]:
    """
    Filter out soft-deleted rows and convert the rest.

    The whole batch is rejected on the first invalid row.
    """
    records = []
    skipped = 0
    for i, row in enumerate(rows):
        if is_deleted(row):
            skipped += 1
            continue
        try:
            records.append(record_from_row(row, index=i))
        except ValidationError as e:
            logger.warning("Rejected ledger batch: %s", e)
            raise
    if skipped:
        logger.debug("Skipped %d deleted rows", skipped)
    return records


def record_to_row(record: Record) -> dict:
    """Inverse of ``record_from_row`` for export."""
    match record:
        case TradeEvent():
            return {
                "type": record.kind.value,
                "date": record.date.isoformat(),
                "symbol": record.symbol,
                "instrument": record.instrument,
                "side": record.side,
                "qty": record.qty,
                "price": record.price,
                "pl": record.profit_loss,
                "mood": record.mood,
                "description": record.description,
            }
        case WithdrawalEvent() | DepositEvent():
            return {
                "type": record.kind.value,
                "date": record.date.isoformat(),
                "price": record.amount,
                "description": record.note,
            }
        case _:
            raise TypeError(f"not a ledger record: {record!r}")
