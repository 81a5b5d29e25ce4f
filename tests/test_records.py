from datetime import date, datetime

import pytest

from tradejournal.records import (
    DepositEvent,
    RecordKind,
    TradeEvent,
    ValidationError,
    WithdrawalEvent,
    active_rows,
    load_records,
    parse_date,
    record_from_row,
    record_to_row,
)


def test_parse_date_variants():
    assert parse_date("2024-01-05") == datetime(2024, 1, 5)
    assert parse_date("2024-01-05T14:30:00Z") == datetime(2024, 1, 5, 14, 30)
    # offset dropped, wall-clock time kept
    assert parse_date("2024-01-31T23:30:00-05:00") == datetime(2024, 1, 31, 23, 30)
    assert parse_date("01/05/2024") == datetime(2024, 1, 5)
    assert parse_date(date(2024, 1, 5)) == datetime(2024, 1, 5)
    assert parse_date("") is None
    assert parse_date("yesterday") is None
    assert parse_date(None) is None


def test_trade_row():
    rec = record_from_row({
        "type": "trade", "date": "2024-01-05", "symbol": "aapl", "pl": "125.5",
        "instrument": "Stocks", "side": "Buy", "qty": 10, "price": 180, "mood": "happy",
    })
    assert isinstance(rec, TradeEvent)
    assert rec.kind is RecordKind.TRADE
    assert rec.symbol == "AAPL"
    assert rec.profit_loss == 125.5
    assert rec.mood == "HAPPY"
    assert rec.qty == 10.0


def test_trade_defaults_instrument():
    rec = record_from_row({"type": "trade", "date": "2024-01-05", "symbol": "X", "pl": 0})
    assert rec.instrument == "stock"
    assert rec.mood is None


def test_cash_flow_rows_use_price_as_amount():
    w = record_from_row({"type": "withdrawal", "date": "2024-02-01", "price": 30, "pl": -30, "description": "rent"})
    d = record_from_row({"type": "Deposit", "date": "2024-02-02", "price": 500})
    assert w == WithdrawalEvent(date=datetime(2024, 2, 1), amount=30.0, note="rent")
    assert d == DepositEvent(date=datetime(2024, 2, 2), amount=500.0)


@pytest.mark.parametrize("row, field", [
    ({"type": "dividend", "date": "2024-01-01"}, "type"),
    ({"type": "trade", "symbol": "AAPL", "pl": 1}, "date"),
    ({"type": "trade", "date": "2024-01-01", "pl": 1}, "symbol"),
    ({"type": "trade", "date": "2024-01-01", "symbol": "AAPL", "pl": "abc"}, "pl"),
    ({"type": "trade", "date": "2024-01-01", "symbol": "AAPL", "pl": float("inf")}, "pl"),
    ({"type": "trade", "date": "2024-01-01", "symbol": "AAPL"}, "pl"),
    ({"type": "deposit", "date": "2024-01-01", "price": -5}, "price"),
    ({"type": "withdrawal", "date": "2024-01-01"}, "price"),
])
def test_invalid_rows(row, field):
    with pytest.raises(ValidationError) as exc:
        record_from_row(row, index=3)
    assert exc.value.field == field
    assert exc.value.index == 3
    assert str(exc.value).startswith("row 3:")


def test_active_rows_skips_soft_deleted():
    rows = [
        {"type": "trade", "deleted": True},
        {"type": "trade", "deleted": "false"},
        {"type": "trade", "is_deleted": 1},
        {"type": "trade"},
    ]
    assert active_rows(rows) == [rows[1], rows[3]]


def test_load_records_filters_deleted_before_validating():
    rows = [
        {"type": "trade", "date": "2024-01-05", "symbol": "AAPL", "pl": 10},
        {"type": "trade", "date": "broken", "deleted": True},
        {"type": "deposit", "date": "2024-01-06", "price": 100},
    ]
    records = load_records(rows)
    assert [r.kind for r in records] == [RecordKind.TRADE, RecordKind.DEPOSIT]


def test_load_records_rejects_whole_batch():
    rows = [
        {"type": "trade", "date": "2024-01-05", "symbol": "AAPL", "pl": 10},
        {"type": "trade", "date": "2024-01-06", "symbol": "AAPL", "pl": None},
    ]
    with pytest.raises(ValidationError) as exc:
        load_records(rows)
    assert exc.value.index == 1


def test_record_to_row_roundtrip_for_trade():
    rec = TradeEvent(date=datetime(2024, 1, 5, 9, 30), symbol="AAPL", profit_loss=-12.0, mood="SAD")
    assert record_from_row(record_to_row(rec)) == rec
