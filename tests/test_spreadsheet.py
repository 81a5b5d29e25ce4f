import io

import pandas as pd
import pytest

from tradejournal.records import RecordKind, ValidationError
from tradejournal.spreadsheet import SpreadsheetError, export_statistics, read_records, read_rows
from tradejournal.stats import compute_statistics

CSV = b"""Type,Date,Symbol,Instrument,PL,Price,Deleted
trade,2024-01-05,AAPL,Stocks,100,,false
trade,2024-01-20,EURUSD,Forex,-40,,
trade,2024-01-21,GONE,Stocks,500,,true
withdrawal,2024-02-01,,,,30,
"""


def test_read_csv_rows():
    rows = read_rows(io.BytesIO(CSV), "ledger.csv")
    assert len(rows) == 4
    assert rows[0]["symbol"] == "AAPL"
    assert rows[1]["deleted"] is None
    assert rows[3]["pl"] is None


def test_read_csv_records_and_stats():
    records = read_records(io.BytesIO(CSV), "ledger.csv")
    assert [r.kind for r in records] == [RecordKind.TRADE, RecordKind.TRADE, RecordKind.WITHDRAWAL]
    stats = compute_statistics(records, 1000.0)
    assert stats.total_equity == 1030.0
    assert stats.win_rate == 50.0


def test_read_xlsx():
    df = pd.DataFrame([
        {"type": "deposit", "date": "2024-03-01", "price": 500},
        {"type": "trade", "date": "2024-03-02", "symbol": "btc", "pl": 12.5},
    ])
    buf = io.BytesIO()
    df.to_excel(buf, index=False, engine="openpyxl")
    buf.seek(0)
    records = read_records(buf, "ledger.xlsx")
    assert records[0].amount == 500.0
    assert records[1].symbol == "BTC"


def test_rejects_unsupported_file():
    with pytest.raises(SpreadsheetError):
        read_rows(io.BytesIO(b""), "ledger.txt")


def test_rejects_missing_columns():
    with pytest.raises(SpreadsheetError, match="date"):
        read_rows(io.BytesIO(b"type,symbol\ntrade,AAPL\n"), "ledger.csv")


def test_invalid_row_is_a_validation_error():
    data = b"type,date,symbol,pl\ntrade,2024-01-05,AAPL,not-a-number\n"
    with pytest.raises(ValidationError, match="pl is missing or non-numeric"):
        read_records(io.BytesIO(data), "ledger.csv")


def test_export_statistics_sheets():
    records = read_records(io.BytesIO(CSV), "ledger.csv")
    stats = compute_statistics(records, 1000.0)
    output = export_statistics(stats, records)
    sheets = pd.read_excel(output, sheet_name=None)
    assert set(sheets) == {"Summary", "Equity Curve", "Monthly", "Symbols", "Ledger"}
    summary = dict(zip(sheets["Summary"]["metric"], sheets["Summary"]["value"]))
    assert summary["Current Equity"] == 1030
    assert list(sheets["Monthly"]["month"]) == ["2024-01"]
    assert list(sheets["Symbols"]["symbol"]) == ["AAPL", "EURUSD"]
    assert len(sheets["Ledger"]) == 3
