"""Spreadsheet import of ledger rows and export of statistics."""

from __future__ import annotations

import io
import logging

import pandas as pd

from tradejournal.records import load_records, record_to_row
from tradejournal.stats import best_performing

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["type", "date"]
ALLOWED_COLUMNS = [
    "type", "date", "symbol", "instrument", "side", "qty", "price", "pl",
    "mood", "description", "deleted",
]
ALLOWED_EXTENSIONS = {"xlsx", "csv"}


class SpreadsheetError(ValueError):
    pass


def allowed_file(filename):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def read_rows(file, filename):
    """Read an uploaded ``.xlsx``/``.csv`` into ledger row dicts."""
    if not allowed_file(filename or ""):
        raise SpreadsheetError("Only .xlsx and .csv files are supported")

    if filename.lower().endswith(".csv"):
        df = pd.read_csv(file)
    else:
        df = pd.read_excel(file, engine="openpyxl")

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise SpreadsheetError(f"Missing required columns: {', '.join(missing)}")

    df = df[[col for col in ALLOWED_COLUMNS if col in df.columns]]
    df = df.dropna(how="all")

    # Excel stores dates as serial day numbers when the cell is not date-formatted
    def excel_date(val):
        if pd.isnull(val):
            return None
        if isinstance(val, (int, float)):
            return pd.to_datetime("1899-12-30") + pd.to_timedelta(val, "D")
        return val

    df["date"] = df["date"].apply(excel_date)
    for col in ("pl", "price", "qty"):
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    rows = df.astype(object).where(df.notna(), None).to_dict(orient="records")
    logger.info("Read %d ledger rows from %s", len(rows), filename)
    return rows


def read_records(file, filename):
    return load_records(read_rows(file, filename))


def export_statistics(summary, records=None):
    """Write a summary (and optionally the ledger) to an in-memory ``.xlsx``."""
    overview = pd.DataFrame(
        [
            ("Initial Balance", summary.initial_balance),
            ("Current Equity", summary.total_equity),
            ("ROI %", summary.return_on_investment),
            ("Total P/L", summary.trading_pl),
            ("Average P/L", summary.average_pl),
            ("Win Rate %", summary.win_rate),
            ("Total Trades", summary.total_trades),
            ("Winning Trades", summary.winning_trades),
            ("Losing Trades", summary.losing_trades),
            ("Break Even", summary.break_even),
            ("Deposits", summary.total_deposits),
            ("Withdrawals", summary.total_withdrawals),
        ],
        columns=["metric", "value"],
    )
    curve = pd.DataFrame(
        [{"date": p.date, "equity": p.equity} for p in summary.equity_curve],
        columns=["date", "equity"],
    )
    monthly = pd.DataFrame(
        list(summary.monthly_cumulative_pl.items()), columns=["month", "cumulative_pl"]
    )
    symbols = pd.DataFrame(
        [
            {
                "symbol": p.symbol,
                "instrument": p.instrument,
                "pl": p.profit_loss,
                "trades": p.trades,
                "winning_trades": p.winning_trades,
                "win_rate": p.win_rate,
            }
            for p in best_performing(summary)
        ],
        columns=["symbol", "instrument", "pl", "trades", "winning_trades", "win_rate"],
    )

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        overview.to_excel(writer, index=False, sheet_name="Summary")
        curve.to_excel(writer, index=False, sheet_name="Equity Curve")
        monthly.to_excel(writer, index=False, sheet_name="Monthly")
        symbols.to_excel(writer, index=False, sheet_name="Symbols")
        if records is not None:
            ledger = pd.DataFrame([record_to_row(r) for r in records], columns=ALLOWED_COLUMNS[:-1])
            ledger.to_excel(writer, index=False, sheet_name="Ledger")
    output.seek(0)
    return output
