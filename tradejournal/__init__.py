from tradejournal.records import (
    DepositEvent,
    Record,
    RecordKind,
    TradeEvent,
    ValidationError,
    WithdrawalEvent,
    active_rows,
    load_records,
    record_from_row,
)
from tradejournal.stats import (
    EquityPoint,
    StatisticsSummary,
    SymbolPerformance,
    best_performing,
    compute_statistics,
)

__all__ = [
    "DepositEvent",
    "EquityPoint",
    "Record",
    "RecordKind",
    "StatisticsSummary",
    "SymbolPerformance",
    "TradeEvent",
    "ValidationError",
    "WithdrawalEvent",
    "active_rows",
    "best_performing",
    "compute_statistics",
    "load_records",
    "record_from_row",
]
