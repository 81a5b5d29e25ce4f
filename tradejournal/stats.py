"""
Account statistics from a ledger snapshot.

``compute_statistics`` is pure: it reads the records it is given and builds a
fresh ``StatisticsSummary``. Soft-deleted rows must already be filtered out
and values are not validated here (see ``tradejournal.records``); a NaN
amount propagates into the sums instead of raising.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from tradejournal.records import DepositEvent, Record, TradeEvent, WithdrawalEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EquityPoint:
    date: datetime
    equity: float


@dataclass(frozen=True)
class SymbolPerformance:
    symbol: str
    instrument: str
    profit_loss: float
    trades: int
    winning_trades: int

    @property
    def win_rate(self) -> float:
        return (self.winning_trades / self.trades * 100) if self.trades > 0 else 0


@dataclass(frozen=True)
class StatisticsSummary:
    total_trades: int
    winning_trades: int
    losing_trades: int
    trading_pl: float
    average_pl: float
    win_rate: float
    monthly_cumulative_pl: Dict[str, float]
    total_withdrawals: float
    total_deposits: float
    initial_balance: float
    total_equity: float
    return_on_investment: float
    performance_by_symbol: Dict[str, SymbolPerformance]
    equity_curve: List[EquityPoint]

    @property
    def break_even(self) -> int:
        return self.total_trades - self.winning_trades - self.losing_trades

    def to_dict(self) -> dict:
        return {
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "break_even": self.break_even,
            "trading_pl": self.trading_pl,
            "average_pl": self.average_pl,
            "win_rate": self.win_rate,
            "monthly_cumulative_pl": dict(self.monthly_cumulative_pl),
            "total_withdrawals": self.total_withdrawals,
            "total_deposits": self.total_deposits,
            "initial_balance": self.initial_balance,
            "total_equity": self.total_equity,
            "return_on_investment": self.return_on_investment,
            "performance_by_symbol": {
                sym: {
                    "instrument": p.instrument,
                    "pl": p.profit_loss,
                    "trades": p.trades,
                    "winning_trades": p.winning_trades,
                    "win_rate": p.win_rate,
                }
                for sym, p in self.performance_by_symbol.items()
            },
            "equity_curve": [
                {"date": pt.date.isoformat(), "equity": pt.equity} for pt in self.equity_curve
            ],
        }


def round_cents(value: float) -> float:
    """Round to cents, halves going up."""
    return math.floor(value * 100 + 0.5) / 100


def month_key(when: datetime) -> str:
    return f"{when.year:04d}-{when.month:02d}"


def _partition(records):
    trades, withdrawals, deposits = [], [], []
    for r in records:
        match r:
            case TradeEvent():
                trades.append(r)
            case WithdrawalEvent():
                withdrawals.append(r)
            case DepositEvent():
                deposits.append(r)
            case _:
                raise TypeError(f"not a ledger record: {r!r}")
    return trades, withdrawals, deposits


def _symbol_performance(trades: List[TradeEvent]) -> Dict[str, SymbolPerformance]:
    acc: Dict[str, dict] = {}
    for t in trades:
        st = acc.get(t.symbol)
        if st is None:
            st = {"instrument": t.instrument, "pl": 0.0, "trades": 0, "wins": 0}
            acc[t.symbol] = st
        st["pl"] += t.profit_loss
        st["trades"] += 1
        if t.profit_loss > 0:
            st["wins"] += 1
    return {
        sym: SymbolPerformance(
            symbol=sym,
            instrument=st["instrument"],
            profit_loss=st["pl"],
            trades=st["trades"],
            winning_trades=st["wins"],
        )
        for sym, st in acc.items()
    }


def _monthly_cumulative(trades: List[TradeEvent]) -> Dict[str, float]:
    by_month: Dict[str, float] = defaultdict(float)
    for t in trades:
        by_month[month_key(t.date)] += t.profit_loss

    # "YYYY-MM" keys sort chronologically
    out: Dict[str, float] = {}
    run = 0.0
    for key in sorted(by_month):
        run += by_month[key]
        out[key] = run
    return out


def _equity_change(record: Record) -> float:
    match record:
        case WithdrawalEvent():
            return -record.amount
        case DepositEvent():
            return record.amount
        case TradeEvent():
            return record.profit_loss
    raise TypeError(f"not a ledger record: {record!r}")


def equity_curve(records: Iterable[Record], initial_balance: float, now: Optional[datetime] = None) -> List[EquityPoint]:
    """
    Running equity over all records in date order.

    Equity is rounded to cents after every step. When more than one whole day
    separates two plotted points a midpoint holding the previous equity is
    inserted so the chart draws a flat line across the gap.
    """
    ordered = sorted(records, key=lambda r: r.date)
    if ordered:
        start = ordered[0].date
    else:
        start = now if now is not None else datetime.now()

    curve = [EquityPoint(date=start, equity=initial_balance)]
    for r in ordered:
        prev = curve[-1]
        new_equity = round_cents(prev.equity + _equity_change(r))
        days = math.floor((r.date - prev.date).total_seconds() / 86400)
        if days > 1:
            mid = prev.date + timedelta(days=days / 2)
            mid = mid.replace(hour=0, minute=0, second=0, microsecond=0)
            curve.append(EquityPoint(date=mid, equity=prev.equity))
        curve.append(EquityPoint(date=r.date, equity=new_equity))
    return curve


def compute_statistics(records: Iterable[Record], initial_balance: float, now: Optional[datetime] = None) -> StatisticsSummary:
    """
    Aggregate a ledger snapshot into the account summary.

    ``now`` only dates the single equity point produced for an empty ledger;
    it defaults to the current time.
    """
    records = list(records)
    trades, withdrawals, deposits = _partition(records)

    total_trades = len(trades)
    winning_trades = sum(1 for t in trades if t.profit_loss > 0)
    losing_trades = sum(1 for t in trades if t.profit_loss < 0)
    trading_pl = sum((t.profit_loss for t in trades), 0.0)
    average_pl = trading_pl / total_trades if total_trades else 0
    win_rate = (winning_trades / total_trades * 100) if total_trades else 0

    total_withdrawals = sum((w.amount for w in withdrawals), 0.0)
    total_deposits = sum((d.amount for d in deposits), 0.0)

    total_equity = initial_balance + trading_pl - total_withdrawals + total_deposits
    roi = (total_equity - initial_balance) / initial_balance * 100 if initial_balance else 0

    logger.debug(
        "Aggregated %d trades, %d withdrawals, %d deposits",
        total_trades, len(withdrawals), len(deposits),
    )

    return StatisticsSummary(
        total_trades=total_trades,
        winning_trades=winning_trades,
        losing_trades=losing_trades,
        trading_pl=trading_pl,
        average_pl=average_pl,
        win_rate=win_rate,
        monthly_cumulative_pl=_monthly_cumulative(trades),
        total_withdrawals=total_withdrawals,
        total_deposits=total_deposits,
        initial_balance=initial_balance,
        total_equity=total_equity,
        return_on_investment=roi,
        performance_by_symbol=_symbol_performance(trades),
        equity_curve=equity_curve(records, initial_balance, now),
    )


def best_performing(summary: StatisticsSummary, limit: Optional[int] = None) -> List[SymbolPerformance]:
    items = sorted(summary.performance_by_symbol.values(), key=lambda p: p.profit_loss, reverse=True)
    return items[:limit] if limit is not None else items
