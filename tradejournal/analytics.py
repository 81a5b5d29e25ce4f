"""
Dashboard analytics over trades: streaks, profit factor, hourly buckets,
mood performance and time-range filtering.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

import pandas as pd

from tradejournal.records import Record, TradeEvent

TIME_RANGES = ("last3", "today", "week", "month", "year", "all")


@dataclass(frozen=True)
class Mood:
    label: str
    emoji: str
    score: int


MOODS: Dict[str, Mood] = {
    "HAPPY": Mood("Happy", "\U0001F60A", 9),
    "EXCITED": Mood("Excited", "\U0001F917", 10),
    "PEACEFUL": Mood("Peaceful", "\U0001F60C", 8),
    "NEUTRAL": Mood("Neutral", "\U0001F610", 5),
    "ANXIOUS": Mood("Anxious", "\U0001F630", 3),
    "SAD": Mood("Sad", "\U0001F614", 2),
    "ANGRY": Mood("Angry", "\U0001F620", 1),
}


@dataclass(frozen=True)
class Streak:
    date: datetime
    length: int  # positive for wins, negative for losses


@dataclass
class TradePerformance:
    avg_win: float = 0.0
    avg_loss: float = 0.0
    risk_reward: float = 0.0
    profit_factor: float = 0.0
    daily_pl: Dict[str, float] = field(default_factory=dict)
    hourly_performance: List[dict] = field(default_factory=list)
    streaks: List[Streak] = field(default_factory=list)
    max_win_streak: int = 0
    max_loss_streak: int = 0

    def to_dict(self) -> dict:
        return {
            "avg_win": self.avg_win,
            "avg_loss": self.avg_loss,
            "risk_reward": self.risk_reward,
            "profit_factor": self.profit_factor,
            "daily_pl": dict(self.daily_pl),
            "hourly_performance": [dict(h) for h in self.hourly_performance],
            "streaks": [{"date": s.date.isoformat(), "streak": s.length} for s in self.streaks],
            "max_win_streak": self.max_win_streak,
            "max_loss_streak": self.max_loss_streak,
        }


def only_trades(records: Iterable[Record]) -> List[TradeEvent]:
    return [r for r in records if isinstance(r, TradeEvent)]


def _streaks(trades: List[TradeEvent]):
    # break-even trades close the running streak without starting a new one
    streaks: List[Streak] = []
    current = 0
    last_date = None
    for t in trades:
        if t.profit_loss > 0:
            if current < 0:
                streaks.append(Streak(last_date, current))
                current = 0
            current += 1
        elif t.profit_loss < 0:
            if current > 0:
                streaks.append(Streak(last_date, current))
                current = 0
            current -= 1
        elif current != 0:
            streaks.append(Streak(last_date, current))
            current = 0
        last_date = t.date
    if current != 0:
        streaks.append(Streak(last_date, current))
    return streaks


def trade_performance(records: Iterable[Record]) -> TradePerformance:
    trades = sorted(only_trades(records), key=lambda t: t.date)
    if not trades:
        return TradePerformance(hourly_performance=[{"hour": h, "profit": 0.0, "trades": 0} for h in range(24)])

    wins = [t.profit_loss for t in trades if t.profit_loss > 0]
    losses = [t.profit_loss for t in trades if t.profit_loss < 0]
    avg_win = sum(wins) / len(wins) if wins else 0.0
    avg_loss = sum(losses) / len(losses) if losses else 0.0
    risk_reward = abs(avg_win / avg_loss) if avg_loss != 0 else 0.0
    gross_loss = sum(losses)
    profit_factor = abs(sum(wins) / gross_loss) if gross_loss != 0 else 0.0

    daily: Dict[str, float] = defaultdict(float)
    hourly = [{"hour": h, "profit": 0.0, "trades": 0} for h in range(24)]
    for t in trades:
        daily[t.date.date().isoformat()] += t.profit_loss
        bucket = hourly[t.date.hour]
        bucket["profit"] += t.profit_loss
        bucket["trades"] += 1

    streaks = _streaks(trades)
    return TradePerformance(
        avg_win=avg_win,
        avg_loss=avg_loss,
        risk_reward=risk_reward,
        profit_factor=profit_factor,
        daily_pl=dict(daily),
        hourly_performance=hourly,
        streaks=streaks,
        max_win_streak=max((s.length for s in streaks if s.length > 0), default=0),
        max_loss_streak=max((-s.length for s in streaks if s.length < 0), default=0),
    )


def performance_by_instrument(records: Iterable[Record]) -> Dict[str, float]:
    out: Dict[str, float] = defaultdict(float)
    for t in only_trades(records):
        out[t.instrument] += t.profit_loss
    return dict(out)


def correlation(xs: List[float], ys: List[float]) -> float:
    """Pearson correlation; 0 when undefined."""
    if len(xs) != len(ys):
        return 0.0
    r = pd.Series(xs, dtype=float).corr(pd.Series(ys, dtype=float))
    return float(r) if pd.notna(r) else 0.0


def mood_performance(records: Iterable[Record]) -> Optional[dict]:
    """
    P/L grouped by the mood recorded with each trade.

    Trades without a known mood are ignored. Returns None when nothing is left.
    """
    tagged = [t for t in only_trades(records) if t.mood in MOODS]
    if not tagged:
        return None

    by_mood: Dict[str, dict] = {}
    for t in tagged:
        st = by_mood.setdefault(t.mood, {"total_pl": 0.0, "trades": 0, "avg_pl": 0.0})
        st["total_pl"] += t.profit_loss
        st["trades"] += 1
        st["avg_pl"] = st["total_pl"] / st["trades"]

    scores = [float(MOODS[t.mood].score) for t in tagged]
    pls = [t.profit_loss for t in tagged]
    best = max(by_mood.items(), key=lambda kv: kv[1]["avg_pl"])[0]

    return {
        "total_pl": sum(pls),
        "avg_score": sum(scores) / len(scores),
        "by_mood": by_mood,
        "correlation": correlation(scores, pls),
        "trading_days": len({t.date.date() for t in tagged}),
        "best_mood": best,
    }


def _months_back(now: datetime, months: int) -> datetime:
    y, m = divmod(now.year * 12 + (now.month - 1) - months, 12)
    m += 1
    day = min(now.day, calendar.monthrange(y, m)[1])
    return now.replace(year=y, month=m, day=day)


def range_cutoff(time_range: str, now: datetime) -> Optional[datetime]:
    if time_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if time_range == "week":
        return now - timedelta(days=7)
    if time_range == "month":
        return _months_back(now, 1)
    if time_range == "year":
        return _months_back(now, 12)
    return None


def filter_by_range(records: Iterable[Record], time_range: str = "all", now: Optional[datetime] = None) -> List[Record]:
    """
    Keep the records inside ``time_range``.

    ``last3`` keeps the three most recent trades (cash flows are dropped);
    the other ranges keep every record dated on or after the cutoff.
    """
    if time_range not in TIME_RANGES:
        raise ValueError(f"unknown time range {time_range!r}, expected one of {', '.join(TIME_RANGES)}")
    records = list(records)
    if time_range == "all":
        return records
    if time_range == "last3":
        return sorted(only_trades(records), key=lambda t: t.date, reverse=True)[:3]

    now = now if now is not None else datetime.now()
    cutoff = range_cutoff(time_range, now)
    return [r for r in records if r.date >= cutoff]
