"""Monthly cash-flow summary and net worth timeline from bank transactions.

Bank amounts are signed: credits positive, debits negative. The monthly
table feeds the FIRE inputs (trailing annual expenses, average monthly
savings) and the month-indexed net worth timeline the dashboard charts.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Union

import pandas as pd

from wealth_engine.parsers.broker_records import parse_date

from .sip_matcher import BankTransaction

logger = logging.getLogger(__name__)

MONTHLY_COLUMNS = ["income", "expenses", "savings"]


def _as_datetime(value: Union[str, date]) -> Optional[datetime]:
    # Same day-first reading as the matcher: "06/02/2024" is 6 Feb
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        parsed = parse_date(value)
    if parsed is None:
        return None
    return parsed.replace(tzinfo=None)


def transactions_frame(transactions: Iterable[BankTransaction]) -> pd.DataFrame:
    """DataFrame of date/description/amount; rows with bad dates are dropped."""
    records = [
        {"date": _as_datetime(t.date), "description": t.description, "amount": t.amount}
        for t in transactions
    ]
    df = pd.DataFrame(records, columns=["date", "description", "amount"])
    if df.empty:
        return df

    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce")
    dropped = int(df["date"].isna().sum() + df["amount"].isna().sum())
    df = df.dropna(subset=["date", "amount"])
    if dropped:
        logger.debug("[Cashflow] Dropped %d transactions with unusable date/amount", dropped)
    return df.sort_values("date").reset_index(drop=True)


def monthly_cashflow(transactions: Iterable[BankTransaction]) -> pd.DataFrame:
    """Income, expenses and savings per calendar month (PeriodIndex)."""
    df = transactions_frame(transactions)
    if df.empty:
        return pd.DataFrame(columns=MONTHLY_COLUMNS, index=pd.PeriodIndex([], freq="M"))

    month = df["date"].dt.to_period("M")
    income = df["amount"].where(df["amount"] > 0, 0.0).groupby(month).sum()
    expenses = (-df["amount"].where(df["amount"] < 0, 0.0)).groupby(month).sum()

    table = pd.DataFrame({"income": income, "expenses": expenses})
    full_range = pd.period_range(table.index.min(), table.index.max(), freq="M")
    table = table.reindex(full_range, fill_value=0.0)
    table["savings"] = table["income"] - table["expenses"]
    table.index.name = "month"
    return table[MONTHLY_COLUMNS]


def average_monthly_expense(table: pd.DataFrame) -> float:
    if table.empty:
        return 0.0
    return float(table["expenses"].mean())


def average_monthly_savings(table: pd.DataFrame) -> float:
    """Net savings per month; never negative (a deficit saves nothing)."""
    if table.empty:
        return 0.0
    return max(0.0, float(table["savings"].mean()))


def trailing_annual_expenses(table: pd.DataFrame, months: int = 12) -> float:
    """Annualized expenses over the last ``months`` months of the table."""
    if table.empty:
        return 0.0
    recent = table["expenses"].tail(months)
    return round(float(recent.mean()) * 12, 2)


def net_worth_timeline(
    transactions: Iterable[BankTransaction],
    investment_value: Union[float, Mapping[str, float]] = 0.0,
    opening_balance: float = 0.0,
) -> pd.DataFrame:
    """Month-indexed cash balance + investment valuation.

    ``investment_value`` is either one current valuation applied to every
    month, or a mapping of "YYYY-MM" to valuation that is carried forward
    between observations.
    """
    table = monthly_cashflow(transactions)
    if table.empty:
        return pd.DataFrame(columns=["cash_balance", "investments", "net_worth"])

    timeline = pd.DataFrame(index=table.index)
    timeline["cash_balance"] = opening_balance + table["savings"].cumsum()

    if isinstance(investment_value, Mapping) and not investment_value:
        timeline["investments"] = 0.0
    elif isinstance(investment_value, Mapping):
        observed = pd.Series(
            {pd.Period(k, freq="M"): float(v) for k, v in investment_value.items()},
            dtype="float64",
        )
        combined = observed.sort_index().reindex(observed.index.union(timeline.index)).ffill()
        timeline["investments"] = combined.reindex(timeline.index).fillna(0.0)
    else:
        timeline["investments"] = float(investment_value)

    timeline["net_worth"] = timeline["cash_balance"] + timeline["investments"]
    return timeline.round(2)


def fire_inputs(
    transactions: Iterable[BankTransaction],
    investment_value: float = 0.0,
    opening_balance: Optional[float] = None,
) -> dict[str, float]:
    """Annual expenses, monthly savings and current net worth for the FIRE projector."""
    txns = list(transactions)
    table = monthly_cashflow(txns)
    cash = opening_balance if opening_balance is not None else 0.0
    if not table.empty:
        cash += float(table["savings"].sum())
    return {
        "annual_expenses": trailing_annual_expenses(table),
        "monthly_savings": round(average_monthly_savings(table), 2),
        "current_net_worth": round(max(0.0, cash) + investment_value, 2),
    }
