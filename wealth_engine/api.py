"""FastAPI surface for the investment reconciliation engine.

Thin adapters over the pure functions: the dashboard posts already-loaded
records and gets derived values back. Nothing is fetched or stored here.

    uvicorn wealth_engine.api:app --reload
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from wealth_engine.analyzers.cashflow import fire_inputs
from wealth_engine.analyzers.fire_projector import (
    Investment,
    blended_return,
    calculate_fire,
    emergency_fund_progress,
    investment_growth,
    net_worth_growth,
)
from wealth_engine.analyzers.goal_progress import SavingsGoal, calculate_goal_progress
from wealth_engine.analyzers.recurring_detector import (
    ContributionStatus,
    RecurringContribution,
    detect_recurring,
)
from wealth_engine.analyzers.returns import cagr, investment_xirr
from wealth_engine.analyzers.sip_matcher import BankTransaction, match_contributions
from wealth_engine.config import EngineConfig
from wealth_engine.parsers.broker_records import FundOrder, parse_export
from wealth_engine.parsers.format_detector import DetectedFormat, missing_columns

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

CONFIG = EngineConfig.from_env()

app = FastAPI(
    title="Wealth Engine",
    description="Investment import, SIP reconciliation and goal projections",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# ─── Request models ──────────────────────────────────────────────────────────


class ImportRequest(BaseModel):
    text: str
    format: Optional[DetectedFormat] = None


class BankTransactionIn(BaseModel):
    date: str
    description: str
    amount: float


class ContributionIn(BaseModel):
    name: str
    monthly_amount: float = Field(ge=0)
    start_date: str
    provider: str = "Groww"
    status: ContributionStatus = ContributionStatus.ACTIVE


class DetectRequest(BaseModel):
    text: str


class MatchRequest(BaseModel):
    bank_transactions: list[BankTransactionIn]
    contributions: list[ContributionIn]
    date_tolerance_days: Optional[int] = Field(default=None, ge=0)


class GoalIn(BaseModel):
    name: str
    target_amount: float = Field(ge=0)
    current_amount: float = Field(ge=0)
    target_date: date
    monthly_contribution: float = Field(default=0.0, ge=0)
    category: Optional[str] = None


class GoalRequest(BaseModel):
    goal: GoalIn
    monthly_savings: Optional[float] = None
    today: Optional[date] = None


class FireRequest(BaseModel):
    annual_expenses: Optional[float] = Field(default=None, ge=0)
    current_net_worth: Optional[float] = Field(default=None, ge=0)
    monthly_savings: Optional[float] = Field(default=None, ge=0)
    annual_return_pct: Optional[float] = None
    holdings: dict[str, float] = Field(default_factory=dict)
    bank_transactions: list[BankTransactionIn] = Field(default_factory=list)


class PurchaseIn(BaseModel):
    purchased_on: date
    amount: float = Field(gt=0)


class InvestmentIn(BaseModel):
    name: str
    current_value: float = Field(ge=0)
    monthly_amount: float = Field(default=0.0, ge=0)
    expected_return: Optional[float] = None
    purchases: list[PurchaseIn] = Field(default_factory=list)


class GrowthRequest(BaseModel):
    current_net_worth: float = Field(ge=0)
    monthly_savings: float = Field(default=0.0, ge=0)
    monthly_expense: float = Field(default=0.0, ge=0)
    cash_balance: float = 0.0
    annual_return_pct: Optional[float] = None
    years: int = Field(default=30, ge=1, le=100)
    investments: list[InvestmentIn] = Field(default_factory=list)
    as_of: Optional[date] = None


# ─── Helpers ─────────────────────────────────────────────────────────────────


def _bank(txns: list[BankTransactionIn]) -> list[BankTransaction]:
    return [BankTransaction(date=t.date, description=t.description, amount=t.amount) for t in txns]


def _plain(obj: Any) -> Any:
    """Dataclass -> JSON-ready dict (enums and dates handled by FastAPI)."""
    return asdict(obj)


# ─── Endpoints ───────────────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/imports/parse")
def parse_import(req: ImportRequest) -> dict[str, Any]:
    result = parse_export(req.text, fmt=req.format)
    body: dict[str, Any] = {
        "format": result.fmt.value,
        "recognized": result.recognized,
        "records": [_plain(r) for r in result.records],
        "total_rows": result.total_rows,
        "filtered_rows": result.filtered_rows,
        "skipped_rows": result.skipped_rows,
        "partial": result.partial,
    }
    if req.format is not None:
        body["missing_columns"] = missing_columns(result.headers, req.format)
    return body


@app.post("/sips/detect")
def detect_sips(req: DetectRequest) -> dict[str, Any]:
    result = parse_export(req.text)
    if result.fmt is not DetectedFormat.FUND_ORDER_HISTORY:
        return {
            "format": result.fmt.value,
            "contributions": [],
            "message": "Upload a mutual fund order history export to detect SIPs.",
        }
    orders = [r for r in result.records if isinstance(r, FundOrder)]
    contributions = detect_recurring(orders, CONFIG)
    return {
        "format": result.fmt.value,
        "contributions": [_plain(c) for c in contributions],
        "skipped_rows": result.skipped_rows,
    }


@app.post("/sips/match")
def match_sips(req: MatchRequest) -> dict[str, Any]:
    contributions = [
        RecurringContribution(
            name=c.name,
            monthly_amount=c.monthly_amount,
            start_date=c.start_date,
            provider=c.provider,
            status=c.status,
        )
        for c in req.contributions
    ]
    report = match_contributions(
        _bank(req.bank_transactions), contributions,
        date_tolerance_days=req.date_tolerance_days, config=CONFIG,
    )
    return {
        "matched": [
            {
                "name": m.contribution.name,
                "expected_amount": m.contribution.monthly_amount,
                "expected_day": m.expected_day,
                "day_distance": m.day_distance,
                "transaction": _plain(m.transaction),
            }
            for m in report.matched
        ],
        "unmatched": [_plain(t) for t in report.unmatched],
        "skipped": [c.name for c in report.skipped_contributions],
        "inactive": [c.name for c in report.inactive_contributions],
    }


@app.post("/goals/progress")
def goal_progress(req: GoalRequest) -> dict[str, Any]:
    goal = SavingsGoal(**req.goal.model_dump())
    progress = calculate_goal_progress(goal, req.monthly_savings, today=req.today)
    return _plain(progress)


@app.post("/projections/fire")
def fire_projection(req: FireRequest) -> dict[str, Any]:
    # Explicit figures win; otherwise derive them from the bank statement
    derived: dict[str, float] = {}
    if req.bank_transactions:
        derived = fire_inputs(_bank(req.bank_transactions), investment_value=sum(req.holdings.values()))

    annual_expenses = req.annual_expenses if req.annual_expenses is not None else derived.get("annual_expenses", 0.0)
    net_worth = req.current_net_worth if req.current_net_worth is not None else derived.get("current_net_worth", 0.0)
    savings = req.monthly_savings if req.monthly_savings is not None else derived.get("monthly_savings", 0.0)
    rate = req.annual_return_pct if req.annual_return_pct is not None else blended_return(req.holdings, CONFIG)

    projection = calculate_fire(annual_expenses, net_worth, savings, rate, CONFIG)
    body = _plain(projection)
    body["years_label"] = projection.years_label
    body["annual_return_pct"] = rate
    return body


@app.post("/projections/growth")
def growth_projection(req: GrowthRequest) -> dict[str, Any]:
    default_rate = CONFIG.return_assumptions["portfolio"]
    rate = req.annual_return_pct if req.annual_return_pct is not None else default_rate
    investments = [
        Investment(
            name=i.name,
            current_value=i.current_value,
            monthly_amount=i.monthly_amount,
            expected_return=i.expected_return if i.expected_return is not None else default_rate,
        )
        for i in req.investments
    ]
    as_of = req.as_of or date.today()

    growth = []
    for item, projected in zip(req.investments, investment_growth(investments)):
        entry = _plain(projected)
        entry["xirr"] = None
        entry["cagr"] = None
        if item.purchases:
            entry["xirr"] = investment_xirr(
                [(p.purchased_on, p.amount) for p in item.purchases], item.current_value, as_of=as_of)
            entry["cagr"] = cagr(
                sum(p.amount for p in item.purchases), item.current_value,
                min(p.purchased_on for p in item.purchases), as_of)
        growth.append(entry)

    return {
        "net_worth_projection": [_plain(p) for p in net_worth_growth(
            req.current_net_worth, req.monthly_savings, rate, req.years)],
        "emergency_fund": _plain(emergency_fund_progress(
            req.cash_balance, req.monthly_savings, req.monthly_expense, config=CONFIG)),
        "investments": growth,
    }
