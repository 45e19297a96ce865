"""
Growth projections and FIRE (financial independence) calculator.

Takes trailing expenses, current invested net worth and return assumptions,
and produces:
1. FIRE number (annual expenses / safe withdrawal rate, i.e. 25x at 4%)
2. Progress towards it and a bounded year-by-year time-to-FIRE simulation
3. Chart series: projected net worth against a constant FIRE target line
4. Supporting projections: SIP future value, emergency fund coverage,
   net worth growth, per-investment growth at 3/5/10 years

Return rates are annual percentages (12 means 12%). Every division is
guarded; nothing here returns NaN or infinity.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from wealth_engine.config import DEFAULT_CONFIG, EngineConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionPoint:
    year: int
    net_worth: float
    fire_target: float


@dataclass(frozen=True)
class FireProjection:
    fire_number: float
    annual_expenses: float
    current_net_worth: float
    progress_percent: float
    years_to_fire: int
    monthly_required: float
    saturated: bool = False  # True when the target is not reached within the cap
    projection: list[ProjectionPoint] = field(default_factory=list)

    @property
    def years_label(self) -> str:
        if self.saturated:
            return f"{self.years_to_fire}+ years"
        return f"{self.years_to_fire} years"

    @property
    def remaining(self) -> float:
        return max(0.0, self.fire_number - self.current_net_worth)


def _money(value: float) -> float:
    return round(value, 2)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

def fire_number(annual_expenses: float, config: EngineConfig = DEFAULT_CONFIG) -> float:
    if annual_expenses <= 0:
        return 0.0
    return round(annual_expenses / config.safe_withdrawal_rate, 2)


def fire_progress(current_net_worth: float, target: float) -> float:
    if target <= 0:
        return 0.0
    pct = current_net_worth / target * 100
    return round(min(100.0, max(0.0, pct)), 2)


def years_to_target(
    current_net_worth: float,
    target: float,
    monthly_savings: float,
    annual_return_pct: float,
    max_years: int,
) -> tuple[int, bool]:
    """Simulate yearly compounding until net worth reaches ``target``.

    Returns (years, saturated). Already at target is (0, False); never
    reaching it within ``max_years`` is (max_years, True).
    """
    if current_net_worth >= target:
        return 0, False

    rate = annual_return_pct / 100
    annual_savings = monthly_savings * 12
    net_worth = current_net_worth
    for year in range(1, max_years + 1):
        net_worth = net_worth * (1 + rate) + annual_savings
        if net_worth >= target:
            return year, False
    return max_years, True


def required_monthly_savings(
    target: float,
    current: float,
    annual_return_pct: float,
    years: int,
) -> float:
    """Monthly saving that grows ``current`` into ``target`` in ``years``.

    Solves FV = PV(1+r)^n + PMT((1+r)^n - 1)/r for PMT with monthly r.
    """
    n = years * 12
    if n <= 0:
        return max(0.0, target - current)

    r = annual_return_pct / 100 / 12
    if r == 0:
        return max(0.0, (target - current) / n)

    compound = (1 + r) ** n
    gap = target - current * compound
    if gap <= 0:
        return 0.0
    return gap / ((compound - 1) / r)


def calculate_fire(
    annual_expenses: float,
    current_net_worth: float,
    monthly_savings: float,
    annual_return_pct: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> FireProjection:
    """FIRE number, progress, time to FIRE and the chart series.

    The series runs from year 0 to ``min(years_to_fire + 5, 50)`` so the
    chart shows a few years past the crossing point.
    """
    annual_expenses = max(0.0, annual_expenses)
    current_net_worth = max(0.0, current_net_worth)
    monthly_savings = max(0.0, monthly_savings)

    target = fire_number(annual_expenses, config)
    progress = fire_progress(current_net_worth, target)

    if target <= 0:
        years, saturated = 0, False
    else:
        years, saturated = years_to_target(
            current_net_worth, target, monthly_savings, annual_return_pct,
            config.max_projection_years,
        )

    monthly_required = required_monthly_savings(
        target, current_net_worth, annual_return_pct, config.fire_horizon_years
    )

    horizon = min(years + config.projection_tail_years, config.projection_cap_years)
    rate = annual_return_pct / 100
    annual_savings = monthly_savings * 12

    series = [ProjectionPoint(0, _money(current_net_worth), _money(target))]
    net_worth = current_net_worth
    for year in range(1, horizon + 1):
        net_worth = net_worth * (1 + rate) + annual_savings
        series.append(ProjectionPoint(year, _money(net_worth), _money(target)))

    logger.info(
        "[FIRE] target=%.0f progress=%.1f%% years=%s",
        target, progress, f"{years}+" if saturated else years,
    )
    return FireProjection(
        fire_number=_money(target),
        annual_expenses=annual_expenses,
        current_net_worth=current_net_worth,
        progress_percent=progress,
        years_to_fire=years,
        monthly_required=_money(monthly_required),
        saturated=saturated,
        projection=series,
    )


# ---------------------------------------------------------------------------
# Supporting projections
# ---------------------------------------------------------------------------

def sip_future_value(monthly_amount: float, annual_return_pct: float, years: float) -> float:
    """FV = P * ((1+r)^n - 1) / r * (1+r), contributions at start of month."""
    n = years * 12
    r = annual_return_pct / 100 / 12
    if r == 0:
        return _money(monthly_amount * n)
    fv = monthly_amount * (((1 + r) ** n - 1) / r) * (1 + r)
    return _money(fv)


@dataclass(frozen=True)
class EmergencyFundProgress:
    current_months: float
    target_months: int
    months_to_target: int  # -1 when savings are not positive and a gap remains


def emergency_fund_progress(
    current_balance: float,
    monthly_savings: float,
    monthly_expense: float,
    target_months: Optional[int] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> EmergencyFundProgress:
    target_months = config.emergency_fund_months if target_months is None else target_months
    current_months = round(current_balance / monthly_expense, 2) if monthly_expense > 0 else 0.0

    gap = target_months * monthly_expense - current_balance
    if gap <= 0:
        months_to_target = 0
    elif monthly_savings <= 0:
        months_to_target = -1
    else:
        months_to_target = math.ceil(gap / monthly_savings)
    return EmergencyFundProgress(current_months, target_months, int(months_to_target))


@dataclass(frozen=True)
class GrowthPoint:
    year: int
    invested: float
    projected: float


def net_worth_growth(
    current_net_worth: float,
    monthly_savings: float,
    annual_return_pct: float,
    years: int,
) -> list[GrowthPoint]:
    """Linear 'invested' line against the compounded value, per year."""
    rate = annual_return_pct / 100
    annual_savings = monthly_savings * 12
    compounded = current_net_worth
    points = []
    for year in range(1, years + 1):
        invested = current_net_worth + annual_savings * year
        compounded = (compounded + annual_savings) * (1 + rate)
        points.append(GrowthPoint(year, _money(invested), _money(compounded)))
    return points


@dataclass(frozen=True)
class Investment:
    name: str
    current_value: float
    monthly_amount: float = 0.0
    expected_return: float = DEFAULT_CONFIG.return_assumptions["portfolio"]


@dataclass(frozen=True)
class InvestmentGrowth:
    name: str
    current: float
    projected_3y: float
    projected_5y: float
    projected_10y: float


def project_value(current_value: float, monthly_amount: float, annual_return_pct: float, years: int) -> float:
    """Lump-sum compounding plus SIP future value for ongoing contributions."""
    lump = current_value * (1 + annual_return_pct / 100) ** years
    sip = sip_future_value(monthly_amount, annual_return_pct, years) if monthly_amount > 0 else 0.0
    return lump + sip


def investment_growth(investments: Iterable[Investment]) -> list[InvestmentGrowth]:
    return [
        InvestmentGrowth(
            name=inv.name,
            current=inv.current_value,
            projected_3y=_money(project_value(inv.current_value, inv.monthly_amount, inv.expected_return, 3)),
            projected_5y=_money(project_value(inv.current_value, inv.monthly_amount, inv.expected_return, 5)),
            projected_10y=_money(project_value(inv.current_value, inv.monthly_amount, inv.expected_return, 10)),
        )
        for inv in investments
    ]


def blended_return(
    values: dict[str, float],
    config: EngineConfig = DEFAULT_CONFIG,
) -> float:
    """Value-weighted annual return across asset classes.

    ``values`` maps an asset class ("stocks", "mutual_funds", "sips") to its
    current value. Falls back to the portfolio default when nothing is held.
    """
    assumptions = config.return_assumptions
    default = assumptions["portfolio"]
    total = sum(v for v in values.values() if v > 0)
    if total <= 0:
        return default
    weighted = sum(
        v * assumptions.get(asset, default) for asset, v in values.items() if v > 0
    )
    return round(weighted / total, 4)
