"""Annualized returns for irregular investment cash flows.

XIRR solves NPV(rate) = 0 with Newton-Raphson and falls back to bisection
when the derivative vanishes or Newton does not converge. Outflows
(purchases) are negative, inflows (redemptions, current value) positive.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

import numpy as np

logger = logging.getLogger(__name__)

_DAYS_PER_YEAR = 365.25


@dataclass(frozen=True)
class CashFlow:
    date: date
    amount: float


def _year_fractions(flows: list[CashFlow]) -> np.ndarray:
    base = flows[0].date
    return np.array([(cf.date - base).days / _DAYS_PER_YEAR for cf in flows])


def _npv(rate: float, amounts: np.ndarray, years: np.ndarray) -> float:
    return float(np.sum(amounts / np.power(1.0 + rate, years)))


def _npv_derivative(rate: float, amounts: np.ndarray, years: np.ndarray) -> float:
    return float(np.sum(-years * amounts / np.power(1.0 + rate, years + 1.0)))


def _bisect(amounts: np.ndarray, years: np.ndarray, tolerance: float, max_iterations: int) -> Optional[float]:
    low, high = -0.99, 10.0
    f_low = _npv(low, amounts, years)
    f_high = _npv(high, amounts, years)

    if f_low * f_high > 0:
        high = 100.0
        f_high = _npv(high, amounts, years)
        if f_low * f_high > 0:
            return None

    for _ in range(max_iterations):
        mid = (low + high) / 2
        f_mid = _npv(mid, amounts, years)
        if abs(f_mid) < tolerance or (high - low) / 2 < tolerance:
            return round(mid, 4)
        if f_mid * f_low < 0:
            high = mid
        else:
            low, f_low = mid, f_mid
    return None


def xirr(
    cash_flows: Iterable[CashFlow],
    guess: float = 0.1,
    tolerance: float = 1e-7,
    max_iterations: int = 100,
) -> Optional[float]:
    """Annualized rate as a decimal (0.12 = 12%), or None if undefined.

    Needs at least one outflow and one inflow.
    """
    flows = sorted(cash_flows, key=lambda cf: cf.date)
    if len(flows) < 2:
        return None
    amounts = np.array([cf.amount for cf in flows], dtype=float)
    if not (amounts < 0).any() or not (amounts > 0).any():
        return None
    years = _year_fractions(flows)

    rate = guess
    for _ in range(max_iterations):
        f = _npv(rate, amounts, years)
        f_prime = _npv_derivative(rate, amounts, years)
        if abs(f_prime) < 1e-12:
            return _bisect(amounts, years, tolerance, max_iterations)

        new_rate = rate - f / f_prime
        if abs(new_rate - rate) < tolerance:
            return round(new_rate, 4)
        rate = max(-0.99, min(new_rate, 100.0))

    logger.debug("XIRR: Newton-Raphson did not converge, bisecting")
    return _bisect(amounts, years, tolerance, max_iterations * 2)


def investment_xirr(
    investments: Iterable[tuple[date, float]],
    current_value: float,
    as_of: Optional[date] = None,
) -> Optional[float]:
    """XIRR in percent for purchases (positive amounts) valued at ``current_value`` today."""
    purchases = list(investments)
    if not purchases or current_value <= 0:
        return None
    flows = [CashFlow(d, -abs(amount)) for d, amount in purchases]
    flows.append(CashFlow(as_of or date.today(), current_value))
    rate = xirr(flows)
    if rate is None:
        return None
    return round(rate * 100, 2)


def cagr(invested: float, current_value: float, start: date, end: Optional[date] = None) -> float:
    """Compound annual growth in percent; 0 when undefined."""
    end = end or date.today()
    if invested <= 0 or current_value <= 0:
        return 0.0
    years = (end - start).days / _DAYS_PER_YEAR
    if years < 0.01:
        return 0.0
    return round(((current_value / invested) ** (1 / years) - 1) * 100, 2)
