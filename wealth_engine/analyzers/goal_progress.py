"""Savings goal progress: percentage complete, required rate, on-track status.

Everything here is a pure function of an immutable ``SavingsGoal`` plus an
optional observed monthly savings figure. Progress is recomputed on every
read and never stored on the goal.
"""

from __future__ import annotations

import calendar
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class SavingsGoal:
    """A goal as held by the persistence layer."""

    name: str
    target_amount: float
    current_amount: float
    target_date: date
    monthly_contribution: float = 0.0
    category: Optional[str] = None  # "Emergency Fund", "Car", "Vacation", ...

    @property
    def remaining_amount(self) -> float:
        return max(0.0, self.target_amount - self.current_amount)

    @property
    def is_complete(self) -> bool:
        return self.current_amount >= self.target_amount


@dataclass(frozen=True)
class GoalProgress:
    goal: SavingsGoal
    percentage_complete: float
    on_track: bool
    required_monthly: float
    projected_completion_date: Optional[date]
    months_remaining: int


def add_months(start: date, months: int) -> date:
    """Calendar month shift, clamping the day (Jan 31 + 1 -> Feb 28/29)."""
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(today: date, target: date) -> int:
    """Whole calendar months from ``today`` to ``target``, never negative.

    Month/year arithmetic only; the day of month is ignored, so a target
    later this month counts as 0 months away.
    """
    months = (target.year - today.year) * 12 + (target.month - today.month)
    return max(0, months)


def percentage_complete(goal: SavingsGoal) -> float:
    if goal.target_amount <= 0:
        # Nothing to save towards and nothing saved reads as not started
        return 100.0 if goal.current_amount > 0 else 0.0
    pct = goal.current_amount / goal.target_amount * 100
    return min(100.0, max(0.0, pct))


def required_monthly(goal: SavingsGoal, today: Optional[date] = None) -> float:
    """Monthly amount needed to reach the target by the target date.

    An overdue goal (or one due this month) needs the whole remainder now.
    """
    today = today or date.today()
    remaining = goal.remaining_amount
    if remaining <= 0:
        return 0.0
    months = months_between(today, goal.target_date)
    if months <= 0:
        return remaining
    return remaining / months


def project_completion(
    goal: SavingsGoal,
    monthly_rate: float,
    today: Optional[date] = None,
) -> Optional[date]:
    """Date the goal completes at ``monthly_rate``; None if done or never."""
    if goal.is_complete or monthly_rate <= 0:
        return None
    today = today or date.today()
    months_needed = math.ceil(goal.remaining_amount / monthly_rate)
    return add_months(today, months_needed)


def is_on_track(
    goal: SavingsGoal,
    required: float,
    monthly_savings: Optional[float] = None,
) -> bool:
    if goal.is_complete:
        return True

    pledge_known = goal.monthly_contribution > 0
    observed_known = monthly_savings is not None

    if pledge_known and observed_known:
        return goal.monthly_contribution >= required and monthly_savings >= required
    if pledge_known:
        return goal.monthly_contribution >= required
    if observed_known:
        return monthly_savings >= required
    return False


def calculate_goal_progress(
    goal: SavingsGoal,
    monthly_savings: Optional[float] = None,
    today: Optional[date] = None,
) -> GoalProgress:
    """Full progress metrics for one goal.

    ``monthly_savings`` is an externally observed figure (e.g. average net
    savings from the bank statement). When given alongside a pledge, both
    must clear the required rate for the goal to be on track.
    """
    today = today or date.today()
    required = required_monthly(goal, today)

    rate = goal.monthly_contribution
    if rate <= 0 and monthly_savings is not None:
        rate = monthly_savings

    return GoalProgress(
        goal=goal,
        percentage_complete=percentage_complete(goal),
        on_track=is_on_track(goal, required, monthly_savings),
        required_monthly=required,
        projected_completion_date=project_completion(goal, rate, today),
        months_remaining=months_between(today, goal.target_date),
    )
