"""
Recurring contribution (SIP) detector.

Takes mutual fund order history and infers which schemes are bought on a
cadence:
- Only purchase-type orders count; redemptions and switches are ignored
- A scheme needs at least ``min_purchases`` purchases to establish a cadence
- The monthly amount is the mean purchase, snapped to the nearest 100 when
  that stays within ``round_tolerance`` of the mean (absorbs NAV jitter),
  otherwise rounded to a whole unit
- The earliest purchase date becomes the start date
"""

from __future__ import annotations

import enum
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from wealth_engine.config import DEFAULT_CONFIG, EngineConfig
from wealth_engine.parsers.broker_records import FundOrder, parse_date

logger = logging.getLogger(__name__)


class ContributionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RecurringContribution:
    """A periodic purchase inferred from order history."""

    name: str
    monthly_amount: float
    start_date: str  # ISO date, or the raw text the persistence layer holds
    provider: str = "Groww"
    status: ContributionStatus = ContributionStatus.ACTIVE

    @property
    def start(self) -> Optional[date]:
        dt = parse_date(self.start_date)
        return dt.date() if dt else None

    @property
    def day_of_month(self) -> Optional[int]:
        start = self.start
        return start.day if start else None


@dataclass
class _SchemeHistory:
    amounts: list[float] = field(default_factory=list)
    dates: list[date] = field(default_factory=list)
    raw_dates: list[str] = field(default_factory=list)


def round_contribution(mean: float, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Snap a mean purchase amount to a clean figure.

    4999.5 -> 5000 (0.01% away), but 1234 -> 1234 since 1200 is 2.8% away.
    """
    if mean <= 0:
        return 0.0
    step = config.round_to
    snapped = round(mean / step) * step
    if snapped > 0 and abs(snapped - mean) / mean <= config.round_tolerance:
        return float(snapped)
    return float(round(mean))


def detect_recurring(
    orders: Iterable[FundOrder],
    config: EngineConfig = DEFAULT_CONFIG,
    provider: str = "Groww",
) -> list[RecurringContribution]:
    """One RecurringContribution per scheme with a purchase cadence.

    Schemes appear in order of their first purchase in ``orders``.
    """
    purchase_types = {t.upper() for t in config.purchase_types}
    schemes: dict[str, _SchemeHistory] = defaultdict(_SchemeHistory)

    for order in orders:
        if order.transaction_type.strip().upper() not in purchase_types:
            continue
        name = order.scheme_name.strip()
        if not name or order.amount < 0:
            continue
        history = schemes[name]
        history.amounts.append(order.amount)
        history.raw_dates.append(order.date)
        parsed = order.parsed_date
        if parsed is not None:
            history.dates.append(parsed)

    contributions: list[RecurringContribution] = []
    for name, history in schemes.items():
        if len(history.amounts) < config.min_purchases:
            continue

        mean = sum(history.amounts) / len(history.amounts)
        if history.dates:
            start_date = min(history.dates).isoformat()
        else:
            # Nothing parsed; keep the raw text so the matcher can skip it
            start_date = sorted(history.raw_dates)[0] if history.raw_dates else ""

        contributions.append(
            RecurringContribution(
                name=name,
                monthly_amount=round_contribution(mean, config),
                start_date=start_date,
                provider=provider,
            )
        )

    logger.info(
        "[Recurring] %d of %d schemes qualify as recurring contributions",
        len(contributions), len(schemes),
    )
    return contributions
