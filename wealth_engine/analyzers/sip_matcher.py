"""
Bank statement reconciliation for recurring contributions.

Finds the bank debits that pay for each detected SIP:
1. Keep bank transactions whose description mentions a known provider
2. Expected day of month comes from the contribution's start date
3. A transaction matches when its day is within ``date_tolerance_days`` of
   the expected day and its amount within 10% of the expected amount
4. Claiming is greedy first-fit in encounter order; a claimed transaction
   is never offered to another contribution

Provider-looking transactions nobody claimed are returned as unmatched so
the dashboard can show them as investment activity it could not reconcile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Union

from wealth_engine.config import DEFAULT_CONFIG, EngineConfig
from wealth_engine.parsers.broker_records import parse_date

from .recurring_detector import ContributionStatus, RecurringContribution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BankTransaction:
    date: Union[str, date]
    description: str
    amount: float  # signed; debits are negative in most bank exports

    @property
    def day(self) -> Optional[int]:
        if isinstance(self.date, date):
            return self.date.day
        parsed = parse_date(self.date)
        return parsed.day if parsed else None


@dataclass(frozen=True)
class ContributionMatch:
    contribution: RecurringContribution
    transaction: BankTransaction
    expected_day: int
    day_distance: int

    @property
    def amount_difference(self) -> float:
        return abs(self.transaction.amount) - self.contribution.monthly_amount


@dataclass
class MatchReport:
    matched: list[ContributionMatch] = field(default_factory=list)
    unmatched: list[BankTransaction] = field(default_factory=list)
    skipped_contributions: list[RecurringContribution] = field(default_factory=list)
    inactive_contributions: list[RecurringContribution] = field(default_factory=list)

    def matches_for(self, name: str) -> list[ContributionMatch]:
        return [m for m in self.matched if m.contribution.name == name]


def is_provider_transaction(description: str, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    """Case-insensitive substring test against the provider keyword set."""
    lower = (description or "").lower()
    return any(keyword in lower for keyword in config.provider_keywords)


def _amount_matches(txn_amount: float, expected: float, tolerance: float) -> bool:
    return abs(abs(txn_amount) - expected) < expected * tolerance


def match_contributions(
    bank_transactions: Iterable[BankTransaction],
    contributions: Iterable[RecurringContribution],
    date_tolerance_days: Optional[int] = None,
    config: EngineConfig = DEFAULT_CONFIG,
    active_only: bool = False,
) -> MatchReport:
    """Reconcile bank debits against recurring contributions.

    A contribution claims every unclaimed transaction that fits it, one per
    month in practice. Contributions whose start date does not parse are
    skipped locally and listed in ``skipped_contributions``. With
    ``active_only`` paused and cancelled contributions are not matched and
    are listed in ``inactive_contributions`` instead.
    """
    tolerance = config.date_tolerance_days if date_tolerance_days is None else date_tolerance_days
    if tolerance < 0:
        raise ValueError("date_tolerance_days must be non-negative")

    candidates = [t for t in bank_transactions if is_provider_transaction(t.description, config)]
    claimed: set[int] = set()
    report = MatchReport()

    for contribution in contributions:
        if active_only and contribution.status is not ContributionStatus.ACTIVE:
            report.inactive_contributions.append(contribution)
            continue

        expected_day = contribution.day_of_month
        if expected_day is None:
            logger.warning(
                "[Matcher] Skipping '%s': unparseable start date %r",
                contribution.name, contribution.start_date,
            )
            report.skipped_contributions.append(contribution)
            continue

        for i, txn in enumerate(candidates):
            if i in claimed:
                continue
            txn_day = txn.day
            if txn_day is None:
                continue

            distance = abs(txn_day - expected_day)
            if distance <= tolerance and _amount_matches(
                txn.amount, contribution.monthly_amount, config.amount_tolerance
            ):
                claimed.add(i)
                report.matched.append(
                    ContributionMatch(
                        contribution=contribution,
                        transaction=txn,
                        expected_day=expected_day,
                        day_distance=distance,
                    )
                )

    report.unmatched = [t for i, t in enumerate(candidates) if i not in claimed]

    logger.info(
        "[Matcher] %d provider transactions: %d matched, %d unreconciled, %d contributions skipped",
        len(candidates), len(report.matched), len(report.unmatched),
        len(report.skipped_contributions),
    )
    return report
