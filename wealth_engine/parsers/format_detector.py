"""Format detection for uploaded broker export CSVs.

Classifies a header row into one of the known Groww export shapes. The
shapes share column names (both stock exports carry "stock name", both fund
exports carry "scheme name"), so detection is an ordered list of
(predicate, format) rules evaluated top to bottom, first match wins:

1. Stock order history - symbol + order status columns
2. Stock holdings      - average buy price, no symbol / order status
3. Fund holdings       - scheme name, units, invested and current value
4. Fund order history  - scheme name, transaction type, amount, date

Each rule also names the discriminating column of its neighbours as absent,
so no header set can satisfy two rules. Anything else is UNKNOWN; the caller
prompts for a manual format choice instead of failing the import.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from .delimited import normalize_headers

logger = logging.getLogger(__name__)


class DetectedFormat(str, enum.Enum):
    STOCK_ORDER_HISTORY = "groww-stock-order-history"
    STOCK_HOLDINGS = "groww-stock-holdings"
    FUND_HOLDINGS = "groww-mf-holdings"
    FUND_ORDER_HISTORY = "groww-mf-order-history"
    UNKNOWN = "unknown"

    @property
    def is_known(self) -> bool:
        return self is not DetectedFormat.UNKNOWN


@dataclass(frozen=True)
class FormatRule:
    fmt: DetectedFormat
    predicate: Callable[[frozenset[str]], bool]
    description: str


def _has(cols: frozenset[str], *names: str) -> bool:
    return all(n in cols for n in names)


def _lacks(cols: frozenset[str], *names: str) -> bool:
    return not any(n in cols for n in names)


# Priority order is load-bearing: a holdings export and an order history
# export share most columns, and only the presence/absence of "symbol" and
# "order status" tells them apart.
FORMAT_RULES: tuple[FormatRule, ...] = (
    FormatRule(
        DetectedFormat.STOCK_ORDER_HISTORY,
        lambda c: _has(c, "stock name", "symbol", "order status") and _lacks(c, "scheme name"),
        "stock name + symbol + order status",
    ),
    FormatRule(
        DetectedFormat.STOCK_HOLDINGS,
        lambda c: (
            _has(c, "stock name", "average buy price")
            and _lacks(c, "symbol", "order status", "scheme name")
        ),
        "stock name + average buy price, no symbol / order status",
    ),
    FormatRule(
        DetectedFormat.FUND_HOLDINGS,
        lambda c: (
            _has(c, "scheme name", "units", "invested value", "current value")
            and _lacks(c, "stock name", "transaction type")
        ),
        "scheme name + units + invested value + current value",
    ),
    FormatRule(
        DetectedFormat.FUND_ORDER_HISTORY,
        lambda c: (
            _has(c, "scheme name", "transaction type", "amount", "date")
            and _lacks(c, "stock name", "invested value")
        ),
        "scheme name + transaction type + amount + date",
    ),
)


def detect_format(headers: Iterable[str]) -> DetectedFormat:
    """Classify a header row. Never raises; unmatched headers give UNKNOWN."""
    cols = frozenset(normalize_headers(list(headers)))
    for rule in FORMAT_RULES:
        if rule.predicate(cols):
            logger.info("Format matched: %s (%s)", rule.fmt.value, rule.description)
            return rule.fmt

    logger.info("No format match for headers: %s", sorted(cols))
    return DetectedFormat.UNKNOWN


def matching_rules(headers: Iterable[str]) -> list[DetectedFormat]:
    """Every rule a header row satisfies, in priority order (diagnostics)."""
    cols = frozenset(normalize_headers(list(headers)))
    return [rule.fmt for rule in FORMAT_RULES if rule.predicate(cols)]


def missing_columns(headers: Iterable[str], fmt: DetectedFormat) -> list[str]:
    """Required columns of ``fmt`` absent from ``headers``.

    Used to tell the user why an upload was not recognized as the format
    they picked manually.
    """
    cols = set(normalize_headers(list(headers)))
    required = REQUIRED_COLUMNS.get(fmt, ())
    return [c for c in required if c not in cols]


REQUIRED_COLUMNS: dict[DetectedFormat, tuple[str, ...]] = {
    DetectedFormat.STOCK_ORDER_HISTORY: ("stock name", "symbol", "type", "quantity", "value", "order status"),
    DetectedFormat.STOCK_HOLDINGS: ("stock name", "quantity", "average buy price"),
    DetectedFormat.FUND_HOLDINGS: ("scheme name", "units", "invested value", "current value"),
    DetectedFormat.FUND_ORDER_HISTORY: ("scheme name", "transaction type", "amount", "date"),
}
