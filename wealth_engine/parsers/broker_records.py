"""
Typed record mapping for Groww export CSVs.

Groww exports have quirks:
- Amounts may carry a rupee sign, "Rs." prefix and Indian digit grouping: ₹1,23,456.50
- Negative returns are shown either with a minus or in parentheses
- Dates come as "15 Jan 2024", "15-01-2024 10:32 AM" or ISO, depending on the report
- Order history contains cancelled and rejected orders alongside executed ones

Rows that fail mapping (wrong cell count, non-numeric amount, missing
identity) are skipped one at a time and counted; the import continues and
the caller decides whether to show a partial-import notice.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Union

from .delimited import split_header
from .format_detector import DetectedFormat, detect_format

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockOrder:
    """One executed (or pending) order from the stock order history."""

    stock_name: str
    symbol: str
    isin: str
    side: str  # "BUY" | "SELL"
    quantity: float
    value: float
    exchange: str
    executed_at: Optional[datetime]
    order_status: str


@dataclass(frozen=True)
class StockHolding:
    symbol: str
    exchange: str
    shares: float
    average_cost: float
    isin: str = ""
    stock_name: str = ""


@dataclass(frozen=True)
class FundHolding:
    scheme_name: str
    amc: str
    category: str
    sub_category: str
    folio_number: str
    source: str
    units: float
    invested_value: float
    current_value: float
    returns: float
    xirr: Optional[str]


@dataclass(frozen=True)
class FundOrder:
    """One row of the mutual fund order history."""

    scheme_name: str
    transaction_type: str
    units: float
    nav: float
    amount: float
    date: str  # as exported; parsed lazily by consumers

    @property
    def parsed_date(self) -> Optional[date]:
        dt = parse_date(self.date)
        return dt.date() if dt else None


BrokerRecord = Union[StockOrder, StockHolding, FundHolding, FundOrder]


@dataclass
class ImportResult:
    """Output of mapping one uploaded export."""

    fmt: DetectedFormat
    records: list = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    total_rows: int = 0
    skipped_rows: int = 0  # broken rows
    filtered_rows: int = 0  # rows deliberately left out, e.g. cancelled orders

    @property
    def partial(self) -> bool:
        return self.skipped_rows > 0

    @property
    def recognized(self) -> bool:
        return self.fmt.is_known


# ---------------------------------------------------------------------------
# Amount / date cleaning
# ---------------------------------------------------------------------------

_CURRENCY_RE = re.compile(r"(₹|\$|\binr\b|\brs\.?)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)$")


def parse_amount(value: str) -> float:
    """Parse '₹1,23,456.50', '(1,200)' or '-300' into a float.

    Raises ValueError for text that is not a number. Blank input is 0.0.
    """
    if value is None:
        return 0.0
    text = value.strip()
    if not text or text in ("-", "--"):
        return 0.0

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1].strip()

    text = _CURRENCY_RE.sub("", text)
    text = text.replace(",", "").replace(" ", "").replace("%", "")

    if text.startswith("-"):
        negative = not negative
        text = text[1:]

    if not _NUMBER_RE.match(text):
        raise ValueError(f"Not a numeric amount: {value!r}")

    result = float(text)
    return -result if negative else result


_DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%b %d, %Y",
    "%d-%m-%Y %I:%M %p",
    "%d-%m-%Y %H:%M",
    "%d/%m/%Y %I:%M %p",
    "%d %b %Y, %I:%M %p",
    "%d %b %Y %I:%M %p",
]


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Try every date format seen in Groww exports; None if none fits."""
    if not value or not value.strip():
        return None
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    # ISO timestamps with offsets, as stored by the persistence layer
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

class _Row:
    """Header-keyed view over one RawRow; never escapes this module."""

    def __init__(self, headers: list[str], cells: list[str]) -> None:
        self._values = {h: cells[i].strip() for i, h in enumerate(headers) if h}

    def get(self, *names: str) -> str:
        for name in names:
            value = self._values.get(name, "")
            if value:
                return value
        return ""


class RowError(ValueError):
    """A data row that cannot be mapped; the import skips it and continues."""


def _map_stock_order(row: _Row) -> Optional[StockOrder]:
    status = row.get("order status") or "Executed"
    if status.strip().lower() != "executed":
        return None

    symbol = row.get("symbol").upper()
    side = row.get("type").upper()
    quantity = parse_amount(row.get("quantity"))
    if not symbol:
        raise RowError("order without symbol")
    if side not in ("BUY", "SELL"):
        raise RowError(f"unknown order type {side!r}")
    if quantity <= 0:
        raise RowError(f"non-positive quantity {quantity}")

    return StockOrder(
        stock_name=row.get("stock name"),
        symbol=symbol,
        isin=row.get("isin"),
        side=side,
        quantity=quantity,
        value=abs(parse_amount(row.get("value"))),
        exchange=row.get("exchange") or "NSE",
        executed_at=parse_date(row.get("execution date and time", "date")),
        order_status=status,
    )


def _map_stock_holding(row: _Row) -> Optional[StockHolding]:
    name = row.get("stock name")
    if not name:
        raise RowError("holding without stock name")
    shares = parse_amount(row.get("quantity"))
    if shares <= 0:
        return None
    return StockHolding(
        symbol=name.upper(),
        exchange="NSE",
        shares=shares,
        average_cost=abs(parse_amount(row.get("average buy price"))),
        isin=row.get("isin"),
        stock_name=name,
    )


def _map_fund_holding(row: _Row) -> Optional[FundHolding]:
    scheme = row.get("scheme name")
    if not scheme:
        raise RowError("holding without scheme name")
    return FundHolding(
        scheme_name=scheme,
        amc=row.get("amc"),
        category=row.get("category"),
        sub_category=row.get("sub-category", "subcategory"),
        folio_number=row.get("folio no.", "folio number"),
        source=row.get("source"),
        units=abs(parse_amount(row.get("units"))),
        invested_value=abs(parse_amount(row.get("invested value"))),
        current_value=abs(parse_amount(row.get("current value"))),
        returns=parse_amount(row.get("returns")),
        xirr=row.get("xirr") or None,
    )


def _map_fund_order(row: _Row) -> Optional[FundOrder]:
    scheme = row.get("scheme name")
    txn_type = row.get("transaction type")
    amount_text = row.get("amount")
    if not scheme or not txn_type:
        raise RowError("order without scheme name or transaction type")
    if not amount_text:
        raise RowError("order without amount")
    return FundOrder(
        scheme_name=scheme,
        transaction_type=txn_type.upper(),
        units=abs(parse_amount(row.get("units"))),
        nav=abs(parse_amount(row.get("nav"))),
        amount=abs(parse_amount(amount_text)),
        date=row.get("date"),
    )


# Mappers return None for rows deliberately left out (cancelled orders,
# zero-quantity holdings) and raise ValueError for rows that are broken.
_MAPPERS: dict[DetectedFormat, Callable[[_Row], Optional[BrokerRecord]]] = {
    DetectedFormat.STOCK_ORDER_HISTORY: _map_stock_order,
    DetectedFormat.STOCK_HOLDINGS: _map_stock_holding,
    DetectedFormat.FUND_HOLDINGS: _map_fund_holding,
    DetectedFormat.FUND_ORDER_HISTORY: _map_fund_order,
}


def _fit_cells(cells: list[str], width: int) -> Optional[list[str]]:
    """Trim trailing empty cells; None when the row still does not fit."""
    while len(cells) > width and not cells[-1].strip():
        cells = cells[:-1]
    if len(cells) != width:
        return None
    return cells


def map_rows(
    headers: list[str],
    rows: Iterable[list[str]],
    fmt: DetectedFormat,
) -> ImportResult:
    """Map data rows of an already-detected format into typed records."""
    result = ImportResult(fmt=fmt, headers=list(headers))
    mapper = _MAPPERS.get(fmt)

    for cells in rows:
        result.total_rows += 1
        if mapper is None:
            result.skipped_rows += 1
            continue

        fitted = _fit_cells(cells, len(headers))
        if fitted is None:
            logger.debug("Row %d: %d cells, expected %d", result.total_rows, len(cells), len(headers))
            result.skipped_rows += 1
            continue

        try:
            record = mapper(_Row(headers, fitted))
        except ValueError as e:
            logger.debug("Row %d skipped: %s", result.total_rows, e)
            result.skipped_rows += 1
            continue

        if record is None:
            result.filtered_rows += 1
            continue
        result.records.append(record)

    return result


def parse_export(text: str, fmt: Optional[DetectedFormat] = None) -> ImportResult:
    """Tokenize, detect and map one broker export.

    ``fmt`` forces a format the user picked manually after an UNKNOWN
    detection. An unrecognized export returns an empty UNKNOWN result.
    """
    headers, rows = split_header(text)
    detected = fmt if fmt is not None else detect_format(headers)

    if not detected.is_known:
        remaining = sum(1 for _ in rows)
        logger.info("Unrecognized export (%d data rows); manual format selection needed", remaining)
        return ImportResult(fmt=DetectedFormat.UNKNOWN, headers=headers, total_rows=remaining)

    result = map_rows(headers, rows, detected)
    logger.info(
        "[Import] %s: %d records, %d skipped, %d filtered of %d rows",
        detected.value, len(result.records), result.skipped_rows, result.filtered_rows, result.total_rows,
    )
    return result


# ---------------------------------------------------------------------------
# Derived holdings
# ---------------------------------------------------------------------------

def build_isin_map(orders: Iterable[StockOrder]) -> dict[str, tuple[str, str]]:
    """ISIN -> (symbol, exchange), first occurrence wins."""
    mapping: dict[str, tuple[str, str]] = {}
    for order in orders:
        isin = order.isin.strip()
        if isin and order.symbol and isin not in mapping:
            mapping[isin] = (order.symbol, order.exchange)
    return mapping


def resolve_holdings(
    holdings: Iterable[StockHolding],
    isin_map: dict[str, tuple[str, str]],
) -> list[StockHolding]:
    """Replace name-derived symbols with tickers known from order history."""
    resolved = []
    for h in holdings:
        mapped = isin_map.get(h.isin.strip()) if h.isin else None
        if mapped:
            symbol, exchange = mapped
            h = StockHolding(
                symbol=symbol,
                exchange=exchange,
                shares=h.shares,
                average_cost=h.average_cost,
                isin=h.isin,
                stock_name=h.stock_name,
            )
        resolved.append(h)
    return resolved


def holdings_from_orders(orders: Iterable[StockOrder]) -> list[StockHolding]:
    """Net open positions from executed orders.

    Shares are bought minus sold; average cost is total buy value over
    total buy quantity. Fully sold positions are dropped.
    """
    positions: dict[str, dict] = {}
    for order in orders:
        entry = positions.setdefault(
            order.symbol,
            {"exchange": order.exchange, "isin": order.isin, "name": order.stock_name,
             "buy_qty": 0.0, "buy_value": 0.0, "sell_qty": 0.0},
        )
        if order.side == "BUY":
            entry["buy_qty"] += order.quantity
            entry["buy_value"] += order.value
        elif order.side == "SELL":
            entry["sell_qty"] += order.quantity

    holdings = []
    for symbol, entry in positions.items():
        net = entry["buy_qty"] - entry["sell_qty"]
        if net <= 0 or entry["buy_qty"] <= 0:
            continue
        holdings.append(
            StockHolding(
                symbol=symbol,
                exchange=entry["exchange"],
                shares=net,
                average_cost=round(entry["buy_value"] / entry["buy_qty"], 2),
                isin=entry["isin"],
                stock_name=entry["name"],
            )
        )
    return holdings
