"""Tests for broker export format detection.

Run from repo root:
    python -m pytest wealth_engine/tests/test_format_detector.py -v
"""

from __future__ import annotations

from itertools import combinations

from wealth_engine.parsers.format_detector import (
    FORMAT_RULES,
    DetectedFormat,
    detect_format,
    matching_rules,
    missing_columns,
)

STOCK_ORDER_HEADERS = [
    "Stock name", "Symbol", "ISIN", "Type", "Quantity", "Value", "Exchange",
    "Exchange Order Id", "Execution date and time", "Order status",
]
STOCK_HOLDING_HEADERS = [
    "Stock Name", "ISIN", "Quantity", "Average buy price", "Buy value",
    "Closing price", "Closing value", "Unrealised P&L",
]
FUND_HOLDING_HEADERS = [
    "Scheme Name", "AMC", "Category", "Sub-category", "Folio No.", "Source",
    "Units", "Invested Value", "Current Value", "Returns", "XIRR",
]
FUND_ORDER_HEADERS = ["Scheme Name", "Transaction Type", "Units", "NAV", "Amount", "Date"]


# ── Known shapes ───────────────────────────────────────────────────────────

def test_stock_order_history():
    assert detect_format(STOCK_ORDER_HEADERS) is DetectedFormat.STOCK_ORDER_HISTORY


def test_stock_holdings():
    assert detect_format(STOCK_HOLDING_HEADERS) is DetectedFormat.STOCK_HOLDINGS


def test_fund_holdings():
    assert detect_format(FUND_HOLDING_HEADERS) is DetectedFormat.FUND_HOLDINGS


def test_fund_order_history():
    assert detect_format(FUND_ORDER_HEADERS) is DetectedFormat.FUND_ORDER_HISTORY


def test_case_and_whitespace_insensitive():
    headers = ["  SCHEME NAME", "transaction TYPE ", "Amount", "DATE"]
    assert detect_format(headers) is DetectedFormat.FUND_ORDER_HISTORY


# ── Unknown ────────────────────────────────────────────────────────────────

def test_bank_statement_is_unknown():
    assert detect_format(["Date", "Narration", "Withdrawal", "Deposit"]) is DetectedFormat.UNKNOWN


def test_empty_header_is_unknown():
    assert detect_format([]) is DetectedFormat.UNKNOWN
    assert not DetectedFormat.UNKNOWN.is_known


# ── Overlap and priority ───────────────────────────────────────────────────

def test_holdings_with_symbol_is_order_history():
    # A holdings-looking header that also has symbol + order status
    headers = STOCK_HOLDING_HEADERS + ["Symbol", "Order status"]
    assert detect_format(headers) is DetectedFormat.STOCK_ORDER_HISTORY


def test_holdings_with_symbol_but_no_status_is_unknown():
    headers = STOCK_HOLDING_HEADERS + ["Symbol"]
    assert detect_format(headers) is DetectedFormat.UNKNOWN


def test_fund_shapes_merged_match_neither():
    headers = FUND_HOLDING_HEADERS + ["Transaction Type", "Amount", "Date"]
    assert matching_rules(headers) == []


def test_no_header_set_satisfies_two_rules():
    universe = [
        "stock name", "symbol", "order status", "average buy price",
        "scheme name", "units", "invested value", "current value",
        "transaction type", "amount", "date",
    ]
    for size in range(len(universe) + 1):
        for subset in combinations(universe, size):
            assert len(matching_rules(subset)) <= 1, subset


def test_rule_order_is_documented_priority():
    assert [r.fmt for r in FORMAT_RULES] == [
        DetectedFormat.STOCK_ORDER_HISTORY,
        DetectedFormat.STOCK_HOLDINGS,
        DetectedFormat.FUND_HOLDINGS,
        DetectedFormat.FUND_ORDER_HISTORY,
    ]


# ── Missing columns ────────────────────────────────────────────────────────

def test_missing_columns_for_manual_choice():
    missing = missing_columns(["Scheme Name", "Amount"], DetectedFormat.FUND_ORDER_HISTORY)
    assert missing == ["transaction type", "date"]
    assert missing_columns(FUND_ORDER_HEADERS, DetectedFormat.FUND_ORDER_HISTORY) == []
