"""Tests for typed record mapping of Groww exports.

Run from repo root:
    python -m pytest wealth_engine/tests/test_broker_records.py -v
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from wealth_engine.parsers.broker_records import (
    FundHolding,
    FundOrder,
    StockHolding,
    StockOrder,
    build_isin_map,
    holdings_from_orders,
    parse_amount,
    parse_date,
    parse_export,
    resolve_holdings,
)
from wealth_engine.parsers.format_detector import DetectedFormat

FUND_ORDERS_CSV = (
    "Scheme Name,Transaction Type,Units,NAV,Amount,Date\r\n"
    'Axis Bluechip Fund Direct Growth,PURCHASE,104.75,47.61,"₹4,987.00",05 Jan 2024\r\n'
    'Axis Bluechip Fund Direct Growth,purchase,103.12,48.60,"₹5,012.00",05 Feb 2024\r\n'
    "Axis Bluechip Fund Direct Growth,REDEMPTION,50,49.10,2455,20 Feb 2024\r\n"
)

STOCK_ORDERS_CSV = (
    "Stock name,Symbol,ISIN,Type,Quantity,Value,Exchange,Exchange Order Id,"
    "Execution date and time,Order status\n"
    "Reliance Industries,RELIANCE,INE002A01018,BUY,10,25000,NSE,1001,15-01-2024 10:32 AM,Executed\n"
    "Reliance Industries,RELIANCE,INE002A01018,SELL,4,11000,NSE,1002,20-02-2024 11:00 AM,Executed\n"
    "Infosys,INFY,INE009A01021,BUY,5,7500,NSE,1003,21-02-2024 09:30 AM,Cancelled\n"
    "Tata Consultancy Services,TCS,INE467B01029,BUY,2,7000,BSE,1004,01-03-2024 10:00 AM,Executed\n"
)

STOCK_HOLDINGS_CSV = (
    "Stock Name,ISIN,Quantity,Average buy price,Buy value,Closing price,Closing value,Unrealised P&L\n"
    "Reliance Industries,INE002A01018,6,2500,15000,2900,17400,2400\n"
    "Yes Bank,INE528G01035,0,20,0,22,0,0\n"
)

FUND_HOLDINGS_CSV = (
    "Scheme Name,AMC,Category,Sub-category,Folio No.,Source,Units,Invested Value,"
    "Current Value,Returns,XIRR\n"
    'Parag Parikh Flexi Cap,PPFAS,Equity,Flexi Cap,12345/67,Groww,210.5,"1,20,000","1,38,500",18500,14.2%\n'
    'HDFC Short Term Debt,HDFC,Debt,Short Duration,998877,Groww,80,"50,000","49,200",(800),--\n'
)


# ── Amount cleaning ────────────────────────────────────────────────────────

def test_parse_amount_indian_grouping_and_rupee():
    assert parse_amount("₹1,23,456.50") == 123456.50
    assert parse_amount("Rs. 5,000") == 5000.0
    assert parse_amount("INR 750") == 750.0


def test_parse_amount_negatives():
    assert parse_amount("(1,200)") == -1200.0
    assert parse_amount("-300") == -300.0
    assert parse_amount("-₹500") == -500.0


def test_parse_amount_blank_is_zero():
    assert parse_amount("") == 0.0
    assert parse_amount("--") == 0.0


def test_parse_amount_rejects_text():
    with pytest.raises(ValueError):
        parse_amount("abc")


# ── Date cleaning ──────────────────────────────────────────────────────────

def test_parse_date_variants():
    assert parse_date("15 Jan 2024") == datetime(2024, 1, 15)
    assert parse_date("2024-01-15") == datetime(2024, 1, 15)
    assert parse_date("15-01-2024 10:32 AM") == datetime(2024, 1, 15, 10, 32)
    assert parse_date("not a date") is None
    assert parse_date("") is None


# ── Fund order history ─────────────────────────────────────────────────────

def test_fund_orders_mapped():
    result = parse_export(FUND_ORDERS_CSV)
    assert result.fmt is DetectedFormat.FUND_ORDER_HISTORY
    assert result.total_rows == 3
    assert result.skipped_rows == 0
    assert len(result.records) == 3

    first = result.records[0]
    assert isinstance(first, FundOrder)
    assert first.amount == 4987.0
    assert first.parsed_date == date(2024, 1, 5)
    # Transaction type normalized
    assert result.records[1].transaction_type == "PURCHASE"


def test_broken_rows_skipped_and_counted():
    text = FUND_ORDERS_CSV + (
        "Axis Bluechip Fund Direct Growth,PURCHASE,1,2,not-a-number,05 Mar 2024\r\n"
        "Only,Three,Cells\r\n"
    )
    result = parse_export(text)
    assert result.total_rows == 5
    assert result.skipped_rows == 2
    assert len(result.records) == 3
    assert result.partial


def test_trailing_empty_cell_tolerated():
    text = FUND_ORDERS_CSV + "Axis Bluechip Fund Direct Growth,PURCHASE,1,2,100,05 Mar 2024,\r\n"
    result = parse_export(text)
    assert result.skipped_rows == 0
    assert len(result.records) == 4


# ── Stock orders ───────────────────────────────────────────────────────────

def test_cancelled_orders_filtered_not_skipped():
    result = parse_export(STOCK_ORDERS_CSV)
    assert result.fmt is DetectedFormat.STOCK_ORDER_HISTORY
    assert len(result.records) == 3
    assert result.filtered_rows == 1
    assert result.skipped_rows == 0
    assert not result.partial

    order = result.records[0]
    assert isinstance(order, StockOrder)
    assert order.side == "BUY"
    assert order.executed_at == datetime(2024, 1, 15, 10, 32)


def test_holdings_from_orders_nets_positions():
    orders = parse_export(STOCK_ORDERS_CSV).records
    holdings = {h.symbol: h for h in holdings_from_orders(orders)}

    assert set(holdings) == {"RELIANCE", "TCS"}
    assert holdings["RELIANCE"].shares == 6
    assert holdings["RELIANCE"].average_cost == 2500.0
    assert holdings["TCS"].exchange == "BSE"


def test_fully_sold_position_dropped():
    orders = [
        StockOrder("Infosys", "INFY", "INE009A01021", "BUY", 5, 7500, "NSE", None, "Executed"),
        StockOrder("Infosys", "INFY", "INE009A01021", "SELL", 5, 8000, "NSE", None, "Executed"),
    ]
    assert holdings_from_orders(orders) == []


# ── Holdings ───────────────────────────────────────────────────────────────

def test_stock_holdings_resolved_through_isin_map():
    result = parse_export(STOCK_HOLDINGS_CSV)
    assert result.fmt is DetectedFormat.STOCK_HOLDINGS
    assert result.filtered_rows == 1  # zero quantity
    holding = result.records[0]
    assert isinstance(holding, StockHolding)
    assert holding.symbol == "RELIANCE INDUSTRIES"

    isin_map = build_isin_map(parse_export(STOCK_ORDERS_CSV).records)
    resolved = resolve_holdings(result.records, isin_map)
    assert resolved[0].symbol == "RELIANCE"
    assert resolved[0].exchange == "NSE"
    assert resolved[0].shares == 6


def test_fund_holdings_mapped():
    result = parse_export(FUND_HOLDINGS_CSV)
    assert result.fmt is DetectedFormat.FUND_HOLDINGS
    assert len(result.records) == 2

    flexi, debt = result.records
    assert isinstance(flexi, FundHolding)
    assert flexi.invested_value == 120000.0
    assert flexi.current_value == 138500.0
    assert flexi.xirr == "14.2%"
    assert debt.returns == -800.0
    assert debt.xirr == "--"


# ── Unknown / forced format ────────────────────────────────────────────────

def test_unknown_export_returns_empty_result():
    result = parse_export("Date,Narration,Withdrawal\n01/01/2024,ATM,500\n02/01/2024,POS,200\n")
    assert result.fmt is DetectedFormat.UNKNOWN
    assert not result.recognized
    assert result.records == []
    assert result.total_rows == 2


def test_forced_format_maps_rows():
    text = "Scheme Name,Transaction Type,Amount,Date,Remarks,Extra\nFund X,PURCHASE,1000,05 Jan 2024,SIP,1\n"
    result = parse_export(text, fmt=DetectedFormat.FUND_ORDER_HISTORY)
    assert result.fmt is DetectedFormat.FUND_ORDER_HISTORY
    assert result.records[0].amount == 1000.0
