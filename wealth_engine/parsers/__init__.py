from .delimited import iter_rows, parse_rows, split_header
from .format_detector import DetectedFormat, detect_format, FORMAT_RULES
from .broker_records import parse_export, ImportResult, StockOrder, StockHolding, FundHolding, FundOrder
