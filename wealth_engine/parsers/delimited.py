"""
Delimited text tokenizer for broker exports.

Broker CSVs are small but messy:
- Scheme names carry commas and sometimes line breaks inside quotes
- Quotes inside quoted cells are doubled: "ABC ""Growth"" Fund"
- Files mix CRLF and LF line endings, and may start with a BOM
- The last row frequently has no trailing newline

The tokenizer never raises. An unterminated quote at end of input simply
flushes whatever was accumulated; deciding whether a row is usable is the
record mapper's job.
"""

from __future__ import annotations

from typing import Iterator

_BOM = "\ufeff"


def iter_rows(text: str, delimiter: str = ",", quote: str = '"') -> Iterator[list[str]]:
    """Yield rows of cells from ``text``, dropping rows that are entirely blank."""
    if text.startswith(_BOM):
        text = text[len(_BOM):]

    cell: list[str] = []
    row: list[str] = []
    in_quotes = False
    i = 0
    n = len(text)

    while i < n:
        char = text[i]

        if char == quote:
            if in_quotes and i + 1 < n and text[i + 1] == quote:
                cell.append(quote)
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue

        if in_quotes:
            cell.append(char)
            i += 1
            continue

        if char == delimiter:
            row.append("".join(cell))
            cell = []
            i += 1
            continue

        if char == "\n" or char == "\r":
            if char == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            row.append("".join(cell))
            if _has_content(row):
                yield row
            row = []
            cell = []
            i += 1
            continue

        cell.append(char)
        i += 1

    # Final row without a trailing newline, or an unterminated quote
    if cell or row:
        row.append("".join(cell))
        if _has_content(row):
            yield row


def parse_rows(text: str, delimiter: str = ",") -> list[list[str]]:
    """Eager variant of ``iter_rows``."""
    return list(iter_rows(text, delimiter=delimiter))


def split_header(text: str, delimiter: str = ",") -> tuple[list[str], Iterator[list[str]]]:
    """Return the case-normalized header and an iterator over the data rows.

    An empty input yields an empty header and an exhausted iterator.
    """
    rows = iter_rows(text, delimiter=delimiter)
    first = next(rows, None)
    if first is None:
        return [], iter(())
    return normalize_headers(first), rows


def normalize_headers(cells: list[str]) -> list[str]:
    return [c.strip().lower() for c in cells]


def _has_content(row: list[str]) -> bool:
    return any(c.strip() for c in row)
