"""A1-notation helpers ("A1", "B5:G5") shared by the core and store adapters."""

from __future__ import annotations

import re

_CELL_RE = re.compile(r"^([A-Z]+)(\d+)$")


def column_letter(index: int) -> str:
    """Zero-based column index -> letters (0 -> "A", 26 -> "AA")."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    letters = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def column_index(letters: str) -> int:
    """Letters -> zero-based column index ("A" -> 0)."""
    n = 0
    for ch in letters.upper():
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def row_range(row_number: int, width: int) -> str:
    """Range covering ``width`` cells of a single 1-based row, e.g. "A5:G5"."""
    return f"A{row_number}:{column_letter(width - 1)}{row_number}"


def block_range(first_row: int, last_row: int, width: int) -> str:
    """Rows ``first_row``..``last_row`` (1-based, inclusive), e.g. "A3:G9"."""
    return f"A{first_row}:{column_letter(width - 1)}{last_row}"


def parse_range(range_ref: str) -> tuple[int, int, int, int]:
    """Parse "B2:D4" (or "B2") into zero-based (row, col, last_row, last_col).

    A leading "Sheet!" prefix is ignored.
    """
    ref = range_ref.rsplit("!", 1)[-1].replace("$", "")
    start, _, end = ref.partition(":")
    first = _CELL_RE.match(start)
    last = _CELL_RE.match(end or start)
    if not first or not last:
        raise ValueError(f"Unsupported range reference: {range_ref!r}")
    return (
        int(first.group(2)) - 1,
        column_index(first.group(1)),
        int(last.group(2)) - 1,
        column_index(last.group(1)),
    )
