"""
Address grammar for the meta-spreadsheet.

An address is a dash-separated path:

    root-A3-B1

- The first segment is a bare root name: "root" (the document) or "meta"
  (the area holding type definitions).
- Every following segment is <column letters><row number>, e.g. "A3" is
  column 1, row 3. Letters are case-insensitive; rows start at 1.

Parsing produces plain (row, col) pairs so this module has no dependencies;
coordinate.Coordinate wraps the result.
"""

from __future__ import annotations

__all__ = [
    "InvalidIndex",
    "MalformedAddress",
    "ROOT_NAMES",
    "column_index",
    "column_letters",
    "format_address",
    "parse_address",
]

RowCol = tuple[int, int]

# Root-level names and the pair each one stands for
ROOT_NAMES: dict[str, RowCol] = {
    "root": (1, 1),
    "meta": (1, 2),
}

SEPARATOR = "-"


class MalformedAddress(ValueError):
    """Address text that does not follow the grammar."""

    def __init__(self, address: str, segment: str, reason: str) -> None:
        self.address = address
        self.segment = segment
        self.reason = reason
        super().__init__(
            f"Malformed address: '{address}'\n"
            f"  Segment: '{segment}'\n"
            f"  Problem: {reason}\n"
            f"  Expected: root name ({', '.join(ROOT_NAMES)}) followed by "
            f"-<letters><row> segments, e.g. 'root-A3-B1'"
        )


class InvalidIndex(ValueError):
    """A row or column index below 1."""


def column_index(letters: str) -> int:
    """Convert column letters to a 1-based index ("A" -> 1, "AA" -> 27)."""
    num = 0
    for c in letters.upper():
        num = num * 26 + (ord(c) - ord("A") + 1)
    return num


def column_letters(index: int) -> str:
    """Convert a 1-based column index to letters (27 -> "AA")."""
    if index < 1:
        raise InvalidIndex(f"Column index must be >= 1, got {index}")
    letters = ""
    while index > 0:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _is_ascii_letter(char: str) -> bool:
    return char.isascii() and char.isalpha()


def _is_ascii_digit(char: str) -> bool:
    return char.isascii() and char.isdigit()


def _parse_segment(address: str, segment: str) -> RowCol:
    """Parse one <letters><digits> segment into a (row, col) pair."""
    split = 0
    while split < len(segment) and _is_ascii_letter(segment[split]):
        split += 1
    letters, digits = segment[:split], segment[split:]

    if not letters:
        if _is_ascii_digit(segment[0]):
            raise MalformedAddress(address, segment, "row number given before column letters")
        raise MalformedAddress(address, segment, "segment must start with column letters")
    if not digits:
        raise MalformedAddress(address, segment, "missing row number after column letters")
    if not all(_is_ascii_digit(c) for c in digits):
        raise MalformedAddress(address, segment, f"row number '{digits}' is not a decimal integer")
    if int(digits) == 0:
        raise MalformedAddress(address, segment, "row numbers start at 1")
    if digits[0] == "0":
        raise MalformedAddress(address, segment, "row number has a leading zero")

    return (int(digits), column_index(letters))


def parse_address(text: str) -> tuple[RowCol, ...]:
    """
    Parse address text into (row, col) pairs, outermost first.

    Examples:
        "root"       -> ((1, 1),)
        "meta-A3"    -> ((1, 2), (3, 1))
        "root-b2-C1" -> ((1, 1), (2, 2), (1, 3))

    Raises:
        MalformedAddress: If the text violates the grammar
    """
    if not text:
        raise MalformedAddress(text, text, "address is empty")

    segments = text.split(SEPARATOR)
    for segment in segments:
        if not segment:
            raise MalformedAddress(text, segment, "empty segment (leading, trailing or doubled '-')")

    head = segments[0]
    if head not in ROOT_NAMES:
        raise MalformedAddress(text, head, f"unknown root name '{head}'")

    pairs = [ROOT_NAMES[head]]
    pairs.extend(_parse_segment(text, segment) for segment in segments[1:])
    return tuple(pairs)


def format_address(row_cols: tuple[RowCol, ...]) -> str:
    """
    Render (row, col) pairs as canonical address text.

    The inverse of parse_address: column letters come out upper case.
    """
    if not row_cols:
        raise InvalidIndex("An address needs at least one (row, col) pair")

    for row, col in row_cols:
        if row < 1 or col < 1:
            raise InvalidIndex(f"Row and column must be >= 1, got ({row}, {col})")

    head = row_cols[0]
    names = [name for name, pair in ROOT_NAMES.items() if pair == head]
    # Unnamed root-level pairs fall back to cell form
    parts = [names[0] if names else f"{column_letters(head[1])}{head[0]}"]
    parts.extend(f"{column_letters(col)}{row}" for row, col in row_cols[1:])
    return SEPARATOR.join(parts)
