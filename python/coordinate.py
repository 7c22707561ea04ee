"""
Hierarchical coordinates: a path of (row, col) pairs from a root-level
address down through nested grids.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from address_parser import InvalidIndex, column_letters, format_address, parse_address

__all__ = [
    "COL_WILDCARD",
    "Coordinate",
    "Direction",
    "FullCol",
    "FullRow",
    "META",
    "ROOT",
    "ROW_WILDCARD",
]


class Direction(Enum):
    """Cardinal direction for neighbor lookup."""

    N = "N"  # Up (decreasing row)
    S = "S"  # Down (increasing row)
    E = "E"  # Right (increasing col)
    W = "W"  # Left (decreasing col)


_DELTAS = {
    Direction.N: (-1, 0),
    Direction.S: (1, 0),
    Direction.E: (0, 1),
    Direction.W: (0, -1),
}

# Shown in place of the dropped axis when printing a band key
ROW_WILDCARD = "*"
COL_WILDCARD = "*"


@dataclass(frozen=True)
class Coordinate:
    """An immutable address: (row, col) pairs, outermost first."""

    row_cols: tuple[tuple[int, int], ...]

    def __post_init__(self) -> None:
        if not self.row_cols:
            raise InvalidIndex("A coordinate needs at least one (row, col) pair")
        for pair in self.row_cols:
            if len(pair) != 2:
                raise InvalidIndex(f"Expected a (row, col) pair, got {pair!r}")
            row, col = pair
            if row < 1 or col < 1:
                raise InvalidIndex(f"Row and column must be >= 1, got ({row}, {col})")

    @classmethod
    def parse(cls, text: str) -> Coordinate:
        """Build a coordinate from address text such as "root-A3"."""
        return cls(parse_address(text))

    def __str__(self) -> str:
        return format_address(self.row_cols)

    @property
    def depth(self) -> int:
        return len(self.row_cols)

    def is_root_level(self) -> bool:
        return len(self.row_cols) == 1

    def last(self) -> tuple[int, int]:
        return self.row_cols[-1]

    def row(self) -> int:
        return self.row_cols[-1][0]

    def col(self) -> int:
        return self.row_cols[-1][1]

    def parent(self) -> Coordinate | None:
        if len(self.row_cols) == 1:
            return None
        return Coordinate(self.row_cols[:-1])

    def child_of(self, row_col: tuple[int, int]) -> Coordinate:
        """The coordinate of cell (row, col) inside this one."""
        return Coordinate(self.row_cols + (tuple(row_col),))

    def full_row(self) -> FullRow:
        return FullRow(self.parent(), self.row())

    def full_col(self) -> FullCol:
        return FullCol(self.parent(), self.col())

    def neighbor(self, direction: Direction) -> Coordinate | None:
        """
        The adjacent cell in the same parent grid, or None if the index would
        drop below 1. Root-level coordinates have no neighbors.

        Does not check whether the neighbor exists anywhere.
        """
        if len(self.row_cols) == 1:
            return None
        dr, dc = _DELTAS[direction]
        row, col = self.row() + dr, self.col() + dc
        if row < 1 or col < 1:
            return None
        return Coordinate(self.row_cols[:-1] + ((row, col),))

    def neighbor_above(self) -> Coordinate | None:
        return self.neighbor(Direction.N)

    def neighbor_below(self) -> Coordinate | None:
        return self.neighbor(Direction.S)

    def neighbor_right(self) -> Coordinate | None:
        return self.neighbor(Direction.E)

    def neighbor_left(self) -> Coordinate | None:
        return self.neighbor(Direction.W)

    def is_descendant_of(self, other: Coordinate) -> bool:
        """True if other is a strict prefix of this coordinate."""
        n = len(other.row_cols)
        return len(self.row_cols) > n and self.row_cols[:n] == other.row_cols

    def rebase(self, old_prefix: Coordinate, new_prefix: Coordinate) -> Coordinate:
        """
        Swap old_prefix for new_prefix at the front of this coordinate.

        Raises:
            ValueError: If this coordinate does not start with old_prefix
        """
        n = len(old_prefix.row_cols)
        if self.row_cols[:n] != old_prefix.row_cols:
            raise ValueError(f"'{self}' does not start with '{old_prefix}'")
        return Coordinate(new_prefix.row_cols + self.row_cols[n:])


@dataclass(frozen=True)
class FullRow:
    """
    Row band key: every cell of one parent grid on the same row.

    The column of the final pair is dropped, so all cells in the band share
    one row-height entry.
    """

    parent: Coordinate | None
    row: int

    def __str__(self) -> str:
        prefix = f"{self.parent}-" if self.parent is not None else ""
        return f"{prefix}{ROW_WILDCARD}{self.row}"


@dataclass(frozen=True)
class FullCol:
    """Column band key: every cell of one parent grid in the same column."""

    parent: Coordinate | None
    col: int

    def __str__(self) -> str:
        prefix = f"{self.parent}-" if self.parent is not None else ""
        return f"{prefix}{column_letters(self.col)}{COL_WILDCARD}"


ROOT = Coordinate.parse("root")
META = Coordinate.parse("meta")
