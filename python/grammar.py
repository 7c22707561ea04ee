"""
Grammar nodes: the content stored at one coordinate of a document.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from address_parser import InvalidIndex
from coordinate import Coordinate

__all__ = [
    "CellLookup",
    "Defn",
    "DefnLookup",
    "Grammar",
    "Grid",
    "Input",
    "Kind",
    "Lookup",
    "LookupTarget",
    "Style",
]


@dataclass(frozen=True)
class Style:
    """Presentation attributes. The engine copies these around untouched."""

    border_color: str = "grey"
    border_collapse: bool = False
    font_weight: int = 400
    font_color: str = "black"
    display_override: str = ""


# =============================================================================
# Lookup targets
# =============================================================================


@dataclass(frozen=True)
class CellLookup:
    """A lookup resolved to another cell."""

    coordinate: Coordinate


@dataclass(frozen=True)
class DefnLookup:
    """A lookup resolved to a definition in the meta area."""

    coordinate: Coordinate


LookupTarget = CellLookup | DefnLookup


# =============================================================================
# Kinds
# =============================================================================


@dataclass(frozen=True)
class Input:
    """A leaf holding literal text."""

    value: str = ""


@dataclass(frozen=True)
class Lookup:
    """A leaf that refers to another cell or definition by query text."""

    query: str = ""
    target: LookupTarget | None = None


@dataclass(frozen=True)
class Grid:
    """An internal node. Each (row, col) addresses a child under this node."""

    children: tuple[tuple[int, int], ...]

    @property
    def rows(self) -> int:
        return max((row for row, _ in self.children), default=0)

    @property
    def cols(self) -> int:
        return max((col for _, col in self.children), default=0)


@dataclass(frozen=True)
class Defn:
    """
    A named type definition.

    Each rule is (rule_name, rule_coordinate); the grammar stored at
    rule_coordinate is the template for that part of the definition.
    """

    label: str
    coordinate: Coordinate
    rules: tuple[tuple[str, Coordinate], ...] = ()


Kind = Input | Lookup | Grid | Defn


@dataclass(frozen=True)
class Grammar:
    """A node of the document: a label, a style and exactly one kind."""

    name: str = ""
    style: Style = field(default_factory=Style)
    kind: Kind = field(default_factory=Input)

    @classmethod
    def default(cls) -> Grammar:
        """An unnamed, empty input cell."""
        return cls()

    @classmethod
    def text(cls, name: str, value: str) -> Grammar:
        return cls(name=name, kind=Input(value))

    @classmethod
    def as_grid(cls, rows: int, cols: int) -> Grammar:
        """
        A grid of rows x cols children listed in row-major order:
        (1, 1), (1, 2), ..., (2, 1), ...
        """
        if rows < 1 or cols < 1:
            raise InvalidIndex(f"A grid needs at least one row and column, got {rows}x{cols}")
        children = tuple((r, c) for r in range(1, rows + 1) for c in range(1, cols + 1))
        return cls(kind=Grid(children))
