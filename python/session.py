"""
The document store: a flat mapping from Coordinate to Grammar plus the
row-height / column-width tables used to lay cells out.

A node's identity is its address. There are no parent/child pointers; the
tree shape is recovered from the coordinates themselves and from the child
lists of Grid nodes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable

from coordinate import META, ROOT, Coordinate, FullCol, FullRow
from grammar import Defn, Grammar, Grid

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_COL_WIDTH",
    "DEFAULT_ROW_HEIGHT",
    "InvariantViolation",
    "MissingCoordinate",
    "Session",
    "SheetRules",
    "children_of",
    "col_width_of",
    "column_members",
    "default_session",
    "ensure_dimensions",
    "find_invariant_violations",
    "orphans",
    "row_height_of",
    "row_members",
    "validate_session",
    "with_grammars",
]

DEFAULT_ROW_HEIGHT = 30.0
DEFAULT_COL_WIDTH = 90.0


class MissingCoordinate(LookupError):
    """A coordinate that has no entry where one is required."""

    def __init__(self, coordinate: object, what: str = "grammar") -> None:
        self.coordinate = coordinate
        self.what = what
        super().__init__(f"No {what} entry for '{coordinate}'")


class InvariantViolation(ValueError):
    """A document that breaks the store's structural rules."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        lines = "\n".join(f"  - {p}" for p in problems)
        super().__init__(f"Document violates {len(problems)} invariant(s):\n{lines}")


@dataclass(frozen=True)
class SheetRules:
    """Defaults governing how the engine sizes new cells."""

    default_row_height: float = DEFAULT_ROW_HEIGHT
    default_col_width: float = DEFAULT_COL_WIDTH


@dataclass(frozen=True)
class Session:
    """
    One open document.

    root and meta duplicate grammars[ROOT] and grammars[META]; use
    with_grammars() to install a new mapping so they stay in sync.
    """

    title: str
    root: Grammar
    meta: Grammar
    grammars: dict[Coordinate, Grammar]
    row_heights: dict[FullRow, float] = field(default_factory=dict)
    col_widths: dict[FullCol, float] = field(default_factory=dict)


def with_grammars(session: Session, grammars: dict[Coordinate, Grammar]) -> Session:
    """Return a copy of session using grammars, with root/meta re-synced."""
    return replace(
        session,
        grammars=grammars,
        root=grammars.get(ROOT, session.root),
        meta=grammars.get(META, session.meta),
    )


# =============================================================================
# Queries
# =============================================================================


def children_of(session: Session, parent: Coordinate) -> list[Coordinate]:
    """All stored coordinates directly under parent, sorted by address."""
    return sorted(
        (k for k in session.grammars if k.parent() == parent),
        key=lambda k: k.row_cols,
    )


def column_members(session: Session, full_col: FullCol) -> list[Coordinate]:
    """Stored coordinates in the given column band, top to bottom."""
    return sorted(
        (
            k
            for k in session.grammars
            if not k.is_root_level() and k.full_col() == full_col  # ignore root & meta
        ),
        key=lambda k: k.row(),
    )


def row_members(session: Session, full_row: FullRow) -> list[Coordinate]:
    """Stored coordinates in the given row band, left to right."""
    return sorted(
        (
            k
            for k in session.grammars
            if not k.is_root_level() and k.full_row() == full_row  # ignore root & meta
        ),
        key=lambda k: k.col(),
    )


def row_height_of(session: Session, coord: Coordinate) -> float:
    """
    Raises:
        MissingCoordinate: If the row band of coord has no height
    """
    key = coord.full_row()
    if key not in session.row_heights:
        raise MissingCoordinate(key, "row height")
    return session.row_heights[key]


def col_width_of(session: Session, coord: Coordinate) -> float:
    """
    Raises:
        MissingCoordinate: If the column band of coord has no width
    """
    key = coord.full_col()
    if key not in session.col_widths:
        raise MissingCoordinate(key, "column width")
    return session.col_widths[key]


def orphans(session: Session) -> list[Coordinate]:
    """Stored coordinates whose parent is not stored."""
    return sorted(
        (
            k
            for k in session.grammars
            if not k.is_root_level() and k.parent() not in session.grammars
        ),
        key=lambda k: k.row_cols,
    )


# =============================================================================
# Invariants
# =============================================================================


def find_invariant_violations(session: Session) -> list[str]:
    """
    Check the structural rules of a document.

    - grammars has entries for root and meta equal to the root/meta fields
    - root and meta are the only root-level coordinates
    - every child listed by a Grid node is stored
    - every non-root-level coordinate has a stored parent

    Returns:
        Human-readable problems (empty if the document is consistent)
    """
    problems: list[str] = []
    grammars = session.grammars

    for coord, field_value, label in ((ROOT, session.root, "root"), (META, session.meta, "meta")):
        if coord not in grammars:
            problems.append(f"missing {label} entry '{coord}'")
        elif grammars[coord] != field_value:
            problems.append(f"{label} field does not match grammars['{coord}']")

    for coord in sorted(grammars, key=lambda k: k.row_cols):
        if coord.is_root_level():
            if coord not in (ROOT, META):
                problems.append(f"unexpected root-level coordinate {coord.row_cols}")
            continue
        if coord.parent() not in grammars:
            problems.append(f"'{coord}' has no parent entry '{coord.parent()}'")

    for coord in sorted(grammars, key=lambda k: k.row_cols):
        match grammars[coord].kind:
            case Grid(children=children):
                for pair in children:
                    child = coord.child_of(pair)
                    if child not in grammars:
                        problems.append(f"grid '{coord}' lists missing child '{child}'")
            case _:
                pass

    return problems


def validate_session(session: Session) -> Session:
    """
    Raises:
        InvariantViolation: If the document breaks any structural rule
    """
    problems = find_invariant_violations(session)
    if problems:
        raise InvariantViolation(problems)
    return session


# =============================================================================
# Dimensions
# =============================================================================


def ensure_dimensions(
    session: Session,
    coords: Iterable[Coordinate] | None = None,
    rules: SheetRules = SheetRules(),
) -> Session:
    """
    Give every band of coords (default: every stored coordinate) a row height
    and column width. Existing entries are never overwritten.
    """
    if coords is None:
        coords = session.grammars.keys()

    row_heights = dict(session.row_heights)
    col_widths = dict(session.col_widths)
    for coord in coords:
        if coord.is_root_level():
            continue
        row_heights.setdefault(coord.full_row(), rules.default_row_height)
        col_widths.setdefault(coord.full_col(), rules.default_col_width)

    if row_heights == session.row_heights and col_widths == session.col_widths:
        return session
    return replace(session, row_heights=row_heights, col_widths=col_widths)


# =============================================================================
# Starter document
# =============================================================================


def _c(text: str) -> Coordinate:
    return Coordinate.parse(text)


def default_session(title: str = "my session", rules: SheetRules = SheetRules()) -> Session:
    """
    The document a new sheet opens with: a 3x2 root grid, and a meta area
    holding two text grammars and one sample definition.
    """
    root_grammar = Grammar(
        name="root",
        kind=Grid(((1, 1), (2, 1), (3, 1), (1, 2), (2, 2), (3, 2))),
    )
    meta_grammar = Grammar(name="meta", kind=Grid(((1, 1), (2, 1), (3, 1))))

    grammars: dict[Coordinate, Grammar] = {
        ROOT: root_grammar,
        _c("root-A1"): Grammar.default(),
        _c("root-A2"): Grammar.default(),
        _c("root-A3"): Grammar.default(),
        _c("root-B1"): Grammar.default(),
        _c("root-B2"): Grammar.default(),
        _c("root-B3"): Grammar.default(),
        META: meta_grammar,
        _c("meta-A1"): Grammar.text("js grammar", "This is js"),
        _c("meta-A2"): Grammar.text("java grammar", "This is java"),
        _c("meta-A3"): Grammar(
            name="defn",
            kind=Defn("", _c("meta-A3"), (("", _c("meta-A3-B1")),)),
        ),
        _c("meta-A3-A1"): Grammar.default(),
        _c("meta-A3-B1"): Grammar(
            name="root",
            kind=Grid(((1, 1), (2, 1), (1, 2), (2, 2))),
        ),
        _c("meta-A3-B1-A1"): Grammar.text("", "custom grammar"),
        _c("meta-A3-B1-A2"): Grammar.default(),
        _c("meta-A3-B1-B1"): Grammar.default(),
        _c("meta-A3-B1-B2"): Grammar.default(),
    }

    session = Session(
        title=title,
        root=root_grammar,
        meta=meta_grammar,
        grammars=grammars,
        row_heights={
            FullRow(ROOT, 1): 30.0,
            FullRow(ROOT, 2): 30.0,
            FullRow(ROOT, 3): 30.0,
            FullRow(META, 1): 180.0,
        },
        col_widths={
            FullCol(ROOT, 1): 90.0,
            FullCol(ROOT, 2): 90.0,
            FullCol(META, 1): 180.0,
            FullCol(_c("meta-A3"), 1): 90.0,
            FullCol(_c("meta-A3"), 2): 180.0,
        },
    )
    return ensure_dimensions(session, rules=rules)
