"""
Structural edits on a Session.

Every operation returns an Edit holding the resulting session and an
Outcome. Edits never modify the session they are given; a no-op hands back
the very same session object, so callers (and tests) can tell a mutation
from a skipped edit without diffing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum

from coordinate import Coordinate, Direction
from grammar import Defn, Grammar, Grid, Input, Lookup
from session import (
    Session,
    SheetRules,
    column_members,
    ensure_dimensions,
    row_members,
    with_grammars,
)

logger = logging.getLogger(__name__)

__all__ = [
    "Edit",
    "Outcome",
    "add_definition_rule",
    "add_nested_grid",
    "apply_definition",
    "change_input",
    "insert_column",
    "insert_row",
    "move_grammar",
    "rename_definition",
    "resize",
    "toggle_input_lookup",
]


class Outcome(Enum):
    """How an edit ended."""

    APPLIED = "applied"
    MISSING_COORDINATE = "missing_coordinate"  # A coordinate the edit needs is not stored
    NO_PARENT = "no_parent"  # Root-level coordinate where a grid cell was expected
    NOT_A_GRID = "not_a_grid"  # Parent exists but is not a Grid
    WRONG_KIND = "wrong_kind"  # Node exists but has the wrong kind for this edit
    REFUSED = "refused"  # Edit would detach root/meta or overwrite its own source


@dataclass(frozen=True)
class Edit:
    """Result of an edit: the new session plus what happened."""

    session: Session
    outcome: Outcome

    @property
    def applied(self) -> bool:
        return self.outcome is Outcome.APPLIED


def _skip(session: Session, outcome: Outcome, operation: str, coord: object) -> Edit:
    logger.debug("%s: no-op at %s (%s)", operation, coord, outcome.value)
    return Edit(session, outcome)


def _by_address(coords) -> list[Coordinate]:
    return sorted(coords, key=lambda k: k.row_cols)


def _fill_grid_children(
    grammars: dict[Coordinate, Grammar], coord: Coordinate, grid: Grid
) -> list[Coordinate]:
    """Insert default leaves for listed children of coord that are not stored."""
    created: list[Coordinate] = []
    for pair in grid.children:
        child = coord.child_of(pair)
        if child not in grammars:
            grammars[child] = Grammar.default()
            created.append(child)
    return created


def _drop_from_parent_grid(grammars: dict[Coordinate, Grammar], coord: Coordinate) -> None:
    """Remove coord's (row, col) from its parent's child list, if listed."""
    parent = coord.parent()
    if parent is None or parent not in grammars:
        return
    parent_node = grammars[parent]
    match parent_node.kind:
        case Grid(children=children) if coord.last() in children:
            remaining = tuple(pair for pair in children if pair != coord.last())
            grammars[parent] = replace(parent_node, kind=Grid(remaining))
        case _:
            pass


# =============================================================================
# Relocation
# =============================================================================


def move_grammar(
    session: Session,
    source: Coordinate,
    destination: Coordinate,
    rules: SheetRules = SheetRules(),
) -> Edit:
    """
    Move the grammar at source to destination, replacing whatever was there.

    Only the node itself moves. If source was a Grid, its former children
    stay at their old coordinates (orphaned); the destination gets default
    leaves for any listed child it does not already have. The source cell
    is dropped from its parent's child list. Bands at the destination that
    have no size get the defaults.

    Orphans left by moving a Grid break the parent rule checked by
    validate_session, so a document saved in that state will not load until
    they are removed (see orphans()). Whether descendants should travel with
    the grid is still undecided.

    No-op (MISSING_COORDINATE) if source or destination's parent is absent;
    REFUSED for root-level coordinates and moves beneath the source itself.
    """
    grammars = session.grammars
    if source not in grammars:
        return _skip(session, Outcome.MISSING_COORDINATE, "move_grammar", source)
    if (
        source.is_root_level()
        or destination.is_root_level()
        or destination.is_descendant_of(source)
    ):
        return _skip(session, Outcome.REFUSED, "move_grammar", destination)
    if destination.parent() not in grammars:
        return _skip(session, Outcome.MISSING_COORDINATE, "move_grammar", destination.parent())
    if source == destination:
        return Edit(session, Outcome.APPLIED)

    new_grammars = dict(grammars)
    node = new_grammars.pop(source)
    _drop_from_parent_grid(new_grammars, source)
    new_grammars[destination] = node

    created: list[Coordinate] = []
    match node.kind:
        case Grid() as grid:
            created = _fill_grid_children(new_grammars, destination, grid)
        case Input() | Lookup() | Defn():
            pass

    result = ensure_dimensions(with_grammars(session, new_grammars), [destination, *created], rules)
    logger.info("move_grammar: %s -> %s", source, destination)
    return Edit(result, Outcome.APPLIED)


# =============================================================================
# Row / column insertion
# =============================================================================


def _insert_band(
    session: Session,
    active: Coordinate,
    direction: Direction,
    rules: SheetRules,
) -> Edit:
    operation = "insert_column" if direction is Direction.E else "insert_row"
    grammars = session.grammars

    parent = active.parent()
    if parent is None:
        return _skip(session, Outcome.NO_PARENT, operation, active)
    if parent not in grammars or active not in grammars:
        return _skip(session, Outcome.MISSING_COORDINATE, operation, active)
    parent_node = grammars[parent]
    if not isinstance(parent_node.kind, Grid):
        return _skip(session, Outcome.NOT_A_GRID, operation, parent)

    # Walk to the last stored cell in the active row (or column)
    frontier = active
    while True:
        next_coord = frontier.neighbor(direction)
        if next_coord is None or next_coord not in grammars:
            break
        frontier = next_coord

    if direction is Direction.E:
        members = column_members(session, frontier.full_col())
        new_pairs = [(m.row(), m.col() + 1) for m in members]
    else:
        members = row_members(session, frontier.full_row())
        new_pairs = [(m.row() + 1, m.col()) for m in members]

    new_grammars = dict(grammars)
    children = list(parent_node.kind.children)
    new_coords: list[Coordinate] = []
    for pair in new_pairs:
        new_coord = parent.child_of(pair)
        # Cells already stored there (ragged grids) are kept as they are
        if new_coord not in new_grammars:
            new_grammars[new_coord] = Grammar.default()
        if pair not in children:
            children.append(pair)
        new_coords.append(new_coord)

    new_grammars[parent] = replace(parent_node, kind=Grid(tuple(children)))
    result = ensure_dimensions(with_grammars(session, new_grammars), new_coords, rules)
    logger.info("%s: %d new cell(s) under %s", operation, len(new_coords), parent)
    return Edit(result, Outcome.APPLIED)


def insert_column(session: Session, active: Coordinate, rules: SheetRules = SheetRules()) -> Edit:
    """
    Append a column to the grid holding active.

    Walks right from active to the last stored cell, takes every cell in
    that cell's column and adds a default leaf one column further right.
    """
    return _insert_band(session, active, Direction.E, rules)


def insert_row(session: Session, active: Coordinate, rules: SheetRules = SheetRules()) -> Edit:
    """
    Append a row to the grid holding active.

    Walks down from active to the last stored cell, takes every cell in
    that cell's row and adds a default leaf one row further down.
    """
    return _insert_band(session, active, Direction.S, rules)


# =============================================================================
# Nested grids and sizing
# =============================================================================


def resize(session: Session, coord: Coordinate, height: float, width: float) -> Edit:
    """Set the row height and column width of the bands coord sits in."""
    row_heights = dict(session.row_heights)
    col_widths = dict(session.col_widths)
    row_heights[coord.full_row()] = height
    col_widths[coord.full_col()] = width
    return Edit(replace(session, row_heights=row_heights, col_widths=col_widths), Outcome.APPLIED)


def add_nested_grid(
    session: Session,
    coord: Coordinate,
    rows: int,
    cols: int,
    rules: SheetRules = SheetRules(),
) -> Edit:
    """
    Turn the cell at coord into a rows x cols grid of default leaves.

    New bands split the cell's current size evenly when it is larger than
    the defaults; existing band sizes are kept. The parent of coord takes
    on the same Grid kind (same child layout) as the new grid. Finally the
    cell's own bands are sized to fit rows x cols default cells.

    Raises:
        InvalidIndex: If rows or cols is below 1
    """
    grammar = Grammar.as_grid(rows, cols)
    if coord not in session.grammars:
        return _skip(session, Outcome.MISSING_COORDINATE, "add_nested_grid", coord)
    match grammar.kind:
        case Grid() as grid:
            pass
        case Input() | Lookup() | Defn():
            raise ValueError(f"as_grid produced a non-grid kind: {grammar.kind!r}")

    current_height = session.row_heights.get(coord.full_row(), rules.default_row_height)
    current_width = session.col_widths.get(coord.full_col(), rules.default_col_width)
    child_height = rules.default_row_height
    child_width = rules.default_col_width
    if current_height > child_height:
        child_height = current_height / rows
    if current_width > child_width:
        child_width = current_width / cols

    grammars = dict(session.grammars)
    row_heights = dict(session.row_heights)
    col_widths = dict(session.col_widths)

    for pair in grid.children:
        child = coord.child_of(pair)
        grammars[child] = Grammar.default()
        row_heights.setdefault(child.full_row(), child_height)
        col_widths.setdefault(child.full_col(), child_width)

    parent = coord.parent()
    filled: list[Coordinate] = []
    if parent is not None and parent in grammars:
        grammars[parent] = replace(grammars[parent], kind=grid)
        filled = _fill_grid_children(grammars, parent, grid)
    grammars[coord] = grammar

    result = replace(
        with_grammars(session, grammars), row_heights=row_heights, col_widths=col_widths
    )
    result = ensure_dimensions(result, filled, rules)
    result = resize(
        result,
        coord,
        rows * rules.default_row_height,
        cols * rules.default_col_width,
    ).session
    logger.info("add_nested_grid: %s is now %dx%d", coord, rows, cols)
    return Edit(result, Outcome.APPLIED)


# =============================================================================
# Definitions
# =============================================================================


def apply_definition(
    session: Session,
    defn_coord: Coordinate,
    target: Coordinate,
    rules: SheetRules = SheetRules(),
) -> Edit:
    """
    Instantiate the definition stored at defn_coord into the cell at target.

    target becomes a grid with one row per rule. Row i holds a copy of the
    grammar at the i-th rule coordinate (named after the rule when the rule
    has a name), together with copies of everything stored beneath that
    template. Band sizes are copied from the template where known.

    A definition whose templates are not all stored is reported and skipped.
    """
    grammars = session.grammars
    node = grammars.get(defn_coord)
    if node is None:
        logger.warning("apply_definition: no definition at %s", defn_coord)
        return Edit(session, Outcome.MISSING_COORDINATE)

    match node.kind:
        case Defn() as defn:
            pass
        case Input() | Lookup() | Grid():
            logger.warning("apply_definition: %s is not a definition", defn_coord)
            return Edit(session, Outcome.WRONG_KIND)

    if target not in grammars:
        return _skip(session, Outcome.MISSING_COORDINATE, "apply_definition", target)

    protected = [defn_coord] + [rule_coord for _, rule_coord in defn.rules]
    if any(c == target or c.is_descendant_of(target) for c in protected):
        return _skip(session, Outcome.REFUSED, "apply_definition", target)

    missing = [str(rule_coord) for _, rule_coord in defn.rules if rule_coord not in grammars]
    if missing:
        logger.warning(
            "apply_definition: %s has rule(s) pointing at missing cells: %s",
            defn_coord,
            ", ".join(missing),
        )
        return Edit(session, Outcome.MISSING_COORDINATE)

    new_grammars = dict(grammars)
    row_heights = dict(session.row_heights)
    col_widths = dict(session.col_widths)
    children: list[tuple[int, int]] = []

    def copy_bands(src: Coordinate, dst: Coordinate) -> None:
        row_heights.setdefault(
            dst.full_row(), session.row_heights.get(src.full_row(), rules.default_row_height)
        )
        col_widths.setdefault(
            dst.full_col(), session.col_widths.get(src.full_col(), rules.default_col_width)
        )

    for index, (rule_name, rule_coord) in enumerate(defn.rules, start=1):
        pair = (index, 1)
        slot = target.child_of(pair)
        template = grammars[rule_coord]
        new_grammars[slot] = replace(template, name=rule_name or template.name)
        copy_bands(rule_coord, slot)

        for coord in _by_address(grammars):
            if coord.is_descendant_of(rule_coord):
                copy = coord.rebase(rule_coord, slot)
                new_grammars[copy] = grammars[coord]
                copy_bands(coord, copy)

        children.append(pair)

    new_grammars[target] = replace(grammars[target], kind=Grid(tuple(children)))
    result = replace(
        with_grammars(session, new_grammars), row_heights=row_heights, col_widths=col_widths
    )
    logger.info(
        "apply_definition: %s instantiated at %s (%d rule(s))",
        defn_coord,
        target,
        len(defn.rules),
    )
    return Edit(result, Outcome.APPLIED)


def rename_definition(session: Session, coord: Coordinate, label: str) -> Edit:
    """Set the label of the definition at coord."""
    node = session.grammars.get(coord)
    if node is None:
        return _skip(session, Outcome.MISSING_COORDINATE, "rename_definition", coord)
    if not isinstance(node.kind, Defn):
        return _skip(session, Outcome.WRONG_KIND, "rename_definition", coord)

    grammars = dict(session.grammars)
    grammars[coord] = replace(node, kind=replace(node.kind, label=label))
    return Edit(with_grammars(session, grammars), Outcome.APPLIED)


def add_definition_rule(
    session: Session, coord: Coordinate, rules: SheetRules = SheetRules()
) -> Edit:
    """
    Append an unnamed rule to the definition at coord.

    The rule's template is a new default leaf in column B, one row below the
    existing rules (row n + 1 for a definition with n rules).
    """
    node = session.grammars.get(coord)
    if node is None:
        return _skip(session, Outcome.MISSING_COORDINATE, "add_definition_rule", coord)
    if not isinstance(node.kind, Defn):
        return _skip(session, Outcome.WRONG_KIND, "add_definition_rule", coord)

    defn = node.kind
    rule_coord = coord.child_of((len(defn.rules) + 1, 2))
    grammars = dict(session.grammars)
    grammars.setdefault(rule_coord, Grammar.default())
    grammars[coord] = replace(node, kind=replace(defn, rules=defn.rules + (("", rule_coord),)))

    result = ensure_dimensions(with_grammars(session, grammars), [rule_coord], rules)
    logger.info("add_definition_rule: %s now has %d rule(s)", coord, len(defn.rules) + 1)
    return Edit(result, Outcome.APPLIED)


# =============================================================================
# Leaf edits
# =============================================================================


def toggle_input_lookup(session: Session, coord: Coordinate) -> Edit:
    """
    Switch an Input cell to an empty Lookup and a Lookup cell to an empty
    Input. Text and query are not carried over.
    """
    node = session.grammars.get(coord)
    if node is None:
        return _skip(session, Outcome.MISSING_COORDINATE, "toggle_input_lookup", coord)

    match node.kind:
        case Input():
            new_kind: Input | Lookup = Lookup("", None)
        case Lookup():
            new_kind = Input("")
        case Grid() | Defn():
            logger.info("toggle_input_lookup: cannot toggle non-Input/Lookup kind at %s", coord)
            return Edit(session, Outcome.WRONG_KIND)

    grammars = dict(session.grammars)
    grammars[coord] = replace(node, kind=new_kind)
    return Edit(with_grammars(session, grammars), Outcome.APPLIED)


def change_input(session: Session, coord: Coordinate, text: str) -> Edit:
    """Set the text of an Input cell or the query of a Lookup cell."""
    node = session.grammars.get(coord)
    if node is None:
        return _skip(session, Outcome.MISSING_COORDINATE, "change_input", coord)

    match node.kind:
        case Input():
            new_kind: Input | Lookup = Input(text)
        case Lookup(target=target):
            new_kind = Lookup(text, target)
        case Grid() | Defn():
            return _skip(session, Outcome.WRONG_KIND, "change_input", coord)

    grammars = dict(session.grammars)
    grammars[coord] = replace(node, kind=new_kind)
    return Edit(with_grammars(session, grammars), Outcome.APPLIED)
