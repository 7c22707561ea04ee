"""
Text rendering for sheets.

Each Grid node is drawn as a bordered table titled with its address; grids
nested inside it are drawn after it, depth first. Only for terminals and
debugging: sizes come from the cell text, not from the dimension tables.
"""

from __future__ import annotations

import logging
from typing import Callable

from simple_chalk import chalk  # type: ignore[import-untyped]

from coordinate import ROOT, Coordinate
from grammar import CellLookup, Defn, DefnLookup, Grammar, Grid, Input, Lookup
from session import Session

logger = logging.getLogger(__name__)

__all__ = ["cell_label", "render_grid_lines", "render_session"]

MIN_CELL_WIDTH = 3


def cell_label(grammar: Grammar) -> str:
    """One-line summary of a cell."""
    match grammar.kind:
        case Input(value=value):
            return value if value else "_"
        case Lookup(query=query, target=target):
            match target:
                case CellLookup(coordinate=coord):
                    return f"?{query}->{coord}"
                case DefnLookup(coordinate=coord):
                    return f"?{query}=>{coord}"
                case None:
                    return f"?{query}"
        case Grid() as grid:
            return f"[{grid.rows}x{grid.cols}]"
        case Defn(label=label):
            return f"defn:{label or grammar.name}"
    raise ValueError(f"Unknown grammar kind: {grammar.kind!r}")


def _clip(text: str, width: int) -> str:
    if len(text) <= width:
        return text.center(width)
    return text[: width - 1] + "…"


def render_grid_lines(
    session: Session,
    coord: Coordinate,
    active: Coordinate | None = None,
    colorize: Callable[[str], str] | None = None,
    highlight: Callable[[str], str] | None = None,
    max_cell_width: int = 16,
) -> list[str]:
    """
    Render the grid stored at coord as a list of lines.

    Cells the grid does not list are left blank. The active cell is passed
    through highlight.
    """
    if colorize is None:
        colorize = lambda s: s
    if highlight is None:
        highlight = lambda s: f"[{s[1:-1]}]" if len(s) >= 2 else s

    node = session.grammars[coord]
    if not isinstance(node.kind, Grid):
        return [colorize(f"{coord}: {cell_label(node)}")]

    grid = node.kind
    listed = set(grid.children)
    labels: dict[tuple[int, int], str] = {}
    for pair in grid.children:
        child = coord.child_of(pair)
        labels[pair] = cell_label(session.grammars[child]) if child in session.grammars else "!"

    widths = [
        min(
            max([MIN_CELL_WIDTH] + [len(labels[(r, c)]) + 2 for r in range(1, grid.rows + 1) if (r, c) in labels]),
            max_cell_width,
        )
        for c in range(1, grid.cols + 1)
    ]
    inner_width = sum(widths) + max(len(widths) - 1, 0)

    title = f" {coord} " if not node.name else f" {coord} ({node.name}) "
    if len(title) > inner_width:
        # Widen the last column so the title fits
        if widths:
            widths[-1] += len(title) - inner_width
        inner_width = len(title)
    title_start = (inner_width - len(title)) // 2
    top = "┌" + "─" * title_start + title + "─" * (inner_width - title_start - len(title)) + "┐"

    lines = [colorize(top)]
    for r in range(1, grid.rows + 1):
        parts: list[str] = []
        for c in range(1, grid.cols + 1):
            content = _clip(labels[(r, c)], widths[c - 1]) if (r, c) in listed else " " * widths[c - 1]
            if active is not None and active == coord.child_of((r, c)):
                content = highlight(content)
            else:
                content = colorize(content)
            parts.append(content)
        lines.append(colorize("│") + colorize("│").join(parts) + colorize("│"))
    lines.append(colorize("└" + "─" * inner_width + "┘"))
    return lines


def render_session(
    session: Session,
    coord: Coordinate = ROOT,
    active: Coordinate | None = None,
    color: bool = True,
    max_cell_width: int = 16,
) -> str:
    """
    Render the grid at coord followed by every grid nested beneath it.

    Args:
        session: The document
        coord: Where to start (default: the document root)
        active: Cell to highlight
        color: Use ANSI colours (one per nesting depth)
        max_cell_width: Longest label shown before clipping
    """
    palette: list[Callable[[str], str]] = [
        chalk.white,
        chalk.cyan,
        chalk.yellow,
        chalk.magenta,
        chalk.green,
        chalk.blue,
    ]

    blocks: list[str] = []

    def walk(current: Coordinate, depth: int) -> None:
        if current not in session.grammars:
            logger.debug("render_session: %s is not stored", current)
            return
        colorize = palette[depth % len(palette)] if color else None
        highlight = chalk.bgWhite.black if color else None
        blocks.append(
            "\n".join(
                render_grid_lines(session, current, active, colorize, highlight, max_cell_width)
            )
        )
        match session.grammars[current].kind:
            case Grid(children=children):
                for pair in children:
                    child = current.child_of(pair)
                    node = session.grammars.get(child)
                    if node is not None and isinstance(node.kind, Grid):
                        walk(child, depth + 1)
            case _:
                pass

    walk(coord, 0)
    return "\n\n".join(blocks)
