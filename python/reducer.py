"""
Action reducer for the meta-spreadsheet.

The whole application state (the open document plus selection and other
transient state) lives in one SheetState. update() maps (state, action) to
(new state, should_render) and is the only way the outside world changes
it. Slow work such as reading a file is split into two actions: the first
registers a PendingTask, the collaborator performs it, and the result comes
back as a new action.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Sequence

from coordinate import META, ROOT, Coordinate
from grammar import CellLookup, DefnLookup, Grid, LookupTarget
from mutations import (
    add_definition_rule,
    add_nested_grid,
    apply_definition,
    change_input,
    insert_column,
    insert_row,
    move_grammar,
    rename_definition,
    resize,
    toggle_input_lookup,
)
from session import Session, SheetRules, col_width_of, default_session, row_height_of
from session_io import dumps_session, loads_session

logger = logging.getLogger(__name__)

__all__ = [
    "Action",
    "Dispatcher",
    "PendingTask",
    "SheetState",
    "TaskKind",
    "initial_state",
    "selection",
    "split_driver_files",
    "update",
]

UPLOAD_CHANNEL = "upload-driver-misc-file"


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class Noop:
    pass


@dataclass(frozen=True)
class Alert:
    message: str


@dataclass(frozen=True)
class ChangeInput:
    coordinate: Coordinate
    text: str


@dataclass(frozen=True)
class SetActiveCell:
    coordinate: Coordinate


@dataclass(frozen=True)
class SetSelectedCells:
    coordinate: Coordinate


@dataclass(frozen=True)
class DoCompletion:
    source: Coordinate
    destination: Coordinate


@dataclass(frozen=True)
class SetActiveMenu:
    menu: int | None


@dataclass(frozen=True)
class ReadSession:
    path: str


@dataclass(frozen=True)
class LoadSession:
    """Completion of ReadSession: the file's text."""

    payload: str


@dataclass(frozen=True)
class SaveSession:
    path: str | None = None  # Defaults to the session title


@dataclass(frozen=True)
class SetSessionTitle:
    title: str


@dataclass(frozen=True)
class ReadDriverFiles:
    paths: tuple[str, ...]


@dataclass(frozen=True)
class LoadDriverMainFile:
    name: str
    content: str


@dataclass(frozen=True)
class UploadDriverMiscFile:
    name: str
    content: str


@dataclass(frozen=True)
class AddNestedGrid:
    coordinate: Coordinate
    rows: int
    cols: int


@dataclass(frozen=True)
class InsertRow:
    pass


@dataclass(frozen=True)
class InsertCol:
    pass


@dataclass(frozen=True)
class DoLookup:
    """Resolve the lookup at source: move a cell there or instantiate a definition."""

    source: Coordinate
    target: LookupTarget


@dataclass(frozen=True)
class ToggleLookup:
    coordinate: Coordinate


@dataclass(frozen=True)
class ApplyDefinition:
    definition: Coordinate
    target: Coordinate


@dataclass(frozen=True)
class DefnUpdateName:
    coordinate: Coordinate
    label: str


@dataclass(frozen=True)
class DefnAddRule:
    coordinate: Coordinate


Action = (
    Noop
    | Alert
    | ChangeInput
    | SetActiveCell
    | SetSelectedCells
    | DoCompletion
    | SetActiveMenu
    | ReadSession
    | LoadSession
    | SaveSession
    | SetSessionTitle
    | ReadDriverFiles
    | LoadDriverMainFile
    | UploadDriverMiscFile
    | AddNestedGrid
    | InsertRow
    | InsertCol
    | DoLookup
    | ToggleLookup
    | ApplyDefinition
    | DefnUpdateName
    | DefnAddRule
)


# =============================================================================
# State
# =============================================================================


class TaskKind(Enum):
    """External work requested by the reducer."""

    READ_SESSION = "read_session"
    SAVE_SESSION = "save_session"
    READ_DRIVER_MAIN = "read_driver_main"
    UPLOAD_DRIVER_MISC = "upload_driver_misc"


@dataclass(frozen=True)
class PendingTask:
    kind: TaskKind
    path: str
    content: str | None = None  # Text to write, for SAVE_SESSION


@dataclass(frozen=True)
class SheetState:
    """Everything the application knows at one point in time."""

    session: Session
    view_root: Coordinate = ROOT
    active_cell: Coordinate | None = None
    first_select_cell: Coordinate | None = None
    last_select_cell: Coordinate | None = None
    suggestions: tuple[Coordinate, ...] = ()
    open_side_menu: int | None = None
    tasks: tuple[PendingTask, ...] = ()
    outbox: tuple[tuple[str, str, str], ...] = ()  # (channel, name, content) for the host shell
    drivers: tuple[str, ...] = ()
    alerts: tuple[str, ...] = ()
    rules: SheetRules = field(default_factory=SheetRules)


def initial_state(rules: SheetRules = SheetRules()) -> SheetState:
    """The state a new sheet opens with: the starter document, root-A1 active."""
    return SheetState(
        session=default_session(rules=rules),
        active_cell=ROOT.child_of((1, 1)),
        suggestions=tuple(META.child_of((row, 1)) for row in (1, 2, 3)),
        rules=rules,
    )


def split_driver_files(paths: Sequence[str]) -> tuple[str, list[str]]:
    """
    Separate a driver directory listing into its main file and the rest.

    The main file sits directly in the driver directory and is named after
    it: "<dir>/<dir>.js".

    Raises:
        ValueError: If there is not exactly one main file
    """
    main_files: list[str] = []
    misc_files: list[str] = []
    for path in paths:
        parts = path.split("/")
        if len(parts) == 2 and parts[1] == f"{parts[0]}.js":
            main_files.append(path)
        else:
            misc_files.append(path)

    if len(main_files) != 1:
        raise ValueError(
            f"Expected exactly one main driver file ('<dir>/<dir>.js'), found {len(main_files)}\n"
            f"  Files: {', '.join(paths) if paths else '(none)'}"
        )
    return main_files[0], misc_files


def selection(state: SheetState) -> list[Coordinate]:
    """
    Stored cells in the rectangle spanned by the first and last selected
    cells. Cells in different grids select only the first one.
    """
    grammars = state.session.grammars
    first, last = state.first_select_cell, state.last_select_cell
    if first is None:
        return []
    parent = first.parent()
    if last is None or parent is None or last.parent() != parent:
        return [first] if first in grammars else []

    rows = range(min(first.row(), last.row()), max(first.row(), last.row()) + 1)
    cols = range(min(first.col(), last.col()), max(first.col(), last.col()) + 1)
    cells = [parent.child_of((r, c)) for r in rows for c in cols]
    return [c for c in cells if c in grammars]


# =============================================================================
# Reducer
# =============================================================================


def _first_child(coord: Coordinate, session: Session) -> Coordinate | None:
    match session.grammars[coord].kind:
        case Grid(children=children) if children:
            return coord.child_of(children[0])
        case _:
            return None


def update(state: SheetState, action: Action) -> tuple[SheetState, bool]:
    """
    Apply one action.

    Returns:
        (new_state, should_render): should_render is True when the visible
        state changed.

    Raises:
        MissingCoordinate: DoCompletion into a cell whose bands have no size
        InvariantViolation, MalformedAddress: LoadSession with a bad payload
            (state is left as it was)
        ValueError: ReadDriverFiles without exactly one main file
    """
    session = state.session
    rules = state.rules

    match action:
        case Noop():
            return state, False

        case Alert(message=message):
            logger.info("%s", message)
            return replace(state, alerts=state.alerts + (message,)), False

        case ChangeInput(coordinate=coord, text=text):
            edit = change_input(session, coord, text)
            # The input widget already shows the new text
            return replace(state, session=edit.session), False

        case SetActiveCell(coordinate=coord):
            return (
                replace(state, first_select_cell=coord, last_select_cell=None, active_cell=coord),
                True,
            )

        case SetSelectedCells(coordinate=coord):
            return replace(state, last_select_cell=coord), True

        case DoCompletion(source=source, destination=destination):
            row_height = row_height_of(session, destination)
            col_width = col_width_of(session, destination)
            moved = move_grammar(session, source, destination, rules)
            sized = resize(moved.session, destination, row_height, col_width)
            return replace(state, session=sized.session), moved.applied

        case SetActiveMenu(menu=menu):
            return replace(state, open_side_menu=menu), True

        case ReadSession(path=path):
            task = PendingTask(TaskKind.READ_SESSION, path)
            return replace(state, tasks=state.tasks + (task,)), False

        case LoadSession(payload=payload):
            loaded = loads_session(payload, previous=session, rules=rules)
            # The title belongs to the open tab, not to the file
            return replace(state, session=replace(loaded, title=session.title)), True

        case SaveSession(path=path):
            task = PendingTask(TaskKind.SAVE_SESSION, path or session.title, dumps_session(session))
            return replace(state, tasks=state.tasks + (task,)), False

        case SetSessionTitle(title=title):
            return replace(state, session=replace(session, title=title)), True

        case ReadDriverFiles(paths=paths):
            main_file, misc_files = split_driver_files(paths)
            # Misc files go up first so they can be served when the main file runs
            tasks = tuple(PendingTask(TaskKind.UPLOAD_DRIVER_MISC, p) for p in misc_files)
            tasks += (PendingTask(TaskKind.READ_DRIVER_MAIN, main_file),)
            return replace(state, tasks=state.tasks + tasks), False

        case LoadDriverMainFile(name=name):
            logger.info("Loading Driver: %s", name)
            return replace(state, drivers=state.drivers + (name,)), True

        case UploadDriverMiscFile(name=name, content=content):
            message = (UPLOAD_CHANNEL, name, content)
            return replace(state, outbox=state.outbox + (message,)), False

        case AddNestedGrid(coordinate=coord, rows=rows, cols=cols):
            edit = add_nested_grid(session, coord, rows, cols, rules)
            if not edit.applied:
                return state, False
            return (
                replace(state, session=edit.session, active_cell=_first_child(coord, edit.session)),
                True,
            )

        case InsertRow() | InsertCol():
            if state.active_cell is None:
                return state, False
            insert = insert_row if isinstance(action, InsertRow) else insert_column
            edit = insert(session, state.active_cell, rules)
            return replace(state, session=edit.session), edit.applied

        case DoLookup(source=source, target=target):
            match target:
                case CellLookup(coordinate=destination):
                    edit = move_grammar(session, source, destination, rules)
                case DefnLookup(coordinate=definition):
                    edit = apply_definition(session, definition, source, rules)
            return replace(state, session=edit.session), edit.applied

        case ToggleLookup(coordinate=coord):
            edit = toggle_input_lookup(session, coord)
            return replace(state, session=edit.session), edit.applied

        case ApplyDefinition(definition=definition, target=target):
            edit = apply_definition(session, definition, target, rules)
            return replace(state, session=edit.session), edit.applied

        case DefnUpdateName(coordinate=coord, label=label):
            edit = rename_definition(session, coord, label)
            return replace(state, session=edit.session), edit.applied

        case DefnAddRule(coordinate=coord):
            edit = add_definition_rule(session, coord, rules)
            return replace(state, session=edit.session), edit.applied

    raise ValueError(f"Unknown action: {action!r}")


class Dispatcher:
    """
    Single owner of the SheetState.

    Actions are handled one at a time, in the order they arrive. Handling an
    action never dispatches another; a nested dispatch() is an error.
    """

    def __init__(self, state: SheetState | None = None) -> None:
        self.state = state if state is not None else initial_state()
        self._dispatching = False

    def dispatch(self, action: Action) -> bool:
        """Apply action and return whether a redraw is needed."""
        if self._dispatching:
            raise RuntimeError(f"dispatch({action!r}) called while another action is in progress")
        self._dispatching = True
        try:
            self.state, should_render = update(self.state, action)
        finally:
            self._dispatching = False
        return should_render

    def dispatch_all(self, actions: Iterable[Action]) -> bool:
        """Apply actions in order; True if any of them needs a redraw."""
        should_render = False
        for action in actions:
            should_render = self.dispatch(action) or should_render
        return should_render

    def take_tasks(self) -> tuple[PendingTask, ...]:
        """Hand the pending tasks to the caller and clear them."""
        tasks = self.state.tasks
        self.state = replace(self.state, tasks=())
        return tasks

    def take_outbox(self) -> tuple[tuple[str, str, str], ...]:
        """Hand queued host-shell messages to the caller and clear them."""
        outbox = self.state.outbox
        self.state = replace(self.state, outbox=())
        return outbox
