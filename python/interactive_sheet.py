"""
Interactive terminal sheet.
Display the document and edit it with keyboard commands.

Usage:
    python interactive_sheet.py [session.json]
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import readchar
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from coordinate import Coordinate, Direction
from grammar import Grid, Input, Lookup
from reducer import (
    Action,
    AddNestedGrid,
    Alert,
    ChangeInput,
    Dispatcher,
    InsertCol,
    InsertRow,
    LoadDriverMainFile,
    LoadSession,
    ReadSession,
    SaveSession,
    SetActiveCell,
    TaskKind,
    ToggleLookup,
    UploadDriverMiscFile,
)
from session import MissingCoordinate
from sheet_render import cell_label, render_session

logger = logging.getLogger(__name__)

MOVES = {
    "w": Direction.N,
    "s": Direction.S,
    "a": Direction.W,
    "d": Direction.E,
    readchar.key.UP: Direction.N,
    readchar.key.DOWN: Direction.S,
    readchar.key.LEFT: Direction.W,
    readchar.key.RIGHT: Direction.E,
}


class InteractiveSheet:
    """Keyboard front end: turns key presses into actions and runs pending tasks."""

    def __init__(self, dispatcher: Dispatcher | None = None, session_path: str | None = None) -> None:
        self.dispatcher = dispatcher if dispatcher is not None else Dispatcher()
        self.session_path = session_path
        self.console = Console()
        self.status_message = "Ready"
        self.editing: str | None = None  # Text being typed into the active cell

    @property
    def active_cell(self) -> Coordinate | None:
        return self.dispatcher.state.active_cell

    def send(self, action: Action) -> None:
        """Dispatch one action, then complete whatever work it queued."""
        try:
            self.dispatcher.dispatch(action)
        except (MissingCoordinate, ValueError) as e:
            self.status_message = f"✗ {type(e).__name__}: {str(e).splitlines()[0]}"
            return
        self.run_tasks()

    def run_tasks(self) -> None:
        """Perform file work the reducer asked for and feed the results back."""
        for task in self.dispatcher.take_tasks():
            path = Path(task.path)
            try:
                if task.kind is TaskKind.READ_SESSION:
                    self.status_message = f"✓ Loaded {path}"
                    self.send(LoadSession(path.read_text()))
                elif task.kind is TaskKind.SAVE_SESSION:
                    path.write_text(task.content or "")
                    self.status_message = f"✓ Saved {path}"
                elif task.kind is TaskKind.READ_DRIVER_MAIN:
                    self.send(LoadDriverMainFile(path.name, path.read_text()))
                elif task.kind is TaskKind.UPLOAD_DRIVER_MISC:
                    self.send(UploadDriverMiscFile(str(path), path.read_text()))
            except (OSError, UnicodeDecodeError) as e:
                self.send(Alert(f"Could not access {path}: {e}"))
                self.status_message = f"✗ {e}"
        for channel, name, _ in self.dispatcher.take_outbox():
            logger.info("outbox %s: %s", channel, name)

    def generate_display(self) -> Panel:
        """Generate the current display with the sheet and status."""
        state = self.dispatcher.state
        active = state.active_cell

        status = Text()
        status.append("Session: ", style="bold")
        status.append(f"{state.session.title}\n")
        status.append("Active Cell: ", style="bold")
        if active is not None and active in state.session.grammars:
            status.append(f"{active} = {cell_label(state.session.grammars[active])}\n\n")
        else:
            status.append(f"{active}\n\n")

        sheet_text = render_session(state.session, state.view_root, active, color=True)
        status.append(Text.from_ansi(sheet_text))
        status.append("\n\n")

        if self.editing is not None:
            status.append("Editing: ", style="bold yellow")
            status.append(f"{self.editing}▏\n", style="yellow")
            status.append("  Enter - Commit   Esc - Cancel\n\n")
        else:
            status.append("Keys:\n", style="bold cyan")
            status.append("  WASD / arrows - Move      Enter - Into nested grid   U - Up to parent\n")
            status.append("  E - Edit text             T - Toggle input/lookup    G - Nest 2x2 grid\n")
            status.append("  R - Insert row            C - Insert column\n")
            status.append("  O - Open file             P - Save file              Q - Quit\n\n")

        status.append("─" * 40 + "\n", style="dim")
        status.append("Status: ", style="bold")
        status.append(self.status_message)

        return Panel(status, title="Meta-Sheet", border_style="green", width=100)

    def move(self, direction: Direction) -> None:
        active = self.active_cell
        if active is None:
            return
        target = active.neighbor(direction)
        if target is None or target not in self.dispatcher.state.session.grammars:
            self.status_message = f"No cell {direction.value} of {active}"
            return
        self.send(SetActiveCell(target))

    def enter_nested(self) -> None:
        active = self.active_cell
        node = self.dispatcher.state.session.grammars.get(active) if active else None
        if node is None or not isinstance(node.kind, Grid) or not node.kind.children:
            self.status_message = "Active cell is not a grid"
            return
        self.send(SetActiveCell(active.child_of(node.kind.children[0])))

    def leave_nested(self) -> None:
        active = self.active_cell
        parent = active.parent() if active else None
        if parent is None or parent.is_root_level():
            self.status_message = "Already at the top level"
            return
        self.send(SetActiveCell(parent))

    def start_editing(self) -> None:
        active = self.active_cell
        node = self.dispatcher.state.session.grammars.get(active) if active else None
        if node is None:
            return
        match node.kind:
            case Input(value=value):
                self.editing = value
            case Lookup(query=query):
                self.editing = query
            case _:
                self.status_message = "Only input and lookup cells hold text"

    def handle_edit_key(self, key: str) -> None:
        if key == readchar.key.ENTER:
            if self.active_cell is not None:
                self.send(ChangeInput(self.active_cell, self.editing or ""))
            self.editing = None
        elif key == readchar.key.ESC:
            self.editing = None
        elif key == readchar.key.BACKSPACE:
            self.editing = (self.editing or "")[:-1]
        elif len(key) == 1 and key.isprintable():
            self.editing = (self.editing or "") + key

    def handle_key(self, key: str) -> bool:
        """Handle one key press. Returns False to quit."""
        if self.editing is not None:
            self.handle_edit_key(key)
            return True

        lowered = key.lower()
        if key in MOVES or lowered in MOVES:
            self.move(MOVES.get(key) or MOVES[lowered])
        elif lowered == "q":
            self.status_message = "Quitting..."
            return False
        elif key == readchar.key.ENTER:
            self.enter_nested()
        elif lowered == "u":
            self.leave_nested()
        elif lowered == "e":
            self.start_editing()
        elif lowered == "t" and self.active_cell is not None:
            self.send(ToggleLookup(self.active_cell))
        elif lowered == "g" and self.active_cell is not None:
            self.send(AddNestedGrid(self.active_cell, 2, 2))
        elif lowered == "r":
            self.send(InsertRow())
        elif lowered == "c":
            self.send(InsertCol())
        elif lowered == "o":
            if self.session_path is None:
                self.status_message = "No session file given on the command line"
            else:
                self.send(ReadSession(self.session_path))
        elif lowered == "p":
            self.send(SaveSession(self.session_path))
        else:
            self.status_message = f"Unknown key: {repr(key)}"
        return True

    def run(self) -> None:
        """Run the interactive loop."""
        with Live(self.generate_display(), console=self.console, refresh_per_second=4) as live:
            try:
                while True:
                    live.update(self.generate_display())
                    if not self.handle_key(readchar.readkey()):
                        live.update(self.generate_display())
                        break
            except KeyboardInterrupt:
                self.status_message = "Interrupted by user"
                live.update(self.generate_display())


def main(argv: list[str]) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    session_path = argv[1] if len(argv) > 1 else None
    sheet = InteractiveSheet(session_path=session_path)
    if session_path is not None and Path(session_path).exists():
        sheet.send(ReadSession(session_path))
    sheet.run()


def cli() -> None:
    main(sys.argv)


if __name__ == "__main__":
    cli()
