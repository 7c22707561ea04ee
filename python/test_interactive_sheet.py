"""Tests for interactive_sheet key handling (no terminal loop)."""

from pathlib import Path

import readchar

from coordinate import Coordinate
from grammar import Grid, Input
from interactive_sheet import InteractiveSheet


def c(text: str) -> Coordinate:
    return Coordinate.parse(text)


class TestKeys:
    """Tests for single key presses."""

    def test_move(self) -> None:
        sheet = InteractiveSheet()
        assert sheet.handle_key("d")
        assert sheet.active_cell == c("root-B1")
        sheet.handle_key(readchar.key.DOWN)
        assert sheet.active_cell == c("root-B2")

    def test_move_off_edge(self) -> None:
        sheet = InteractiveSheet()
        sheet.handle_key("w")
        assert sheet.active_cell == c("root-A1")
        assert "No cell" in sheet.status_message

    def test_quit(self) -> None:
        assert not InteractiveSheet().handle_key("q")

    def test_edit_text(self) -> None:
        sheet = InteractiveSheet()
        for key in ["e", "h", "i", readchar.key.ENTER]:
            sheet.handle_key(key)

        assert sheet.editing is None
        assert sheet.dispatcher.state.session.grammars[c("root-A1")].kind == Input("hi")

    def test_edit_cancel(self) -> None:
        sheet = InteractiveSheet()
        for key in ["e", "x", readchar.key.ESC]:
            sheet.handle_key(key)
        assert sheet.dispatcher.state.session.grammars[c("root-A1")].kind == Input("")

    def test_nest_and_enter(self) -> None:
        sheet = InteractiveSheet()
        sheet.handle_key("g")
        assert sheet.active_cell == c("root-A1-A1")

        sheet.handle_key("u")
        assert sheet.active_cell == c("root-A1")
        assert isinstance(sheet.dispatcher.state.session.grammars[c("root-A1")].kind, Grid)

        sheet.handle_key(readchar.key.ENTER)
        assert sheet.active_cell == c("root-A1-A1")

    def test_display_builds(self) -> None:
        panel = InteractiveSheet().generate_display()
        assert panel.title == "Meta-Sheet"


class TestFiles:
    """Tests for save and open."""

    def test_save_then_open(self, tmp_path: Path) -> None:
        path = tmp_path / "sheet.json"
        sheet = InteractiveSheet(session_path=str(path))

        sheet.handle_key("p")
        assert path.exists()
        assert sheet.status_message.startswith("✓ Saved")

        for key in ["e", "z", readchar.key.ENTER]:
            sheet.handle_key(key)
        assert sheet.dispatcher.state.session.grammars[c("root-A1")].kind == Input("z")

        sheet.handle_key("o")
        assert sheet.dispatcher.state.session.grammars[c("root-A1")].kind == Input("")
        assert sheet.status_message.startswith("✓ Loaded")

    def test_open_bad_file(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{")
        sheet = InteractiveSheet(session_path=str(path))
        before = sheet.dispatcher.state.session

        sheet.handle_key("o")

        assert sheet.dispatcher.state.session is before
        assert "InvariantViolation" in sheet.status_message

    def test_open_missing_file(self, tmp_path: Path) -> None:
        sheet = InteractiveSheet(session_path=str(tmp_path / "nope.json"))
        sheet.handle_key("o")
        assert sheet.dispatcher.state.alerts
        assert sheet.status_message.startswith("✗")

    def test_open_undecodable_file(self, tmp_path: Path) -> None:
        """Bytes that are not text become an alert, not a crash."""
        path = tmp_path / "binary.json"
        path.write_bytes(b"\xff\xfe\x00garbage")
        sheet = InteractiveSheet(session_path=str(path))
        before = sheet.dispatcher.state.session

        sheet.handle_key("o")

        assert sheet.dispatcher.state.session is before
        assert sheet.dispatcher.state.alerts
        assert sheet.status_message.startswith("✗")
