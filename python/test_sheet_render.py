"""Tests for sheet_render module."""

from coordinate import META, ROOT, Coordinate
from grammar import CellLookup, Defn, DefnLookup, Grammar, Grid, Input, Lookup
from mutations import add_nested_grid
from session import default_session, with_grammars
from sheet_render import cell_label, render_grid_lines, render_session


def c(text: str) -> Coordinate:
    return Coordinate.parse(text)


class TestCellLabel:
    """Tests for one-line cell summaries."""

    def test_input(self) -> None:
        assert cell_label(Grammar.text("", "hello")) == "hello"
        assert cell_label(Grammar.default()) == "_"

    def test_lookup(self) -> None:
        assert cell_label(Grammar(kind=Lookup("js", None))) == "?js"
        assert cell_label(Grammar(kind=Lookup("js", CellLookup(c("meta-A1"))))) == "?js->meta-A1"
        assert cell_label(Grammar(kind=Lookup("", DefnLookup(c("meta-A3"))))) == "?=>meta-A3"

    def test_grid(self) -> None:
        assert cell_label(Grammar(kind=Grid(((1, 1), (2, 3))))) == "[2x3]"

    def test_defn(self) -> None:
        assert cell_label(Grammar(name="defn", kind=Defn("", c("meta-A3")))) == "defn:defn"
        assert cell_label(Grammar(name="defn", kind=Defn("person", c("meta-A3")))) == "defn:person"


class TestRenderGrid:
    """Tests for drawing a single grid."""

    def test_title_and_shape(self) -> None:
        lines = render_grid_lines(default_session(), ROOT)
        # Top border, three rows, bottom border
        assert len(lines) == 5
        assert "root (root)" in lines[0]
        assert lines[0].startswith("┌") and lines[0].endswith("┐")
        assert lines[-1].startswith("└")

    def test_active_cell_highlighted(self) -> None:
        lines = render_grid_lines(default_session(), ROOT, active=c("root-A1"))
        assert "[_]" in lines[1]
        assert "[_]" not in lines[2]

    def test_meta_labels(self) -> None:
        text = "\n".join(render_grid_lines(default_session(), META))
        assert "js grammar" not in text  # labels show content, not names
        assert "This is js" in text
        assert "defn:defn" in text

    def test_missing_child_marked(self) -> None:
        session = default_session()
        grammars = dict(session.grammars)
        del grammars[c("root-B2")]
        lines = render_grid_lines(with_grammars(session, grammars), ROOT)
        assert "!" in lines[2]

    def test_leaf(self) -> None:
        lines = render_grid_lines(default_session(), c("meta-A1"))
        assert lines == ["meta-A1: This is js"]

    def test_clipping(self) -> None:
        session = default_session()
        grammars = dict(session.grammars)
        grammars[c("root-A1")] = Grammar(kind=Input("x" * 40))
        lines = render_grid_lines(with_grammars(session, grammars), ROOT, max_cell_width=10)
        assert "x" * 9 + "…" in lines[1]


class TestRenderSession:
    """Tests for drawing nested grids."""

    def test_plain(self) -> None:
        text = render_session(default_session(), color=False)
        assert "\x1b[" not in text
        assert "root (root)" in text

    def test_nested_grids_follow(self) -> None:
        session = add_nested_grid(default_session(), c("root-A1"), 2, 2).session
        text = render_session(session, color=False)

        blocks = text.split("\n\n")
        assert len(blocks) == 2
        assert " root-A1 " in blocks[1]

    def test_definition_templates(self) -> None:
        """The sample definition's template grid is drawn under meta only when reached."""
        text = render_session(default_session(), META, color=False)
        assert text.count("┌") == 1

        template = render_session(default_session(), c("meta-A3-B1"), color=False)
        assert "custom grammar" in template

    def test_missing_start(self) -> None:
        assert render_session(default_session(), c("root-Z9"), color=False) == ""
