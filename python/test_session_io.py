"""Tests for session_io module."""

import json
from dataclasses import replace

import pytest

from address_parser import MalformedAddress
from coordinate import ROOT, Coordinate, FullRow
from grammar import CellLookup, DefnLookup, Grammar, Lookup, Style
from session import InvariantViolation, default_session, with_grammars
from session_io import (
    dumps_session,
    grammar_from_dict,
    grammar_to_dict,
    loads_session,
    session_from_dict,
    session_to_dict,
)


def c(text: str) -> Coordinate:
    return Coordinate.parse(text)


class TestEncoding:
    """Tests for turning sessions into JSON-ready dicts."""

    def test_keys_are_addresses(self) -> None:
        data = session_to_dict(default_session())
        assert data["title"] == "my session"
        assert "meta-A3-B1-A1" in data["grammars"]
        assert "root" in data["grammars"]

    def test_defn_layout(self) -> None:
        data = session_to_dict(default_session())
        assert data["grammars"]["meta-A3"]["kind"] == {
            "type": "Defn",
            "label": "",
            "coordinate": "meta-A3",
            "rules": [["", "meta-A3-B1"]],
        }

    def test_grid_layout(self) -> None:
        data = session_to_dict(default_session())
        assert data["meta"]["kind"] == {"type": "Grid", "children": [[1, 1], [2, 1], [3, 1]]}

    def test_style_fields(self) -> None:
        data = grammar_to_dict(Grammar(style=Style(font_weight=700)))
        assert data["style"]["font_weight"] == 700
        assert data["style"]["border_color"] == "grey"

    def test_dumps_is_json(self) -> None:
        text = dumps_session(default_session())
        assert json.loads(text)["grammars"]["meta-A1"]["kind"] == {"type": "Input", "value": "This is js"}


class TestDecoding:
    """Tests for loading saved documents."""

    def test_save_then_load(self) -> None:
        session = default_session()
        loaded = loads_session(dumps_session(session))

        assert loaded.grammars == session.grammars
        assert loaded.root == session.root
        assert loaded.meta == session.meta
        assert loaded.title == session.title

    @pytest.mark.parametrize(
        "target",
        [None, CellLookup(Coordinate.parse("root-B1")), DefnLookup(Coordinate.parse("meta-A3"))],
    )
    def test_lookup_targets(self, target) -> None:
        grammar = Grammar(name="q", kind=Lookup("find", target))
        assert grammar_from_dict(grammar_to_dict(grammar)) == grammar

    def test_missing_grid_child_rejected(self) -> None:
        data = session_to_dict(default_session())
        del data["grammars"]["root-A1"]

        with pytest.raises(InvariantViolation, match="lists missing child 'root-A1'"):
            session_from_dict(data)

    def test_root_mismatch_rejected(self) -> None:
        data = session_to_dict(default_session())
        data["root"]["name"] = "other"

        with pytest.raises(InvariantViolation, match="root field does not match"):
            session_from_dict(data)

    def test_not_json(self) -> None:
        with pytest.raises(InvariantViolation, match="Invalid JSON"):
            loads_session("{not json")

    def test_bad_address(self) -> None:
        data = session_to_dict(default_session())
        data["grammars"]["root-Z0"] = grammar_to_dict(Grammar.default())

        with pytest.raises(MalformedAddress, match="row numbers start at 1"):
            session_from_dict(data)

    def test_unknown_kind(self) -> None:
        data = session_to_dict(default_session())
        data["grammars"]["root-A1"]["kind"] = {"type": "Formula"}

        with pytest.raises(InvariantViolation, match="grammars.root-A1.kind: .*'Formula'"):
            session_from_dict(data)

    def test_bad_child_pair(self) -> None:
        data = session_to_dict(default_session())
        data["root"]["kind"]["children"].append([0, 1])
        data["grammars"]["root"]["kind"]["children"].append([0, 1])

        with pytest.raises(InvariantViolation, match="greater than or equal to 1"):
            session_from_dict(data)

    def test_unknown_style_field(self) -> None:
        data = grammar_to_dict(Grammar.default())
        data["style"]["blink"] = True

        with pytest.raises(InvariantViolation, match="blink"):
            grammar_from_dict(data)

    def test_missing_field(self) -> None:
        data = session_to_dict(default_session())
        del data["title"]

        with pytest.raises(InvariantViolation, match="title: Field required"):
            session_from_dict(data)

    def test_style_field_type(self) -> None:
        """Style values are type-checked, not copied through."""
        data = session_to_dict(default_session())
        data["grammars"]["root-A1"]["style"]["font_weight"] = "bold"

        with pytest.raises(InvariantViolation, match="grammars.root-A1.style.font_weight"):
            loads_session(json.dumps(data))

    def test_same_cell_spelled_twice(self) -> None:
        """Two keys naming one cell reject the whole document."""
        data = session_to_dict(default_session())
        data["grammars"]["root-a2"] = grammar_to_dict(Grammar.text("dup", ""))

        with pytest.raises(InvariantViolation, match="'root-A2' and 'root-a2' both name 'root-A2'"):
            loads_session(json.dumps(data))

    def test_rejected_load_leaves_previous(self) -> None:
        previous = default_session()
        data = session_to_dict(previous)
        data["grammars"]["root-a2"] = grammar_to_dict(Grammar.default())
        before = dict(previous.grammars)

        with pytest.raises(InvariantViolation):
            loads_session(json.dumps(data), previous=previous)

        assert previous.grammars == before

    def test_dimensions_carried_over(self) -> None:
        """Sizes come from the previous session; new bands get defaults."""
        previous = default_session()
        previous = replace(previous, row_heights={**previous.row_heights, FullRow(ROOT, 1): 44.0})

        bigger = default_session()
        grammars = dict(bigger.grammars)
        grammars[c("root-A4")] = Grammar.default()
        children = bigger.root.kind.children + ((4, 1),)
        grammars[ROOT] = replace(bigger.root, kind=replace(bigger.root.kind, children=children))
        bigger = with_grammars(bigger, grammars)

        loaded = loads_session(dumps_session(bigger), previous=previous)
        assert loaded.row_heights[FullRow(ROOT, 1)] == 44.0
        assert loaded.row_heights[FullRow(ROOT, 4)] == 30.0
