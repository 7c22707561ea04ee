"""Tests for coordinate module."""

import pytest

from address_parser import InvalidIndex, column_index
from coordinate import META, ROOT, Coordinate, Direction, FullCol, FullRow


def c(text: str) -> Coordinate:
    return Coordinate.parse(text)


class TestCoordinateBasics:
    """Tests for construction and accessors."""

    def test_roots(self) -> None:
        assert ROOT.row_cols == ((1, 1),)
        assert META.row_cols == ((1, 2),)
        assert ROOT.is_root_level()
        assert META.is_root_level()

    def test_row_and_col(self) -> None:
        """row/col come from the last pair."""
        coord = c("root-A1-C5")
        assert coord.row() == 5
        assert coord.col() == 3
        assert coord.last() == (5, 3)
        assert coord.depth == 3

    def test_str_is_canonical(self) -> None:
        assert str(c("meta-a3-b1")) == "meta-A3-B1"
        assert str(ROOT) == "root"

    def test_empty_rejected(self) -> None:
        with pytest.raises(InvalidIndex):
            Coordinate(())

    def test_zero_index_rejected(self) -> None:
        with pytest.raises(InvalidIndex):
            Coordinate(((1, 1), (0, 1)))

    def test_usable_as_dict_key(self) -> None:
        """Equal addresses hash the same."""
        table = {c("root-A1"): "x"}
        assert table[Coordinate(((1, 1), (1, 1)))] == "x"
        assert c("root-b2") == c("root-B2")


class TestParentAndChild:
    """Tests for walking up and down the hierarchy."""

    def test_root_has_no_parent(self) -> None:
        assert ROOT.parent() is None
        assert META.parent() is None

    def test_parent_drops_last_pair(self) -> None:
        coord = c("meta-A3-B1")
        assert coord.parent() == c("meta-A3")
        assert len(coord.parent().row_cols) == len(coord.row_cols) - 1

    @pytest.mark.parametrize(
        "prefix, letters, row",
        [("root", "A", 1), ("root-B2", "C", 7), ("meta-A3", "AA", 12)],
    )
    def test_child_of_matches_address_text(self, prefix: str, letters: str, row: int) -> None:
        """Appending a segment to the text is the same as child_of."""
        expected = c(f"{prefix}-{letters}{row}")
        assert c(prefix).child_of((row, column_index(letters))) == expected

    def test_child_then_parent(self) -> None:
        coord = c("root-B2")
        assert coord.child_of((3, 4)).parent() == coord

    def test_is_descendant_of(self) -> None:
        assert c("root-A1-B2").is_descendant_of(ROOT)
        assert c("root-A1-B2").is_descendant_of(c("root-A1"))
        assert not c("root-A1").is_descendant_of(c("root-A1"))
        assert not c("root-A1").is_descendant_of(c("root-A1-B2"))
        assert not c("meta-A1").is_descendant_of(ROOT)

    def test_rebase(self) -> None:
        moved = c("meta-A3-B1-A2").rebase(c("meta-A3-B1"), c("root-B2-A1"))
        assert moved == c("root-B2-A1-A2")

    def test_rebase_wrong_prefix(self) -> None:
        with pytest.raises(ValueError, match="does not start with"):
            c("root-A1").rebase(META, ROOT)


class TestBands:
    """Tests for FullRow / FullCol keys."""

    def test_same_row_same_key(self) -> None:
        assert c("root-A3").full_row() == c("root-B3").full_row()
        assert c("root-A3").full_row() == FullRow(ROOT, 3)

    def test_different_row_different_key(self) -> None:
        assert c("root-A3").full_row() != c("root-A2").full_row()

    def test_different_parent_different_key(self) -> None:
        """Bands belong to one grid."""
        assert c("root-A1-A3").full_row() != c("root-A3").full_row()
        assert c("root-A1-B1").full_col() != c("root-B1").full_col()

    def test_same_col_same_key(self) -> None:
        assert c("root-B1").full_col() == c("root-B9").full_col()
        assert c("root-B1").full_col() == FullCol(ROOT, 2)

    def test_root_level_bands(self) -> None:
        """Root and meta have no parent; their bands have none either."""
        assert ROOT.full_row() == FullRow(None, 1)
        assert META.full_col() == FullCol(None, 2)

    def test_str(self) -> None:
        assert str(c("root-B3").full_row()) == "root-*3"
        assert str(c("meta-A3-B1").full_col()) == "meta-A3-B*"


class TestNeighbors:
    """Tests for neighbor lookup."""

    def test_four_directions(self) -> None:
        coord = c("root-B2")
        assert coord.neighbor_right() == c("root-C2")
        assert coord.neighbor_left() == c("root-A2")
        assert coord.neighbor_above() == c("root-B1")
        assert coord.neighbor_below() == c("root-B3")

    def test_edges(self) -> None:
        """Nothing above row 1 or left of column A."""
        coord = c("root-A1")
        assert coord.neighbor(Direction.N) is None
        assert coord.neighbor(Direction.W) is None
        assert coord.neighbor(Direction.E) == c("root-B1")

    def test_root_level_has_no_neighbors(self) -> None:
        for direction in Direction:
            assert ROOT.neighbor(direction) is None

    def test_stays_in_parent(self) -> None:
        assert c("meta-A3-B1").neighbor(Direction.S) == c("meta-A3-B2")
