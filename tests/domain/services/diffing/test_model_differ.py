#!/usr/bin/env python3

"""Unit tests for ModelDiffer."""

import pytest

from header_type_model.application import TypeModelAnalyzer
from header_type_model.domain.errors import TypeNotFoundError
from header_type_model.domain.models.diff import DiffStatus
from header_type_model.domain.services.diffing import field_type_text


def _analyzer(old: str, new: str) -> TypeModelAnalyzer:
    analyzer = TypeModelAnalyzer()
    analyzer.analyze({"old.hpp": old}, "old")
    analyzer.analyze({"new.hpp": new}, "new")
    return analyzer


@pytest.mark.unit
class TestModelDiffer:
    """Test suite for ModelDiffer."""

    @pytest.fixture
    def snapshots(self, read_fixture):
        return _analyzer(read_fixture("snapshots/v1/player.hpp"), read_fixture("snapshots/v2/player.hpp"))

    def test_added_fields(self, snapshots):
        diff = snapshots.diff("old", "new", "Player")

        assert diff.status == DiffStatus.CHANGED
        assert diff.added_fields == ["stamina", "level"]
        assert diff.removed_fields == []
        assert diff.modified_fields == []
        assert diff.size_changed
        assert (diff.old_size, diff.new_size) == (24, 32)

    def test_added_enumerator(self, snapshots):
        diff = snapshots.diff("old", "new", "EPlayerState")

        assert diff.added_enumerators == ["Swimming"]
        assert diff.changed_enumerators == []

    def test_removed_and_added_types(self, snapshots):
        removed = snapshots.diff("old", "new", "Weapon")
        added = snapshots.diff("old", "new", "Vehicle")

        assert removed.status == DiffStatus.REMOVED
        assert removed.removed_fields == ["damage"]
        assert added.status == DiffStatus.ADDED
        assert added.added_fields == ["speed"]

    def test_unknown_type(self, snapshots):
        with pytest.raises(TypeNotFoundError):
            snapshots.diff("old", "new", "Nothing")

    def test_unknown_snapshot(self, snapshots):
        with pytest.raises(TypeNotFoundError):
            snapshots.diff("old", "missing", "Player")

    def test_identical_types(self):
        source = "struct S { int a; float b; };"
        diff = _analyzer(source, source).diff("old", "new", "S")

        assert diff.status == DiffStatus.UNCHANGED
        assert diff.is_empty

    def test_fields_matched_by_name_not_position(self):
        diff = _analyzer(
            "struct S { int a; int b; };",
            "struct S { int b; int a; };",
        ).diff("old", "new", "S")

        assert diff.added_fields == []
        assert diff.removed_fields == []
        # Both fields moved
        assert sorted(change.name for change in diff.modified_fields) == ["a", "b"]
        assert all(not change.type_changed for change in diff.modified_fields)

    def test_type_change(self):
        diff = _analyzer("struct S { int a; };", "struct S { uint64_t a; };").diff("old", "new", "S")
        change = diff.modified_fields[0]

        assert change.name == "a"
        assert (change.old_type, change.new_type) == ("int", "uint64_t")
        assert not change.offset_changed

    def test_array_length_change(self):
        diff = _analyzer("struct S { uint8_t pad[4]; };", "struct S { uint8_t pad[8]; };").diff("old", "new", "S")

        assert diff.modified_fields[0].old_type == "uint8_t[4]"
        assert diff.modified_fields[0].new_type == "uint8_t[8]"

    def test_enumerator_value_change(self):
        diff = _analyzer("enum E { A = 1 };", "enum E { A = 2 };").diff("old", "new", "E")

        assert diff.status == DiffStatus.CHANGED
        assert [(c.name, c.old_value, c.new_value) for c in diff.changed_enumerators] == [("A", 1, 2)]

    def test_base_and_kind_change(self):
        diff = _analyzer(
            "struct Base { int x; }; struct S { int y; };",
            "struct Base { int x; }; class S : public Base { int y; };",
        ).diff("old", "new", "S")

        assert diff.bases_changed
        assert diff.new_bases == ["Base"]
        assert diff.kind_changed
        assert (diff.old_kind, diff.new_kind) == ("struct", "class")

    def test_diff_snapshots(self, snapshots):
        result = snapshots.diff_snapshots("old", "new")

        assert result.added_types == ["Vehicle"]
        assert result.removed_types == ["Weapon"]
        assert [d.qualified_name for d in result.changed_types] == ["EPlayerState", "Player"]
        assert not result.is_empty

    def test_diff_snapshots_identical(self, read_fixture):
        source = read_fixture("enum.hpp")

        assert _analyzer(source, source).diff_snapshots("old", "new").is_empty


@pytest.mark.unit
class TestFieldTypeText:
    def test_bitfield_and_array_rendering(self):
        analyzer = _analyzer("struct S { uint32_t f : 3; int grid[2][3]; };", "struct S {};")
        fields = analyzer.registry.get("old", "S").fields

        assert field_type_text(fields[0]) == "uint32_t : 3"
        assert field_type_text(fields[1]) == "int[6]"
