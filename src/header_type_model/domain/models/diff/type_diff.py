#!/usr/bin/env python3

"""Structural difference between two snapshots of a type."""

from dataclasses import dataclass, field
from enum import Enum


class DiffStatus(Enum):
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    ADDED = "added"
    """Present only in the newer snapshot"""
    REMOVED = "removed"
    """Present only in the older snapshot"""


@dataclass
class FieldChange:
    """A field present in both snapshots whose type or offset changed."""

    name: str
    old_type: str
    new_type: str
    old_offset: int | None = None
    new_offset: int | None = None

    @property
    def type_changed(self) -> bool:
        return self.old_type != self.new_type

    @property
    def offset_changed(self) -> bool:
        return self.old_offset != self.new_offset


@dataclass
class EnumeratorChange:
    name: str
    old_value: int | None
    new_value: int | None


@dataclass
class TypeDiff:
    """Differences of one qualified type between an older and a newer snapshot.

    Fields and enumerators are matched by name, never by position.
    """

    qualified_name: str
    old_snapshot: str
    new_snapshot: str
    status: DiffStatus = DiffStatus.UNCHANGED
    added_fields: list[str] = field(default_factory=list)
    removed_fields: list[str] = field(default_factory=list)
    modified_fields: list[FieldChange] = field(default_factory=list)
    added_enumerators: list[str] = field(default_factory=list)
    removed_enumerators: list[str] = field(default_factory=list)
    changed_enumerators: list[EnumeratorChange] = field(default_factory=list)
    old_bases: list[str] = field(default_factory=list)
    new_bases: list[str] = field(default_factory=list)
    old_kind: str | None = None
    new_kind: str | None = None
    old_size: int | None = None
    new_size: int | None = None

    @property
    def bases_changed(self) -> bool:
        return self.old_bases != self.new_bases

    @property
    def kind_changed(self) -> bool:
        return self.old_kind is not None and self.new_kind is not None and self.old_kind != self.new_kind

    @property
    def size_changed(self) -> bool:
        return self.old_size is not None and self.new_size is not None and self.old_size != self.new_size

    @property
    def is_empty(self) -> bool:
        return not (
            self.added_fields
            or self.removed_fields
            or self.modified_fields
            or self.added_enumerators
            or self.removed_enumerators
            or self.changed_enumerators
            or self.bases_changed
            or self.kind_changed
            or self.size_changed
        )


@dataclass
class SnapshotDiff:
    """Whole-snapshot comparison."""

    old_snapshot: str
    new_snapshot: str
    added_types: list[str] = field(default_factory=list)
    removed_types: list[str] = field(default_factory=list)
    changed_types: list[TypeDiff] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added_types or self.removed_types or self.changed_types)
