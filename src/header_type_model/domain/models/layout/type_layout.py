#!/usr/bin/env python3

"""Computed memory layout of a record type."""

from dataclasses import dataclass, field

from ..declarations import Diagnostic


@dataclass
class FieldLayout:
    """One occupied region of a record, in layout order."""

    name: str
    offset: int
    size: int
    alignment: int
    type_name: str
    kind: str = "field"
    """``field``, ``base`` or ``vtable``"""
    inferred_offset: int | None = None
    explicit_offset: int | None = None
    bit_width: int | None = None

    @property
    def end(self) -> int:
        return self.offset + self.size


@dataclass
class PaddingGap:
    """Bytes not covered by any member."""

    after: str | None
    """Member preceding the gap (None for a gap at offset 0)"""
    offset: int
    size: int


@dataclass
class TypeLayout:
    """Layout of a struct, class or union under one ABI."""

    qualified_name: str
    size: int
    alignment: int
    has_vtable: bool = False
    slots: list[FieldLayout] = field(default_factory=list)
    padding: list[PaddingGap] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def total_padding(self) -> int:
        return sum(gap.size for gap in self.padding)

    def slot(self, name: str) -> FieldLayout | None:
        for slot in self.slots:
            if slot.name == name:
                return slot
        return None
