#!/usr/bin/env python3

"""Field and constant member models."""

from __future__ import annotations

from dataclasses import dataclass, field

from .diagnostic import SourceLocation
from .expression import Expression, ResolvedValue
from .type_reference import TypeRef


@dataclass
class Field:
    """A data member that occupies storage, in declaration order."""

    name: str
    type_ref: TypeRef
    explicit_offset: int | None = None
    """Byte offset taken from a trailing ``// 0C`` comment"""
    comment: str | None = None
    array_dimensions: list[Expression] = field(default_factory=list)
    array_length: int | None = None
    """Product of the resolved array dimensions (None for scalars)"""
    bitfield: Expression | None = None
    bitfield_width: int | None = None
    default_value: Expression | None = None
    access: str | None = None
    location: SourceLocation | None = None

    # Filled by the layout engine
    inferred_offset: int | None = None
    offset: int | None = None
    """Recorded offset: explicit when annotated, inferred otherwise"""
    size: int | None = None


@dataclass
class ConstantMember:
    """A static (usually constexpr) member; carries no layout weight."""

    name: str
    type_ref: TypeRef
    expression: Expression | None = None
    value: ResolvedValue | None = None
    is_constexpr: bool = False
    array_dimensions: list[Expression] = field(default_factory=list)
    location: SourceLocation | None = None
