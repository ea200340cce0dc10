#!/usr/bin/env python3

"""Type reference models used for field, base, parameter and cast types.

A reference is a tagged variant: either a plain (possibly qualified) name or an
instantiation of a template with an ordered argument list. Non-type template
arguments are carried as ``ConstantArgument``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from .expression import Expression, ResolvedValue


class TypeCategory(Enum):
    """What a type reference turned out to name after resolution."""

    UNRESOLVED = "unresolved"
    PRIMITIVE = "primitive"
    DECLARED = "declared"
    TEMPLATE_PARAM = "template_param"
    OPAQUE = "opaque"


@dataclass
class NamedType:
    """A plain type name such as ``uint32_t`` or ``game::Object*``."""

    name: str
    pointer_depth: int = 0
    is_reference: bool = False
    is_const: bool = False
    resolved_name: str | None = None
    """Fully qualified name of the declaration this name resolved to"""
    category: TypeCategory = TypeCategory.UNRESOLVED

    @property
    def arity(self) -> int:
        return 0

    @property
    def is_indirect(self) -> bool:
        """True for pointers and references, which never need the pointee's layout."""
        return self.pointer_depth > 0 or self.is_reference


@dataclass
class TemplateInstance:
    """An instantiation such as ``HashMap<uint64_t, CString>``."""

    name: str
    arguments: list[TemplateArgument] = field(default_factory=list)
    pointer_depth: int = 0
    is_reference: bool = False
    is_const: bool = False
    resolved_name: str | None = None
    category: TypeCategory = TypeCategory.UNRESOLVED
    bindings: dict[str, TemplateArgument] = field(default_factory=dict)
    """Template parameter name -> argument, filled when the template is declared in the batch"""

    @property
    def arity(self) -> int:
        return len(self.arguments)

    @property
    def is_indirect(self) -> bool:
        return self.pointer_depth > 0 or self.is_reference


@dataclass
class ConstantArgument:
    """A non-type template argument like the ``4`` in ``Array<float, 4>``."""

    expression: Expression
    value: ResolvedValue | None = None


TypeRef = Union[NamedType, TemplateInstance]
TemplateArgument = Union[NamedType, TemplateInstance, ConstantArgument]


def spelling(ref: TemplateArgument | None) -> str:
    """Render a canonical textual form of a type reference.

    Used for logging and for comparing field types across snapshots.

    Args:
        ref: Type reference or constant argument

    Returns:
        Canonical spelling, e.g. ``const DynArray<Handle<void*>>*``
    """
    if ref is None:
        return "void"

    if isinstance(ref, ConstantArgument):
        if ref.value is not None:
            return str(ref.value.value)
        return "<expr>"

    text = ref.name
    if isinstance(ref, TemplateInstance):
        text += "<" + ", ".join(spelling(arg) for arg in ref.arguments) + ">"
    if ref.is_const:
        text = "const " + text
    text += "*" * ref.pointer_depth
    if ref.is_reference:
        text += "&"
    return text
