#!/usr/bin/env python3

"""Type declaration model: enums, structs, classes, unions and templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .diagnostic import SourceLocation
from .enum_info import Enumerator
from .field_info import ConstantMember, Field
from .function_signature import FunctionSignature
from .template_param_info import TemplateParam
from .type_reference import TypeRef


class DeclarationKind(Enum):
    ENUM = "enum"
    STRUCT = "struct"
    CLASS = "class"
    UNION = "union"
    TEMPLATE = "template"


@dataclass
class BaseSpecifier:
    """One entry of a class base list, in declaration order."""

    type_ref: TypeRef
    access: str | None = None
    is_virtual: bool = False


@dataclass
class TypeDeclaration:
    """Information about a declared type.

    ``kind`` is TEMPLATE for ``template<...> struct X``; ``keyword`` keeps the
    class-key as written (``struct``, ``class``, ``enum class``...).
    """

    name: str
    kind: DeclarationKind
    keyword: str
    namespace: list[str] = field(default_factory=list)
    parent: str | None = None
    """Qualified name of the enclosing type for nested declarations"""
    is_scoped: bool = False
    underlying_type: TypeRef | None = None
    bases: list[BaseSpecifier] = field(default_factory=list)
    template_params: list[TemplateParam] = field(default_factory=list)
    fields: list[Field] = field(default_factory=list)
    enumerators: list[Enumerator] = field(default_factory=list)
    constants: list[ConstantMember] = field(default_factory=list)
    functions: list[FunctionSignature] = field(default_factory=list)
    nested: list[TypeDeclaration] = field(default_factory=list)
    location: SourceLocation | None = None

    # Filled on registration
    snapshot: str | None = None
    order: tuple[int, int] = (0, 0)
    """(file index, declaration index) used to settle duplicates deterministically"""

    # Filled by the layout engine
    size: int | None = None
    alignment: int | None = None
    has_vtable: bool = False

    @property
    def qualified_name(self) -> str:
        if self.parent:
            return f"{self.parent}::{self.name}"
        return "::".join([*self.namespace, self.name])

    @property
    def is_enum(self) -> bool:
        return self.kind == DeclarationKind.ENUM

    @property
    def is_record(self) -> bool:
        """True for struct, class, union and template declarations."""
        return self.kind != DeclarationKind.ENUM

    @property
    def is_template(self) -> bool:
        return bool(self.template_params) or self.kind == DeclarationKind.TEMPLATE

    @property
    def is_union(self) -> bool:
        return self.keyword == "union"

    @property
    def declares_virtual(self) -> bool:
        return any(function.is_dynamic for function in self.functions)

    def walk(self) -> list[TypeDeclaration]:
        """Return this declaration followed by all nested declarations, depth first."""
        result = [self]
        for child in self.nested:
            result.extend(child.walk())
        return result
