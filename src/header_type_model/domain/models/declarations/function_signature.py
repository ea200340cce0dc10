#!/usr/bin/env python3

"""Function signature model."""

from dataclasses import dataclass, field

from .diagnostic import SourceLocation
from .type_reference import TypeRef


@dataclass
class Parameter:
    """A function parameter; the name is optional in declarations."""

    type_ref: TypeRef
    name: str | None = None


@dataclass
class FunctionSignature:
    """Information about a member function declaration."""

    name: str
    return_type: TypeRef | None = None
    parameters: list[Parameter] = field(default_factory=list)
    is_static: bool = False
    is_virtual: bool = False
    is_pure_virtual: bool = False
    is_override: bool = False
    is_operator: bool = False
    is_constructor: bool = False
    is_destructor: bool = False
    is_const: bool = False
    is_defaulted: bool = False
    is_deleted: bool = False
    explicit_offset: int | None = None
    location: SourceLocation | None = None

    @property
    def is_dynamic(self) -> bool:
        """Whether this function needs a dispatch slot."""
        return self.is_virtual or self.is_pure_virtual or self.is_override
