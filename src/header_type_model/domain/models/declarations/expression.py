#!/usr/bin/env python3

"""Expression tree and resolved values for constexpr-style initializers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from .diagnostic import SourceLocation
from .type_reference import TypeRef


class ValueKind(Enum):
    """Kinds of values an expression can evaluate to."""

    BOOL = "bool"
    INTEGER = "integer"
    FLOAT = "float"
    HASH64 = "hash64"
    STRING = "string"


@dataclass(frozen=True)
class ResolvedValue:
    """A concrete value produced by evaluation."""

    kind: ValueKind
    value: bool | int | float | str

    @classmethod
    def integer(cls, value: int) -> ResolvedValue:
        return cls(ValueKind.INTEGER, value)

    @classmethod
    def placeholder(cls) -> ResolvedValue:
        """Zero value substituted for anything that could not be evaluated."""
        return cls(ValueKind.INTEGER, 0)

    def as_number(self) -> int | float:
        """Numeric view used by arithmetic (bools promote to 0/1)."""
        if self.kind == ValueKind.STRING:
            return 0
        if self.kind == ValueKind.BOOL:
            return int(bool(self.value))
        return self.value  # type: ignore[return-value]

    def as_integer(self) -> int:
        """Integer view for array lengths, widths and enumerators.

        Floats truncate toward zero; a non-finite float (which the evaluator
        reports as an error) reads as 0.
        """
        number = self.as_number()
        if isinstance(number, float):
            return int(number) if math.isfinite(number) else 0
        return number


@dataclass
class Literal:
    value: ResolvedValue
    location: SourceLocation | None = None


@dataclass
class UnaryOp:
    op: str
    operand: Expression
    location: SourceLocation | None = None


@dataclass
class BinaryOp:
    op: str
    left: Expression
    right: Expression
    location: SourceLocation | None = None


@dataclass
class Cast:
    """``static_cast<T>(expr)``, ``(T)expr`` or ``T(expr)``."""

    target: TypeRef
    operand: Expression
    location: SourceLocation | None = None


@dataclass
class NameLookup:
    """A (possibly qualified) name such as ``kMax`` or ``ESystemPoolSize::Audio``."""

    parts: list[str]
    location: SourceLocation | None = None

    @property
    def qualified(self) -> str:
        return "::".join(self.parts)


@dataclass
class IntrinsicCall:
    """A call-style intrinsic such as ``FNV1a64("Bool")``."""

    name: str
    arguments: list[Expression] = field(default_factory=list)
    location: SourceLocation | None = None


Expression = Union[Literal, UnaryOp, BinaryOp, Cast, NameLookup, IntrinsicCall]
