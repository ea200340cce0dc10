#!/usr/bin/env python3

"""Evaluator for constexpr-style initializer expressions.

Evaluation only happens during registry resolution, once every declaration
of the batch is registered. Name lookups are delegated to the caller so that
the evaluator stays independent of how scopes are stored.
"""

import math
from typing import Callable

from ....infrastructure.config import AbiConfig
from ....infrastructure.logging import get_logger
from ...models.declarations import (
    FLOATING_TYPE_NAMES,
    PRIMITIVE_SCALARS,
    BinaryOp,
    Cast,
    Diagnostic,
    DiagnosticKind,
    Expression,
    IntrinsicCall,
    Literal,
    NamedType,
    NameLookup,
    ResolvedValue,
    Severity,
    SourceLocation,
    TypeRef,
    UnaryOp,
    ValueKind,
)
from .fnv import fnv1a64

logger = get_logger(__name__)

ValueLookup = Callable[[list[str], list[str]], "ResolvedValue | None"]
"""(name parts, scope chain) -> value of the named enumerator/constant, or None"""

TypeLookup = Callable[[str, list[str]], "str | None"]
"""(type name, scope chain) -> primitive name an enum is backed by, or None"""


def convert_to_width(value: int, size: int, signed: bool) -> int:
    """
    Truncate or sign-extend an integer to a fixed byte width.

    Args:
        value: Integer value
        size: Width in bytes
        signed: Two's complement interpretation when True

    Returns:
        Value as the target type would hold it
    """
    bits = size * 8
    value &= (1 << bits) - 1
    if signed and value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _truncating_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


class ExpressionEvaluator:
    """Evaluates expression trees to ResolvedValue.

    Failures never raise: they are recorded as diagnostics and evaluate to
    the zero placeholder so the rest of the model stays usable.
    """

    INTRINSICS = {"FNV1a64": "fnv1a64", "fnv1a64": "fnv1a64", "FNV1A64": "fnv1a64"}

    def __init__(
        self,
        lookup: ValueLookup,
        abi: AbiConfig | None = None,
        type_lookup: TypeLookup | None = None,
    ):
        """
        Initialize the evaluator.

        Args:
            lookup: Resolves qualified names to values
            abi: Target ABI, used for cast widths
            type_lookup: Maps enum names to their backing primitive for casts
        """
        self.lookup = lookup
        self.abi = abi or AbiConfig()
        self.type_lookup = type_lookup

    def evaluate(
        self,
        expression: Expression,
        scope: list[str] | None = None,
        diagnostics: list[Diagnostic] | None = None,
        type_name: str | None = None,
    ) -> ResolvedValue:
        """
        Evaluate an expression.

        Args:
            expression: Expression tree from the parser
            scope: Scope chain, innermost first (e.g. ["A::B", "A", ""])
            diagnostics: Sink for UNRESOLVED_SYMBOL / EVALUATION_ERROR diagnostics
            type_name: Owning declaration, attached to diagnostics

        Returns:
            Resolved value (placeholder 0 when evaluation failed)
        """
        context = _Context(scope or [""], diagnostics if diagnostics is not None else [], type_name)
        return self._eval(expression, context)

    def _eval(self, expression: Expression, context: "_Context") -> ResolvedValue:
        try:
            value = self._eval_node(expression, context)
        except OverflowError:
            return context.error("Floating point overflow", expression.location)
        if value.kind == ValueKind.FLOAT and not math.isfinite(value.value):
            return context.error(f"Non-finite value {value.value}", expression.location)
        return value

    def _eval_node(self, expression: Expression, context: "_Context") -> ResolvedValue:
        if isinstance(expression, Literal):
            return expression.value
        if isinstance(expression, UnaryOp):
            return self._eval_unary(expression, context)
        if isinstance(expression, BinaryOp):
            return self._eval_binary(expression, context)
        if isinstance(expression, Cast):
            return self._eval_cast(expression, context)
        if isinstance(expression, NameLookup):
            return self._eval_lookup(expression, context)
        if isinstance(expression, IntrinsicCall):
            return self._eval_intrinsic(expression, context)
        raise TypeError(f"Unknown expression node: {type(expression).__name__}")

    def _eval_unary(self, expression: UnaryOp, context: "_Context") -> ResolvedValue:
        operand = self._eval(expression.operand, context)
        number = operand.as_number()

        if expression.op == "!":
            return ResolvedValue(ValueKind.BOOL, not number)
        if expression.op == "~":
            if isinstance(number, float):
                return context.error("Bitwise complement of a floating value", expression.location)
            return ResolvedValue.integer(~number)
        if expression.op == "-":
            return _number(-number)
        return _number(number)

    def _eval_binary(self, expression: BinaryOp, context: "_Context") -> ResolvedValue:
        left = self._eval(expression.left, context).as_number()
        right = self._eval(expression.right, context).as_number()
        op = expression.op

        if op in ("+", "-", "*"):
            if op == "+":
                return _number(left + right)
            if op == "-":
                return _number(left - right)
            return _number(left * right)

        if op in ("/", "%"):
            if right == 0:
                return context.error("Division by zero", expression.location)
            if isinstance(left, float) or isinstance(right, float):
                if op == "%":
                    return context.error("Modulo of a floating value", expression.location)
                return _number(left / right)
            quotient = _truncating_div(left, right)
            if op == "/":
                return ResolvedValue.integer(quotient)
            return ResolvedValue.integer(left - right * quotient)

        if isinstance(left, float) or isinstance(right, float):
            return context.error(f"Operator '{op}' requires integer operands", expression.location)

        if op in ("<<", ">>"):
            if right < 0:
                return context.error(f"Negative shift count {right}", expression.location)
            return ResolvedValue.integer(left << right if op == "<<" else left >> right)
        if op == "&":
            return ResolvedValue.integer(left & right)
        if op == "|":
            return ResolvedValue.integer(left | right)
        if op == "^":
            return ResolvedValue.integer(left ^ right)

        return context.error(f"Unsupported operator '{op}'", expression.location)

    def _eval_cast(self, expression: Cast, context: "_Context") -> ResolvedValue:
        operand = self._eval(expression.operand, context)
        target = expression.target
        if operand.kind == ValueKind.STRING:
            return operand

        if target.pointer_depth > 0 or target.is_reference:
            return ResolvedValue.integer(
                convert_to_width(operand.as_integer(), self.abi.pointer_size, signed=False)
            )

        name = self._primitive_name(target, context)
        if name is None:
            # Unknown target type: keep the value unchanged
            return operand

        number = operand.as_number()
        if name == "bool":
            return ResolvedValue(ValueKind.BOOL, bool(number))
        if name in FLOATING_TYPE_NAMES:
            return ResolvedValue(ValueKind.FLOAT, float(number))

        size, signed = PRIMITIVE_SCALARS[name]
        size = self.abi.scalar_sizes.get(name, size if size is not None else self.abi.pointer_size)
        return ResolvedValue.integer(convert_to_width(operand.as_integer(), size, signed))

    def _primitive_name(self, target: TypeRef, context: "_Context") -> str | None:
        if not isinstance(target, NamedType):
            return None
        if target.name in PRIMITIVE_SCALARS:
            return target.name
        if self.type_lookup is not None:
            backing = self.type_lookup(target.name, context.scope)
            if backing in PRIMITIVE_SCALARS:
                return backing
        return None

    def _eval_lookup(self, expression: NameLookup, context: "_Context") -> ResolvedValue:
        value = self.lookup(expression.parts, context.scope)
        if value is None:
            context.diagnostics.append(
                Diagnostic(
                    Severity.WARNING,
                    DiagnosticKind.UNRESOLVED_SYMBOL,
                    f"Unresolved symbol '{expression.qualified}'",
                    expression.location,
                    context.type_name,
                )
            )
            logger.debug(f"Unresolved symbol '{expression.qualified}' in {context.type_name}")
            return ResolvedValue.placeholder()
        return value

    def _eval_intrinsic(self, expression: IntrinsicCall, context: "_Context") -> ResolvedValue:
        intrinsic = self.INTRINSICS.get(expression.name)
        if intrinsic is None:
            return context.error(f"Unknown intrinsic '{expression.name}'", expression.location)

        if len(expression.arguments) != 1:
            return context.error(
                f"{expression.name} expects 1 argument, got {len(expression.arguments)}",
                expression.location,
            )
        argument = self._eval(expression.arguments[0], context)
        if argument.kind != ValueKind.STRING:
            return context.error(f"{expression.name} expects a string literal", expression.location)
        return ResolvedValue(ValueKind.HASH64, fnv1a64(str(argument.value)))


def _number(value: int | float) -> ResolvedValue:
    if isinstance(value, float):
        return ResolvedValue(ValueKind.FLOAT, value)
    return ResolvedValue.integer(value)


class _Context:
    """Per-call evaluation state."""

    def __init__(self, scope: list[str], diagnostics: list[Diagnostic], type_name: str | None):
        self.scope = scope
        self.diagnostics = diagnostics
        self.type_name = type_name

    def error(self, message: str, location: SourceLocation | None) -> ResolvedValue:
        self.diagnostics.append(
            Diagnostic(Severity.ERROR, DiagnosticKind.EVALUATION_ERROR, message, location, self.type_name)
        )
        return ResolvedValue.placeholder()
