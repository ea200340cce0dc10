#!/usr/bin/env python3

"""Conversion of the type model, layouts and diffs into JSON-ready dicts."""

from typing import TYPE_CHECKING, Any

from ...models.declarations import (
    BinaryOp,
    Cast,
    ConstantArgument,
    Diagnostic,
    Expression,
    FunctionSignature,
    IntrinsicCall,
    Literal,
    NameLookup,
    ResolvedValue,
    TemplateArgument,
    TemplateInstance,
    TypeDeclaration,
    UnaryOp,
    ValueKind,
    spelling,
)
from ...models.diff import SnapshotDiff, TypeDiff
from ...models.layout import TypeLayout

if TYPE_CHECKING:
    from ....application.analyzer import AnalysisResult


def expression_text(expression: Expression | None) -> str | None:
    """Render an expression back to compact source-like text."""
    if expression is None:
        return None
    if isinstance(expression, Literal):
        value = expression.value
        if value.kind == ValueKind.STRING:
            return f'"{value.value}"'
        if value.kind == ValueKind.BOOL:
            return "true" if value.value else "false"
        return str(value.value)
    if isinstance(expression, UnaryOp):
        return f"{expression.op}{expression_text(expression.operand)}"
    if isinstance(expression, BinaryOp):
        return f"({expression_text(expression.left)} {expression.op} {expression_text(expression.right)})"
    if isinstance(expression, Cast):
        return f"static_cast<{spelling(expression.target)}>({expression_text(expression.operand)})"
    if isinstance(expression, NameLookup):
        return expression.qualified
    if isinstance(expression, IntrinsicCall):
        arguments = ", ".join(expression_text(argument) or "" for argument in expression.arguments)
        return f"{expression.name}({arguments})"
    return None


def value_to_dict(value: ResolvedValue | None) -> dict[str, Any] | None:
    if value is None:
        return None
    return {"kind": value.kind.value, "value": value.value}


def type_ref_to_dict(ref: TemplateArgument | None) -> dict[str, Any] | None:
    if ref is None:
        return None
    if isinstance(ref, ConstantArgument):
        return {
            "constant": expression_text(ref.expression),
            "value": value_to_dict(ref.value),
        }
    data: dict[str, Any] = {
        "spelling": spelling(ref),
        "name": ref.name,
        "category": ref.category.value,
        "resolved_name": ref.resolved_name,
        "pointer_depth": ref.pointer_depth,
        "is_reference": ref.is_reference,
        "is_const": ref.is_const,
    }
    if isinstance(ref, TemplateInstance):
        data["arguments"] = [type_ref_to_dict(argument) for argument in ref.arguments]
    return data


def function_to_dict(function: FunctionSignature) -> dict[str, Any]:
    flags = [
        flag
        for flag in (
            "static",
            "virtual",
            "pure_virtual",
            "override",
            "operator",
            "constructor",
            "destructor",
            "const",
            "defaulted",
            "deleted",
        )
        if getattr(function, f"is_{flag}")
    ]
    return {
        "name": function.name,
        "return_type": spelling(function.return_type) if function.return_type is not None else None,
        "parameters": [
            {"name": parameter.name, "type": spelling(parameter.type_ref)} for parameter in function.parameters
        ],
        "flags": flags,
        "explicit_offset": function.explicit_offset,
    }


def declaration_to_dict(declaration: TypeDeclaration) -> dict[str, Any]:
    """
    Convert one declaration (nested declarations included) into a dict.

    Args:
        declaration: Resolved declaration

    Returns:
        JSON-ready dictionary
    """
    data: dict[str, Any] = {
        "name": declaration.name,
        "qualified_name": declaration.qualified_name,
        "kind": declaration.kind.value,
        "keyword": declaration.keyword,
        "namespace": "::".join(declaration.namespace) or None,
        "parent": declaration.parent,
        "snapshot": declaration.snapshot,
        "location": str(declaration.location) if declaration.location else None,
    }

    if declaration.is_enum:
        data["is_scoped"] = declaration.is_scoped
        data["underlying_type"] = type_ref_to_dict(declaration.underlying_type)
        data["size"] = declaration.size
        data["enumerators"] = [
            {
                "name": enumerator.name,
                "value": enumerator.value,
                "expression": expression_text(enumerator.expression),
                "is_alias": enumerator.is_alias,
            }
            for enumerator in declaration.enumerators
        ]
    else:
        data["size"] = declaration.size
        data["alignment"] = declaration.alignment
        data["has_vtable"] = declaration.has_vtable
        data["template_params"] = [
            {"name": param.name, "kind": param.kind.value} for param in declaration.template_params
        ]
        data["bases"] = [
            {"type": type_ref_to_dict(base.type_ref), "access": base.access, "is_virtual": base.is_virtual}
            for base in declaration.bases
        ]
        data["fields"] = [
            {
                "name": member.name,
                "type": type_ref_to_dict(member.type_ref),
                "array_length": member.array_length,
                "bitfield_width": member.bitfield_width,
                "explicit_offset": member.explicit_offset,
                "inferred_offset": member.inferred_offset,
                "offset": member.offset,
                "size": member.size,
                "access": member.access,
                "comment": member.comment,
                "default_value": expression_text(member.default_value),
            }
            for member in declaration.fields
        ]
        data["constants"] = [
            {
                "name": constant.name,
                "type": spelling(constant.type_ref),
                "expression": expression_text(constant.expression),
                "value": value_to_dict(constant.value),
                "is_constexpr": constant.is_constexpr,
            }
            for constant in declaration.constants
        ]
        data["functions"] = [function_to_dict(function) for function in declaration.functions]

    data["nested"] = [declaration_to_dict(child) for child in declaration.nested]
    return data


def layout_to_dict(layout: TypeLayout) -> dict[str, Any]:
    return {
        "qualified_name": layout.qualified_name,
        "size": layout.size,
        "alignment": layout.alignment,
        "has_vtable": layout.has_vtable,
        "slots": [
            {
                "name": slot.name,
                "kind": slot.kind,
                "offset": slot.offset,
                "size": slot.size,
                "type": slot.type_name,
                "inferred_offset": slot.inferred_offset,
                "explicit_offset": slot.explicit_offset,
                "bit_width": slot.bit_width,
            }
            for slot in layout.slots
        ],
        "padding": [{"after": gap.after, "offset": gap.offset, "size": gap.size} for gap in layout.padding],
        "total_padding": layout.total_padding,
    }


def diagnostic_to_dict(diagnostic: Diagnostic) -> dict[str, Any]:
    location = diagnostic.location
    return {
        "severity": diagnostic.severity.value,
        "kind": diagnostic.kind.value,
        "message": diagnostic.message,
        "file": location.file if location else None,
        "line": location.line if location else None,
        "column": location.column if location else None,
        "type_name": diagnostic.type_name,
    }


def result_to_dict(result: "AnalysisResult") -> dict[str, Any]:
    """Convert a whole analysis result into a dict."""
    return {
        "snapshot": result.snapshot,
        "declarations": [declaration_to_dict(declaration) for declaration in result.declarations],
        "layouts": {name: layout_to_dict(layout) for name, layout in result.layouts.items()},
        "diagnostics": [diagnostic_to_dict(diagnostic) for diagnostic in result.diagnostics],
    }


def diff_to_dict(diff: TypeDiff) -> dict[str, Any]:
    data: dict[str, Any] = {
        "qualified_name": diff.qualified_name,
        "old_snapshot": diff.old_snapshot,
        "new_snapshot": diff.new_snapshot,
        "status": diff.status.value,
        "added_fields": list(diff.added_fields),
        "removed_fields": list(diff.removed_fields),
        "modified_fields": [
            {
                "name": change.name,
                "old_type": change.old_type,
                "new_type": change.new_type,
                "old_offset": change.old_offset,
                "new_offset": change.new_offset,
            }
            for change in diff.modified_fields
        ],
        "added_enumerators": list(diff.added_enumerators),
        "removed_enumerators": list(diff.removed_enumerators),
        "changed_enumerators": [
            {"name": change.name, "old_value": change.old_value, "new_value": change.new_value}
            for change in diff.changed_enumerators
        ],
    }
    if diff.bases_changed:
        data["bases"] = {"old": diff.old_bases, "new": diff.new_bases}
    if diff.kind_changed:
        data["kind"] = {"old": diff.old_kind, "new": diff.new_kind}
    if diff.size_changed:
        data["size"] = {"old": diff.old_size, "new": diff.new_size}
    return data


def snapshot_diff_to_dict(diff: SnapshotDiff) -> dict[str, Any]:
    return {
        "old_snapshot": diff.old_snapshot,
        "new_snapshot": diff.new_snapshot,
        "added_types": list(diff.added_types),
        "removed_types": list(diff.removed_types),
        "changed_types": [diff_to_dict(type_diff) for type_diff in diff.changed_types],
    }
