#!/usr/bin/env python3

"""Declaration model: the normalized, queryable type model."""

from .diagnostic import Diagnostic, DiagnosticKind, Severity, SourceLocation
from .enum_info import Enumerator
from .expression import (
    BinaryOp,
    Cast,
    Expression,
    IntrinsicCall,
    Literal,
    NameLookup,
    ResolvedValue,
    UnaryOp,
    ValueKind,
)
from .field_info import ConstantMember, Field
from .function_signature import FunctionSignature, Parameter
from .template_param_info import TemplateParam, TemplateParamKind
from .type_constants import (
    BUILTIN_TYPE_WORDS,
    FLOATING_TYPE_NAMES,
    PRIMITIVE_SCALARS,
    PRIMITIVE_TYPE_NAMES,
)
from .type_declaration import BaseSpecifier, DeclarationKind, TypeDeclaration
from .type_reference import (
    ConstantArgument,
    NamedType,
    TemplateArgument,
    TemplateInstance,
    TypeCategory,
    TypeRef,
    spelling,
)

__all__ = [
    "BUILTIN_TYPE_WORDS",
    "BaseSpecifier",
    "BinaryOp",
    "Cast",
    "ConstantArgument",
    "ConstantMember",
    "DeclarationKind",
    "Diagnostic",
    "DiagnosticKind",
    "Enumerator",
    "Expression",
    "FLOATING_TYPE_NAMES",
    "Field",
    "FunctionSignature",
    "IntrinsicCall",
    "Literal",
    "NameLookup",
    "NamedType",
    "PRIMITIVE_SCALARS",
    "PRIMITIVE_TYPE_NAMES",
    "Parameter",
    "ResolvedValue",
    "Severity",
    "SourceLocation",
    "TemplateArgument",
    "TemplateInstance",
    "TemplateParam",
    "TemplateParamKind",
    "TypeCategory",
    "TypeDeclaration",
    "TypeRef",
    "UnaryOp",
    "ValueKind",
    "spelling",
]
