#!/usr/bin/env python3

"""Template parameter model."""

from dataclasses import dataclass
from enum import Enum

from .expression import Expression
from .type_reference import TypeRef


class TemplateParamKind(Enum):
    TYPE = "type"
    VALUE = "value"


@dataclass
class TemplateParam:
    """Template parameter (``typename T`` or ``uint32_t N``).

    Example: template <typename T, uint32_t N = 4>
    """

    name: str
    kind: TemplateParamKind = TemplateParamKind.TYPE
    value_type: TypeRef | None = None
    """Type of a non-type parameter"""
    default: TypeRef | Expression | None = None
