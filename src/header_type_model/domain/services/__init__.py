#!/usr/bin/env python3

"""Domain services layer."""

from . import diffing, evaluation, layout, lexing, parsing, registry, serialization
from .diffing import ModelDiffer
from .evaluation import ExpressionEvaluator
from .layout import LayoutEngine
from .lexing import Lexer
from .parsing import DeclarationParser, parse_source
from .registry import TypeRegistry

__all__ = [
    "DeclarationParser",
    "ExpressionEvaluator",
    "LayoutEngine",
    "Lexer",
    "ModelDiffer",
    "TypeRegistry",
    "diffing",
    "evaluation",
    "layout",
    "lexing",
    "parse_source",
    "parsing",
    "registry",
    "serialization",
]
