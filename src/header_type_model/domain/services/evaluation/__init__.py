#!/usr/bin/env python3

"""Evaluation of constexpr-style initializer expressions."""

from .expression_evaluator import ExpressionEvaluator, TypeLookup, ValueLookup, convert_to_width
from .fnv import fnv1a64

__all__ = [
    "ExpressionEvaluator",
    "TypeLookup",
    "ValueLookup",
    "convert_to_width",
    "fnv1a64",
]
