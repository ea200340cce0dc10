#!/usr/bin/env python3

"""JSON-ready serialization of results and diffs."""

from .model_serializer import (
    declaration_to_dict,
    diagnostic_to_dict,
    diff_to_dict,
    expression_text,
    layout_to_dict,
    result_to_dict,
    snapshot_diff_to_dict,
)

__all__ = [
    "declaration_to_dict",
    "diagnostic_to_dict",
    "diff_to_dict",
    "expression_text",
    "layout_to_dict",
    "result_to_dict",
    "snapshot_diff_to_dict",
]
