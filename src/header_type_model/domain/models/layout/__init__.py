#!/usr/bin/env python3

"""Layout model: offsets, sizes and padding of record types."""

from .type_layout import FieldLayout, PaddingGap, TypeLayout

__all__ = ["FieldLayout", "PaddingGap", "TypeLayout"]
