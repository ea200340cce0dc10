#!/usr/bin/env python3

"""Layout inference and validation."""

from .layout_engine import VTABLE_SLOT_NAME, LayoutEngine, align_up, find_padding

__all__ = ["LayoutEngine", "VTABLE_SLOT_NAME", "align_up", "find_padding"]
