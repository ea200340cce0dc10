#!/usr/bin/env python3

"""Two-phase (register, then resolve) type registry."""

from .type_registry import TypeRegistry

__all__ = ["TypeRegistry"]
