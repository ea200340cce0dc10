#!/usr/bin/env python3

"""Enumerator model."""

from dataclasses import dataclass

from .diagnostic import SourceLocation
from .expression import Expression


@dataclass
class Enumerator:
    """Information about an enum value."""

    name: str
    expression: Expression | None = None
    value: int | None = None
    """Resolved numeric value, filled during resolution"""
    is_alias: bool = False
    """True when the initializer names another enumerator"""
    location: SourceLocation | None = None
