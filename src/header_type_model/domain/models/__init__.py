#!/usr/bin/env python3

"""Domain models for the header type model."""

from . import declarations, diff, layout

__all__ = [
    "declarations",
    "diff",
    "layout",
]
