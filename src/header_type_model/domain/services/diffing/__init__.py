#!/usr/bin/env python3

"""Snapshot comparison."""

from .model_differ import ModelDiffer, field_type_text

__all__ = ["ModelDiffer", "field_type_text"]
