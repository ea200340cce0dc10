#!/usr/bin/env python3

"""Diff model."""

from .type_diff import DiffStatus, EnumeratorChange, FieldChange, SnapshotDiff, TypeDiff

__all__ = ["DiffStatus", "EnumeratorChange", "FieldChange", "SnapshotDiff", "TypeDiff"]
