"""Utility helpers."""

from .path_utils import create_model_filename, sanitize_for_filesystem

__all__ = ["create_model_filename", "sanitize_for_filesystem"]
