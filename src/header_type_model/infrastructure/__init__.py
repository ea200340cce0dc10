#!/usr/bin/env python3

"""Infrastructure layer: configuration and logging."""

from . import config, logging

__all__ = [
    "config",
    "logging",
]
