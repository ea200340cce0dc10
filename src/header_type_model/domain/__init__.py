#!/usr/bin/env python3

"""Domain layer containing the type model and the services that build it."""

from . import errors, models, services

__all__ = [
    "errors",
    "models",
    "services",
]
