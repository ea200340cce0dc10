#!/usr/bin/env python3

"""Exceptions raised by the type model core.

Only lexical errors and syntax errors interrupt processing, and both are
converted into diagnostics at the file or declaration boundary. The remaining
exceptions signal API misuse.
"""


class LexError(Exception):
    """Unterminated string, character literal or block comment."""

    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        self.reason = message
        super().__init__(f"{message} at {line}:{column}")


class DeclarationSyntaxError(Exception):
    """Token stream that cannot form a valid declaration."""

    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        self.reason = message
        super().__init__(f"{message} at {line}:{column}")


class RegistryError(Exception):
    """Invalid registry usage, e.g. registering into a resolved snapshot."""


class TypeNotFoundError(LookupError):
    """A diff request named a type or snapshot that is not registered."""
