#!/usr/bin/env python3

"""Diagnostic model shared by every analysis phase."""

from dataclasses import dataclass
from enum import Enum


class Severity(Enum):
    """How serious a diagnostic is."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class DiagnosticKind(Enum):
    """Categories of problems reported while building the type model."""

    LEX_ERROR = "lex_error"
    SYNTAX_ERROR = "syntax_error"
    UNRESOLVED_SYMBOL = "unresolved_symbol"
    OFFSET_MISMATCH = "offset_mismatch"
    DUPLICATE_DEFINITION = "duplicate_definition"
    TEMPLATE_ARITY_MISMATCH = "template_arity_mismatch"
    OFFSET_ORDER = "offset_order"
    EVALUATION_ERROR = "evaluation_error"
    UNKNOWN_TYPE_SIZE = "unknown_type_size"
    LAYOUT_CYCLE = "layout_cycle"


@dataclass(frozen=True)
class SourceLocation:
    """Position of a token in a source file (1-based line and column)."""

    file: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass
class Diagnostic:
    """A non-fatal problem accumulated during analysis."""

    severity: Severity
    kind: DiagnosticKind
    message: str
    location: SourceLocation | None = None
    type_name: str | None = None
    """Qualified name of the declaration the diagnostic belongs to, when known"""

    def __str__(self) -> str:
        where = f"{self.location}: " if self.location else ""
        return f"{where}{self.severity.value}: [{self.kind.value}] {self.message}"
