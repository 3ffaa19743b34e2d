"""
Diagnostics for the Albus front end
Error taxonomy, message formatting and the reporter shared by every stage
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class ErrorKind(Enum):
    """Every failure the pipeline can report"""
    LEX = "LexError"
    PARSE = "ParseError"
    REDECLARATION = "Redeclaration"
    UNDEFINED_VARIABLE = "UndefinedVariable"
    TYPE_MISMATCH = "TypeMismatch"
    DIVISION_BY_ZERO = "DivisionByZero"
    CONTROL_FLOW = "ControlFlow"

    @property
    def is_fatal(self) -> bool:
        """Lex and parse errors abort the run, everything else is statement-local"""
        return self in (ErrorKind.LEX, ErrorKind.PARSE)


@dataclass(frozen=True)
class Diagnostic:
    """One reported error"""
    kind: ErrorKind
    message: str
    line: Optional[int] = None

    def __str__(self) -> str:
        return format_diagnostic(self)


def make_lex_error(message: str, line: int) -> Diagnostic:
    return Diagnostic(ErrorKind.LEX, message, line)


def make_parse_error(description: str, line: int) -> Diagnostic:
    """Create the diagnostic for an unmet grammar expectation"""
    return Diagnostic(ErrorKind.PARSE, f"expected {description}", line)


def make_runtime_error(kind: ErrorKind, message: str, line: Optional[int] = None) -> Diagnostic:
    return Diagnostic(kind, message, line)


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def format_diagnostic(diagnostic: Diagnostic) -> str:
    """Format a diagnostic as the single line the user sees"""
    if diagnostic.kind is ErrorKind.LEX:
        return f"{diagnostic.message} on line {diagnostic.line}"

    if diagnostic.kind is ErrorKind.PARSE:
        return f"parsing error: {diagnostic.message} on line {diagnostic.line}"

    return f"error: {diagnostic.message}"


def type_mismatch_message(operator: str, left_type: str, right_type: str) -> str:
    """Explain why a binary operator cannot be applied to its operands"""
    if "bool" in (left_type, right_type):
        return f"cannot apply operator '{operator}' to boolean values"
    return f"cannot apply operator '{operator}' to values of type '{left_type}' and '{right_type}'"


def get_source_line(source_text: str, line_num: int) -> str:
    """Get the source text of a line (1-based), or an empty string"""
    lines = source_text.split('\n')
    if 1 <= line_num <= len(lines):
        return lines[line_num - 1]
    return ""


# ============================================================================
# REPORTER
# ============================================================================

class DiagnosticReporter:
    """Prints diagnostics as they are reported and keeps them for inspection"""

    def __init__(self, output: Callable[[str], None] = print):
        self.output = output
        self.diagnostics: List[Diagnostic] = []

    def report(self, diagnostic: Diagnostic) -> Diagnostic:
        self.diagnostics.append(diagnostic)
        self.output(format_diagnostic(diagnostic))
        return diagnostic

    @property
    def has_errors(self) -> bool:
        return bool(self.diagnostics)

    @property
    def has_fatal_errors(self) -> bool:
        return any(d.kind.is_fatal for d in self.diagnostics)

    def of_kind(self, kind: ErrorKind) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.kind is kind]

    def clear(self) -> None:
        self.diagnostics.clear()


# ============================================================================
# EXCEPTIONS
# ============================================================================

class AlbusError(Exception):
    """Raised at the command-line boundary when a run cannot start"""
    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        if self.path:
            return f"{self.message}: '{self.path}'"
        return self.message
