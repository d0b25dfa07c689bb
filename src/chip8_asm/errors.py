"""
CHIP-8 Assembler Error Hierarchy
================================

This module defines the exception hierarchy for the assembler. All
exceptions inherit from Chip8Error, allowing callers to catch every
assembler-related error with a single except clause if desired.

Exception Hierarchy
-------------------
Chip8Error (base)
└── AssemblerError
    ├── AssemblySyntaxError
    │   ├── LexError - malformed literal, string or character
    │   └── ParseError - malformed statement or operand count
    ├── DuplicateSymbolError - name defined in both tables
    │   ├── DuplicateLabelError - label defined twice
    │   └── DuplicateDefineError - define declared twice
    ├── UndefinedDefineError - define used before its declaration
    ├── UndefinedSymbolError - label never defined
    ├── OperandError - no encoding for this operand combination
    ├── RangeError - value wider than its slot
    ├── IncludeError
    │   ├── CyclicIncludeError - file includes itself transitively
    │   └── IncludeNotFoundError - included file cannot be read
    ├── TooManyErrors - collector limit reached
    └── AssemblyFailedError - raised by the convenience API

Error messages follow this format:
    filename:line:column: error: description
        source_line_text
        ^
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class Chip8Error(Exception):
    """
    Base exception for all assembler errors.

        try:
            assembler.assemble_file("game.asm")
        except Chip8Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Diagnostic:
    """
    Structured form of a collected error, handed to the CLI or any other
    caller instead of printed text.

    Attributes:
        kind: Exception class name (e.g. "UndefinedSymbolError")
        filename: Source file the error was found in
        line: Line number, 0 when the error has no location
        column: Column number, 0 when the error has no location
        message: Human-readable description without location prefix
    """
    kind: str
    filename: str
    line: int
    column: int
    message: str

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}: {self.kind}: {self.message}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(Chip8Error):
    """
    Base exception for all assembler errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            game.asm:15:9: error: undefined symbol 'spirte'
                ld I, spirte
                      ^
            hint: did you mean 'sprite'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)

    def to_diagnostic(self) -> Diagnostic:
        """Convert this error into a structured Diagnostic."""
        if self.location is not None:
            filename = self.location.filename
            line = self.location.line
            column = self.location.column
        else:
            filename, line, column = "<unknown>", 0, 0
        return Diagnostic(
            kind=type(self).__name__,
            filename=filename,
            line=line,
            column=column,
            message=self.message,
        )


class AssemblySyntaxError(AssemblerError):
    """Common base for lexical and grammatical errors."""
    pass


class LexError(AssemblySyntaxError):
    """
    Lexical error in assembly source code.

    Examples:
        - Unterminated string literal
        - Invalid digit in a hexadecimal or binary literal
        - Unknown escape sequence
        - Character outside the source alphabet
    """
    pass


class ParseError(AssemblySyntaxError):
    """
    Grammatical error in a statement.

    Examples:
        - Unknown mnemonic or directive
        - Missing operand or trailing comma
        - Wrong argument count for a directive
    """
    pass


class DuplicateSymbolError(AssemblerError):
    """
    Symbol defined more than once, or defined as both a define and a label.

    Includes the original definition location when available.
    """

    kind = "symbol"

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{symbol}' was first defined at {original_location}"

        super().__init__(
            message or f"duplicate {self.kind} '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateLabelError(DuplicateSymbolError):
    """A label name defined by more than one LabelDef."""

    kind = "label"


class DuplicateDefineError(DuplicateSymbolError):
    """A define name declared more than once."""

    kind = "define"


class UndefinedDefineError(AssemblerError):
    """
    A define referenced before (or without) its declaration.

    Defines, unlike labels, cannot be forward referenced. The preprocessor
    raises this for a define whose value names an unknown define, and the
    resolver raises it for an operand naming a define declared further down.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        super().__init__(
            f"undefined define '{symbol}'",
            location=location,
            hint="defines must be declared before they are used",
            source_line=source_line,
        )


class UndefinedSymbolError(AssemblerError):
    """
    Reference to a label that is never defined.

    Raised during the second resolver pass. Similarly-named labels are
    suggested to help catch typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class OperandError(AssemblerError):
    """
    No encoding exists for the given operands.

    Example:
        or V1, #10   ; Error: 'or' only takes two registers
    """

    def __init__(
        self,
        mnemonic: str,
        operands: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        valid_forms: Optional[list[str]] = None,
    ):
        self.mnemonic = mnemonic
        self.operands = operands
        self.valid_forms = valid_forms or []

        hint = None
        if self.valid_forms:
            hint = f"{mnemonic} supports: {'; '.join(self.valid_forms)}"

        shown = operands if operands else "no operands"
        super().__init__(
            f"'{mnemonic}' cannot be used with {shown}",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class RangeError(AssemblerError):
    """
    A numeric value does not fit the bit-width of its position.

    Example:
        ld V0, #FFF   ; Error: #FFF needs 12 bits, slot holds 8
    """

    def __init__(
        self,
        value: int,
        bits: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        what: str = "value",
        low: int = 0,
    ):
        self.value = value
        self.bits = bits
        self.low = low
        limit = (1 << bits) - 1
        if low <= value <= limit:
            message = f"{what} {value} (0x{value:X}) is out of range"
        elif value < low:
            message = f"{what} {value} (0x{value:X}) is below 0x{low:X}"
        else:
            message = f"{what} {value} (0x{value:X}) does not fit in {bits} bits"
        super().__init__(
            message,
            location=location,
            hint=f"expected a value between {low} and {limit} (0x{low:X}-0x{limit:X})",
            source_line=source_line,
        )


class IncludeError(AssemblerError):
    """
    Error including a file.

    Raised when an include file is missing or includes itself.
    """

    def __init__(
        self,
        filename: str,
        reason: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        search_paths: Optional[list[str]] = None,
    ):
        self.included_filename = filename
        self.reason = reason
        self.search_paths = search_paths or []

        hint = None
        if self.search_paths:
            paths_str = ", ".join(self.search_paths)
            hint = f"searched in: {paths_str}"

        super().__init__(
            f"cannot include '{filename}': {reason}",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class CyclicIncludeError(IncludeError):
    """An included file transitively includes itself."""

    def __init__(
        self,
        filename: str,
        chain: list[str],
        location: Optional[SourceLocation] = None,
    ):
        self.chain = chain
        super().__init__(
            filename,
            "circular include (" + " -> ".join(chain) + ")",
            location,
        )


class IncludeNotFoundError(IncludeError):
    """The include target does not exist or cannot be read."""

    def __init__(
        self,
        filename: str,
        location: Optional[SourceLocation] = None,
        search_paths: Optional[list[str]] = None,
    ):
        super().__init__(
            filename,
            "file not found",
            location,
            search_paths=search_paths,
        )


# =============================================================================
# Error Collection for Multiple Error Reporting
# =============================================================================

class ErrorCollector:
    """
    Collects multiple errors for batch reporting.

    The assembler uses this to continue after an error, gathering every
    diagnostic before reporting them together.

    Example:
        collector = ErrorCollector(max_errors=100)

        try:
            ...
            collector.add(UndefinedSymbolError(...))
        except TooManyErrors:
            pass

        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self, max_errors: int = 100):
        """
        Args:
            max_errors: Maximum errors to collect before raising TooManyErrors
        """
        self.errors: list[AssemblerError] = []
        self.warnings: list[str] = []
        self.max_errors = max_errors

    def add(self, error: AssemblerError) -> None:
        """
        Add an error to the collection.

        Raises:
            TooManyErrors: If max_errors has been reached
        """
        self.errors.append(error)
        if len(self.errors) >= self.max_errors:
            raise TooManyErrors(f"too many errors ({self.max_errors}), stopping")

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def error_count(self) -> int:
        """Return the number of collected errors."""
        return len(self.errors)

    def warning_count(self) -> int:
        """Return the number of collected warnings."""
        return len(self.warnings)

    def report(self) -> str:
        """Format all errors and warnings for display."""
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        if self.warnings:
            lines.append("Warnings:")
            for warning in self.warnings:
                lines.append(f"  {warning}")

        error_word = "error" if len(self.errors) == 1 else "errors"
        warning_word = "warning" if len(self.warnings) == 1 else "warnings"
        lines.append(
            f"\n{len(self.errors)} {error_word}, {len(self.warnings)} {warning_word}"
        )

        return "\n".join(lines)


class TooManyErrors(AssemblerError):
    """
    Raised when too many errors have been encountered.

    This stops the assembler early when there are fundamental problems
    with the source code.
    """

    def __init__(self, message: str = "too many errors"):
        super().__init__(message)


class AssemblyFailedError(AssemblerError):
    """
    Raised by the convenience API when assembly produced diagnostics.

    Attributes:
        errors: Every error collected during the run
    """

    def __init__(self, errors: list[AssemblerError]):
        self.errors = list(errors)
        count = len(self.errors)
        details = "\n\n".join(str(e) for e in self.errors)
        super().__init__(
            f"assembly failed with {count} error{'s' if count != 1 else ''}:\n\n{details}"
        )
