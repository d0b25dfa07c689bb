"""
CHIP-8 Assembly Language Lexer
==============================

This module implements the lexer (tokenizer) for CHIP-8 assembly language.
It converts source text into a stream of tokens for the preprocessor and
parser.

Token Types
-----------
- IDENTIFIER: Labels, mnemonics, directives, register names
- NUMBER: Decimal, hexadecimal (#FF) and binary (%1010) literals
- STRING: Double-quoted strings ("hello")
- Delimiters: ``,`` ``:`` ``[`` ``]``
- NEWLINE: End of line
- ERROR: Placeholder for a line whose lexing failed (batch mode only)
- EOF: End of file

Number Formats
--------------
| Format      | Prefix | Example   | Value |
|-------------|--------|-----------|-------|
| Decimal     | (none) | 123       | 123   |
| Hexadecimal | #      | #7F       | 127   |
| Binary      | %      | %1010     | 10    |

Comments run from ``;`` to the end of the line.

Example
-------
>>> from chip8_asm.assembler.lexer import Lexer
>>> for token in Lexer("start: ld v0, #41 ; load 'A'", "example.asm").tokenize():
...     print(token)
Token(IDENTIFIER, 'start', 1:1)
Token(COLON, ':', 1:6)
Token(IDENTIFIER, 'ld', 1:8)
Token(IDENTIFIER, 'v0', 1:11)
Token(COMMA, ',', 1:13)
Token(NUMBER, $41, 1:15)
Token(EOF, 1:29)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import string

from chip8_asm.errors import ErrorCollector, LexError, SourceLocation


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """
    Token types for CHIP-8 assembly language.
    """

    # Structural tokens
    NEWLINE = auto()     # End of line (significant for statement boundaries)
    EOF = auto()         # End of file
    ERROR = auto()       # A line that failed to lex; the error is already recorded

    # Values
    IDENTIFIER = auto()  # Labels, mnemonics, directives, registers
    NUMBER = auto()      # Numeric literals (all formats)
    STRING = auto()      # Double-quoted string "..."

    # Delimiters
    COMMA = auto()       # ,
    COLON = auto()       # :
    LBRACKET = auto()    # [
    RBRACKET = auto()    # ]


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from the source code.

    Attributes:
        type: The TokenType classification
        value: Identifier text, numeric value or string contents
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
        radix: Base a NUMBER was written in (10, 16 or 2)
    """
    type: TokenType
    value: str | int | None
    line: int
    column: int
    filename: str
    radix: int = 10

    def __repr__(self) -> str:
        if self.value is not None:
            if isinstance(self.value, int):
                return f"Token({self.type.name}, ${self.value:X}, {self.line}:{self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)

    def is_word(self, *words: str) -> bool:
        """Check for an identifier matching any of the words, ignoring case."""
        return (
            self.type == TokenType.IDENTIFIER
            and isinstance(self.value, str)
            and self.value.lower() in words
        )


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes CHIP-8 assembly source code.

    The lexer is a generator: tokens are produced on demand, and every call
    to tokenize() starts again from the beginning of the source.

    Without an ErrorCollector the first LexError is raised. With one, the
    error is recorded, the rest of the line is skipped and a single ERROR
    token stands in for it, so later lines are still scanned.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())
    """

    IDENT_START = string.ascii_letters + "_"
    IDENT_CHARS = string.ascii_letters + string.digits + "_"

    SINGLE_CHAR_TOKENS = {
        ",": TokenType.COMMA,
        ":": TokenType.COLON,
        "[": TokenType.LBRACKET,
        "]": TokenType.RBRACKET,
    }

    # Escape sequences in strings
    ESCAPE_SEQUENCES = {
        "n": "\n",      # Line feed
        "r": "\r",      # Carriage return
        "t": "\t",      # Tab
        "e": "\x1b",    # Escape
        "0": "\0",      # Null
        "\\": "\\",     # Backslash
        '"': '"',       # Double quote
    }

    # Digits accepted after each prefix
    RADIX_DIGITS = {
        16: string.hexdigits,
        2: "01",
        10: string.digits,
    }

    RADIX_NAMES = {16: "hexadecimal", 2: "binary", 10: "decimal"}

    def __init__(
        self,
        source: str,
        filename: str = "<input>",
        line_number: int = 1,
        errors: Optional[ErrorCollector] = None,
    ):
        """
        Args:
            source: The assembly source code to tokenize
            filename: Name of the source file (for error messages)
            line_number: Starting line number
            errors: Collector for batch mode; None raises on the first error
        """
        self.source = source
        self.filename = filename
        self._first_line = line_number
        self._errors = errors
        self._reset()

    def _reset(self) -> None:
        self._pos = 0
        self._line = self._first_line
        self._column = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always ending with EOF

        Raises:
            LexError: If invalid syntax is found and no collector was given
        """
        self._reset()

        while not self._at_end():
            if self._skip_whitespace():
                continue

            if self._skip_comment():
                continue

            start_line = self._line
            start_column = self._column
            try:
                token = self._scan_token()
            except LexError as e:
                if self._errors is None:
                    raise
                self._errors.add(e)
                self._skip_to_eol()
                yield self._make_token(TokenType.ERROR, None, start_line, start_column)
                continue

            yield token

        yield self._make_token(TokenType.EOF, None)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Look ahead without advancing. Returns '' past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | None,
        start_line: Optional[int] = None,
        start_column: Optional[int] = None,
        radix: int = 10,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=start_line or self._line,
            column=start_column or self._column,
            filename=self.filename,
            radix=radix,
        )

    def _error(self, message: str) -> LexError:
        """Create a LexError at the current position with the line text."""
        location = SourceLocation(self.filename, self._line, self._column)
        return LexError(message, location, source_line=self.get_current_line())

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace(self) -> bool:
        """Skip spaces, tabs and carriage returns (not newlines)."""
        skipped = False
        # '' is in every string, so check for end of input first
        while self._peek() and self._peek() in " \t\r":
            self._advance()
            skipped = True
        return skipped

    def _skip_comment(self) -> bool:
        """Skip a ';' comment up to (not including) the newline."""
        if self._peek() != ";":
            return False
        self._skip_to_eol()
        return True

    def _skip_to_eol(self) -> None:
        while not self._at_end() and self._peek() != "\n":
            self._advance()

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if char == "\n":
            self._advance()
            return self._make_token(TokenType.NEWLINE, None, start_line, start_column)

        if char in self.IDENT_START:
            return self._scan_identifier(start_line, start_column)

        if char.isdigit():
            return self._scan_number(10, start_line, start_column)

        if char == "#":
            self._advance()
            return self._scan_number(16, start_line, start_column)

        if char == "%":
            self._advance()
            return self._scan_number(2, start_line, start_column)

        if char == '"':
            return self._scan_string(start_line, start_column)

        if char in self.SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(
                self.SINGLE_CHAR_TOKENS[char], char, start_line, start_column
            )

        raise self._error(f"unexpected character {char!r}")

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        return self._make_token(
            TokenType.IDENTIFIER, "".join(chars), start_line, start_column
        )

    def _scan_number(self, radix: int, start_line: int, start_column: int) -> Token:
        """
        Scan the digits of a numeric literal whose prefix (if any) has
        already been consumed.

        A letter, digit or underscore directly after the digits is not a
        separator, so it is reported as an invalid digit rather than
        silently starting a new token.
        """
        valid = self.RADIX_DIGITS[radix]
        name = self.RADIX_NAMES[radix]

        chars = []
        while self._peek() and self._peek() in valid:
            chars.append(self._advance())

        trailing = self._peek()
        if trailing and trailing in self.IDENT_CHARS:
            raise self._error(f"invalid character {trailing!r} in {name} literal")

        if not chars:
            raise self._error(f"expected {name} digits")

        value = int("".join(chars), radix)
        return self._make_token(TokenType.NUMBER, value, start_line, start_column, radix)

    def _scan_string(self, start_line: int, start_column: int) -> Token:
        """
        Scan a double-quoted string literal.

        Supports the escapes in ESCAPE_SEQUENCES.
        """
        self._advance()  # opening "

        chars = []
        while not self._at_end():
            char = self._peek()

            if char == '"':
                self._advance()
                return self._make_token(
                    TokenType.STRING, "".join(chars), start_line, start_column
                )

            if char == "\n":
                raise self._error("unterminated string literal")

            if char == "\\":
                self._advance()
                chars.append(self._scan_escape_sequence())
            else:
                chars.append(self._advance())

        raise self._error("unterminated string literal")

    def _scan_escape_sequence(self) -> str:
        if self._at_end() or self._peek() == "\n":
            raise self._error("unterminated string literal")

        char = self._advance()
        if char in self.ESCAPE_SEQUENCES:
            return self.ESCAPE_SEQUENCES[char]

        raise self._error(f"unknown escape sequence '\\{char}'")

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def get_current_line(self) -> str:
        """Get the current line of source text, for error reporting."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]
