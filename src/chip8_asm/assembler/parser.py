"""
CHIP-8 Assembly Language Parser
===============================

This module converts the preprocessed token stream into an ordered list of
statements for the resolver and encoder.

Statement Types
---------------
1. **LabelDef**: Label definition
   ```asm
   loop:
   ```


2. **Instruction**: Mnemonic with comma-separated operands
   ```asm
   ld v0, #41
   drw v1, v2, 5
   ld [i], v3
   ```

3. **DataDirective**: Literal data
   ```asm
   db #3C, #42, #3C
   dw #1234
   text "HELLO"
   ```

4. **OffsetDirective**: Move the address counter
   ```asm
   offset #300
   ```

A label may share its line with an instruction or directive.

Operand Classification
----------------------
| Syntax            | Operand                  |
|-------------------|--------------------------|
| v0 - vf           | Register(index)          |
| i dt st k f b     | SpecialRegister(kind)    |
| [i]               | SpecialRegister([I])     |
| 42 #2A %101010    | Immediate(value)         |
| other identifier  | LabelRef(name)           |
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Union
import logging
import struct

from chip8_asm.assembler.lexer import Token, TokenType
from chip8_asm.cpu import (
    DIRECTIVES,
    INSTRUCTION_SIZE,
    OperandKind,
    REGISTER_NAMES,
    RESERVED_WORDS,
    SPECIAL_REGISTERS,
    is_valid_mnemonic,
)
from chip8_asm.errors import (
    AssemblerError,
    ErrorCollector,
    ParseError,
    RangeError,
    SourceLocation,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Operands
# =============================================================================

@dataclass(frozen=True)
class Register:
    """General register V0-VF."""
    index: int
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return f"V{self.index:X}"


@dataclass(frozen=True)
class Immediate:
    """Numeric operand; its width comes from the encoding slot it fills."""
    value: int
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return f"#{self.value:X}"


@dataclass(frozen=True)
class LabelRef:
    """Reference to a label, resolved to a 12-bit address in pass 2."""
    name: str
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class SpecialRegister:
    """One of I, DT, ST, K, F, B or [I]."""
    kind: OperandKind
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return str(self.kind)


Operand = Union[Register, Immediate, LabelRef, SpecialRegister]


# =============================================================================
# Statement Data Classes
# =============================================================================

@dataclass
class Statement:
    """
    Base class for all parsed statements.

    Every statement has a source location for error reporting. The resolver
    fills in ``address`` and ``size`` during pass 1.
    """
    location: SourceLocation
    address: int = field(default=0, kw_only=True)
    size: int = field(default=0, kw_only=True)
    source_line: Optional[str] = field(default=None, kw_only=True, repr=False)


@dataclass
class LabelDef(Statement):
    """
    Label definition statement.

    Attributes:
        name: Label name (lower-case)
    """
    name: str


@dataclass
class Instruction(Statement):
    """
    Machine instruction statement.

    Attributes:
        mnemonic: The instruction mnemonic as written (lower-case)
        operands: Parsed operands in source order
        resolved: Operands with every LabelRef replaced by an Immediate
                  address; set by the resolver in pass 2
        encoded: The two opcode bytes, set by the encoder
    """
    mnemonic: str
    operands: list[Operand] = field(default_factory=list)
    resolved: Optional[list[Operand]] = None
    encoded: Optional[bytes] = None


class DataKind(Enum):
    """Data directive flavours."""
    BYTES = auto()   # db
    WORDS = auto()   # dw
    TEXT = auto()    # text


@dataclass
class DataDirective(Statement):
    """
    ``db``, ``dw`` or ``text`` statement.

    Attributes:
        kind: Which directive produced the data
        items: Byte values (db), word values (dw) or character codes (text)
    """
    kind: DataKind
    items: list[int] = field(default_factory=list)

    @property
    def data(self) -> bytes:
        """The bytes this directive emits."""
        if self.kind == DataKind.WORDS:
            return b"".join(struct.pack(">H", w) for w in self.items)
        if self.kind == DataKind.TEXT:
            return bytes(self.items) + b"\x00"
        return bytes(self.items)


@dataclass
class OffsetDirective(Statement):
    """
    ``offset`` statement: continue assembling at a new address.

    Attributes:
        target: The new address counter value
    """
    target: int


# =============================================================================
# Parser Implementation
# =============================================================================

class _DroppedLine(Exception):
    """A line holds a lexer ERROR token; its error is already recorded."""


# Bit width of each data directive item
_DATA_WIDTHS = {"db": (DataKind.BYTES, 8), "dw": (DataKind.WORDS, 16)}


class Parser:
    """
    Parses CHIP-8 assembly tokens into statements.

    The parser works line by line. Without an ErrorCollector the first error
    is raised; with one, each error is recorded, the rest of the line is
    skipped and parsing continues on the next line.

    Usage:
        tokens = list(preprocessor.process(source, filename))
        parser = Parser(tokens, errors=collector)
        statements = parser.parse()
    """

    def __init__(
        self,
        tokens: list[Token],
        errors: Optional[ErrorCollector] = None,
        sources: Optional[dict[str, str]] = None,
    ):
        """
        Args:
            tokens: Token list ending with EOF
            errors: Collector for batch mode
            sources: Source text per filename, used to quote lines in errors
        """
        self._tokens = tokens
        self._errors = errors
        self._lines = {
            name: text.split("\n") for name, text in (sources or {}).items()
        }
        self._pos = 0

    def parse(self) -> list[Statement]:
        """
        Parse all tokens into statements.

        Raises:
            AssemblerError: On the first error when no collector was given
        """
        statements: list[Statement] = []
        self._pos = 0

        while not self._at_end():
            if self._match(TokenType.NEWLINE):
                continue

            try:
                if self._line_has_error():
                    raise _DroppedLine()
                statements.extend(self._parse_line())
            except _DroppedLine:
                self._skip_line()
            except AssemblerError as e:
                if self._errors is None:
                    raise
                self._errors.add(e)
                self._skip_line()

        logger.debug("parsed %d statements", len(statements))
        return statements

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _current(self) -> Token:
        if self._pos >= len(self._tokens):
            return self._tokens[-1]
        return self._tokens[self._pos]

    def _peek(self, offset: int = 1) -> Token:
        pos = self._pos + offset
        if pos >= len(self._tokens):
            return self._tokens[-1]
        return self._tokens[pos]

    def _advance(self) -> Token:
        token = self._current()
        if token.type != TokenType.EOF:
            self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _at_eol(self) -> bool:
        return self._check(TokenType.NEWLINE, TokenType.EOF)

    def _line_has_error(self) -> bool:
        """Check the tokens up to the end of the current line for ERROR."""
        pos = self._pos
        while pos < len(self._tokens):
            token_type = self._tokens[pos].type
            if token_type == TokenType.ERROR:
                return True
            if token_type in (TokenType.NEWLINE, TokenType.EOF):
                return False
            pos += 1
        return False

    def _skip_line(self) -> None:
        """Skip the rest of the line, including its NEWLINE."""
        while not self._at_eol():
            self._advance()
        self._match(TokenType.NEWLINE)

    def _source_line(self, location: SourceLocation) -> Optional[str]:
        lines = self._lines.get(location.filename)
        if lines is None or not 0 < location.line <= len(lines):
            return None
        return lines[location.line - 1].rstrip("\r")

    def _error(self, message: str, token: Token, hint: Optional[str] = None) -> ParseError:
        return ParseError(
            message,
            token.location,
            hint=hint,
            source_line=self._source_line(token.location),
        )

    def _describe(self, token: Token) -> str:
        if token.type in (TokenType.NEWLINE, TokenType.EOF):
            return "end of line"
        if token.type == TokenType.NUMBER:
            return f"number {token.value}"
        if token.type == TokenType.STRING:
            return "string"
        return f"'{token.value}'"

    # =========================================================================
    # Line Parsing
    # =========================================================================

    def _parse_line(self) -> list[Statement]:
        """Parse one source line into zero, one or two statements."""
        statements: list[Statement] = []

        label = self._try_parse_label()
        if label is not None:
            statements.append(label)

        if not self._at_eol():
            statements.append(self._parse_statement())

        if not self._at_eol():
            token = self._current()
            raise self._error(f"unexpected {self._describe(token)}", token)

        self._match(TokenType.NEWLINE)
        return statements

    def _try_parse_label(self) -> Optional[LabelDef]:
        """Parse ``name:`` if the line starts with one."""
        if not (self._check(TokenType.IDENTIFIER) and self._peek().type == TokenType.COLON):
            return None

        name_token = self._advance()
        self._advance()  # colon

        name = name_token.value.lower()
        if name in RESERVED_WORDS:
            raise self._error(
                f"'{name_token.value}' is a reserved word and cannot be a label",
                name_token,
            )

        return LabelDef(
            location=name_token.location,
            name=name,
            source_line=self._source_line(name_token.location),
        )

    def _parse_statement(self) -> Statement:
        token = self._current()

        if token.type != TokenType.IDENTIFIER:
            raise self._error(
                f"expected an instruction or directive, found {self._describe(token)}",
                token,
            )

        word = token.value.lower()
        if word in DIRECTIVES:
            return self._parse_directive(word)
        if is_valid_mnemonic(word):
            return self._parse_instruction()

        hint = None
        if self._peek().type in (TokenType.NEWLINE, TokenType.EOF):
            hint = f"add a ':' to define '{token.value}' as a label"
        raise self._error(f"unknown instruction or directive '{token.value}'", token, hint)

    # =========================================================================
    # Instructions
    # =========================================================================

    def _parse_instruction(self) -> Instruction:
        mnemonic_token = self._advance()
        operands: list[Operand] = []

        if not self._at_eol():
            operands.append(self._parse_operand())
            while self._match(TokenType.COMMA):
                if self._at_eol():
                    raise self._error("missing operand after ','", self._current())
                operands.append(self._parse_operand())

            if not self._at_eol():
                raise self._error(
                    f"expected ',' before {self._describe(self._current())}",
                    self._current(),
                    hint="operands are separated by commas",
                )

        return Instruction(
            location=mnemonic_token.location,
            mnemonic=mnemonic_token.value.lower(),
            operands=operands,
            size=INSTRUCTION_SIZE,
            source_line=self._source_line(mnemonic_token.location),
        )

    def _parse_operand(self) -> Operand:
        token = self._current()

        if token.type == TokenType.ERROR:
            raise _DroppedLine()

        if token.type == TokenType.NUMBER:
            self._advance()
            return Immediate(token.value, token.location)

        if token.type == TokenType.LBRACKET:
            return self._parse_indirect()

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            word = token.value.lower()
            if word in REGISTER_NAMES:
                return Register(REGISTER_NAMES[word], token.location)
            if word in SPECIAL_REGISTERS:
                return SpecialRegister(SPECIAL_REGISTERS[word], token.location)
            if word in RESERVED_WORDS:
                raise self._error(
                    f"reserved word '{token.value}' cannot be used as an operand",
                    token,
                )
            return LabelRef(word, token.location)

        raise self._error(f"expected an operand, found {self._describe(token)}", token)

    def _parse_indirect(self) -> SpecialRegister:
        """Parse ``[i]``."""
        open_token = self._advance()

        inner = self._current()
        if not inner.is_word("i"):
            raise self._error("only [I] may appear in brackets", inner)
        self._advance()

        if not self._match(TokenType.RBRACKET):
            raise self._error("expected ']'", self._current())

        return SpecialRegister(OperandKind.I_INDIRECT, open_token.location)

    # =========================================================================
    # Directives
    # =========================================================================

    def _parse_directive(self, name: str) -> Statement:
        token = self._current()

        if name in _DATA_WIDTHS:
            return self._parse_data_list(name)
        if name == "text":
            return self._parse_text()
        if name == "offset":
            return self._parse_offset()

        # define and include are handled before parsing and only get here
        # when they do not start their line
        raise self._error(f"'{name}' must appear at the start of a line", token)

    def _parse_data_list(self, name: str) -> DataDirective:
        """
        Parse ``db``/``dw`` items.

        The list may start on the next line and continues onto the following
        line after a trailing comma. A trailing comma at the end of a file
        ends the list.
        """
        directive = self._advance()
        kind, bits = _DATA_WIDTHS[name]
        limit = (1 << bits) - 1

        if self._check(TokenType.NEWLINE):
            self._skip_newlines()

        items: list[int] = []
        while True:
            item = self._current()
            if item.type == TokenType.ERROR:
                raise _DroppedLine()
            if item.type == TokenType.EOF and items:
                break
            if item.type != TokenType.NUMBER:
                raise self._error(
                    f"'{name}' expects numbers, found {self._describe(item)}",
                    item,
                )
            self._advance()

            if item.value > limit:
                raise RangeError(
                    item.value,
                    bits,
                    item.location,
                    source_line=self._source_line(item.location),
                    what=f"'{name}' item",
                )
            items.append(item.value)

            comma = self._match(TokenType.COMMA)
            if comma is None:
                break
            self._skip_newlines()
            # A list never continues into the file that included this one
            if self._current().location.filename != comma.location.filename:
                break

        return DataDirective(
            location=directive.location,
            kind=kind,
            items=items,
            source_line=self._source_line(directive.location),
        )

    def _skip_newlines(self) -> None:
        while self._match(TokenType.NEWLINE):
            pass

    def _parse_text(self) -> DataDirective:
        directive = self._advance()

        string_token = self._current()
        if string_token.type == TokenType.ERROR:
            raise _DroppedLine()
        if string_token.type != TokenType.STRING:
            raise self._error("'text' expects a string literal", string_token)
        self._advance()

        codes = []
        for char in string_token.value:
            code = ord(char)
            if code > 0xFF:
                raise RangeError(
                    code,
                    8,
                    string_token.location,
                    source_line=self._source_line(string_token.location),
                    what=f"character {char!r}",
                )
            codes.append(code)

        return DataDirective(
            location=directive.location,
            kind=DataKind.TEXT,
            items=codes,
            source_line=self._source_line(directive.location),
        )

    def _parse_offset(self) -> OffsetDirective:
        directive = self._advance()

        value = self._current()
        if value.type == TokenType.ERROR:
            raise _DroppedLine()
        if value.type != TokenType.NUMBER:
            raise self._error("'offset' expects one numeric address", value)
        self._advance()

        return OffsetDirective(
            location=directive.location,
            target=value.value,
            source_line=self._source_line(directive.location),
        )
