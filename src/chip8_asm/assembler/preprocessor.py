"""
CHIP-8 Assembly Preprocessor
============================

The preprocessor sits between the lexer and the parser. It consumes the
token stream and handles two line-level directives before the parser
sees anything:

``define <name> <value>``
    Binds a name to a number or a general register. The value is resolved
    when the define is declared (it may name an earlier define), and every
    later use of the name is replaced by that value. Defines cannot be
    forward referenced.

``include "path"``
    Splices the tokens of another file at this point. Paths are relative to
    the including file, then to the configured include paths. Included files
    may include others; a file that is already being included is rejected.

Example
-------
::

    define speed 3        ; numeric constant
    define player v5      ; register alias
    include "sprites.asm" ; splice another file

    add player, speed     ; parser sees: add v5, 3
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Iterator, Optional
import logging

from chip8_asm.assembler.lexer import Lexer, Token, TokenType
from chip8_asm.cpu import REGISTER_NAMES, RESERVED_WORDS
from chip8_asm.errors import (
    AssemblerError,
    CyclicIncludeError,
    DuplicateDefineError,
    ErrorCollector,
    IncludeError,
    IncludeNotFoundError,
    ParseError,
    SourceLocation,
    UndefinedDefineError,
)

logger = logging.getLogger(__name__)

# Reads a source file; must raise FileNotFoundError when it does not exist
SourceLoader = Callable[[Path], str]


def read_source(path: Path) -> str:
    """Default loader: read a UTF-8 text file from disk."""
    return path.read_text(encoding="utf-8")


# =============================================================================
# Define Table
# =============================================================================

@dataclass(frozen=True)
class Define:
    """
    A resolved define.

    Exactly one of ``value`` and ``register`` is set.

    Attributes:
        name: Define name (lower-case)
        value: Numeric constant
        register: General register name, e.g. "v5"
        location: Where the define was declared
        radix: Base the constant was written in, kept for substitution
    """
    name: str
    location: SourceLocation
    value: Optional[int] = None
    register: Optional[str] = None
    radix: int = 10

    def substitute(self, use: Token) -> Token:
        """Return the token that replaces a use of this define."""
        if self.register is not None:
            return replace(use, type=TokenType.IDENTIFIER, value=self.register, radix=10)
        return replace(use, type=TokenType.NUMBER, value=self.value, radix=self.radix)


class DefineTable:
    """
    Name-to-value table for one assembly run. Names are case-insensitive.
    """

    def __init__(self) -> None:
        self._defines: dict[str, Define] = {}

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._defines

    def __len__(self) -> int:
        return len(self._defines)

    def get(self, name: str) -> Optional[Define]:
        return self._defines.get(name.lower())

    def add(self, define: Define) -> None:
        """
        Raises:
            DuplicateDefineError: If the name is already defined
        """
        existing = self._defines.get(define.name)
        if existing is not None:
            raise DuplicateDefineError(
                define.name,
                location=define.location,
                original_location=existing.location,
            )
        self._defines[define.name] = define

    def as_dict(self) -> dict[str, int | str]:
        """Return name -> value (int) or register name (str)."""
        return {
            name: d.register if d.register is not None else d.value
            for name, d in self._defines.items()
        }


# =============================================================================
# Include Stack
# =============================================================================

@dataclass
class _SourceFrame:
    """One file being read: its token iterator plus pushed-back tokens."""
    name: str
    path: Optional[Path]
    tokens: Iterator[Token]
    pending: list[Token] = field(default_factory=list)

    def next(self) -> Token:
        if self.pending:
            return self.pending.pop()
        return next(self.tokens)

    def push_back(self, token: Token) -> None:
        self.pending.append(token)


# =============================================================================
# Preprocessor
# =============================================================================

class Preprocessor:
    """
    Expands defines and includes over a lexed token stream.

    Errors in a define or include line are recorded in the collector and the
    line is dropped; processing continues with the next line.

    Usage:
        pp = Preprocessor(errors)
        tokens = list(pp.process(source, "main.asm"))
    """

    def __init__(
        self,
        errors: ErrorCollector,
        include_paths: Optional[list[Path]] = None,
        defines: Optional[dict[str, int]] = None,
        loader: Optional[SourceLoader] = None,
    ):
        """
        Args:
            errors: Collector receiving every preprocessing error
            include_paths: Directories searched after the including file's own
            defines: Numeric defines installed before the first line
            loader: Function used to read included files
        """
        self._errors = errors
        self._include_paths = list(include_paths or [])
        self._loader = loader or read_source
        self.defines = DefineTable()
        self._stack: list[_SourceFrame] = []
        self.sources: dict[str, str] = {}

        predefined = SourceLocation("<predefined>", 0, 0)
        for name, value in (defines or {}).items():
            self.defines.add(Define(name=name.lower(), location=predefined, value=value))

    # =========================================================================
    # Token Stream
    # =========================================================================

    def process(
        self,
        source: str,
        filename: str = "<input>",
        path: Optional[Path] = None,
    ) -> Iterator[Token]:
        """
        Generate the expanded token stream for a source text.

        Args:
            source: Main source text
            filename: Name used in token locations
            path: File the source was read from, used for relative includes
                  and for detecting a main file that includes itself

        Yields:
            Tokens with defines substituted and includes spliced in, ending
            with a single EOF
        """
        self._stack = []
        self._push(filename, path, source)
        at_line_start = True

        while self._stack:
            frame = self._stack[-1]
            token = frame.next()

            if token.type == TokenType.EOF:
                self._stack.pop()
                if not self._stack:
                    yield token
                    return
                # Files need not end with a newline
                yield replace(token, type=TokenType.NEWLINE)
                at_line_start = True
                continue

            if token.type == TokenType.NEWLINE:
                at_line_start = True
                yield token
                continue

            if at_line_start and token.is_word("define", "include"):
                rest, end = self._read_line(frame)
                try:
                    if token.is_word("define"):
                        self._handle_define(token, rest)
                    else:
                        self._handle_include(token, rest)
                except AssemblerError as e:
                    self._errors.add(e)
                if end is not None:
                    yield end
                continue

            at_line_start = False

            if token.type == TokenType.IDENTIFIER:
                token = self._substitute(frame, token)

            yield token

    def _read_line(self, frame: _SourceFrame) -> tuple[list[Token], Optional[Token]]:
        """
        Read the remaining tokens of the current line.

        Returns the tokens and the NEWLINE that ended them (None at EOF; the
        EOF is pushed back for the main loop).
        """
        tokens = []
        while True:
            token = frame.next()
            if token.type == TokenType.NEWLINE:
                return tokens, token
            if token.type == TokenType.EOF:
                frame.push_back(token)
                return tokens, None
            tokens.append(token)

    def _substitute(self, frame: _SourceFrame, token: Token) -> Token:
        """Replace a define use; label definitions (``name:``) are left alone."""
        define = self.defines.get(token.value)
        if define is None:
            return token

        following = frame.next()
        frame.push_back(following)
        if following.type == TokenType.COLON:
            return token

        return define.substitute(token)

    # =========================================================================
    # Define
    # =========================================================================

    def _handle_define(self, keyword: Token, args: list[Token]) -> None:
        """Process ``define <name> <value>``."""
        if any(t.type == TokenType.ERROR for t in args):
            return

        if len(args) != 2:
            raise ParseError(
                f"'define' expects a name and a value, got {len(args)} argument(s)",
                keyword.location,
            )

        name_tok, value_tok = args
        if name_tok.type != TokenType.IDENTIFIER:
            raise ParseError("'define' must be followed by a name", name_tok.location)

        name = name_tok.value.lower()
        if name in RESERVED_WORDS:
            raise ParseError(
                f"'{name_tok.value}' is a reserved word and cannot be defined",
                name_tok.location,
            )

        define = self._resolve_define_value(name, name_tok.location, value_tok)
        self.defines.add(define)
        logger.debug("define %s = %s", name, define.register or define.value)

    def _resolve_define_value(
        self,
        name: str,
        location: SourceLocation,
        value_tok: Token,
    ) -> Define:
        if value_tok.type == TokenType.NUMBER:
            return Define(name, location, value=value_tok.value, radix=value_tok.radix)

        if value_tok.type == TokenType.IDENTIFIER:
            word = value_tok.value.lower()
            if word in REGISTER_NAMES:
                return Define(name, location, register=word)

            earlier = self.defines.get(word)
            if earlier is not None:
                return replace(earlier, name=name, location=location)

            if word not in RESERVED_WORDS:
                raise UndefinedDefineError(value_tok.value, value_tok.location)

        raise ParseError(
            "a define can only alias a number, a general register or an earlier define",
            value_tok.location,
        )

    # =========================================================================
    # Include
    # =========================================================================

    def _handle_include(self, keyword: Token, args: list[Token]) -> None:
        """Process ``include "path"`` by pushing the file onto the stack."""
        if any(t.type == TokenType.ERROR for t in args):
            return

        if len(args) != 1 or args[0].type != TokenType.STRING:
            raise ParseError(
                "'include' must be followed by exactly one string literal",
                keyword.location,
            )

        target = args[0].value
        path, source = self._load_include(target, keyword)

        identity = path.resolve()
        open_files = [f.path for f in self._stack if f.path is not None]
        if identity in open_files:
            chain = [str(p) for p in open_files[open_files.index(identity):]]
            chain.append(str(identity))
            raise CyclicIncludeError(target, chain, keyword.location)

        logger.debug("including %s", path)
        self._push(str(path), identity, source)

    def _load_include(self, target: str, keyword: Token) -> tuple[Path, str]:
        """Find and read an include file, returning its path and text."""
        current = self._stack[-1].path
        base = current.parent if current is not None else Path(".")

        candidates = [base / target]
        candidates.extend(Path(p) / target for p in self._include_paths)

        for candidate in candidates:
            try:
                return candidate, self._loader(candidate)
            except (FileNotFoundError, IsADirectoryError):
                continue
            except UnicodeDecodeError:
                raise IncludeError(target, "not valid UTF-8 text", keyword.location)
            except OSError as e:
                raise IncludeError(target, e.strerror or str(e), keyword.location)

        raise IncludeNotFoundError(
            target,
            keyword.location,
            search_paths=[str(c.parent) for c in candidates],
        )

    def _push(self, name: str, path: Optional[Path], source: str) -> None:
        self.sources[name] = source
        lexer = Lexer(source, name, errors=self._errors)
        self._stack.append(_SourceFrame(name, path, lexer.tokenize()))
