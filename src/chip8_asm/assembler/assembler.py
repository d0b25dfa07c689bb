"""
CHIP-8 Assembler - Main Interface
=================================

This module provides the Assembler class, the primary interface for turning
CHIP-8 assembly source into a loadable program image. It coordinates the
preprocessor, parser, resolver, encoder and emitter.

Example Usage
-------------
>>> from chip8_asm.assembler import Assembler
>>>
>>> asm = Assembler()
>>> result = asm.assemble_string('''
... start:
...     ld v0, #41
...     jp start
... ''')
>>> result.image.hex()
'60411200'
>>>
>>> asm.write_binary("hello.ch8")

Every run collects its errors instead of stopping at the first one. The
Assembler methods return an AssemblyResult holding either the image or the
diagnostics; the module-level ``assemble()`` raises AssemblyFailedError.

Command-Line Usage
------------------
    $ c8asm game.asm -o game.ch8 -I lib -D SPEED=3
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging

from chip8_asm.assembler.emitter import ImageEmitter
from chip8_asm.assembler.encoder import encode_program
from chip8_asm.assembler.parser import Parser
from chip8_asm.assembler.preprocessor import Preprocessor, SourceLoader, read_source
from chip8_asm.assembler.resolver import Program, SymbolResolver
from chip8_asm.cpu import MAX_ADDRESS, ORIGIN, RESERVED_WORDS
from chip8_asm.errors import (
    AssemblerError,
    AssemblyFailedError,
    Diagnostic,
    ErrorCollector,
    SourceLocation,
    TooManyErrors,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Assembly Result
# =============================================================================

@dataclass
class AssemblyResult:
    """
    Outcome of one assembly run.

    Attributes:
        image: Program bytes for load at the origin, or None on failure
        errors: Every error collected during the run
        warnings: Warning messages (e.g. overlapping writes)
        symbols: Label name -> address
        defines: Define name -> value or register name
        origin: Address of the first image byte
    """
    image: Optional[bytes]
    errors: list[AssemblerError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    symbols: dict[str, int] = field(default_factory=dict)
    defines: dict[str, int | str] = field(default_factory=dict)
    origin: int = ORIGIN

    @property
    def ok(self) -> bool:
        return self.image is not None and not self.errors

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [error.to_diagnostic() for error in self.errors]

    def report(self) -> str:
        """Format errors and warnings for display."""
        collector = ErrorCollector()
        collector.errors = list(self.errors)
        collector.warnings = list(self.warnings)
        return collector.report()


# =============================================================================
# Assembler
# =============================================================================

class Assembler:
    """
    Main CHIP-8 assembler class.

    Configuration is given to the constructor and applies to every run.
    Each run builds its own define table, label table and error collector,
    so assembling the same source twice gives identical bytes.

    Attributes:
        origin: Load address of the program
        max_errors: Errors collected before a run stops
    """

    def __init__(
        self,
        origin: int = ORIGIN,
        include_paths: list[str | Path] | None = None,
        defines: dict[str, int] | None = None,
        max_errors: int = 100,
        loader: Optional[SourceLoader] = None,
    ):
        """
        Initialize the assembler.

        Args:
            origin: Address the program is loaded at (default $200)
            include_paths: Directories searched for include files after the
                           including file's own directory
            defines: Numeric defines installed before the first line
            max_errors: Errors collected before a run stops
            loader: Function used to read source files

        Raises:
            ValueError: If origin is outside the address space
        """
        if not 0 <= origin <= MAX_ADDRESS:
            raise ValueError(f"origin ${origin:X} is outside $000-${MAX_ADDRESS:03X}")

        self.origin = origin
        self.max_errors = max_errors
        self._loader = loader or read_source
        self._include_paths: list[Path] = []
        self._defines: dict[str, int] = {}
        self._result: Optional[AssemblyResult] = None

        for path in include_paths or []:
            self.add_include_path(path)

        for name, value in (defines or {}).items():
            self.define_symbol(name, value)

    # =========================================================================
    # Configuration
    # =========================================================================

    def add_include_path(self, path: str | Path) -> None:
        """
        Add a directory to search for include files.

        Args:
            path: Directory path to add
        """
        path = Path(path)
        if not path.is_dir():
            logger.warning("include path '%s' is not a directory", path)
        self._include_paths.append(path)

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a numeric define (like -D on the command line).

        Raises:
            ValueError: If the name is reserved or already predefined
        """
        key = name.lower()
        if key in RESERVED_WORDS:
            raise ValueError(f"'{name}' is a reserved word")
        if key in self._defines:
            raise ValueError(f"'{name}' is already defined")
        self._defines[key] = value

    @property
    def include_paths(self) -> list[Path]:
        return list(self._include_paths)

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_string(self, source: str, filename: str = "<input>") -> AssemblyResult:
        """
        Assemble source code from a string.

        Includes are resolved against the current directory, then the
        include paths.

        Args:
            source: Assembly source code
            filename: Virtual filename for error messages
        """
        return self._run(source, filename, None)

    def assemble_file(self, filepath: str | Path) -> AssemblyResult:
        """
        Assemble source code from a file.

        Raises:
            FileNotFoundError: If the source file does not exist
        """
        filepath = Path(filepath)
        logger.debug("assembling %s", filepath)
        try:
            source = self._loader(filepath)
        except UnicodeDecodeError as e:
            return self._fail(_decode_error(filepath, e))
        return self._run(source, str(filepath), filepath.resolve())

    def _fail(self, error: AssemblerError) -> AssemblyResult:
        """Record a run that stopped before any source was read."""
        self._result = AssemblyResult(image=None, errors=[error], origin=self.origin)
        return self._result

    def _run(self, source: str, filename: str, path: Optional[Path]) -> AssemblyResult:
        """
        The assembly pipeline:
        1. Preprocess the token stream (defines, includes)
        2. Parse tokens into statements
        3. Resolve labels (pass 1 layout, pass 2 references)
        4. Encode instructions
        5. Emit the image if nothing went wrong
        """
        errors = ErrorCollector(self.max_errors)
        preprocessor = Preprocessor(
            errors,
            include_paths=self._include_paths,
            defines=self._defines,
            loader=self._loader,
        )
        program = Program([], preprocessor.defines, self.origin)
        image = None

        try:
            tokens = list(preprocessor.process(source, filename, path))
            logger.debug("%d tokens from %d file(s)", len(tokens), len(preprocessor.sources))

            program.statements = Parser(tokens, errors, preprocessor.sources).parse()
            SymbolResolver(errors).resolve(program)
            encode_program(program.statements, errors)

            if not errors.has_errors():
                image = ImageEmitter(self.origin, errors).emit(program.statements)
        except TooManyErrors as e:
            errors.errors.append(e)

        if errors.has_errors():
            image = None
            logger.debug("assembly failed with %d error(s)", errors.error_count())

        self._result = AssemblyResult(
            image=image,
            errors=list(errors.errors),
            warnings=list(errors.warnings),
            symbols=program.symbol_values(),
            defines=program.defines.as_dict(),
            origin=self.origin,
        )
        return self._result

    # =========================================================================
    # Output Methods
    # =========================================================================

    @property
    def result(self) -> Optional[AssemblyResult]:
        """Result of the most recent run."""
        return self._result

    def get_code(self) -> bytes:
        """
        Get the image from the last run.

        Raises:
            AssemblyFailedError: If the last run failed
        """
        if self._result is None:
            raise RuntimeError("nothing has been assembled")
        if not self._result.ok:
            raise AssemblyFailedError(self._result.errors)
        return self._result.image

    def get_symbols(self) -> dict[str, int]:
        """Label table from the last run."""
        return dict(self._result.symbols) if self._result else {}

    def write_binary(self, filepath: str | Path) -> None:
        """
        Write the image from the last run, headerless.

        Args:
            filepath: Output file path
        """
        code = self.get_code()
        Path(filepath).write_bytes(code)
        logger.info("wrote %d bytes to %s", len(code), filepath)

    # =========================================================================
    # Error Handling
    # =========================================================================

    def has_errors(self) -> bool:
        return self._result is not None and bool(self._result.errors)

    def get_error_report(self) -> str:
        """
        Get formatted error report for the last run.
        """
        return self._result.report() if self._result else ""


def _decode_error(filepath: Path, error: UnicodeDecodeError) -> AssemblerError:
    """Point at the first byte of a source file that is not UTF-8."""
    before = error.object[:error.start]
    line = before.count(b"\n") + 1
    column = error.start - (before.rfind(b"\n") + 1) + 1
    return AssemblerError(
        f"cannot read '{filepath}': not valid UTF-8 text",
        location=SourceLocation(str(filepath), line, column),
        hint="save the source file as UTF-8",
    )


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, filename: str = "<input>", **options) -> bytes:
    """
    Convenience function to assemble source code.

    Args:
        source: Assembly source code
        filename: Virtual filename for errors
        **options: Assembler constructor arguments

    Returns:
        The program image

    Raises:
        AssemblyFailedError: If assembly produced any error
    """
    result = Assembler(**options).assemble_string(source, filename)
    if not result.ok:
        raise AssemblyFailedError(result.errors)
    return result.image


def assemble_file(filepath: str | Path, **options) -> bytes:
    """
    Convenience function to assemble a file.

    Raises:
        AssemblyFailedError: If assembly produced any error
        FileNotFoundError: If the source file does not exist
    """
    result = Assembler(**options).assemble_file(filepath)
    if not result.ok:
        raise AssemblyFailedError(result.errors)
    return result.image
