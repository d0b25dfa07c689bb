"""
chip8-asm - Assembler for the CHIP-8 Virtual Machine
====================================================

This package translates CHIP-8 assembly language into the byte image a
CHIP-8 interpreter loads at address $200.

CHIP-8 is a small interpreted machine with sixteen 8-bit registers
(V0-VF), a 12-bit index register, two timers, a 4KB address space and a
fixed set of 16-bit instructions.

Main Components
---------------
- **assembler**: The assembly pipeline (c8asm)
- **cpu**: Instruction set and opcode table
- **errors**: Exception hierarchy and error collection

Quick Start
-----------
Assemble a program:
    >>> from chip8_asm import Assembler
    >>> asm = Assembler()
    >>> result = asm.assemble_file("pong.asm")
    >>> if result.ok:
    ...     asm.write_binary("pong.ch8")

Or use the command-line tool:
    $ c8asm pong.asm -o pong.ch8

Reference Documentation
-----------------------
- Cowgod's CHIP-8 Technical Reference: http://devernay.free.fr/hacks/chip8/C8TECH10.HTM
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from chip8_asm.assembler import (
    Assembler,
    AssemblyResult,
    assemble,
    assemble_file,
)
from chip8_asm.errors import (
    Chip8Error,
    AssemblerError,
    AssemblySyntaxError,
    LexError,
    ParseError,
    DuplicateSymbolError,
    DuplicateLabelError,
    DuplicateDefineError,
    UndefinedDefineError,
    UndefinedSymbolError,
    OperandError,
    RangeError,
    IncludeError,
    CyclicIncludeError,
    IncludeNotFoundError,
    AssemblyFailedError,
    Diagnostic,
    SourceLocation,
)

__all__ = [
    # Version info
    "__version__",
    # Assembler
    "Assembler",
    "AssemblyResult",
    "assemble",
    "assemble_file",
    # Exception hierarchy
    "Chip8Error",
    "AssemblerError",
    "AssemblySyntaxError",
    "LexError",
    "ParseError",
    "DuplicateSymbolError",
    "DuplicateLabelError",
    "DuplicateDefineError",
    "UndefinedDefineError",
    "UndefinedSymbolError",
    "OperandError",
    "RangeError",
    "IncludeError",
    "CyclicIncludeError",
    "IncludeNotFoundError",
    "AssemblyFailedError",
    "Diagnostic",
    "SourceLocation",
]
