"""
CHIP-8 Assembler
================

This package turns CHIP-8 assembly source into the headerless byte image a
CHIP-8 interpreter loads at $200.

Main Components
---------------
- **Assembler**: Orchestrates a run and returns an AssemblyResult
- **Lexer**: Tokenizes source text
- **Preprocessor**: Expands ``define`` and splices ``include`` files
- **Parser**: Turns tokens into statements
- **SymbolResolver**: Two-pass layout and label resolution
- **encoder**: Table-driven opcode encoding
- **ImageEmitter**: Places bytes into the output image

Assembly Process
----------------
1. **Preprocessing (Lexer + Preprocessor)**:
   - Tokenize each source file
   - Substitute defines and splice included files

2. **Parsing (Parser)**:
   - Labels, instructions and data/offset directives

3. **Resolution (SymbolResolver)** (two-pass):
   - Pass 1: Addresses, sizes and the label table
   - Pass 2: Label references replaced by addresses

4. **Encoding and Emission**:
   - Operand signatures matched against the opcode table
   - Bytes written by address, gaps zero-filled

Example Usage
-------------
>>> from chip8_asm.assembler import assemble
>>> assemble("cls\\nret").hex()
'00e000ee'

Supported Features
------------------
- The full CHIP-8 instruction set plus common aliases (jp, draw, hex)
- Labels with forward references
- Defines for constants and register aliases
- Data directives (db, dw, text) and offset
- Nested include files
- Batch error reporting with hints
"""

from chip8_asm.assembler.assembler import (
    Assembler,
    AssemblyResult,
    assemble,
    assemble_file,
)
from chip8_asm.assembler.lexer import Lexer, Token, TokenType
from chip8_asm.assembler.preprocessor import Define, DefineTable, Preprocessor
from chip8_asm.assembler.parser import (
    Parser,
    Statement,
    LabelDef,
    Instruction,
    DataDirective,
    DataKind,
    OffsetDirective,
    Register,
    Immediate,
    LabelRef,
    SpecialRegister,
)
from chip8_asm.assembler.resolver import Program, Symbol, SymbolResolver
from chip8_asm.assembler.encoder import encode, encode_instruction
from chip8_asm.assembler.emitter import ImageEmitter

__all__ = [
    # Main class and functions
    "Assembler",
    "AssemblyResult",
    "assemble",
    "assemble_file",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    # Preprocessor
    "Preprocessor",
    "Define",
    "DefineTable",
    # Parser
    "Parser",
    "Statement",
    "LabelDef",
    "Instruction",
    "DataDirective",
    "DataKind",
    "OffsetDirective",
    "Register",
    "Immediate",
    "LabelRef",
    "SpecialRegister",
    # Resolver
    "Program",
    "Symbol",
    "SymbolResolver",
    # Encoder and emitter
    "encode",
    "encode_instruction",
    "ImageEmitter",
]
