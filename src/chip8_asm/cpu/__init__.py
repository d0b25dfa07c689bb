"""
CHIP-8 CPU Package
==================

Instruction set definitions shared by the assembler stages.

Modules:
    chip8: Operand kinds, the opcode table and lookup helpers.

Usage:
    from chip8_asm.cpu import (
        OperandKind,
        EncodingRule,
        OPCODE_TABLE,
        get_rules,
    )
"""

from chip8_asm.cpu.chip8 import (
    # Machine constants
    ORIGIN,
    MEMORY_SIZE,
    MAX_ADDRESS,
    INSTRUCTION_SIZE,
    # Core types
    OperandKind,
    EncodingRule,
    IMMEDIATE_WIDTHS,
    # Master instruction database
    OPCODE_TABLE,
    # Names
    MNEMONICS,
    MNEMONIC_ALIASES,
    DIRECTIVES,
    REGISTER_NAMES,
    SPECIAL_REGISTERS,
    RESERVED_WORDS,
    # Lookup functions
    canonical_mnemonic,
    is_valid_mnemonic,
    get_rules,
    get_valid_forms,
)

__all__ = [
    "ORIGIN",
    "MEMORY_SIZE",
    "MAX_ADDRESS",
    "INSTRUCTION_SIZE",
    "OperandKind",
    "EncodingRule",
    "IMMEDIATE_WIDTHS",
    "OPCODE_TABLE",
    "MNEMONICS",
    "MNEMONIC_ALIASES",
    "DIRECTIVES",
    "REGISTER_NAMES",
    "SPECIAL_REGISTERS",
    "RESERVED_WORDS",
    "canonical_mnemonic",
    "is_valid_mnemonic",
    "get_rules",
    "get_valid_forms",
]
