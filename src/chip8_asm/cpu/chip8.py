"""
CHIP-8 Instruction Set Definition
=================================

This module defines the CHIP-8 instruction set as seen by the assembler:
mnemonics, the operand shapes each accepts, and the 16-bit opcode each
combination encodes to.

The CHIP-8 virtual machine has sixteen 8-bit general registers (V0-VF),
a 12-bit index register (I), a delay timer (DT), a sound timer (ST) and a
4KB address space. Programs are loaded at $200. Every instruction is two
bytes, stored big-endian (most significant byte first).

Operand Kinds
-------------
| Kind       | Written   | Encoded as                     |
|------------|-----------|--------------------------------|
| REGISTER   | V0-VF     | 4-bit register number (x or y) |
| V0         | V0        | nothing (implied by opcode)    |
| NIBBLE     | n         | 4-bit immediate                |
| BYTE       | kk        | 8-bit immediate                |
| ADDRESS    | nnn       | 12-bit immediate or label      |
| I, DT, ST, | I, DT ... | nothing (selects the opcode)   |
| K, F, B    |           |                                |
| I_INDIRECT | [I]       | nothing (selects the opcode)   |

Opcode Table
------------
The table maps (mnemonic, operand kinds) to an EncodingRule. It is checked
when this module is imported: every key is unique and no two rules of one
mnemonic can accept the same operand list, so lookup never has to choose.

Reference
---------
- Cowgod's CHIP-8 Technical Reference:
  http://devernay.free.fr/hacks/chip8/C8TECH10.HTM
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# =============================================================================
# Machine Constants
# =============================================================================

ORIGIN = 0x200          # Default load address of a program
MEMORY_SIZE = 0x1000    # 4KB address space
MAX_ADDRESS = 0xFFF     # Highest addressable byte
INSTRUCTION_SIZE = 2    # Every opcode is one 16-bit word


# =============================================================================
# Operand Kinds
# =============================================================================

class OperandKind(Enum):
    """
    Operand shapes that appear in encoding rule signatures.
    """
    REGISTER = auto()    # Any general register, encoded in x or y
    V0 = auto()          # General register V0 only
    NIBBLE = auto()      # 4-bit immediate
    BYTE = auto()        # 8-bit immediate
    ADDRESS = auto()     # 12-bit immediate or label
    I = auto()           # Index register
    DT = auto()          # Delay timer
    ST = auto()          # Sound timer
    K = auto()           # Key press (wait)
    F = auto()           # Font sprite location
    B = auto()           # BCD store
    I_INDIRECT = auto()  # Memory at I, written [I]

    def __str__(self) -> str:
        """Return the operand form used in documentation and hints."""
        return {
            OperandKind.REGISTER: "Vx",
            OperandKind.V0: "V0",
            OperandKind.NIBBLE: "n",
            OperandKind.BYTE: "kk",
            OperandKind.ADDRESS: "nnn",
            OperandKind.I: "I",
            OperandKind.DT: "DT",
            OperandKind.ST: "ST",
            OperandKind.K: "K",
            OperandKind.F: "F",
            OperandKind.B: "B",
            OperandKind.I_INDIRECT: "[I]",
        }[self]

    @property
    def is_immediate(self) -> bool:
        """True for kinds filled by a number or label."""
        return self in IMMEDIATE_WIDTHS

    @property
    def is_register(self) -> bool:
        """True for kinds filled by a general register."""
        return self in (OperandKind.REGISTER, OperandKind.V0)


# Bit width of each immediate kind
IMMEDIATE_WIDTHS: dict[OperandKind, int] = {
    OperandKind.NIBBLE: 4,
    OperandKind.BYTE: 8,
    OperandKind.ADDRESS: 12,
}


# =============================================================================
# Register and Keyword Names
# =============================================================================

# General register names (lower-case) to register numbers
REGISTER_NAMES: dict[str, int] = {f"v{n:x}": n for n in range(16)}

# Special register names (lower-case) to their operand kind
SPECIAL_REGISTERS: dict[str, OperandKind] = {
    "i": OperandKind.I,
    "dt": OperandKind.DT,
    "st": OperandKind.ST,
    "k": OperandKind.K,
    "f": OperandKind.F,
    "b": OperandKind.B,
}

# Directive keywords
DIRECTIVES = frozenset({"define", "include", "offset", "db", "dw", "text"})

# Alternative spellings accepted for some mnemonics
MNEMONIC_ALIASES: dict[str, str] = {
    "jp": "jmp",
    "draw": "drw",
    "hex": "font",
}


# =============================================================================
# Encoding Rules
# =============================================================================

@dataclass(frozen=True)
class EncodingRule:
    """
    A single legal (mnemonic, operand kinds) combination.

    Attributes:
        mnemonic: Canonical mnemonic (lower-case)
        operands: Operand kinds in source order
        opcode: Opcode template with all operand fields zero
        shifts: Left shift for each operand's value, or None when the
                operand contributes no bits to the opcode
    """
    mnemonic: str
    operands: tuple[OperandKind, ...]
    opcode: int
    shifts: tuple[Optional[int], ...]

    def __post_init__(self) -> None:
        if len(self.operands) != len(self.shifts):
            raise ValueError(
                f"rule for '{self.mnemonic}' has {len(self.operands)} operands "
                f"but {len(self.shifts)} shifts"
            )

    @property
    def form(self) -> str:
        """Return the source form, e.g. 'ld Vx, kk'."""
        if not self.operands:
            return self.mnemonic
        return f"{self.mnemonic} " + ", ".join(str(k) for k in self.operands)

    def __repr__(self) -> str:
        return f"EncodingRule({self.form!r} -> ${self.opcode:04X})"


K = OperandKind

# Every legal instruction form. x = bits 8-11, y = bits 4-7.
_RULES: list[EncodingRule] = [
    EncodingRule("nop", (), 0x0000, ()),
    EncodingRule("cls", (), 0x00E0, ()),
    EncodingRule("ret", (), 0x00EE, ()),

    EncodingRule("jmp", (K.ADDRESS,), 0x1000, (0,)),
    EncodingRule("jmp", (K.V0, K.ADDRESS), 0xB000, (None, 0)),
    EncodingRule("jmpp", (K.V0, K.ADDRESS), 0xB000, (None, 0)),
    EncodingRule("call", (K.ADDRESS,), 0x2000, (0,)),

    EncodingRule("se", (K.REGISTER, K.BYTE), 0x3000, (8, 0)),
    EncodingRule("se", (K.REGISTER, K.REGISTER), 0x5000, (8, 4)),
    EncodingRule("sne", (K.REGISTER, K.BYTE), 0x4000, (8, 0)),
    EncodingRule("sne", (K.REGISTER, K.REGISTER), 0x9000, (8, 4)),

    EncodingRule("ld", (K.REGISTER, K.BYTE), 0x6000, (8, 0)),
    EncodingRule("ld", (K.REGISTER, K.REGISTER), 0x8000, (8, 4)),
    EncodingRule("ld", (K.I, K.ADDRESS), 0xA000, (None, 0)),
    EncodingRule("ld", (K.REGISTER, K.DT), 0xF007, (8, None)),
    EncodingRule("ld", (K.REGISTER, K.K), 0xF00A, (8, None)),
    EncodingRule("ld", (K.DT, K.REGISTER), 0xF015, (None, 8)),
    EncodingRule("ld", (K.ST, K.REGISTER), 0xF018, (None, 8)),
    EncodingRule("ld", (K.F, K.REGISTER), 0xF029, (None, 8)),
    EncodingRule("ld", (K.B, K.REGISTER), 0xF033, (None, 8)),
    EncodingRule("ld", (K.I_INDIRECT, K.REGISTER), 0xF055, (None, 8)),
    EncodingRule("ld", (K.REGISTER, K.I_INDIRECT), 0xF065, (8, None)),

    EncodingRule("add", (K.REGISTER, K.BYTE), 0x7000, (8, 0)),
    EncodingRule("add", (K.REGISTER, K.REGISTER), 0x8004, (8, 4)),
    EncodingRule("add", (K.I, K.REGISTER), 0xF01E, (None, 8)),

    EncodingRule("or", (K.REGISTER, K.REGISTER), 0x8001, (8, 4)),
    EncodingRule("and", (K.REGISTER, K.REGISTER), 0x8002, (8, 4)),
    EncodingRule("xor", (K.REGISTER, K.REGISTER), 0x8003, (8, 4)),
    EncodingRule("sub", (K.REGISTER, K.REGISTER), 0x8005, (8, 4)),
    EncodingRule("subn", (K.REGISTER, K.REGISTER), 0x8007, (8, 4)),

    # The shift source is always the destination register, so a second
    # operand is accepted and dropped.
    EncodingRule("shr", (K.REGISTER,), 0x8006, (8,)),
    EncodingRule("shr", (K.REGISTER, K.REGISTER), 0x8006, (8, None)),
    EncodingRule("shl", (K.REGISTER,), 0x800E, (8,)),
    EncodingRule("shl", (K.REGISTER, K.REGISTER), 0x800E, (8, None)),

    EncodingRule("rnd", (K.REGISTER, K.BYTE), 0xC000, (8, 0)),
    EncodingRule("drw", (K.REGISTER, K.REGISTER, K.NIBBLE), 0xD000, (8, 4, 0)),

    EncodingRule("skp", (K.REGISTER,), 0xE09E, (8,)),
    EncodingRule("sknp", (K.REGISTER,), 0xE0A1, (8,)),

    # Single-register sugar for the timer, font, BCD and register-dump loads
    EncodingRule("delay", (K.REGISTER,), 0xF015, (8,)),
    EncodingRule("sound", (K.REGISTER,), 0xF018, (8,)),
    EncodingRule("font", (K.REGISTER,), 0xF029, (8,)),
    EncodingRule("bcd", (K.REGISTER,), 0xF033, (8,)),
    EncodingRule("stor", (K.REGISTER,), 0xF055, (8,)),
    EncodingRule("rstr", (K.REGISTER,), 0xF065, (8,)),
]

del K


def _kinds_overlap(a: OperandKind, b: OperandKind) -> bool:
    """Return True if some source operand could fill both kinds."""
    if a == b:
        return True
    if a.is_register and b.is_register:
        return True
    if a.is_immediate and b.is_immediate:
        return True
    return False


def _build_table(
    rules: list[EncodingRule],
) -> dict[tuple[str, tuple[OperandKind, ...]], EncodingRule]:
    """
    Index the rules by (mnemonic, operand kinds).

    Raises:
        ValueError: If two rules share a key or could match the same operands
    """
    table: dict[tuple[str, tuple[OperandKind, ...]], EncodingRule] = {}

    for rule in rules:
        key = (rule.mnemonic, rule.operands)
        if key in table:
            raise ValueError(f"duplicate encoding rule: {rule.form}")

        for other in table.values():
            if other.mnemonic != rule.mnemonic:
                continue
            if len(other.operands) != len(rule.operands):
                continue
            if all(_kinds_overlap(a, b) for a, b in zip(other.operands, rule.operands)):
                raise ValueError(
                    f"ambiguous encoding rules: {other.form} / {rule.form}"
                )

        table[key] = rule

    return table


OPCODE_TABLE = _build_table(_RULES)

# All canonical mnemonics plus their aliases
MNEMONICS = frozenset({rule.mnemonic for rule in _RULES}) | frozenset(MNEMONIC_ALIASES)

# Words that cannot be used as define or label names
RESERVED_WORDS = MNEMONICS | DIRECTIVES | frozenset(REGISTER_NAMES) | frozenset(SPECIAL_REGISTERS)


# =============================================================================
# Lookup Functions
# =============================================================================

def canonical_mnemonic(mnemonic: str) -> str:
    """Return the canonical lower-case spelling of a mnemonic."""
    name = mnemonic.lower()
    return MNEMONIC_ALIASES.get(name, name)


def is_valid_mnemonic(mnemonic: str) -> bool:
    """Check whether a mnemonic (any case, aliases included) exists."""
    return mnemonic.lower() in MNEMONICS


def get_rules(mnemonic: str) -> list[EncodingRule]:
    """Return every encoding rule for a mnemonic, in table order."""
    name = canonical_mnemonic(mnemonic)
    return [rule for rule in _RULES if rule.mnemonic == name]


def get_valid_forms(mnemonic: str) -> list[str]:
    """Return the documented source forms of a mnemonic, for error hints."""
    return [rule.form for rule in get_rules(mnemonic)]
