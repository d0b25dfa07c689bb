"""
CHIP-8 Instruction Encoder
==========================

Turns a resolved Instruction into its two opcode bytes.

Encoding is a pure table lookup: the operands are matched against every
rule of the mnemonic in ``chip8_asm.cpu.OPCODE_TABLE``, each operand value
is range checked against the width of its slot, then shifted into the
rule's opcode template. The table guarantees that at most one rule matches.

Example
-------
>>> from chip8_asm.assembler.parser import Register, Immediate
>>> hex(encode("ld", [Register(1), Immediate(0xAA)]))
'0x61aa'
"""

from typing import Optional, Sequence
import logging
import struct

from chip8_asm.assembler.parser import (
    Immediate,
    Instruction,
    LabelRef,
    Operand,
    Register,
    SpecialRegister,
    Statement,
)
from chip8_asm.cpu import (
    IMMEDIATE_WIDTHS,
    EncodingRule,
    OperandKind,
    get_rules,
    get_valid_forms,
)
from chip8_asm.errors import (
    AssemblerError,
    ErrorCollector,
    OperandError,
    RangeError,
    SourceLocation,
)

logger = logging.getLogger(__name__)


def operand_matches(operand: Operand, kind: OperandKind) -> bool:
    """Check whether a parsed operand can fill a rule slot."""
    if isinstance(operand, Register):
        if kind == OperandKind.V0:
            return operand.index == 0
        return kind == OperandKind.REGISTER

    if isinstance(operand, (Immediate, LabelRef)):
        return kind.is_immediate

    if isinstance(operand, SpecialRegister):
        return operand.kind == kind

    return False


def find_rule(mnemonic: str, operands: Sequence[Operand]) -> Optional[EncodingRule]:
    """Return the rule accepting these operands, or None."""
    for rule in get_rules(mnemonic):
        if len(rule.operands) != len(operands):
            continue
        if all(operand_matches(op, kind) for op, kind in zip(operands, rule.operands)):
            return rule
    return None


def _operand_value(operand: Operand) -> int:
    if isinstance(operand, Register):
        return operand.index
    if isinstance(operand, Immediate):
        return operand.value
    raise TypeError(f"operand {operand} has no numeric value")


def encode(
    mnemonic: str,
    operands: Sequence[Operand],
    location: Optional[SourceLocation] = None,
    source_line: Optional[str] = None,
) -> int:
    """
    Encode one instruction to its 16-bit opcode.

    Args:
        mnemonic: Mnemonic in any case, aliases allowed
        operands: Operands with labels already resolved
        location: Instruction location, used when an operand has none
        source_line: Source text for error context

    Returns:
        The opcode as an integer

    Raises:
        OperandError: If no rule accepts the operands
        RangeError: If an immediate does not fit its slot
    """
    rule = find_rule(mnemonic, operands)
    if rule is None:
        raise OperandError(
            mnemonic,
            ", ".join(str(op) for op in operands),
            location=location,
            source_line=source_line,
            valid_forms=get_valid_forms(mnemonic),
        )

    opcode = rule.opcode
    for operand, kind, shift in zip(operands, rule.operands, rule.shifts):
        if shift is None:
            continue

        value = _operand_value(operand)
        width = IMMEDIATE_WIDTHS.get(kind)
        if width is not None and value >= 1 << width:
            raise RangeError(
                value,
                width,
                operand.location or location,
                source_line=source_line,
                what="address" if kind == OperandKind.ADDRESS else "immediate",
            )

        opcode |= value << shift

    return opcode


def encode_instruction(inst: Instruction) -> bytes:
    """
    Encode a resolved Instruction to two big-endian bytes.

    Raises:
        ValueError: If the instruction has not been through pass 2
    """
    if inst.resolved is None:
        raise ValueError(f"instruction at {inst.location} has unresolved operands")

    opcode = encode(inst.mnemonic, inst.resolved, inst.location, inst.source_line)
    inst.encoded = struct.pack(">H", opcode)
    return inst.encoded


def encode_program(statements: Sequence[Statement], errors: ErrorCollector) -> int:
    """
    Encode every resolved instruction, collecting errors.

    Instructions whose labels could not be resolved are skipped; their
    error has already been recorded.

    Returns:
        Number of instructions encoded
    """
    count = 0
    for stmt in statements:
        if not isinstance(stmt, Instruction) or stmt.resolved is None:
            continue
        try:
            encode_instruction(stmt)
            count += 1
        except AssemblerError as e:
            errors.add(e)

    logger.debug("encoded %d instructions", count)
    return count
