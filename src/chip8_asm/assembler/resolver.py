"""
CHIP-8 Symbol Resolver
======================

Two passes over the parsed statement list.

Pass 1 (layout)
    Walks the statements with an address counter starting at the origin,
    giving every statement its address and size and recording each label
    at the counter's value. ``offset`` moves the counter.

Pass 2 (references)
    Replaces every label reference in instruction operands with the
    label's address. Forward references work because pass 1 has already
    seen every label.

Errors in either pass are collected and the offending statement is skipped,
so one run reports every duplicate and undefined label at once.
"""

from dataclasses import dataclass, field
import logging

from chip8_asm.assembler.parser import (
    DataDirective,
    Immediate,
    Instruction,
    LabelDef,
    LabelRef,
    OffsetDirective,
    Statement,
)
from chip8_asm.assembler.preprocessor import DefineTable
from chip8_asm.cpu import INSTRUCTION_SIZE, MAX_ADDRESS, ORIGIN
from chip8_asm.errors import (
    AssemblerError,
    DuplicateLabelError,
    DuplicateSymbolError,
    ErrorCollector,
    RangeError,
    SourceLocation,
    UndefinedDefineError,
    UndefinedSymbolError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Symbol Table Entry
# =============================================================================

@dataclass
class Symbol:
    """
    Label table entry.

    Attributes:
        name: Label name (lower-case)
        value: Address the label marks
        location: Where the label was defined
    """
    name: str
    value: int
    location: SourceLocation


# =============================================================================
# Program
# =============================================================================

@dataclass
class Program:
    """
    Everything one assembly run knows about the source.

    Attributes:
        statements: Statements in source order
        defines: Define table built by the preprocessor
        origin: Address of the first byte
        labels: Label table filled by pass 1
        end: One past the highest address laid out by pass 1
    """
    statements: list[Statement]
    defines: DefineTable = field(default_factory=DefineTable)
    origin: int = ORIGIN
    labels: dict[str, Symbol] = field(default_factory=dict)
    end: int = ORIGIN

    @property
    def size(self) -> int:
        """Bytes from the origin to the end of the laid-out program."""
        return max(self.end - self.origin, 0)

    def symbol_values(self) -> dict[str, int]:
        return {name: symbol.value for name, symbol in self.labels.items()}


# =============================================================================
# Resolver
# =============================================================================

class SymbolResolver:
    """
    Lays out a Program and resolves its label references.

    Usage:
        resolver = SymbolResolver(collector)
        resolver.resolve(program)
    """

    def __init__(self, errors: ErrorCollector):
        self._errors = errors

    def resolve(self, program: Program) -> None:
        """Run both passes over the program."""
        self.pass1(program)
        self.pass2(program)

    # =========================================================================
    # Pass 1: Layout and Label Collection
    # =========================================================================

    def pass1(self, program: Program) -> None:
        """
        Assign addresses and sizes, and fill the label table.
        """
        program.labels.clear()
        counter = program.origin
        end = program.origin

        for stmt in program.statements:
            try:
                if isinstance(stmt, OffsetDirective):
                    self._check_offset(stmt, program.origin)
                    counter = stmt.target
                    stmt.address = counter
                    stmt.size = 0
                    continue

                stmt.address = counter
                if isinstance(stmt, LabelDef):
                    stmt.size = 0
                    self._define_label(stmt, program)
                elif isinstance(stmt, Instruction):
                    stmt.size = INSTRUCTION_SIZE
                elif isinstance(stmt, DataDirective):
                    stmt.size = len(stmt.data)

                counter += stmt.size
                end = max(end, counter)
            except AssemblerError as e:
                self._errors.add(e)

        program.end = end
        logger.debug(
            "pass 1: %d labels, %d bytes from $%03X",
            len(program.labels), program.size, program.origin,
        )

    def _check_offset(self, stmt: OffsetDirective, origin: int) -> None:
        if not origin <= stmt.target <= MAX_ADDRESS:
            raise RangeError(
                stmt.target,
                12,
                stmt.location,
                source_line=stmt.source_line,
                what="offset",
                low=origin,
            )

    def _define_label(self, label: LabelDef, program: Program) -> None:
        """Add a label to the table at its statement's address."""
        define = program.defines.get(label.name)
        if define is not None:
            raise DuplicateSymbolError(
                label.name,
                location=label.location,
                original_location=define.location,
                source_line=label.source_line,
                message=f"label '{label.name}' is already a define",
            )

        existing = program.labels.get(label.name)
        if existing is not None:
            raise DuplicateLabelError(
                label.name,
                location=label.location,
                original_location=existing.location,
                source_line=label.source_line,
            )

        program.labels[label.name] = Symbol(label.name, label.address, label.location)

    # =========================================================================
    # Pass 2: Reference Resolution
    # =========================================================================

    def pass2(self, program: Program) -> None:
        """
        Replace every LabelRef operand with the label's address.

        Instructions with an unresolvable reference keep ``resolved`` as None.
        """
        resolved_count = 0

        for stmt in program.statements:
            if not isinstance(stmt, Instruction):
                continue
            try:
                stmt.resolved = [
                    self._resolve_operand(op, stmt, program) for op in stmt.operands
                ]
                resolved_count += 1
            except AssemblerError as e:
                stmt.resolved = None
                self._errors.add(e)

        logger.debug("pass 2: resolved %d instructions", resolved_count)

    def _resolve_operand(self, operand, stmt: Instruction, program: Program):
        if not isinstance(operand, LabelRef):
            return operand

        symbol = program.labels.get(operand.name)
        if symbol is None and program.defines.get(operand.name) is not None:
            # Declared, but on a later line than this use
            raise UndefinedDefineError(
                operand.name,
                location=operand.location or stmt.location,
                source_line=stmt.source_line,
            )
        if symbol is None:
            raise UndefinedSymbolError(
                operand.name,
                location=operand.location or stmt.location,
                source_line=stmt.source_line,
                similar_symbols=self._find_similar_symbols(operand.name, program),
            )
        return Immediate(symbol.value, operand.location)

    def _find_similar_symbols(self, name: str, program: Program) -> list[str]:
        """
        Find labels with similar names for error hints.

        Uses simple edit distance heuristic.
        """
        similar = []
        for label in program.labels:
            if abs(len(label) - len(name)) <= 1 and _edit_distance(name, label) <= 2:
                similar.append(label)
        return similar[:3]


def _edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min(
                    distances[j],
                    distances[j + 1],
                    new_distances[-1],
                ))
        distances = new_distances

    return distances[-1]
