# =============================================================================
# test_parser.py - Parser Unit Tests
# =============================================================================
# Tests for turning tokens into statements.
#
# Test coverage includes:
#   - Labels, alone and sharing a line
#   - Instruction operand classification
#   - db / dw / text / offset directives, including multi-line lists
#   - Syntax errors and line-level error recovery
# =============================================================================

import pytest

from chip8_asm.assembler.lexer import Lexer
from chip8_asm.assembler.parser import (
    DataDirective,
    DataKind,
    Immediate,
    Instruction,
    LabelDef,
    LabelRef,
    OffsetDirective,
    Parser,
    Register,
    SpecialRegister,
)
from chip8_asm.cpu import OperandKind
from chip8_asm.errors import ErrorCollector, ParseError, RangeError


# =============================================================================
# Helper Functions
# =============================================================================

def parse(source: str) -> list:
    """Parse source, raising the first error."""
    tokens = list(Lexer(source, "<test>").tokenize())
    return Parser(tokens, sources={"<test>": source}).parse()


def parse_collect(source: str):
    """Parse source in batch mode, returning (statements, collector)."""
    errors = ErrorCollector()
    tokens = list(Lexer(source, "<test>", errors=errors).tokenize())
    statements = Parser(tokens, errors).parse()
    return statements, errors


def operands(source: str) -> list:
    stmt = parse(source)[0]
    assert isinstance(stmt, Instruction)
    return stmt.operands


# =============================================================================
# Label Tests
# =============================================================================

class TestLabels:
    """Test label definitions."""

    def test_label_alone(self):
        statements = parse("start:")
        assert len(statements) == 1
        assert isinstance(statements[0], LabelDef)
        assert statements[0].name == "start"

    def test_label_name_lower_case(self):
        assert parse("Start:")[0].name == "start"

    def test_label_with_instruction(self):
        statements = parse("loop: jp loop")
        assert isinstance(statements[0], LabelDef)
        assert isinstance(statements[1], Instruction)

    def test_label_with_directive(self):
        statements = parse("data: db 1")
        assert isinstance(statements[1], DataDirective)

    def test_reserved_label(self):
        with pytest.raises(ParseError, match="reserved"):
            parse("cls:")

    def test_missing_colon_hint(self):
        with pytest.raises(ParseError) as exc_info:
            parse("start")
        assert "':'" in exc_info.value.hint


# =============================================================================
# Instruction Tests
# =============================================================================

class TestInstructions:
    """Test instruction parsing and operand classification."""

    def test_no_operands(self):
        stmt = parse("cls")[0]
        assert stmt.mnemonic == "cls"
        assert stmt.operands == []

    def test_mnemonic_case_insensitive(self):
        assert parse("CLS")[0].mnemonic == "cls"

    def test_register_operands(self):
        assert operands("ld v1, VF") == [Register(1), Register(15)]

    def test_immediate(self):
        assert operands("ld v0, #FF") == [Register(0), Immediate(0xFF)]

    def test_label_reference(self):
        assert operands("call Draw_Sprite") == [LabelRef("draw_sprite")]

    @pytest.mark.parametrize("name, kind", [
        ("i", OperandKind.I),
        ("DT", OperandKind.DT),
        ("st", OperandKind.ST),
        ("k", OperandKind.K),
        ("f", OperandKind.F),
        ("b", OperandKind.B),
    ])
    def test_special_registers(self, name, kind):
        assert operands(f"ld {name}, v0")[0] == SpecialRegister(kind)

    def test_indirect(self):
        assert operands("ld [I], v3") == [
            SpecialRegister(OperandKind.I_INDIRECT),
            Register(3),
        ]

    def test_three_operands(self):
        assert operands("drw v1, v2, 5") == [Register(1), Register(2), Immediate(5)]

    def test_size_is_two(self):
        assert parse("cls")[0].size == 2

    def test_operand_location(self):
        op = operands("ld v0, 5")[1]
        assert op.location.column == 8

    def test_source_line_attached(self):
        assert parse("  cls ; clear")[0].source_line == "  cls ; clear"

    @pytest.mark.parametrize("separator", ["\x0c", "\x1c", "\u2028"])
    def test_source_line_only_breaks_on_newline(self, separator):
        with pytest.raises(ParseError) as exc_info:
            parse(f"cls ; page{separator}break\nfrob")
        assert exc_info.value.location.line == 2
        assert exc_info.value.source_line == "frob"

    def test_source_line_drops_carriage_return(self):
        assert parse("cls\r\nret\r\n")[1].source_line == "ret"


class TestInstructionErrors:
    """Test malformed instructions."""

    def test_unknown_mnemonic(self):
        with pytest.raises(ParseError, match="unknown instruction"):
            parse("frob v0")

    def test_missing_comma(self):
        with pytest.raises(ParseError, match="expected ','"):
            parse("ld v0 5")

    def test_trailing_comma(self):
        with pytest.raises(ParseError, match="missing operand"):
            parse("ld v0,")

    def test_reserved_word_operand(self):
        with pytest.raises(ParseError, match="reserved"):
            parse("jp cls")

    def test_bad_bracket(self):
        with pytest.raises(ParseError, match=r"\[I\]"):
            parse("ld [v0], v1")

    def test_unclosed_bracket(self):
        with pytest.raises(ParseError, match="']'"):
            parse("ld [i, v1")

    def test_string_operand(self):
        with pytest.raises(ParseError, match="expected an operand"):
            parse('ld v0, "a"')


# =============================================================================
# Directive Tests
# =============================================================================

class TestDataDirectives:
    """Test db, dw and text."""

    def test_db(self):
        stmt = parse("db 1, #FF, %101")[0]
        assert stmt.kind == DataKind.BYTES
        assert stmt.data == bytes([1, 0xFF, 5])

    def test_dw_big_endian(self):
        stmt = parse("dw #1234, 5")[0]
        assert stmt.kind == DataKind.WORDS
        assert stmt.data == bytes([0x12, 0x34, 0x00, 0x05])

    def test_db_continues_after_trailing_comma(self):
        stmt = parse("db 1, 2,\n   3, 4")[0]
        assert stmt.items == [1, 2, 3, 4]

    def test_db_list_on_next_line(self):
        stmt = parse("db\n  #F0, #90")[0]
        assert stmt.items == [0xF0, 0x90]

    def test_db_statement_after_list(self):
        statements = parse("db 1\ncls")
        assert isinstance(statements[1], Instruction)

    def test_db_out_of_range(self):
        with pytest.raises(RangeError):
            parse("db 256")

    def test_dw_out_of_range(self):
        with pytest.raises(RangeError):
            parse("dw #10000")

    def test_db_label_item(self):
        with pytest.raises(ParseError, match="expects numbers"):
            parse("db start")

    def test_db_trailing_comma_at_end_of_input(self):
        statements = parse("db 1,\n   2,\n")
        assert len(statements) == 1
        assert statements[0].items == [1, 2]

    def test_db_empty(self):
        with pytest.raises(ParseError):
            parse("db")

    def test_text(self):
        stmt = parse('text "hi"')[0]
        assert stmt.kind == DataKind.TEXT
        assert stmt.data == b"hi\x00"

    def test_text_keeps_case_and_escapes(self):
        stmt = parse(r'text "A\n"')[0]
        assert stmt.data == b"A\n\x00"

    def test_text_needs_string(self):
        with pytest.raises(ParseError):
            parse("text 5")

    def test_text_wide_character(self):
        with pytest.raises(RangeError):
            parse('text "€"')


class TestOffset:
    """Test the offset directive."""

    def test_offset(self):
        stmt = parse("offset #300")[0]
        assert isinstance(stmt, OffsetDirective)
        assert stmt.target == 0x300

    def test_offset_needs_number(self):
        with pytest.raises(ParseError):
            parse("offset")

    def test_offset_single_argument(self):
        with pytest.raises(ParseError, match="unexpected"):
            parse("offset 1, 2")


# =============================================================================
# Error Recovery Tests
# =============================================================================

class TestErrorRecovery:
    """Test batch mode: errors are collected and parsing continues."""

    def test_continues_after_error(self):
        statements, errors = parse_collect("frob\ncls\nbogus v0\nret")
        assert errors.error_count() == 2
        assert [s.mnemonic for s in statements] == ["cls", "ret"]

    def test_lex_error_line_dropped(self):
        """A line with a lexer error is dropped without a second error."""
        statements, errors = parse_collect("ld v0, #xx\ncls")
        assert errors.error_count() == 1
        assert [s.mnemonic for s in statements] == ["cls"]

    def test_error_locations(self):
        _, errors = parse_collect("cls\nfrob\nret\nzap")
        assert [e.location.line for e in errors.errors] == [2, 4]

    def test_include_not_at_line_start(self):
        _, errors = parse_collect('x: include "a.asm"')
        assert isinstance(errors.errors[0], ParseError)
