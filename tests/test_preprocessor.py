# =============================================================================
# test_preprocessor.py - Define and Include Tests
# =============================================================================
# Tests for the preprocessing stage between lexer and parser.
#
# Test coverage includes:
#   - define: numbers, register aliases, chained defines
#   - Substitution rules (case, label definitions)
#   - define errors: duplicates, undefined values, reserved names
#   - include: relative paths, include paths, nesting, cycles
# =============================================================================

import pytest
from pathlib import Path

from chip8_asm.assembler.lexer import TokenType
from chip8_asm.assembler.preprocessor import Preprocessor
from chip8_asm.errors import (
    CyclicIncludeError,
    DuplicateDefineError,
    ErrorCollector,
    IncludeNotFoundError,
    ParseError,
    UndefinedDefineError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def preprocess(source: str, **kwargs):
    """Run the preprocessor and return (tokens, collector, preprocessor)."""
    errors = ErrorCollector()
    pp = Preprocessor(errors, **kwargs)
    tokens = list(pp.process(source, "<test>"))
    return tokens, errors, pp


def values(tokens) -> list:
    """Token values without structural tokens."""
    return [
        t.value for t in tokens
        if t.type not in (TokenType.NEWLINE, TokenType.EOF)
    ]


def memory_loader(files: dict[str, str]):
    """Loader reading from a dict keyed by file name."""
    def load(path: Path) -> str:
        try:
            return files[path.name]
        except KeyError:
            raise FileNotFoundError(path) from None
    return load


# =============================================================================
# Define Tests
# =============================================================================

class TestDefine:
    """Test define declaration and substitution."""

    def test_numeric_define(self):
        tokens, errors, _ = preprocess("define speed 3\nadd v0, speed")
        assert not errors.has_errors()
        assert values(tokens) == ["add", "v0", ",", 3]

    def test_substituted_token_is_number(self):
        tokens, _, _ = preprocess("define speed #10\nadd v0, speed")
        number = [t for t in tokens if t.type == TokenType.NUMBER][0]
        assert number.value == 0x10
        assert number.radix == 16

    def test_substitution_carries_use_location(self):
        tokens, _, _ = preprocess("define speed 3\n\nadd v0, speed")
        number = [t for t in tokens if t.type == TokenType.NUMBER][0]
        assert number.line == 3
        assert number.column == 9

    def test_register_alias(self):
        tokens, _, _ = preprocess("define player v5\nadd player, 1")
        assert values(tokens) == ["add", "v5", ",", 1]

    def test_chained_define(self):
        tokens, _, pp = preprocess("define a 7\ndefine b a\nld v0, b")
        assert values(tokens) == ["ld", "v0", ",", 7]
        assert pp.defines.get("b").value == 7

    def test_case_insensitive(self):
        tokens, _, _ = preprocess("define Speed 3\nadd v0, SPEED")
        assert values(tokens) == ["add", "v0", ",", 3]

    def test_define_line_produces_no_tokens(self):
        tokens, _, _ = preprocess("define speed 3")
        assert [t.type for t in tokens] == [TokenType.EOF]

    def test_label_definition_not_substituted(self):
        """'name:' is left alone so the resolver can report the clash."""
        tokens, _, _ = preprocess("define speed 3\nspeed: cls")
        assert values(tokens) == ["speed", ":", "cls"]

    def test_predefined(self):
        tokens, _, _ = preprocess("ld v0, level", defines={"LEVEL": 2})
        assert values(tokens) == ["ld", "v0", ",", 2]

    def test_define_table_contents(self):
        _, _, pp = preprocess("define a 1\ndefine r vf")
        assert pp.defines.as_dict() == {"a": 1, "r": "vf"}


class TestDefineErrors:
    """Test define error reporting."""

    def test_duplicate_define(self):
        _, errors, _ = preprocess("define a 1\ndefine A 2")
        assert isinstance(errors.errors[0], DuplicateDefineError)
        assert errors.errors[0].original_location.line == 1

    def test_undefined_value(self):
        _, errors, _ = preprocess("define a b")
        assert isinstance(errors.errors[0], UndefinedDefineError)

    def test_self_reference(self):
        _, errors, _ = preprocess("define a a")
        assert isinstance(errors.errors[0], UndefinedDefineError)

    def test_reserved_name(self):
        _, errors, _ = preprocess("define ld 1")
        assert isinstance(errors.errors[0], ParseError)
        assert "reserved" in errors.errors[0].message

    def test_register_name_reserved(self):
        _, errors, _ = preprocess("define v3 1")
        assert isinstance(errors.errors[0], ParseError)

    def test_special_register_value(self):
        """Only general registers can be aliased."""
        _, errors, _ = preprocess("define t dt")
        assert isinstance(errors.errors[0], ParseError)

    def test_missing_value(self):
        _, errors, _ = preprocess("define a")
        assert isinstance(errors.errors[0], ParseError)

    def test_extra_argument(self):
        _, errors, _ = preprocess("define a 1 2")
        assert isinstance(errors.errors[0], ParseError)

    def test_error_does_not_stop_processing(self):
        tokens, errors, _ = preprocess("define a\ncls")
        assert errors.error_count() == 1
        assert values(tokens) == ["cls"]


# =============================================================================
# Include Tests
# =============================================================================

class TestInclude:
    """Test file inclusion."""

    def test_include_splices_tokens(self, tmp_path):
        (tmp_path / "lib.asm").write_text("ret\n")
        main = tmp_path / "main.asm"
        source = 'cls\ninclude "lib.asm"\njp 0'

        errors = ErrorCollector()
        pp = Preprocessor(errors)
        tokens = list(pp.process(source, str(main), main))

        assert not errors.has_errors()
        assert values(tokens) == ["cls", "ret", "jp", 0]

    def test_included_tokens_keep_their_file(self, tmp_path):
        (tmp_path / "lib.asm").write_text("ret")
        main = tmp_path / "main.asm"

        pp = Preprocessor(ErrorCollector())
        tokens = list(pp.process('include "lib.asm"', str(main), main))
        ret = [t for t in tokens if t.value == "ret"][0]
        assert ret.filename.endswith("lib.asm")
        assert ret.line == 1

    def test_include_without_trailing_newline(self, tmp_path):
        """The last line of an included file ends at its EOF."""
        (tmp_path / "lib.asm").write_text("ret")
        main = tmp_path / "main.asm"

        pp = Preprocessor(ErrorCollector())
        tokens = list(pp.process('include "lib.asm"\ncls', str(main), main))
        assert [t.type for t in tokens] == [
            TokenType.NEWLINE,      # end of the include line
            TokenType.IDENTIFIER,   # ret
            TokenType.NEWLINE,      # end of lib.asm
            TokenType.IDENTIFIER,   # cls
            TokenType.EOF,
        ]

    def test_defines_from_included_file(self, tmp_path):
        (tmp_path / "consts.asm").write_text("define speed 4\n")
        main = tmp_path / "main.asm"

        pp = Preprocessor(ErrorCollector())
        tokens = list(pp.process('include "consts.asm"\nadd v0, speed', str(main), main))
        assert values(tokens) == ["add", "v0", ",", 4]

    def test_include_path_search(self, tmp_path):
        lib_dir = tmp_path / "lib"
        lib_dir.mkdir()
        (lib_dir / "font.asm").write_text("db 1")
        main = tmp_path / "main.asm"

        errors = ErrorCollector()
        pp = Preprocessor(errors, include_paths=[lib_dir])
        tokens = list(pp.process('include "font.asm"', str(main), main))
        assert not errors.has_errors()
        assert values(tokens) == ["db", 1]

    def test_nested_include_relative_to_includer(self, tmp_path):
        sub = tmp_path / "sub"
        sub.mkdir()
        (sub / "a.asm").write_text('include "b.asm"\n')
        (sub / "b.asm").write_text("cls\n")
        main = tmp_path / "main.asm"

        errors = ErrorCollector()
        pp = Preprocessor(errors)
        tokens = list(pp.process('include "sub/a.asm"', str(main), main))
        assert not errors.has_errors()
        assert values(tokens) == ["cls"]

    def test_same_file_twice_is_not_a_cycle(self, tmp_path):
        (tmp_path / "lib.asm").write_text("ret\n")
        main = tmp_path / "main.asm"

        errors = ErrorCollector()
        pp = Preprocessor(errors)
        tokens = list(pp.process('include "lib.asm"\ninclude "lib.asm"', str(main), main))
        assert not errors.has_errors()
        assert values(tokens) == ["ret", "ret"]

    def test_custom_loader(self):
        loader = memory_loader({"lib.asm": "cls"})
        tokens, errors, _ = preprocess('include "lib.asm"', loader=loader)
        assert not errors.has_errors()
        assert values(tokens) == ["cls"]


class TestIncludeErrors:
    """Test include error reporting."""

    def test_missing_file(self, tmp_path):
        main = tmp_path / "main.asm"
        errors = ErrorCollector()
        pp = Preprocessor(errors)
        tokens = list(pp.process('include "nope.asm"\ncls', str(main), main))

        assert isinstance(errors.errors[0], IncludeNotFoundError)
        assert values(tokens) == ["cls"]

    def test_self_include(self, tmp_path):
        main = tmp_path / "main.asm"
        main.write_text('include "main.asm"\n')

        errors = ErrorCollector()
        pp = Preprocessor(errors)
        list(pp.process(main.read_text(), str(main), main.resolve()))
        assert isinstance(errors.errors[0], CyclicIncludeError)

    def test_indirect_cycle(self, tmp_path):
        (tmp_path / "a.asm").write_text('include "b.asm"\n')
        (tmp_path / "b.asm").write_text('include "a.asm"\n')
        main = tmp_path / "main.asm"

        errors = ErrorCollector()
        pp = Preprocessor(errors)
        list(pp.process('include "a.asm"', str(main), main.resolve()))

        assert errors.error_count() == 1
        error = errors.errors[0]
        assert isinstance(error, CyclicIncludeError)
        assert error.chain[0].endswith("a.asm")
        assert error.chain[-1].endswith("a.asm")

    def test_include_needs_string(self):
        _, errors, _ = preprocess("include lib")
        assert isinstance(errors.errors[0], ParseError)
