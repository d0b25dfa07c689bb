# =============================================================================
# test_emitter.py - Image Emission Tests
# =============================================================================
# Tests for placing bytes into the output image.
#
# Test coverage includes:
#   - Zero fill of gaps
#   - Writes past the end of memory
#   - Overlapping writes and their warning
# =============================================================================

import logging

import pytest

from chip8_asm.assembler import Assembler
from chip8_asm.assembler.emitter import ImageEmitter
from chip8_asm.errors import ErrorCollector, RangeError, SourceLocation


class TestImageEmitter:
    """Test ImageEmitter.write() directly."""

    def test_empty_image(self):
        assert ImageEmitter().emit([]) == b""

    def test_write_at_origin(self):
        emitter = ImageEmitter(0x200)
        emitter.write(0x200, b"\x12\x34")
        assert emitter.image == b"\x12\x34"

    def test_gap_is_zero_filled(self):
        emitter = ImageEmitter(0x200)
        emitter.write(0x204, b"\xAA")
        assert emitter.image == b"\x00\x00\x00\x00\xAA"

    def test_last_byte_of_memory(self):
        emitter = ImageEmitter(0xFFE)
        emitter.write(0xFFF, b"\x01")
        assert emitter.image == b"\x00\x01"

    def test_write_past_memory(self):
        emitter = ImageEmitter(0x200)
        with pytest.raises(RangeError):
            emitter.write(0xFFF, b"\x01\x02")

    def test_write_below_origin(self):
        emitter = ImageEmitter(0x200)
        with pytest.raises(RangeError):
            emitter.write(0x1FF, b"\x01")

    def test_overlap_later_bytes_win(self):
        errors = ErrorCollector()
        emitter = ImageEmitter(0x200, errors)
        emitter.write(0x200, b"\x01\x02", SourceLocation("a.asm", 1, 1))
        emitter.write(0x201, b"\xFF", SourceLocation("a.asm", 5, 1))

        assert emitter.image == b"\x01\xFF"
        assert errors.warning_count() == 1
        assert "a.asm:1:1" in errors.warnings[0]

    def test_overlap_is_logged(self, caplog):
        emitter = ImageEmitter(0x200)
        with caplog.at_level(logging.WARNING, logger="chip8_asm.assembler.emitter"):
            emitter.write(0x200, b"\x01")
            emitter.write(0x200, b"\x02")
        assert "overwrites" in caplog.text


class TestEmissionThroughAssembler:
    """Test emission as part of a full run."""

    def test_offset_zero_fill(self):
        result = Assembler().assemble_string("db 1\noffset #204\ndb 2")
        assert result.image == bytes([1, 0, 0, 0, 2])

    def test_program_past_memory(self):
        result = Assembler().assemble_string("offset #FFF\ncls")
        assert not result.ok
        assert isinstance(result.errors[0], RangeError)

    def test_overlap_warning_in_result(self):
        result = Assembler().assemble_string("db 1, 2\noffset #200\ndb 3")
        assert result.ok
        assert result.image == bytes([3, 2])
        assert len(result.warnings) == 1
