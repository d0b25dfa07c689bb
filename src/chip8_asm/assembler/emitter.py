"""
CHIP-8 Image Emitter
====================

Places each statement's bytes at its address in the output image.

The image starts at the origin and ends at the highest byte written. It
does not start at the lowest written address: a program whose first
statement is ``offset #300`` still gets #100 leading zero bytes, so the
file always loads at the origin. Bytes that no statement wrote (gaps left
by ``offset``) are zero. A statement that writes over bytes written
earlier wins, and a warning is recorded.
"""

from typing import Optional
import logging

from chip8_asm.assembler.parser import DataDirective, Instruction, Statement
from chip8_asm.cpu import MEMORY_SIZE, ORIGIN
from chip8_asm.errors import (
    AssemblerError,
    ErrorCollector,
    RangeError,
    SourceLocation,
)

logger = logging.getLogger(__name__)


class ImageEmitter:
    """
    Builds the binary image for one run.

    Usage:
        emitter = ImageEmitter(origin, collector)
        image = emitter.emit(program.statements)
    """

    def __init__(self, origin: int = ORIGIN, errors: Optional[ErrorCollector] = None):
        self.origin = origin
        self._errors = errors or ErrorCollector()
        self._buffer = bytearray()
        self._owner: list[Optional[SourceLocation]] = []

    @property
    def image(self) -> bytes:
        return bytes(self._buffer)

    def emit(self, statements: list[Statement]) -> bytes:
        """Write every statement's bytes and return the image."""
        self._buffer = bytearray()
        self._owner = []

        for stmt in statements:
            data = statement_bytes(stmt)
            if not data:
                continue
            try:
                self.write(stmt.address, data, stmt.location)
            except AssemblerError as e:
                self._errors.add(e)

        logger.debug("image: %d bytes at $%03X", len(self._buffer), self.origin)
        return self.image

    def write(
        self,
        address: int,
        data: bytes,
        location: Optional[SourceLocation] = None,
    ) -> None:
        """
        Write bytes at an absolute address.

        Raises:
            RangeError: If any byte falls outside origin..0xFFF
        """
        end = address + len(data)
        if address < self.origin:
            raise RangeError(address, 12, location, what="address", low=self.origin)
        if end > MEMORY_SIZE:
            raise RangeError(end - 1, 12, location, what="address")

        start = address - self.origin
        stop = start + len(data)
        if stop > len(self._buffer):
            grow = stop - len(self._buffer)
            self._buffer.extend(bytes(grow))
            self._owner.extend([None] * grow)

        previous = next((o for o in self._owner[start:stop] if o is not None), None)
        if previous is not None:
            message = (
                f"{location}: overwrites bytes at ${address:03X} "
                f"first written at {previous}"
            )
            logger.warning(message)
            self._errors.add_warning(message)

        owner = location or SourceLocation("<image>", 0, 0)
        self._buffer[start:stop] = data
        self._owner[start:stop] = [owner] * len(data)


def statement_bytes(stmt: Statement) -> bytes:
    """Return the bytes a laid-out statement contributes to the image."""
    if isinstance(stmt, Instruction):
        return stmt.encoded or b""
    if isinstance(stmt, DataDirective):
        return stmt.data
    return b""
