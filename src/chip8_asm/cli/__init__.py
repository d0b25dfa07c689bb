"""
chip8-asm Command-Line Interface
================================

- **c8asm**: CHIP-8 assembler

Implemented with Click.
"""

__all__ = ["c8asm"]
