"""
c8asm - CHIP-8 Assembler Command-Line Interface
===============================================

Usage Examples
--------------
Basic assembly:
    $ c8asm pong.asm

With output file:
    $ c8asm pong.asm -o pong.ch8

With include path and defines:
    $ c8asm -I ./lib -D SPEED=3 pong.asm

Different load address (ETI 660):
    $ c8asm --origin 0x600 pong.asm

Verbose mode:
    $ c8asm -v pong.asm
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from chip8_asm import __version__
from chip8_asm.assembler import Assembler
from chip8_asm.cli.errors import ExitCode, handle_cli_exception
from chip8_asm.cpu import ORIGIN


def parse_number(text: str) -> int:
    """
    Parse a command-line number: decimal, or hex with 0x, $ or # prefix.

    Raises:
        ValueError: If the text is not a number
    """
    text = text.strip()
    if text.startswith(("$", "#")):
        return int(text[1:], 16)
    if text.lower().startswith("0x"):
        return int(text[2:], 16)
    return int(text, 10)


class NumberParamType(click.ParamType):
    """Click parameter accepting the formats of parse_number."""

    name = "number"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            return parse_number(value)
        except ValueError:
            self.fail(f"{value!r} is not a valid number", param, ctx)


NUMBER = NumberParamType()


def parse_defines(definitions: tuple[str, ...]) -> dict[str, int]:
    """
    Parse ``-D NAME=VALUE`` options. A bare NAME defines 1.

    Raises:
        click.BadParameter: On a malformed definition
    """
    defines: dict[str, int] = {}
    for definition in definitions:
        name, sep, value_str = definition.partition("=")
        name = name.strip()
        if not name:
            raise click.BadParameter(f"missing name in '{definition}'", param_hint="-D")
        try:
            defines[name] = parse_number(value_str) if sep else 1
        except ValueError:
            raise click.BadParameter(
                f"invalid value in '{definition}'", param_hint="-D"
            ) from None
    return defines


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output image file (default: input.ch8)",
)
@click.option(
    "-I", "--include",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Add include search path (can be repeated)",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define a constant (format: NAME=VALUE)",
)
@click.option(
    "--origin",
    type=NUMBER,
    default=ORIGIN,
    show_default="0x200",
    help="Load address of the program",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="c8asm")
def main(
    input_file: Path,
    output: Optional[Path],
    include: tuple[Path, ...],
    define: tuple[str, ...],
    origin: int,
    verbose: bool,
) -> None:
    """
    Assemble CHIP-8 source code.

    INPUT_FILE is the assembly source file (.asm) to assemble.

    The output is a headerless image to be loaded at the origin.

    \b
    Examples:
        c8asm pong.asm              # Outputs pong.ch8
        c8asm pong.asm -o out.ch8   # Specify output file
        c8asm -I lib/ pong.asm      # Add include path
        c8asm -D SPEED=3 pong.asm   # Define constant
    """
    setup_logging(verbose)
    output_file = output if output is not None else input_file.with_suffix(".ch8")

    try:
        asm = Assembler(
            origin=origin,
            include_paths=list(include),
            defines=parse_defines(define),
        )
    except ValueError as e:
        handle_cli_exception(click.BadParameter(str(e)), verbose=verbose)

    try:
        if verbose:
            click.echo(f"Assembling {input_file}...")

        result = asm.assemble_file(input_file)

        if not result.ok:
            click.echo(result.report(), err=True)
            sys.exit(ExitCode.BUILD_ERROR)

        asm.write_binary(output_file)

        if verbose:
            click.echo(f"Wrote {len(result.image)} bytes to {output_file}")
            click.echo(f"Assembly complete: {len(result.image)} bytes at ${origin:03X}")
            click.echo(f"Defined {len(result.symbols)} labels, {len(result.defines)} defines")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
