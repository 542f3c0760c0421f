"""
z80calc - Spreadsheet ROM Generator Command-Line Interface
==========================================================

This module implements the `z80calc` command, which writes the spreadsheet
firmware image for a Z80 board with an MC6850 serial console.

Usage Examples
--------------
Generate calc.bin in the current directory:
    $ z80calc

Choose the output file and write a symbol listing:
    $ z80calc -o build/calc.bin -s build/calc.sym

Build an 8K image:
    $ z80calc --rom-size 0x2000

Environment
-----------
Z80CALC_ROM_SIZE, Z80CALC_CELL_BASE, Z80CALC_HEAP_SIZE and
Z80CALC_INPUT_CAPACITY override the target defaults; command-line options
override the environment.

Exit Codes
----------
0 on success, 1 for a generation error or an invalid command line, 2 when
the output cannot be written.
"""

import logging
from pathlib import Path
from typing import Optional

import click

from z80calc import __version__
from z80calc.cli.errors import ExitCode, handle_cli_exception
from z80calc.config import TargetConfig
from z80calc.generator import SpreadsheetGenerator

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


class AddressType(click.ParamType):
    """Integer option accepting decimal, 0x-prefixed hex or $-prefixed hex."""

    name = "address"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        text = value.strip()
        try:
            if text.startswith("$"):
                return int(text[1:], 16)
            return int(text, 0)
        except ValueError:
            self.fail(f"invalid number '{value}'", param, ctx)


class GeneratorCommand(click.Command):
    """Command whose usage errors exit with BUILD_ERROR instead of Click's 2."""

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = ExitCode.BUILD_ERROR
            raise


# =============================================================================
# CLI Definition
# =============================================================================

@click.command(
    cls=GeneratorCommand,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("calc.bin"),
    show_default=True,
    help="Output ROM image",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a symbol listing (ADDR NAME per line)",
)
@click.option(
    "--rom-size",
    type=AddressType(),
    default=None,
    help="Image size in bytes (decimal, 0x or $ hex). Default: 0x4000",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="z80calc")
def main(
    output: Path,
    symbols: Optional[Path],
    rom_size: Optional[int],
    verbose: bool,
) -> None:
    """
    Generate the Z80 spreadsheet ROM image.

    The image starts executing at address 0 and is padded to the ROM size.

    Examples:

        # Default 16K image
        z80calc -o calc.bin

        # With a symbol listing for the debugger
        z80calc -o calc.bin -s calc.sym
    """
    setup_logging(verbose)

    try:
        config = TargetConfig.from_env()
        if rom_size is not None:
            config.rom_size = rom_size

        if verbose:
            click.echo(f"Generating {config.rom_size}-byte image...")

        generator = SpreadsheetGenerator(config)
        image = generator.generate()
        image.write(output)

        if symbols:
            image.write_symbols(symbols)
            if verbose:
                click.echo(f"Wrote {len(image.symbols)} symbols to {symbols}")

        if verbose:
            for name, size in generator.section_sizes.items():
                click.echo(f"  {name:<8} {size:5d} bytes")
            click.echo(f"Wrote {len(image)} bytes to {output}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Generation")


if __name__ == "__main__":
    main()
