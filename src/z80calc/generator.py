"""
ROM Image Generator
===================

Builds the complete spreadsheet firmware image for one TargetConfig.

Generation runs in three phases:

1. **Layout**: derive RAM addresses and check that every region fits
2. **Emission**: run each firmware section (z80calc.codegen.SECTIONS) into
   one Z80Assembler starting at address 0
3. **Finish**: resolve every forward reference, pad the image to rom_size

Any failure raises a GenerationError subclass and no image is produced:
there is no partial output.

Usage:
    >>> from z80calc.generator import SpreadsheetGenerator
    >>> image = SpreadsheetGenerator().generate()
    >>> len(image)
    16384
    >>> image.write("calc.bin")
"""

import logging
from typing import Optional

from z80calc.codegen import SECTIONS
from z80calc.config import TargetConfig
from z80calc.emitter import Image, Z80Assembler
from z80calc.errors import LayoutError
from z80calc.layout import MemoryLayout

logger = logging.getLogger(__name__)

#: Z80 reset vector
ENTRY_POINT = 0x0000


class SpreadsheetGenerator:
    """
    Generates the spreadsheet ROM.

    Attributes:
        config: Target configuration
        layout: RAM layout derived from config
        section_sizes: Bytes emitted per section after generate()
    """

    def __init__(self, config: Optional[TargetConfig] = None):
        self.config = config or TargetConfig()
        self.layout = MemoryLayout.from_config(self.config)
        self.section_sizes: dict[str, int] = {}

    def generate(self) -> Image:
        """
        Emit, resolve and pad the firmware image.

        Returns:
            Image of exactly config.rom_size bytes with the symbol table

        Raises:
            LayoutError: If the RAM layout does not fit the target
            UndefinedLabelError: If a routine references a missing label
            BranchRangeError: If a relative branch is out of range
            ImageSizeError: If the code does not fit in rom_size
        """
        self.layout.validate()
        for name, start, end in self.layout.regions():
            logger.debug(f"RAM {name:<10} ${start:04X}-${end - 1:04X}")

        asm = Z80Assembler(origin=ENTRY_POINT)
        self.section_sizes = {}
        for section_class in SECTIONS:
            section = section_class(asm, self.layout)
            self.section_sizes[section.name] = section.run()

        if asm.lookup("start") != ENTRY_POINT:
            raise LayoutError("reset entry point 'start' is not at address 0")

        image = asm.finish()
        logger.info(
            f"Generated {len(image)} bytes of code, "
            f"{len(image.symbols)} symbols, "
            f"{self.config.rom_size - len(image)} bytes free"
        )
        self._check_heap(image)

        padded = image.padded(self.config.rom_size, self.config.fill_byte)
        return Image(padded, origin=image.origin, symbols=image.symbols)

    def _check_heap(self, image: Image) -> None:
        """The heap must lie in RAM, clear of the code."""
        layout = self.layout
        if layout.heap_start < image.end or layout.heap_start < self.config.ram_start:
            raise LayoutError(
                f"heap at ${layout.heap_start:04X} overlaps the code ending at ${image.end:04X}"
            )
        if layout.heap_end > layout.stack_bottom:
            raise LayoutError(
                f"heap end ${layout.heap_end:04X} runs into the stack at ${layout.stack_bottom:04X}"
            )


def generate_rom(config: Optional[TargetConfig] = None) -> Image:
    """Convenience wrapper: SpreadsheetGenerator(config).generate()."""
    return SpreadsheetGenerator(config).generate()
