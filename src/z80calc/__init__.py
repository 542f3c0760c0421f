"""
z80calc - Spreadsheet ROM Generator for Z80 Single-Board Computers
==================================================================

This package generates a fixed-size ROM image containing a complete
VisiCalc-style spreadsheet for a Z80 machine with a serial VT100 terminal,
and provides a host-side model of that spreadsheet for testing.

Main Components
---------------
- **emitter**: Byte emitter with labels, absolute fixups and relative branches
    ImageBuilder produces an immutable Image; Z80Assembler adds instructions

- **bcd**: Packed BCD arithmetic (8 digits, 2 implied decimals)
    Add, subtract, multiply, divide, compare and ASCII conversion

- **cells**: Cell records, the formula heap and the cell store

- **formula**: Left-to-right formula evaluator, range functions, recalculation

- **sheet**: Keystroke-level editor model (navigation, editing, commands)

- **codegen / generator**: The firmware sections and the ROM generator

Quick Start
-----------
Generate a ROM:
    >>> from z80calc import SpreadsheetGenerator
    >>> image = SpreadsheetGenerator().generate()
    >>> image.write("calc.bin")

Drive the editor model:
    >>> from z80calc import Sheet
    >>> sheet = Sheet()
    >>> sheet.type_keys("12.5\\rj=A1*2\\r")
    >>> sheet.display_cell(0, 1).strip()
    '25.00'

Or use the command-line tool:
    $ z80calc -o calc.bin -s calc.sym
"""

__version__ = "0.1.0"

# =============================================================================
# Public API Exports
# =============================================================================

from z80calc.config import TargetConfig
from z80calc.errors import (
    Z80CalcError,
    GenerationError,
    UndefinedLabelError,
    DuplicateLabelError,
    BranchRangeError,
    BuilderFinalizedError,
    ImageSizeError,
    LayoutError,
    SheetError,
    FormulaParseError,
    BCDArithmeticError,
    CapacityError,
)
from z80calc.emitter import Image, ImageBuilder, Z80Assembler
from z80calc.layout import MemoryLayout
from z80calc.cells import CellStore, CellType
from z80calc.formula import FormulaEvaluator, recalculate
from z80calc.sheet import Sheet
from z80calc.generator import SpreadsheetGenerator, generate_rom

__all__ = [
    "__version__",
    # Configuration
    "TargetConfig",
    "MemoryLayout",
    # Emitter
    "Image",
    "ImageBuilder",
    "Z80Assembler",
    # Spreadsheet model
    "CellStore",
    "CellType",
    "FormulaEvaluator",
    "recalculate",
    "Sheet",
    # Generation
    "SpreadsheetGenerator",
    "generate_rom",
    # Errors
    "Z80CalcError",
    "GenerationError",
    "UndefinedLabelError",
    "DuplicateLabelError",
    "BranchRangeError",
    "BuilderFinalizedError",
    "ImageSizeError",
    "LayoutError",
    "SheetError",
    "FormulaParseError",
    "BCDArithmeticError",
    "CapacityError",
]
