"""
z80calc Firmware Sections
=========================

Each module emits one group of Z80 routines into a shared Z80Assembler.
SpreadsheetGenerator (z80calc.generator) runs them in SECTIONS order; the
first section holds the reset entry point.
"""

from z80calc.codegen.app import Application
from z80calc.codegen.base import RoutineEmitter
from z80calc.codegen.bcd import BCDRoutines
from z80calc.codegen.cells import CellRoutines
from z80calc.codegen.display import DisplayRoutines
from z80calc.codegen.formula import FormulaRoutines
from z80calc.codegen.io import ConsoleIO
from z80calc.codegen.strings import StringTable

SECTIONS: tuple[type[RoutineEmitter], ...] = (
    Application,
    DisplayRoutines,
    CellRoutines,
    FormulaRoutines,
    BCDRoutines,
    ConsoleIO,
    StringTable,
)

__all__ = [
    "SECTIONS",
    "RoutineEmitter",
    "Application",
    "BCDRoutines",
    "CellRoutines",
    "ConsoleIO",
    "DisplayRoutines",
    "FormulaRoutines",
    "StringTable",
]
