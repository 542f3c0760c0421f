"""
Routine Emitter Base
====================

Common base for the firmware section emitters. Each section owns a group of
routines (I/O, BCD arithmetic, formula evaluation ...) and emits them into
a shared Z80Assembler. Sections reference each other's routines only by
label, so they can be emitted in any order; the builder's resolution pass
ties them together.

Calling Conventions
-------------------
- Carry set on return signals failure (parse error, overflow, reject).
- BCD values live in RAM as a sign byte followed by a 4-byte magnitude
  (ACC_SIGN/ACC, OPD_SIGN/OPD ...), never in registers.
- Cell coordinates are passed as B = column, C = row (0-based).
- Routines may clobber every register unless documented otherwise.
"""

import logging

from z80calc.emitter.z80 import Target, Z80Assembler
from z80calc.layout import MemoryLayout

logger = logging.getLogger(__name__)


class RoutineEmitter:
    """
    Base class for one firmware section.

    Subclasses implement emit() and use the helpers below for the
    instruction sequences that recur throughout the firmware.
    """

    #: Section name used in generator log output
    name = "section"

    def __init__(self, asm: Z80Assembler, layout: MemoryLayout):
        self.asm = asm
        self.layout = layout
        self.config = layout.config
        self.v = layout.vars

    def emit(self) -> None:
        raise NotImplementedError

    def run(self) -> int:
        """Emit the section and return its size in bytes."""
        start = self.asm.offset
        self.emit()
        size = self.asm.offset - start
        logger.debug(f"Section {self.name}: {size} bytes at ${self.asm.origin + start:04X}")
        return size

    # =========================================================================
    # Instruction Sequences
    # =========================================================================

    def copy(self, src: Target, dst: Target, count: int) -> None:
        """LD HL,src / LD DE,dst / LD BC,count / LDIR"""
        asm = self.asm
        asm.ld_rr_nn("hl", src)
        asm.ld_rr_nn("de", dst)
        asm.ld_rr_nn("bc", count)
        asm.ldir()

    def call_n(self, routine: str, *, de: Target = None, hl: Target = None, b: int = None) -> None:
        """Load the multi-byte routine arguments and call it."""
        asm = self.asm
        if de is not None:
            asm.ld_rr_nn("de", de)
        if hl is not None:
            asm.ld_rr_nn("hl", hl)
        if b is not None:
            asm.ld_r_n("b", b)
        asm.call(routine)

    def load_cursor(self) -> None:
        """B = cursor column, C = cursor row."""
        asm = self.asm
        asm.ld_a_addr(self.v.CURSOR_COL)
        asm.ld_r_r("b", "a")
        asm.ld_a_addr(self.v.CURSOR_ROW)
        asm.ld_r_r("c", "a")

    def store_a(self, *addresses: Target) -> None:
        """Store A at each address."""
        for address in addresses:
            self.asm.ld_addr_a(address)

    def heap_pointer_from_record(self) -> None:
        """HL -> cell record; leaves HL = heap pointer stored in bytes 2-3."""
        asm = self.asm
        asm.inc_rr("hl")
        asm.inc_rr("hl")
        asm.ld_r_r("e", "(hl)")
        asm.inc_rr("hl")
        asm.ld_r_r("d", "(hl)")
        asm.ex_de_hl()

    def skip_string(self) -> None:
        """HL -> NUL-terminated text; leaves HL just past the NUL."""
        asm = self.asm
        asm.xor("a")
        asm.ld_rr_nn("bc", 0)
        asm.cpir()
