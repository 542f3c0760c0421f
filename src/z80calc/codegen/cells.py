"""
Cell Store and Recalculation (Firmware)
=======================================

Cell addressing, the append-only formula heap, committing the edit buffer to
the current cell, and the global recalculation scan. Record and heap entry
formats are the ones z80calc.cells defines.

| Routine            | Inputs           | Result                               |
|--------------------|------------------|--------------------------------------|
| get_cell_addr      | B = col, C = row | HL -> record (DE clobbered)          |
| cur_cell_addr      |                  | HL -> record of the cursor cell      |
| clear_cells        |                  | every record Empty                   |
| heap_check         | A = entry size   | C if the entry does not fit          |
| heap_store_input   |                  | input text appended, HL = entry      |
| store_pointer_cell | A = type, HL     | cursor record -> heap entry at HL    |
| commit_input       |                  | C if rejected for capacity           |
| load_cell_to_input |                  | cursor cell source -> input buffer   |
| recalculate        |                  | every formula re-evaluated once      |
"""

from z80calc.bcd import MAGNITUDE_SIZE
from z80calc.cells import CellType
from z80calc.codegen.base import RoutineEmitter
from z80calc.config import CELL_COUNT, RECORD_SIZE

# Sign byte plus magnitude
VALUE_SIZE = 1 + MAGNITUDE_SIZE


class CellRoutines(RoutineEmitter):
    """Emits cell addressing, heap management, commit and recalculation."""

    name = "cells"

    def emit(self) -> None:
        self.emit_addressing()
        self.emit_heap()
        self.emit_commit()
        self.emit_load()
        self.emit_recalculate()

    # =========================================================================
    # Addressing
    # =========================================================================

    def emit_addressing(self) -> None:
        asm = self.asm
        layout = self.layout

        # HL = cell_base + (row * 16 + col) * 6
        asm.label("get_cell_addr")
        asm.ld_r_r("l", "c")
        asm.ld_r_n("h", 0)
        for _ in range(4):
            asm.add_hl("hl")
        asm.ld_r_r("e", "b")
        asm.ld_r_n("d", 0)
        asm.add_hl("de")
        asm.add_hl("hl")
        asm.ld_r_r("e", "l")
        asm.ld_r_r("d", "h")
        asm.add_hl("hl")
        asm.add_hl("de")
        asm.ld_rr_nn("de", layout.cell_base)
        asm.add_hl("de")
        asm.ret()

        asm.label("cur_cell_addr")
        self.load_cursor()
        asm.jp("get_cell_addr")

        asm.label("clear_cells")
        asm.ld_rr_nn("hl", layout.cell_base)
        asm.ld_r_n("(hl)", CellType.EMPTY)
        asm.ld_rr_nn("de", layout.cell_base + 1)
        asm.ld_rr_nn("bc", self.config.cell_array_size - 1)
        asm.ldir()
        asm.ret()

    # =========================================================================
    # Heap
    # =========================================================================

    def emit_heap(self) -> None:
        asm, v = self.asm, self.v

        # Carry when HEAP_PTR + A would pass the end of the heap
        asm.label("heap_check")
        asm.ld_rr_addr("hl", v.HEAP_PTR)
        asm.ld_r_r("e", "a")
        asm.ld_r_n("d", 0)
        asm.add_hl("de")
        asm.ex_de_hl()
        asm.ld_rr_nn("hl", self.layout.heap_end)
        asm.or_("a")
        asm.sbc_hl("de")
        asm.ret()

        asm.label("heap_store_input")
        asm.ld_rr_addr("de", v.HEAP_PTR)
        asm.push("de")
        asm.ld_rr_nn("hl", self.layout.input_buf)
        asm.label("hsi_loop")
        asm.ld_r_r("a", "(hl)")
        asm.ld_ind_a("de")
        asm.inc_rr("hl")
        asm.inc_rr("de")
        asm.or_("a")
        asm.jr("hsi_loop", "nz")
        asm.ld_addr_rr(v.HEAP_PTR, "de")
        asm.pop("hl")
        asm.ret()

        asm.label("store_pointer_cell")
        asm.push("hl")
        asm.push("af")
        asm.call("cur_cell_addr")
        asm.pop("af")
        asm.ld_r_r("(hl)", "a")
        asm.inc_rr("hl")
        asm.ld_r_n("(hl)", 0)
        asm.inc_rr("hl")
        asm.pop("de")
        asm.ld_r_r("(hl)", "e")
        asm.inc_rr("hl")
        asm.ld_r_r("(hl)", "d")
        asm.inc_rr("hl")
        asm.ld_r_n("(hl)", 0)
        asm.inc_rr("hl")
        asm.ld_r_n("(hl)", 0)
        asm.ret()

    # =========================================================================
    # Commit
    # =========================================================================

    def emit_commit(self) -> None:
        asm, v = self.asm, self.v
        input_buf = self.layout.input_buf

        asm.label("commit_input")
        asm.ld_a_addr(v.INPUT_LEN)
        asm.or_("a")
        asm.ret("z")                    # empty input leaves the cell alone
        asm.ld_a_addr(input_buf)
        asm.cp_n(ord('"'))
        asm.jp("commit_label", "z")
        asm.cp_n(ord("="))
        asm.jp("commit_formula", "z")

        asm.ld_rr_nn("hl", input_buf)
        asm.call("parse_number")
        asm.jp("commit_error", "c")
        asm.ld_r_r("a", "(hl)")
        asm.or_("a")
        asm.jp("commit_error", "nz")    # trailing characters
        asm.call("cur_cell_addr")
        asm.ld_r_n("(hl)", CellType.NUMBER)
        asm.inc_rr("hl")
        asm.ex_de_hl()
        asm.ld_rr_nn("hl", v.NUM_SIGN)
        asm.ld_rr_nn("bc", VALUE_SIZE)
        asm.ldir()
        asm.jp("commit_ok")

        asm.label("commit_label")
        asm.ld_a_addr(v.INPUT_LEN)
        asm.inc("a")
        asm.call("heap_check")
        asm.ret("c")
        asm.call("heap_store_input")
        asm.ld_r_n("a", CellType.LABEL)
        asm.call("store_pointer_cell")
        asm.jp("commit_ok")

        asm.label("commit_formula")
        asm.ld_a_addr(v.INPUT_LEN)
        asm.add_a_n(1 + VALUE_SIZE)
        asm.call("heap_check")
        asm.ret("c")
        asm.ld_rr_nn("hl", input_buf + 1)
        asm.call("eval_formula")
        asm.jp("commit_error", "c")
        asm.call("heap_store_input")
        asm.push("hl")
        asm.ld_rr_addr("de", v.HEAP_PTR)
        asm.ld_rr_nn("hl", v.ACC_SIGN)
        asm.ld_rr_nn("bc", VALUE_SIZE)
        asm.ldir()
        asm.ld_addr_rr(v.HEAP_PTR, "de")
        asm.pop("hl")
        asm.ld_r_n("a", CellType.FORMULA)
        asm.call("store_pointer_cell")

        asm.label("commit_ok")
        asm.or_("a")
        asm.ret()

        asm.label("commit_error")
        asm.call("cur_cell_addr")
        asm.ld_r_n("(hl)", CellType.ERROR)
        asm.inc_rr("hl")
        asm.ld_r_n("b", RECORD_SIZE - 1)
        asm.call("zero_n")
        asm.jp("commit_ok")

    # =========================================================================
    # Edit Buffer Loading
    # =========================================================================

    def emit_load(self) -> None:
        asm, v = self.asm, self.v
        input_buf = self.layout.input_buf

        asm.label("load_cell_to_input")
        asm.call("cur_cell_addr")
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(CellType.NUMBER)
        asm.jp("lci_number", "z")
        asm.cp_n(CellType.FORMULA)
        asm.jp("lci_text", "z")
        asm.cp_n(CellType.LABEL)
        asm.jp("lci_text", "z")
        asm.xor("a")
        self.store_a(v.INPUT_LEN, input_buf)
        asm.ret()

        asm.label("lci_number")
        asm.inc_rr("hl")
        asm.ld_rr_nn("de", v.ACC_SIGN)
        asm.ld_rr_nn("bc", VALUE_SIZE)
        asm.ldir()
        asm.call("format_value")
        asm.ld_r_r("a", "b")
        asm.ld_addr_a(v.INPUT_LEN)
        asm.ld_r_r("c", "a")
        asm.ld_r_n("b", 0)
        asm.inc_rr("bc")                # include the NUL
        asm.ld_rr_nn("hl", v.TEXT_BUF)
        asm.ld_rr_nn("de", input_buf)
        asm.ldir()
        asm.ret()

        asm.label("lci_text")
        self.heap_pointer_from_record()
        asm.ld_rr_nn("de", input_buf)
        asm.ld_r_n("b", 0)
        asm.label("lci_copy")
        asm.ld_r_r("a", "(hl)")
        asm.ld_ind_a("de")
        asm.or_("a")
        asm.jp("lci_done", "z")
        asm.inc_rr("hl")
        asm.inc_rr("de")
        asm.inc("b")
        asm.jr("lci_copy")
        asm.label("lci_done")
        asm.ld_r_r("a", "b")
        asm.ld_addr_a(v.INPUT_LEN)
        asm.ret()

    # =========================================================================
    # Recalculation
    # =========================================================================

    def emit_recalculate(self) -> None:
        asm, v = self.asm, self.v

        asm.label("recalculate")
        asm.ld_rr_nn("hl", self.layout.cell_base)
        asm.ld_addr_rr(v.RECALC_PTR, "hl")
        asm.ld_rr_nn("hl", CELL_COUNT)
        asm.ld_addr_rr(v.RECALC_COUNT, "hl")

        asm.label("rc_loop")
        asm.ld_rr_addr("hl", v.RECALC_PTR)
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(CellType.FORMULA)
        asm.jp("rc_next", "nz")
        self.heap_pointer_from_record()
        asm.inc_rr("hl")                # skip '='
        asm.call("eval_formula")
        asm.jp("rc_next", "c")          # failure keeps the old result
        asm.ld_rr_addr("hl", v.RECALC_PTR)
        self.heap_pointer_from_record()
        self.skip_string()
        asm.ex_de_hl()
        asm.ld_rr_nn("hl", v.ACC_SIGN)
        asm.ld_rr_nn("bc", VALUE_SIZE)
        asm.ldir()

        asm.label("rc_next")
        asm.ld_rr_addr("hl", v.RECALC_PTR)
        asm.ld_rr_nn("de", RECORD_SIZE)
        asm.add_hl("de")
        asm.ld_addr_rr(v.RECALC_PTR, "hl")
        asm.ld_rr_addr("hl", v.RECALC_COUNT)
        asm.dec_rr("hl")
        asm.ld_addr_rr(v.RECALC_COUNT, "hl")
        asm.ld_r_r("a", "h")
        asm.or_("l")
        asm.jp("rc_loop", "nz")
        asm.ret()
