"""
Formula Evaluator (Firmware)
============================

Left-to-right formula evaluation with cell references and range functions,
following z80calc.formula. The running value lives in ACC; each operand is
loaded into OPD and combined with the BCD routines.

| Routine          | Inputs                 | Result                            |
|------------------|------------------------|-----------------------------------|
| eval_formula     | HL -> text after '='   | ACC = value, C on any error       |
| eval_operand     | HL -> operand          | OPD = value, HL past it           |
| parse_cellref    | HL -> [$]L[$]D[D]      | B = col, C = row, HL past it      |
| load_cell_value  | HL -> record           | OPD = value, C if not numeric     |
| eval_range       | HL -> '@'              | OPD = function result             |
| range_aggregate  | RANGE_* and FUNC_TYPE  | OPD = result, ACC preserved       |
| match_word       | HL -> text, DE -> word | Z and HL past the word on a match |
| digit_at         | HL -> char             | A = digit, C if not a digit       |
"""

from z80calc.bcd import MAGNITUDE_SIZE
from z80calc.cells import CellType
from z80calc.codegen.base import RoutineEmitter
from z80calc.codegen.cells import VALUE_SIZE
from z80calc.codegen.strings import keyword_label
from z80calc.config import GRID_COLS, GRID_ROWS
from z80calc.formula import RangeFunction

OPERATOR_ROUTINES = {
    "+": "bcd_signed_add",
    "-": "bcd_signed_sub",
    "*": "bcd_mul",
    "/": "bcd_div",
}

# Letters differ from their lowercase forms only in bit 5
UPPERCASE_MASK = 0xDF


class FormulaRoutines(RoutineEmitter):
    """Emits the evaluator, cell references and range functions."""

    name = "formula"

    def emit(self) -> None:
        self.emit_eval_formula()
        self.emit_operands()
        self.emit_parse_cellref()
        self.emit_load_cell_value()
        self.emit_eval_range()
        self.emit_range_aggregate()

    # =========================================================================
    # Expression Loop
    # =========================================================================

    def emit_eval_formula(self) -> None:
        asm, v = self.asm, self.v

        asm.label("eval_formula")
        asm.call("eval_operand")
        asm.ret("c")
        asm.push("hl")
        self.copy(v.OPD_SIGN, v.ACC_SIGN, VALUE_SIZE)
        asm.pop("hl")

        asm.label("ef_loop")
        asm.ld_r_r("a", "(hl)")
        asm.or_("a")
        asm.ret("z")
        for operator in OPERATOR_ROUTINES:
            asm.cp_n(ord(operator))
            asm.jp("ef_operator", "z")
        asm.scf()
        asm.ret()

        asm.label("ef_operator")
        asm.ld_addr_a(v.OPERATOR)
        asm.inc_rr("hl")
        asm.call("eval_operand")
        asm.ret("c")
        asm.push("hl")
        asm.ld_a_addr(v.OPERATOR)
        for operator in OPERATOR_ROUTINES:
            asm.cp_n(ord(operator))
            asm.jp(f"ef_{OPERATOR_ROUTINES[operator]}", "z")
        for operator, routine in OPERATOR_ROUTINES.items():
            asm.label(f"ef_{routine}")
            asm.call(routine)
            asm.jp("ef_next")

        asm.label("ef_next")
        asm.pop("hl")
        asm.ret("c")
        asm.jp("ef_loop")

    # =========================================================================
    # Operands
    # =========================================================================

    def emit_operands(self) -> None:
        asm, v = self.asm, self.v

        asm.label("eval_operand")
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(ord("@"))
        asm.jp("eval_range", "z")
        asm.cp_n(ord("$"))
        asm.jp("eval_cellref", "z")
        asm.and_n(UPPERCASE_MASK)
        asm.sub_n(ord("A"))
        asm.cp_n(26)
        asm.jp("eval_cellref", "c")
        asm.call("parse_number")
        asm.ret("c")
        asm.push("hl")
        self.copy(v.NUM_SIGN, v.OPD_SIGN, VALUE_SIZE)
        asm.pop("hl")
        asm.or_("a")
        asm.ret()

        asm.label("eval_cellref")
        asm.call("parse_cellref")
        asm.ret("c")
        asm.push("hl")
        asm.call("get_cell_addr")
        asm.call("load_cell_value")
        asm.pop("hl")
        asm.ret()

        asm.label("digit_at")
        asm.ld_r_r("a", "(hl)")
        asm.sub_n(ord("0"))
        asm.ret("c")
        asm.cp_n(10)
        asm.ccf()
        asm.ret()

    def emit_parse_cellref(self) -> None:
        asm = self.asm

        asm.label("parse_cellref")
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(ord("$"))
        asm.jp("pcr_col", "nz")
        asm.inc_rr("hl")
        asm.label("pcr_col")
        asm.ld_r_r("a", "(hl)")
        asm.and_n(UPPERCASE_MASK)
        asm.sub_n(ord("A"))
        asm.ret("c")
        asm.cp_n(GRID_COLS)
        asm.ccf()
        asm.ret("c")
        asm.ld_r_r("b", "a")
        asm.inc_rr("hl")
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(ord("$"))
        asm.jp("pcr_row", "nz")
        asm.inc_rr("hl")

        asm.label("pcr_row")
        asm.call("digit_at")
        asm.ret("c")
        asm.ld_r_r("c", "a")
        asm.inc_rr("hl")
        asm.call("digit_at")
        asm.jp("pcr_check", "c")
        asm.ld_r_r("d", "a")
        asm.ld_r_r("a", "c")            # C = C * 10 + D
        asm.add_a("a")
        asm.ld_r_r("c", "a")
        asm.add_a("a")
        asm.add_a("a")
        asm.add_a("c")
        asm.add_a("d")
        asm.ld_r_r("c", "a")
        asm.inc_rr("hl")
        asm.call("digit_at")            # a third digit is an error
        asm.ccf()
        asm.ret("c")

        asm.label("pcr_check")
        asm.ld_r_r("a", "c")
        asm.or_("a")
        asm.scf()
        asm.ret("z")
        asm.cp_n(GRID_ROWS + 1)
        asm.ccf()
        asm.ret("c")
        asm.dec("c")
        asm.or_("a")
        asm.ret()

    def emit_load_cell_value(self) -> None:
        asm, v = self.asm, self.v

        asm.label("load_cell_value")
        asm.ld_r_r("a", "(hl)")
        asm.or_("a")
        asm.jp("lcv_empty", "z")
        asm.cp_n(CellType.NUMBER)
        asm.jp("lcv_number", "z")
        asm.cp_n(CellType.FORMULA)
        asm.jp("lcv_formula", "z")
        asm.scf()
        asm.ret()

        asm.label("lcv_empty")
        self.call_n("zero_n", hl=v.OPD_SIGN, b=VALUE_SIZE)
        asm.ret()

        asm.label("lcv_formula")
        self.heap_pointer_from_record()
        self.skip_string()
        asm.dec_rr("hl")
        # falls through with HL one byte before the cached result

        asm.label("lcv_number")
        asm.inc_rr("hl")
        asm.ld_rr_nn("de", v.OPD_SIGN)
        asm.ld_rr_nn("bc", VALUE_SIZE)
        asm.ldir()
        asm.or_("a")
        asm.ret()

    # =========================================================================
    # Range Functions
    # =========================================================================

    def emit_eval_range(self) -> None:
        asm, v = self.asm, self.v

        asm.label("eval_range")
        asm.inc_rr("hl")
        for function in RangeFunction:
            asm.ld_rr_nn("de", keyword_label(function))
            asm.call("match_word")
            asm.ld_r_n("c", function)
            asm.jp("er_found", "z")
        asm.scf()
        asm.ret()

        asm.label("er_found")
        asm.ld_r_r("a", "c")
        asm.ld_addr_a(v.FUNC_TYPE)
        for char, col, row in (("(", v.RANGE_COL1, v.RANGE_ROW1), (":", v.RANGE_COL2, v.RANGE_ROW2)):
            asm.ld_r_r("a", "(hl)")
            asm.cp_n(ord(char))
            asm.jp("er_fail", "nz")
            asm.inc_rr("hl")
            asm.call("parse_cellref")
            asm.ret("c")
            asm.ld_r_r("a", "b")
            asm.ld_addr_a(col)
            asm.ld_r_r("a", "c")
            asm.ld_addr_a(row)
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(ord(")"))
        asm.jp("er_fail", "nz")
        asm.inc_rr("hl")
        asm.ld_addr_rr(v.EXPR_PTR, "hl")

        # Reversed ranges are rejected
        for first, last in ((v.RANGE_COL1, v.RANGE_COL2), (v.RANGE_ROW1, v.RANGE_ROW2)):
            asm.ld_a_addr(first)
            asm.ld_r_r("b", "a")
            asm.ld_a_addr(last)
            asm.cp("b")
            asm.ret("c")

        asm.call("range_aggregate")
        asm.ret("c")
        asm.ld_rr_addr("hl", v.EXPR_PTR)
        asm.ret()

        asm.label("er_fail")
        asm.scf()
        asm.ret()

        # Case-insensitive keyword match; the word must not continue with a letter
        asm.label("match_word")
        asm.push("hl")
        asm.label("mw_loop")
        asm.ld_a_ind("de")
        asm.or_("a")
        asm.jp("mw_end", "z")
        asm.ld_r_r("b", "a")
        asm.ld_r_r("a", "(hl)")
        asm.and_n(UPPERCASE_MASK)
        asm.cp("b")
        asm.jp("mw_fail", "nz")
        asm.inc_rr("hl")
        asm.inc_rr("de")
        asm.jr("mw_loop")
        asm.label("mw_end")
        asm.ld_r_r("a", "(hl)")
        asm.and_n(UPPERCASE_MASK)
        asm.sub_n(ord("A"))
        asm.cp_n(26)
        asm.jp("mw_fail", "c")
        asm.pop("de")
        asm.xor("a")
        asm.ret()
        asm.label("mw_fail")
        asm.pop("hl")
        asm.or_n(1)
        asm.ret()

    def emit_range_aggregate(self) -> None:
        asm, v = self.asm, self.v
        last = MAGNITUDE_SIZE - 1

        asm.label("range_aggregate")
        self.copy(v.ACC_SIGN, v.SAVE_SIGN, VALUE_SIZE)
        self.call_n("zero_n", hl=v.ACC_SIGN, b=VALUE_SIZE)
        self.call_n("zero_n", hl=v.COUNT, b=MAGNITUDE_SIZE)
        self.store_a(v.RANGE_FOUND)
        asm.ld_a_addr(v.RANGE_COL1)
        asm.ld_addr_a(v.RANGE_COL)

        # Column by column, top to bottom
        asm.label("ra_col")
        asm.ld_a_addr(v.RANGE_ROW1)
        asm.ld_addr_a(v.RANGE_ROW)
        asm.label("ra_row")
        asm.ld_a_addr(v.RANGE_COL)
        asm.ld_r_r("b", "a")
        asm.ld_a_addr(v.RANGE_ROW)
        asm.ld_r_r("c", "a")
        asm.call("get_cell_addr")
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(CellType.NUMBER)
        asm.jp("ra_numeric", "z")
        asm.cp_n(CellType.FORMULA)
        asm.jp("ra_next", "nz")

        asm.label("ra_numeric")
        asm.call("load_cell_value")
        self.call_n("bcd_add_n", de=v.COUNT + last, hl="bcd_one_lsb", b=MAGNITUDE_SIZE)
        asm.ld_a_addr(v.FUNC_TYPE)
        asm.cp_n(RangeFunction.SUM)
        asm.jp("ra_sum", "z")
        asm.cp_n(RangeFunction.AVG)
        asm.jp("ra_sum", "z")
        asm.cp_n(RangeFunction.COUNT)
        asm.jp("ra_next", "z")

        # MIN / MAX: the first value seeds the result
        asm.ld_a_addr(v.RANGE_FOUND)
        asm.or_("a")
        asm.jp("ra_compare", "nz")
        asm.inc("a")
        asm.ld_addr_a(v.RANGE_FOUND)
        asm.jp("ra_take")

        asm.label("ra_compare")
        asm.ld_a_addr(v.FUNC_TYPE)
        asm.cp_n(RangeFunction.MIN)
        asm.jp("ra_min", "z")
        asm.call("signed_compare")
        asm.jp("ra_next", "z")
        asm.jp("ra_next", "c")
        asm.jp("ra_take")
        asm.label("ra_min")
        asm.call("signed_compare")
        asm.jp("ra_next", "nc")

        asm.label("ra_take")
        self.copy(v.OPD_SIGN, v.ACC_SIGN, VALUE_SIZE)
        asm.jp("ra_next")

        asm.label("ra_sum")
        asm.call("bcd_signed_add")
        asm.jp("ra_overflow", "c")

        asm.label("ra_next")
        for index, limit, outer in (
            (v.RANGE_ROW, v.RANGE_ROW2, "ra_row"),
            (v.RANGE_COL, v.RANGE_COL2, "ra_col"),
        ):
            asm.ld_a_addr(index)
            asm.inc("a")
            asm.ld_addr_a(index)
            asm.ld_r_r("b", "a")
            asm.ld_a_addr(limit)
            asm.cp("b")
            asm.jp(outer, "nc")

        asm.ld_a_addr(v.FUNC_TYPE)
        asm.cp_n(RangeFunction.COUNT)
        asm.jp("ra_count", "z")
        asm.cp_n(RangeFunction.AVG)
        asm.jp("ra_result", "nz")
        self.call_n("is_zero_n", hl=v.COUNT, b=MAGNITUDE_SIZE)
        asm.jp("ra_result", "z")        # average of nothing is zero
        self.copy(v.COUNT, v.OPD, MAGNITUDE_SIZE)
        asm.xor("a")
        asm.ld_addr_a(v.OPD_SIGN)
        asm.call("bcd_div")
        asm.jp("ra_overflow", "c")
        asm.jp("ra_result")

        asm.label("ra_count")
        self.copy(v.COUNT, v.ACC, MAGNITUDE_SIZE)
        asm.xor("a")
        asm.ld_addr_a(v.ACC_SIGN)

        asm.label("ra_result")
        self.copy(v.ACC_SIGN, v.OPD_SIGN, VALUE_SIZE)
        self.copy(v.SAVE_SIGN, v.ACC_SIGN, VALUE_SIZE)
        asm.or_("a")
        asm.ret()

        asm.label("ra_overflow")
        self.copy(v.SAVE_SIGN, v.ACC_SIGN, VALUE_SIZE)
        asm.scf()
        asm.ret()
