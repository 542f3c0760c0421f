"""
BCD Routines (Firmware)
=======================

Z80 implementation of the packed BCD engine. The algorithms mirror
z80calc.bcd step for step, so the host model predicts the firmware's
results exactly.

Primitives (B = length in bytes)
--------------------------------
| Routine     | Inputs                        | Result                        |
|-------------|-------------------------------|-------------------------------|
| bcd_add_n   | DE -> dst LSB, HL -> src LSB  | dst += src, C = carry out     |
| bcd_sub_n   | DE -> dst LSB, HL -> src LSB  | dst -= src, C = borrow out    |
| bcd_cmp_n   | DE -> a MSB, HL -> b MSB      | Z if a = b, C if a < b        |
| bcd_shl_n   | HL -> LSB, A = digit in       | x10 + digit, A = digit out    |
| zero_n      | HL -> first byte              | bytes cleared, A = 0          |
| is_zero_n   | HL -> first byte              | Z if all bytes are zero       |

Signed Operations
-----------------
All work on ACC (accumulator) and OPD (operand), each a sign byte followed
by a 4-byte magnitude. The result replaces ACC; carry signals overflow or
division by zero. Zero results always get a positive sign.

    bcd_signed_add   ACC = ACC + OPD
    bcd_signed_sub   ACC = ACC - OPD   (flips OPD_SIGN)
    bcd_mul          ACC = ACC * OPD
    bcd_div          ACC = ACC / OPD
    signed_compare   flags for OPD vs ACC: Z equal, C if OPD < ACC

Conversion
----------
    parse_number     HL -> text; NUM_SIGN/NUM_MAG, HL past the literal
    format_value     ACC -> TEXT_BUF with zero suppression, B = length
"""

from z80calc.bcd import FRACTION_DIGITS, MAGNITUDE_SIZE, SIGN_NEGATIVE
from z80calc.codegen.base import RoutineEmitter


class BCDRoutines(RoutineEmitter):
    """Emits the BCD primitives, signed arithmetic and conversions."""

    name = "bcd"

    def emit(self) -> None:
        self.emit_primitives()
        self.emit_signed_add()
        self.emit_mul()
        self.emit_div()
        self.emit_compare()
        self.emit_parse_number()
        self.emit_format_value()

    # =========================================================================
    # Primitives
    # =========================================================================

    def emit_primitives(self) -> None:
        asm = self.asm

        asm.label("bcd_add_n")
        asm.or_("a")                    # clear carry
        asm.label("bcd_add_loop")
        asm.ld_a_ind("de")
        asm.adc_a("(hl)")
        asm.daa()
        asm.ld_ind_a("de")
        asm.dec_rr("de")
        asm.dec_rr("hl")
        asm.djnz("bcd_add_loop")
        asm.ret()

        asm.label("bcd_sub_n")
        asm.or_("a")
        asm.label("bcd_sub_loop")
        asm.ld_a_ind("de")
        asm.sbc_a("(hl)")
        asm.daa()
        asm.ld_ind_a("de")
        asm.dec_rr("de")
        asm.dec_rr("hl")
        asm.djnz("bcd_sub_loop")
        asm.ret()

        asm.label("bcd_cmp_n")
        asm.ld_a_ind("de")
        asm.cp("(hl)")
        asm.ret("nz")
        asm.inc_rr("de")
        asm.inc_rr("hl")
        asm.djnz("bcd_cmp_n")
        asm.ret()

        # RLD moves the incoming digit into the low nibble and hands the
        # old high nibble on to the next byte up
        asm.label("bcd_shl_n")
        asm.and_n(0x0F)
        asm.label("bcd_shl_loop")
        asm.rld()
        asm.dec_rr("hl")
        asm.djnz("bcd_shl_loop")
        asm.ret()

        asm.label("zero_n")
        asm.xor("a")
        asm.label("zero_loop")
        asm.ld_r_r("(hl)", "a")
        asm.inc_rr("hl")
        asm.djnz("zero_loop")
        asm.ret()

        asm.label("is_zero_n")
        asm.xor("a")
        asm.label("is_zero_loop")
        asm.or_("(hl)")
        asm.inc_rr("hl")
        asm.djnz("is_zero_loop")
        asm.ret()

        # ACC sign becomes positive when the magnitude is zero; clears carry
        asm.label("normalise_acc")
        self.call_n("is_zero_n", hl=self.v.ACC, b=MAGNITUDE_SIZE)
        asm.jp("normalise_done", "nz")
        asm.ld_addr_a(self.v.ACC_SIGN)
        asm.label("normalise_done")
        asm.or_("a")
        asm.ret()

    # =========================================================================
    # Signed Add / Subtract
    # =========================================================================

    def emit_signed_add(self) -> None:
        asm, v = self.asm, self.v
        last = MAGNITUDE_SIZE - 1

        asm.label("bcd_signed_sub")
        asm.ld_a_addr(v.OPD_SIGN)
        asm.xor_n(SIGN_NEGATIVE)
        asm.ld_addr_a(v.OPD_SIGN)
        # falls through

        asm.label("bcd_signed_add")
        asm.ld_a_addr(v.ACC_SIGN)
        asm.ld_rr_nn("hl", v.OPD_SIGN)
        asm.cp("(hl)")
        asm.jp("sadd_diff", "nz")

        # Same signs: add magnitudes, keep the sign
        self.call_n("bcd_add_n", de=v.ACC + last, hl=v.OPD + last, b=MAGNITUDE_SIZE)
        asm.ret("c")
        asm.jp("normalise_acc")

        # Different signs: subtract the smaller magnitude from the larger
        asm.label("sadd_diff")
        self.call_n("bcd_cmp_n", de=v.ACC, hl=v.OPD, b=MAGNITUDE_SIZE)
        asm.jp("sadd_opd_larger", "c")
        self.call_n("bcd_sub_n", de=v.ACC + last, hl=v.OPD + last, b=MAGNITUDE_SIZE)
        asm.jp("normalise_acc")

        asm.label("sadd_opd_larger")
        self.copy(v.OPD, v.TMP, MAGNITUDE_SIZE)
        self.call_n("bcd_sub_n", de=v.TMP + last, hl=v.ACC + last, b=MAGNITUDE_SIZE)
        self.copy(v.TMP, v.ACC, MAGNITUDE_SIZE)
        asm.ld_a_addr(v.OPD_SIGN)
        asm.ld_addr_a(v.ACC_SIGN)
        asm.jp("normalise_acc")

    def _result_sign(self) -> None:
        """ACC_SIGN ^= OPD_SIGN"""
        asm, v = self.asm, self.v
        asm.ld_a_addr(v.ACC_SIGN)
        asm.ld_rr_nn("hl", v.OPD_SIGN)
        asm.xor("(hl)")
        asm.ld_addr_a(v.ACC_SIGN)

    # =========================================================================
    # Multiply
    # =========================================================================

    def emit_mul(self) -> None:
        asm, v = self.asm, self.v
        wide = 2 * MAGNITUDE_SIZE

        asm.label("bcd_mul")
        self._result_sign()

        # MUL_CAND = 0000 0000 ACC, MUL_PLIER = OPD, MUL_ACC = 0
        self.call_n("zero_n", hl=v.MUL_CAND, b=MAGNITUDE_SIZE)
        self.copy(v.ACC, v.MUL_CAND + MAGNITUDE_SIZE, MAGNITUDE_SIZE)
        self.copy(v.OPD, v.MUL_PLIER, MAGNITUDE_SIZE)
        self.call_n("zero_n", hl=v.MUL_ACC, b=wide)
        asm.ld_r_n("c", 2 * MAGNITUDE_SIZE)

        asm.label("mul_digit")
        asm.ld_rr_nn("hl", v.MUL_PLIER + MAGNITUDE_SIZE - 1)
        asm.ld_r_n("b", MAGNITUDE_SIZE)
        asm.xor("a")
        asm.call("bcd_shl_n")           # A = next multiplier digit
        asm.ld_addr_a(v.TEMP1)
        asm.ld_rr_nn("hl", v.MUL_ACC + wide - 1)
        asm.ld_r_n("b", wide)
        asm.xor("a")
        asm.call("bcd_shl_n")           # MUL_ACC *= 10

        asm.label("mul_add")
        asm.ld_a_addr(v.TEMP1)
        asm.or_("a")
        asm.jp("mul_next", "z")
        asm.dec("a")
        asm.ld_addr_a(v.TEMP1)
        self.call_n("bcd_add_n", de=v.MUL_ACC + wide - 1, hl=v.MUL_CAND + wide - 1, b=wide)
        asm.jr("mul_add")

        asm.label("mul_next")
        asm.dec("c")
        asm.jp("mul_digit", "nz")

        # Four decimals -> two: drop the last byte; the top three must be zero
        self.call_n("is_zero_n", hl=v.MUL_ACC, b=3)
        asm.scf()
        asm.ret("nz")
        self.copy(v.MUL_ACC + 3, v.ACC, MAGNITUDE_SIZE)
        asm.jp("normalise_acc")

    # =========================================================================
    # Divide
    # =========================================================================

    def emit_div(self) -> None:
        asm, v = self.asm, self.v
        wide = MAGNITUDE_SIZE + 2

        asm.label("bcd_div")
        self.call_n("is_zero_n", hl=v.OPD, b=MAGNITUDE_SIZE)
        asm.scf()
        asm.ret("z")
        self._result_sign()

        # DIV_DVD = 00 ACC 00 (ACC x 100), DIV_DVS = 00 00 OPD
        self.call_n("zero_n", hl=v.DIV_DVD, b=wide)
        self.copy(v.ACC, v.DIV_DVD + 1, MAGNITUDE_SIZE)
        self.call_n("zero_n", hl=v.DIV_DVS, b=2)
        self.copy(v.OPD, v.DIV_DVS + 2, MAGNITUDE_SIZE)
        self.call_n("zero_n", hl=v.DIV_REM, b=wide)
        self.call_n("zero_n", hl=v.DIV_QUO, b=wide)
        asm.ld_r_n("c", 2 * wide)

        asm.label("div_digit")
        asm.ld_rr_nn("hl", v.DIV_DVD + wide - 1)
        asm.ld_r_n("b", wide)
        asm.xor("a")
        asm.call("bcd_shl_n")           # A = next dividend digit
        asm.ld_rr_nn("hl", v.DIV_REM + wide - 1)
        asm.ld_r_n("b", wide)
        asm.call("bcd_shl_n")           # bring it down into the remainder
        asm.xor("a")
        asm.ld_addr_a(v.TEMP1)

        asm.label("div_sub")
        self.call_n("bcd_cmp_n", de=v.DIV_REM, hl=v.DIV_DVS, b=wide)
        asm.jp("div_store", "c")
        self.call_n("bcd_sub_n", de=v.DIV_REM + wide - 1, hl=v.DIV_DVS + wide - 1, b=wide)
        asm.ld_rr_nn("hl", v.TEMP1)
        asm.inc("(hl)")
        asm.jr("div_sub")

        asm.label("div_store")
        asm.ld_a_addr(v.TEMP1)
        asm.ld_rr_nn("hl", v.DIV_QUO + wide - 1)
        asm.ld_r_n("b", wide)
        asm.call("bcd_shl_n")
        asm.dec("c")
        asm.jp("div_digit", "nz")

        self.call_n("is_zero_n", hl=v.DIV_QUO, b=2)
        asm.scf()
        asm.ret("nz")
        self.copy(v.DIV_QUO + 2, v.ACC, MAGNITUDE_SIZE)
        asm.jp("normalise_acc")

    # =========================================================================
    # Signed Compare
    # =========================================================================

    def emit_compare(self) -> None:
        asm, v = self.asm, self.v

        asm.label("signed_compare")
        asm.ld_a_addr(v.OPD_SIGN)
        asm.ld_r_r("b", "a")
        asm.ld_a_addr(v.ACC_SIGN)
        asm.cp("b")
        asm.jp("scmp_same", "z")
        asm.ld_r_r("a", "b")
        asm.or_("a")
        asm.jp("scmp_greater", "z")     # OPD positive, ACC negative
        asm.scf()
        asm.ret()
        asm.label("scmp_greater")
        asm.ld_r_n("a", 1)
        asm.or_("a")
        asm.ret()

        asm.label("scmp_same")
        self.call_n("bcd_cmp_n", de=v.OPD, hl=v.ACC, b=MAGNITUDE_SIZE)
        asm.ret("z")
        asm.push("af")
        asm.ld_a_addr(v.OPD_SIGN)
        asm.or_("a")
        asm.jp("scmp_flip", "nz")
        asm.pop("af")
        asm.ret()
        asm.label("scmp_flip")         # both negative: larger magnitude is smaller
        asm.pop("af")
        asm.ccf()
        asm.ret()

    # =========================================================================
    # ASCII -> BCD
    # =========================================================================

    def _shift_num_digit(self) -> None:
        """Shift the digit in A into NUM_MAG, preserving HL."""
        asm = self.asm
        asm.push("hl")
        asm.ld_rr_nn("hl", self.v.NUM_MAG + MAGNITUDE_SIZE - 1)
        asm.ld_r_n("b", MAGNITUDE_SIZE)
        asm.call("bcd_shl_n")
        asm.pop("hl")

    def _digit_or(self, label: str) -> None:
        """A = digit value of (HL), or jump to label if it is not a digit."""
        asm = self.asm
        asm.ld_r_r("a", "(hl)")
        asm.sub_n(ord("0"))
        asm.jp(label, "c")
        asm.cp_n(10)
        asm.jp(label, "nc")

    def emit_parse_number(self) -> None:
        asm, v = self.asm, self.v

        asm.label("parse_number")
        asm.xor("a")
        self.store_a(v.NUM_SIGN, v.NUM_FRAC, v.NUM_DIGITS)
        asm.push("hl")
        self.call_n("zero_n", hl=v.NUM_MAG, b=MAGNITUDE_SIZE)
        asm.pop("hl")
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(ord("-"))
        asm.jp("pnum_whole", "nz")
        asm.ld_r_n("a", SIGN_NEGATIVE)
        asm.ld_addr_a(v.NUM_SIGN)
        asm.inc_rr("hl")

        asm.label("pnum_whole")
        self._digit_or("pnum_point")
        self._shift_num_digit()
        asm.ld_a_addr(v.NUM_MAG)        # a 7th significant digit reached the top byte
        asm.or_("a")
        asm.scf()
        asm.ret("nz")
        asm.ld_rr_nn("de", v.NUM_DIGITS)
        asm.ex_de_hl()
        asm.inc("(hl)")
        asm.ex_de_hl()
        asm.inc_rr("hl")
        asm.jr("pnum_whole")

        asm.label("pnum_point")
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(ord("."))
        asm.jp("pnum_finish", "nz")
        asm.inc_rr("hl")

        asm.label("pnum_frac")
        self._digit_or("pnum_finish")
        asm.ld_r_r("c", "a")
        asm.ld_a_addr(v.NUM_DIGITS)
        asm.inc("a")
        asm.ld_addr_a(v.NUM_DIGITS)
        asm.ld_a_addr(v.NUM_FRAC)
        asm.cp_n(FRACTION_DIGITS)
        asm.jp("pnum_frac_skip", "nc")  # extra fraction digits are ignored
        asm.inc("a")
        asm.ld_addr_a(v.NUM_FRAC)
        asm.ld_r_r("a", "c")
        self._shift_num_digit()
        asm.label("pnum_frac_skip")
        asm.inc_rr("hl")
        asm.jr("pnum_frac")

        asm.label("pnum_finish")
        asm.ld_a_addr(v.NUM_DIGITS)
        asm.or_("a")
        asm.scf()
        asm.ret("z")                    # no digits at all

        asm.label("pnum_scale")
        asm.ld_a_addr(v.NUM_FRAC)
        asm.cp_n(FRACTION_DIGITS)
        asm.jp("pnum_done", "nc")
        asm.inc("a")
        asm.ld_addr_a(v.NUM_FRAC)
        asm.xor("a")
        self._shift_num_digit()
        asm.jr("pnum_scale")

        asm.label("pnum_done")
        asm.push("hl")
        self.call_n("is_zero_n", hl=v.NUM_MAG, b=MAGNITUDE_SIZE)
        asm.pop("hl")
        asm.jp("pnum_ok", "nz")
        asm.ld_addr_a(v.NUM_SIGN)       # -0 reads as 0
        asm.label("pnum_ok")
        asm.or_("a")
        asm.ret()

    # =========================================================================
    # BCD -> ASCII
    # =========================================================================

    def emit_format_value(self) -> None:
        asm, v = self.asm, self.v

        asm.label("format_value")
        asm.ld_rr_nn("de", v.TEXT_BUF)
        asm.ld_a_addr(v.ACC_SIGN)
        asm.or_("a")
        asm.jp("fval_digits", "z")
        asm.ld_r_n("a", ord("-"))
        asm.ld_ind_a("de")
        asm.inc_rr("de")

        asm.label("fval_digits")
        asm.ld_rr_nn("hl", v.ACC)
        asm.ld_r_n("b", 3)              # three bytes of whole digits
        asm.ld_r_n("c", 1)              # C = 1 while suppressing leading zeros
        asm.label("fval_whole")
        asm.ld_r_r("a", "(hl)")
        for _ in range(4):
            asm.rrca()
        asm.call("fval_digit")
        asm.ld_r_r("a", "(hl)")
        asm.call("fval_digit")
        asm.inc_rr("hl")
        asm.djnz("fval_whole")

        asm.bit(0, "c")
        asm.jp("fval_point", "z")
        asm.ld_r_n("a", ord("0"))       # whole part was all zeros
        asm.ld_ind_a("de")
        asm.inc_rr("de")

        asm.label("fval_point")
        asm.ld_r_n("a", ord("."))
        asm.ld_ind_a("de")
        asm.inc_rr("de")
        asm.ld_r_n("c", 0)
        asm.ld_r_r("a", "(hl)")
        for _ in range(4):
            asm.rrca()
        asm.call("fval_digit")
        asm.ld_r_r("a", "(hl)")
        asm.call("fval_digit")
        asm.xor("a")
        asm.ld_ind_a("de")

        # B = DE - TEXT_BUF
        asm.ex_de_hl()
        asm.ld_rr_nn("de", v.TEXT_BUF)
        asm.or_("a")
        asm.sbc_hl("de")
        asm.ld_r_r("b", "l")
        asm.ret()

        # Store the digit in the low nibble of A at (DE) unless suppressed
        asm.label("fval_digit")
        asm.and_n(0x0F)
        asm.jp("fval_print", "nz")
        asm.bit(0, "c")
        asm.ret("nz")
        asm.label("fval_print")
        asm.ld_r_n("c", 0)
        asm.add_a_n(ord("0"))
        asm.ld_ind_a("de")
        asm.inc_rr("de")
        asm.ret()
