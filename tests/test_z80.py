# =============================================================================
# test_z80.py - Z80 Instruction Helper Tests
# =============================================================================
# Encodings of the Z80 instructions used by the firmware generator.
#
# Test coverage includes:
#   - 8- and 16-bit loads, memory and indirect forms
#   - ALU register and immediate forms
#   - CB- and ED-prefixed instructions
#   - Control flow with conditions, labels and relative branches
#   - Operand validation
# =============================================================================

import pytest

from z80calc.emitter import Z80Assembler
from z80calc.errors import UndefinedLabelError


def encode(*calls) -> bytes:
    """Run (method, args...) tuples on a fresh assembler and return the bytes."""
    asm = Z80Assembler()
    for name, *args in calls:
        getattr(asm, name)(*args)
    return asm.finish().data


# =============================================================================
# Loads
# =============================================================================

class TestLoads:
    """Tests for LD forms."""

    @pytest.mark.parametrize("dst,src,expected", [
        ("a", "b", 0x78),
        ("b", "a", 0x47),
        ("l", "c", 0x69),
        ("(hl)", "a", 0x77),
        ("a", "(hl)", 0x7E),
        ("e", "(hl)", 0x5E),
    ])
    def test_ld_r_r(self, dst, src, expected):
        """Encode register to register LD."""
        assert encode(("ld_r_r", dst, src)) == bytes([expected])

    def test_ld_hl_hl_rejected(self):
        """LD (HL),(HL) is HALT and is rejected."""
        with pytest.raises(ValueError):
            Z80Assembler().ld_r_r("(hl)", "(hl)")

    def test_ld_r_n(self):
        """Encode LD r,n with the byte masked."""
        assert encode(("ld_r_n", "a", 0x41)) == b"\x3e\x41"
        assert encode(("ld_r_n", "(hl)", 0)) == b"\x36\x00"
        assert encode(("ld_r_n", "b", 0x1FF)) == b"\x06\xff"

    def test_ld_rr_nn(self):
        """Encode 16-bit immediate loads."""
        assert encode(("ld_rr_nn", "sp", 0x0000)) == b"\x31\x00\x00"
        assert encode(("ld_rr_nn", "hl", 0x8000)) == b"\x21\x00\x80"
        assert encode(("ld_rr_nn", "de", 0x1234)) == b"\x11\x34\x12"
        assert encode(("ld_rr_nn", "bc", 6)) == b"\x01\x06\x00"

    def test_ld_rr_nn_label(self):
        """Label operand becomes a fixup."""
        asm = Z80Assembler()
        asm.ld_rr_nn("hl", "msg")
        asm.label("msg")
        assert asm.finish().data == b"\x21\x03\x00"

    def test_ld_a_memory(self):
        """Encode LD A,(nn) and LD (nn),A."""
        assert encode(("ld_a_addr", 0x9000)) == b"\x3a\x00\x90"
        assert encode(("ld_addr_a", 0x9000)) == b"\x32\x00\x90"

    def test_ld_rr_memory(self):
        """HL uses the short form, DE the ED form."""
        assert encode(("ld_rr_addr", "hl", 0x9000)) == b"\x2a\x00\x90"
        assert encode(("ld_rr_addr", "de", 0x9000)) == b"\xed\x5b\x00\x90"
        assert encode(("ld_addr_rr", 0x9000, "hl")) == b"\x22\x00\x90"
        assert encode(("ld_addr_rr", 0x9000, "de")) == b"\xed\x53\x00\x90"

    def test_ld_indirect(self):
        """Encode LD through BC and DE."""
        assert encode(("ld_a_ind", "de")) == b"\x1a"
        assert encode(("ld_ind_a", "de")) == b"\x12"
        assert encode(("ld_a_ind", "bc")) == b"\x0a"

    def test_bad_register(self):
        """Unknown register names are rejected."""
        with pytest.raises(ValueError):
            Z80Assembler().ld_r_n("x", 0)
        with pytest.raises(ValueError):
            Z80Assembler().ld_rr_nn("ix", 0)


# =============================================================================
# Arithmetic and Logic
# =============================================================================

class TestALU:
    """Tests for ALU, increment and flag instructions."""

    @pytest.mark.parametrize("method,expected", [
        ("add_a", 0x80), ("adc_a", 0x88), ("sub", 0x90), ("sbc_a", 0x98),
        ("and_", 0xA0), ("xor", 0xA8), ("or_", 0xB0), ("cp", 0xB8),
    ])
    def test_register_forms(self, method, expected):
        """Encode ALU ops on a register and on (HL)."""
        assert encode((method, "b")) == bytes([expected])
        assert encode((method, "(hl)")) == bytes([expected | 6])

    @pytest.mark.parametrize("method,opcode", [
        ("add_a_n", 0xC6), ("sub_n", 0xD6), ("and_n", 0xE6),
        ("xor_n", 0xEE), ("or_n", 0xF6), ("cp_n", 0xFE),
    ])
    def test_immediate_forms(self, method, opcode):
        """Encode ALU ops with an immediate byte."""
        assert encode((method, 0x30)) == bytes([opcode, 0x30])

    def test_inc_dec(self):
        """Encode 8- and 16-bit INC and DEC."""
        assert encode(("inc", "a")) == b"\x3c"
        assert encode(("dec", "c")) == b"\x0d"
        assert encode(("inc", "(hl)")) == b"\x34"
        assert encode(("dec", "(hl)")) == b"\x35"
        assert encode(("inc_rr", "hl")) == b"\x23"
        assert encode(("dec_rr", "de")) == b"\x1b"

    def test_16_bit_arithmetic(self):
        """Encode ADD HL and SBC HL."""
        assert encode(("add_hl", "de")) == b"\x19"
        assert encode(("add_hl", "hl")) == b"\x29"
        assert encode(("sbc_hl", "de")) == b"\xed\x52"

    def test_flag_instructions(self):
        """Encode DAA, SCF, CCF, CPL and NEG."""
        assert encode(("daa",), ("scf",), ("ccf",), ("cpl",)) == b"\x27\x37\x3f\x2f"
        assert encode(("neg",)) == b"\xed\x44"


# =============================================================================
# Prefixed Instructions
# =============================================================================

class TestPrefixed:
    """Tests for CB and ED prefixed instructions."""

    def test_rld_rrd(self):
        """Encode the BCD nibble rotates."""
        assert encode(("rld",)) == b"\xed\x6f"
        assert encode(("rrd",)) == b"\xed\x67"

    def test_shifts(self):
        """Encode CB-prefixed shifts."""
        assert encode(("srl", "a")) == b"\xcb\x3f"
        assert encode(("sla", "b")) == b"\xcb\x20"

    def test_bit(self):
        """Encode BIT n,r."""
        assert encode(("bit", 0, "c")) == b"\xcb\x41"
        assert encode(("bit", 7, "a")) == b"\xcb\x7f"

    def test_bit_number_range(self):
        """Bit numbers above 7 are rejected."""
        with pytest.raises(ValueError):
            Z80Assembler().bit(8, "a")

    def test_block_operations(self):
        """Encode LDIR, LDDR and CPIR."""
        assert encode(("ldir",), ("lddr",), ("cpir",)) == b"\xed\xb0\xed\xb8\xed\xb1"


# =============================================================================
# Control Flow
# =============================================================================

class TestControlFlow:
    """Tests for jumps, calls, returns and relative branches."""

    def test_jp(self):
        """Encode JP with and without conditions."""
        assert encode(("jp", 0x1234)) == b"\xc3\x34\x12"
        assert encode(("jp", 0x1234, "nz")) == b"\xc2\x34\x12"
        assert encode(("jp", 0x1234, "c")) == b"\xda\x34\x12"
        assert encode(("jp", 0x1234, "m")) == b"\xfa\x34\x12"

    def test_call_and_ret(self):
        """Encode CALL and RET with conditions."""
        assert encode(("call", 0x0100)) == b"\xcd\x00\x01"
        assert encode(("call", 0x0100, "z")) == b"\xcc\x00\x01"
        assert encode(("ret",)) == b"\xc9"
        assert encode(("ret", "nc")) == b"\xd0"

    def test_jp_forward_label(self):
        """JP to a later label is patched on finish."""
        asm = Z80Assembler(origin=0x0100)
        asm.jp("done", "z")
        asm.nop()
        asm.label("done")
        assert asm.finish().data == b"\xca\x04\x01\x00"

    def test_jr_backward(self):
        """JR Z loops back to a polling label."""
        asm = Z80Assembler()
        asm.label("wait")
        asm.in_a(0x80)
        asm.and_n(0x01)
        asm.jr("wait", "z")
        assert asm.finish().data == b"\xdb\x80\xe6\x01\x28\xfa"

    def test_jr_forward_rejected(self):
        """JR to a label not yet defined is rejected."""
        with pytest.raises(UndefinedLabelError):
            Z80Assembler().jr("later")

    def test_jr_condition_limited(self):
        """JR only takes NZ, Z, NC and C."""
        asm = Z80Assembler()
        asm.label("x")
        with pytest.raises(ValueError):
            asm.jr("x", "p")

    def test_djnz(self):
        """Encode DJNZ back over one instruction."""
        asm = Z80Assembler()
        asm.label("loop")
        asm.nop()
        asm.djnz("loop")
        assert asm.finish().data == b"\x00\x10\xfd"

    def test_stack(self):
        """Encode PUSH and POP; SP cannot be pushed."""
        assert encode(("push", "af"), ("pop", "bc")) == b"\xf5\xc1"
        assert encode(("push", "hl"), ("pop", "de")) == b"\xe5\xd1"
        with pytest.raises(ValueError):
            Z80Assembler().push("sp")

    def test_exchange(self):
        """Encode the exchange instructions."""
        assert encode(("ex_de_hl",), ("ex_sp_hl",), ("exx",)) == b"\xeb\xe3\xd9"

    def test_cpu_and_io(self):
        """Encode CPU control and OUT (n),A."""
        assert encode(("di",), ("ei",), ("halt",), ("nop",)) == b"\xf3\xfb\x76\x00"
        assert encode(("out_a", 0x81)) == b"\xd3\x81"


# =============================================================================
# Data
# =============================================================================

class TestData:
    """Tests for inline data."""

    def test_emit_string_nul_terminated(self):
        """Strings are stored NUL-terminated."""
        assert encode(("emit_string", "Hi")) == b"Hi\x00"

    def test_emit_string_ascii_only(self):
        """Non-ASCII strings are rejected."""
        with pytest.raises(UnicodeEncodeError):
            Z80Assembler().emit_string("café")
