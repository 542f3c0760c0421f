"""
Z80 Instruction Helpers
=======================

Named emitters for the Z80 instructions the firmware generator uses, built
on ImageBuilder. Each method appends exactly one instruction. Operands that
take an address accept either an int (emitted directly) or a label name
(emitted as an absolute fixup).

Operand Encoding
----------------
8-bit registers and pairs are named with lowercase strings:

| Operand      | Code | Used by                                 |
|--------------|------|-----------------------------------------|
| b c d e h l  | 0-5  | LD r,r'  ALU r  INC/DEC r  CB-prefixed  |
| (hl)         | 6    | same, memory at HL                      |
| a            | 7    | same                                    |
| bc de hl sp  | 0-3  | LD rr,nn  INC/DEC rr  ADD HL,rr         |
| af           | 3    | PUSH/POP (replaces sp)                  |

Conditions: nz z nc c po pe p m (JR accepts only the first four).

Relative Branches
-----------------
jr() and djnz() go through emit_relative(), so their target must already
be defined. Forward branches use jp().
"""

from typing import Optional, Union

from z80calc.emitter.builder import ImageBuilder

Target = Union[int, str]

REGISTERS = {"b": 0, "c": 1, "d": 2, "e": 3, "h": 4, "l": 5, "(hl)": 6, "a": 7}
PAIRS = {"bc": 0, "de": 1, "hl": 2, "sp": 3}
STACK_PAIRS = {"bc": 0, "de": 1, "hl": 2, "af": 3}
CONDITIONS = {"nz": 0, "z": 1, "nc": 2, "c": 3, "po": 4, "pe": 5, "p": 6, "m": 7}

# ALU operation -> (register form base, immediate form opcode)
ALU_OPS = {
    "add": (0x80, 0xC6),
    "adc": (0x88, 0xCE),
    "sub": (0x90, 0xD6),
    "sbc": (0x98, 0xDE),
    "and": (0xA0, 0xE6),
    "xor": (0xA8, 0xEE),
    "or": (0xB0, 0xF6),
    "cp": (0xB8, 0xFE),
}


class Z80Assembler(ImageBuilder):
    """
    ImageBuilder with Z80 instruction helpers.

    Usage:
        asm = Z80Assembler()
        asm.label("loop")
        asm.call("getchar")
        asm.cp_n(ord("q"))
        asm.jr("loop", "nz")
        asm.halt()
    """

    # =========================================================================
    # Operand Helpers
    # =========================================================================

    def _address(self, target: Target) -> None:
        if isinstance(target, str):
            self.fixup(target)
        else:
            self.emit_word(target & 0xFFFF)

    @staticmethod
    def _reg(name: str) -> int:
        try:
            return REGISTERS[name]
        except KeyError:
            raise ValueError(f"not an 8-bit register operand: {name!r}") from None

    @staticmethod
    def _pair(name: str, table: dict = PAIRS) -> int:
        try:
            return table[name]
        except KeyError:
            raise ValueError(f"not a register pair operand: {name!r}") from None

    @staticmethod
    def _cond(name: str, limit: int = 8) -> int:
        code = CONDITIONS.get(name)
        if code is None or code >= limit:
            raise ValueError(f"invalid condition: {name!r}")
        return code

    # =========================================================================
    # Loads
    # =========================================================================

    def ld_r_r(self, dst: str, src: str) -> None:
        """LD dst,src (8-bit registers or (hl))."""
        if dst == src == "(hl)":
            raise ValueError("LD (HL),(HL) is HALT")
        self.emit(0x40 | (self._reg(dst) << 3) | self._reg(src))

    def ld_r_n(self, dst: str, value: int) -> None:
        """LD dst,n"""
        self.emit(0x06 | (self._reg(dst) << 3), value & 0xFF)

    def ld_rr_nn(self, pair: str, value: Target) -> None:
        """LD rr,nn with an immediate value or label address."""
        self.emit(0x01 | (self._pair(pair) << 4))
        self._address(value)

    def ld_a_addr(self, address: Target) -> None:
        """LD A,(nn)"""
        self.emit(0x3A)
        self._address(address)

    def ld_addr_a(self, address: Target) -> None:
        """LD (nn),A"""
        self.emit(0x32)
        self._address(address)

    def ld_rr_addr(self, pair: str, address: Target) -> None:
        """LD rr,(nn)"""
        if pair == "hl":
            self.emit(0x2A)
        else:
            self.emit(0xED, 0x4B | (self._pair(pair) << 4))
        self._address(address)

    def ld_addr_rr(self, address: Target, pair: str) -> None:
        """LD (nn),rr"""
        if pair == "hl":
            self.emit(0x22)
        else:
            self.emit(0xED, 0x43 | (self._pair(pair) << 4))
        self._address(address)

    def ld_a_ind(self, pair: str) -> None:
        """LD A,(BC) or LD A,(DE)"""
        self.emit({"bc": 0x0A, "de": 0x1A}[pair])

    def ld_ind_a(self, pair: str) -> None:
        """LD (BC),A or LD (DE),A"""
        self.emit({"bc": 0x02, "de": 0x12}[pair])

    def ld_sp_hl(self):  self.emit(0xF9)

    # =========================================================================
    # Arithmetic and Logic
    # =========================================================================

    def alu(self, op: str, src: str) -> None:
        """ADD/ADC/SUB/SBC/AND/XOR/OR/CP with a register or (hl)."""
        self.emit(ALU_OPS[op][0] | self._reg(src))

    def alu_n(self, op: str, value: int) -> None:
        """ADD/ADC/SUB/SBC/AND/XOR/OR/CP with an immediate byte."""
        self.emit(ALU_OPS[op][1], value & 0xFF)

    def add_a(self, src: str):   self.alu("add", src)
    def adc_a(self, src: str):   self.alu("adc", src)
    def sub(self, src: str):     self.alu("sub", src)
    def sbc_a(self, src: str):   self.alu("sbc", src)
    def and_(self, src: str):    self.alu("and", src)
    def xor(self, src: str):     self.alu("xor", src)
    def or_(self, src: str):     self.alu("or", src)
    def cp(self, src: str):      self.alu("cp", src)

    def add_a_n(self, n: int):   self.alu_n("add", n)
    def sub_n(self, n: int):     self.alu_n("sub", n)
    def and_n(self, n: int):     self.alu_n("and", n)
    def xor_n(self, n: int):     self.alu_n("xor", n)
    def or_n(self, n: int):      self.alu_n("or", n)
    def cp_n(self, n: int):      self.alu_n("cp", n)

    def inc(self, reg: str):     self.emit(0x04 | (self._reg(reg) << 3))
    def dec(self, reg: str):     self.emit(0x05 | (self._reg(reg) << 3))
    def inc_rr(self, pair: str): self.emit(0x03 | (self._pair(pair) << 4))
    def dec_rr(self, pair: str): self.emit(0x0B | (self._pair(pair) << 4))
    def add_hl(self, pair: str): self.emit(0x09 | (self._pair(pair) << 4))
    def sbc_hl(self, pair: str): self.emit(0xED, 0x42 | (self._pair(pair) << 4))

    def daa(self):       self.emit(0x27)
    def cpl(self):       self.emit(0x2F)
    def neg(self):       self.emit(0xED, 0x44)
    def scf(self):       self.emit(0x37)
    def ccf(self):       self.emit(0x3F)

    # =========================================================================
    # Rotates, Shifts and Bits
    # =========================================================================

    def rlca(self):      self.emit(0x07)
    def rrca(self):      self.emit(0x0F)
    def rla(self):       self.emit(0x17)
    def rra(self):       self.emit(0x1F)
    def rld(self):       self.emit(0xED, 0x6F)
    def rrd(self):       self.emit(0xED, 0x67)

    def sla(self, reg: str): self.emit(0xCB, 0x20 | self._reg(reg))
    def srl(self, reg: str): self.emit(0xCB, 0x38 | self._reg(reg))

    def bit(self, n: int, reg: str) -> None:
        """BIT n,reg"""
        if not 0 <= n <= 7:
            raise ValueError(f"bit number out of range: {n}")
        self.emit(0xCB, 0x40 | (n << 3) | self._reg(reg))

    # =========================================================================
    # Stack and Exchange
    # =========================================================================

    def push(self, pair: str):   self.emit(0xC5 | (self._pair(pair, STACK_PAIRS) << 4))
    def pop(self, pair: str):    self.emit(0xC1 | (self._pair(pair, STACK_PAIRS) << 4))

    def ex_de_hl(self):  self.emit(0xEB)
    def ex_sp_hl(self):  self.emit(0xE3)
    def exx(self):       self.emit(0xD9)

    # =========================================================================
    # Block Operations
    # =========================================================================

    def ldir(self):      self.emit(0xED, 0xB0)
    def lddr(self):      self.emit(0xED, 0xB8)
    def cpir(self):      self.emit(0xED, 0xB1)

    # =========================================================================
    # Control Flow
    # =========================================================================

    def jp(self, target: Target, cond: Optional[str] = None) -> None:
        """JP nn or JP cc,nn"""
        self.emit(0xC3 if cond is None else 0xC2 | (self._cond(cond) << 3))
        self._address(target)

    def jp_hl(self):     self.emit(0xE9)

    def call(self, target: Target, cond: Optional[str] = None) -> None:
        """CALL nn or CALL cc,nn"""
        self.emit(0xCD if cond is None else 0xC4 | (self._cond(cond) << 3))
        self._address(target)

    def ret(self, cond: Optional[str] = None) -> None:
        """RET or RET cc"""
        self.emit(0xC9 if cond is None else 0xC0 | (self._cond(cond) << 3))

    def jr(self, label: str, cond: Optional[str] = None) -> None:
        """JR e or JR cc,e to an already defined label."""
        self.emit(0x18 if cond is None else 0x20 | (self._cond(cond, limit=4) << 3))
        self.emit_relative(label)

    def djnz(self, label: str) -> None:
        """DJNZ e to an already defined label."""
        self.emit(0x10)
        self.emit_relative(label)

    # =========================================================================
    # CPU Control and I/O
    # =========================================================================

    def nop(self):       self.emit(0x00)
    def halt(self):      self.emit(0x76)
    def di(self):        self.emit(0xF3)
    def ei(self):        self.emit(0xFB)

    def in_a(self, port: int) -> None:
        """IN A,(n)"""
        self.emit(0xDB, port & 0xFF)

    def out_a(self, port: int) -> None:
        """OUT (n),A"""
        self.emit(0xD3, port & 0xFF)

    # =========================================================================
    # Data
    # =========================================================================

    def emit_string(self, text: str) -> None:
        """Emit ASCII text followed by a NUL terminator."""
        self.emit(text.encode("ascii"), 0x00)
