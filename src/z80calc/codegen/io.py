"""
Serial Console I/O (Firmware)
=============================

Polled MC6850 ACIA driver and the VT100 output helpers built on it.

| Routine         | Inputs                  | Notes                              |
|-----------------|-------------------------|------------------------------------|
| acia_init       |                         | master reset, then 8N1 /16         |
| getchar         |                         | A = received byte (blocks)         |
| putchar         | A = byte                | preserves all registers            |
| print_string    | HL -> NUL-terminated    | HL left on the NUL                 |
| print_spaces    | B = count               | B = 0 prints nothing               |
| print_chars     | C = char, B = count     |                                    |
| print_u8        | A = value               | decimal, no leading zeros          |
| print_row_label | A = 1-based row number  | right-aligned in 4, then a space   |
| print_crlf      |                         |                                    |
| cursor_pos      | B = row, C = col        | 1-based, ESC [ row ; col H         |
| clear_screen    |                         | ESC [2J ESC [H                     |
| clear_to_eol    |                         | ESC [K                             |
| cursor_hide     |                         | ESC [?25l                          |
| cursor_show     |                         | ESC [?25h                          |
"""

from z80calc.codegen.base import RoutineEmitter

# Status register bits
RX_READY = 0x01
TX_READY = 0x02

# Control register values
ACIA_RESET = 0x03
ACIA_8N1_DIV16 = 0x15

ESC = 0x1B


class ConsoleIO(RoutineEmitter):
    """Emits the ACIA driver and terminal output routines."""

    name = "io"

    def emit(self) -> None:
        self.emit_acia()
        self.emit_print()
        self.emit_numbers()
        self.emit_terminal()

    def emit_acia(self) -> None:
        asm = self.asm
        status = self.config.acia_status_port
        data = self.config.acia_data_port

        asm.label("acia_init")
        asm.ld_r_n("a", ACIA_RESET)
        asm.out_a(status)
        asm.ld_r_n("a", ACIA_8N1_DIV16)
        asm.out_a(status)
        asm.ret()

        asm.label("getchar")
        asm.in_a(status)
        asm.and_n(RX_READY)
        asm.jr("getchar", "z")
        asm.in_a(data)
        asm.ret()

        asm.label("putchar")
        asm.push("af")
        asm.label("putchar_wait")
        asm.in_a(status)
        asm.and_n(TX_READY)
        asm.jr("putchar_wait", "z")
        asm.pop("af")
        asm.out_a(data)
        asm.ret()

    def emit_print(self) -> None:
        asm = self.asm

        asm.label("print_string")
        asm.ld_r_r("a", "(hl)")
        asm.or_("a")
        asm.ret("z")
        asm.call("putchar")
        asm.inc_rr("hl")
        asm.jr("print_string")

        asm.label("print_spaces")
        asm.ld_r_n("c", ord(" "))
        # falls through
        asm.label("print_chars")
        asm.ld_r_r("a", "b")
        asm.or_("a")
        asm.ret("z")
        asm.label("print_chars_loop")
        asm.ld_r_r("a", "c")
        asm.call("putchar")
        asm.djnz("print_chars_loop")
        asm.ret()

        asm.label("print_crlf")
        asm.ld_r_n("a", ord("\r"))
        asm.call("putchar")
        asm.ld_r_n("a", ord("\n"))
        asm.jp("putchar")

    def emit_numbers(self) -> None:
        asm = self.asm

        # Clobbers B C D E; D = 1 once a digit has been printed
        asm.label("print_u8")
        asm.ld_r_n("d", 0)
        asm.ld_r_n("b", 100)
        asm.call("pu8_digit")
        asm.ld_r_n("b", 10)
        asm.call("pu8_digit")
        asm.add_a_n(ord("0"))
        asm.jp("putchar")

        asm.label("pu8_digit")
        asm.ld_r_n("c", ord("0") - 1)
        asm.label("pu8_count")
        asm.inc("c")
        asm.sub("b")
        asm.jr("pu8_count", "nc")
        asm.add_a("b")
        asm.ld_r_r("e", "a")
        asm.ld_r_r("a", "c")
        asm.cp_n(ord("0"))
        asm.jp("pu8_print", "nz")
        asm.bit(0, "d")
        asm.jp("pu8_skip", "z")
        asm.label("pu8_print")
        asm.ld_r_n("d", 1)
        asm.call("putchar")
        asm.label("pu8_skip")
        asm.ld_r_r("a", "e")
        asm.ret()

        asm.label("print_row_label")
        asm.push("af")
        asm.ld_r_n("b", 3)
        asm.cp_n(10)
        asm.jp("prl_pad", "c")
        asm.dec("b")
        asm.label("prl_pad")
        asm.call("print_spaces")
        asm.pop("af")
        asm.call("print_u8")
        asm.ld_r_n("a", ord(" "))
        asm.jp("putchar")

    def emit_terminal(self) -> None:
        asm = self.asm

        asm.label("cursor_pos")
        asm.ld_r_n("a", ESC)
        asm.call("putchar")
        asm.ld_r_n("a", ord("["))
        asm.call("putchar")
        asm.push("bc")
        asm.ld_r_r("a", "b")
        asm.call("print_u8")
        asm.ld_r_n("a", ord(";"))
        asm.call("putchar")
        asm.pop("bc")
        asm.ld_r_r("a", "c")
        asm.call("print_u8")
        asm.ld_r_n("a", ord("H"))
        asm.jp("putchar")

        for routine, string in (
            ("clear_screen", "vt_clear"),
            ("clear_to_eol", "vt_eol"),
            ("cursor_hide", "vt_hide"),
            ("cursor_show", "vt_show"),
        ):
            asm.label(routine)
            asm.ld_rr_nn("hl", string)
            asm.jp("print_string")
