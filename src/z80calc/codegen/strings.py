"""
ROM Strings and Constants
=========================

NUL-terminated text and constant data referenced by label from the other
sections. The text comes from z80calc.sheet so the firmware and the host
model show the same screens.
"""

from z80calc import bcd
from z80calc.codegen.base import RoutineEmitter
from z80calc.formula import RangeFunction
from z80calc.sheet import (
    COMMAND_HELP,
    ERROR_TEXT,
    GOODBYE,
    HELP_LINE,
    TITLE,
    WELCOME,
    Prompt,
)

STRINGS = {
    "welcome_msg": WELCOME,
    "title_str": TITLE,
    "help_str": HELP_LINE,
    "cmd_help_str": COMMAND_HELP,
    "goto_prompt": Prompt.GOTO.value,
    "fill_prompt": Prompt.FILL.value,
    "copy_prompt": Prompt.COPY.value,
    "width_prompt": Prompt.WIDTH.value,
    "quit_msg": GOODBYE,
    "error_str": ERROR_TEXT,
    "input_prefix": "> ",
    "status_sep": ": ",
    "vt_clear": "\x1b[2J\x1b[H",
    "vt_eol": "\x1b[K",
    "vt_hide": "\x1b[?25l",
    "vt_show": "\x1b[?25h",
}


def keyword_label(function: RangeFunction) -> str:
    return f"kw_{function.name.lower()}"


class StringTable(RoutineEmitter):
    """Emits every string, the range keywords and the BCD constant 1.00."""

    name = "strings"

    def emit(self) -> None:
        asm = self.asm
        for label, text in STRINGS.items():
            asm.label(label)
            asm.emit_string(text)

        for function in RangeFunction:
            asm.label(keyword_label(function))
            asm.emit_string(function.name)

        # 1.00 for counting; bcd_add_n walks up from the least significant byte
        asm.label("bcd_one")
        asm.emit(bcd.ONE[:-1])
        asm.label("bcd_one_lsb")
        asm.emit(bcd.ONE[-1])
