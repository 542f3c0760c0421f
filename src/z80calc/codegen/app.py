"""
Startup and Main Loop (Firmware)
================================

Reset entry point, the keyboard dispatch loop and the editor state machine:
navigation, cell editing and the '/' command menu with its argument
prompts. Key handling follows z80calc.sheet.Sheet key for key.

Entry
-----
`start` must be the first routine in the image: the Z80 begins executing
at address 0 after reset.

    start:  set SP, initialise the ACIA, print the welcome text,
            initialise variables, clear every cell, draw the screen,
            then fall into main_loop

Editor State
------------
EDIT_MODE is 0 while navigating and 1 while a cell is being edited. The
command menu and its prompts run to completion inside their handler, so
they need no state of their own.
"""

from z80calc.cells import CellType
from z80calc.codegen.base import RoutineEmitter
from z80calc.codegen.formula import UPPERCASE_MASK
from z80calc.config import GRID_COLS, GRID_ROWS, RECORD_SIZE
from z80calc.sheet import (
    KEY_BACKSPACE,
    KEY_DELETE,
    KEY_ENTER,
    KEY_ESCAPE,
    MAX_COL_WIDTH,
    MIN_COL_WIDTH,
)

ESC = ord(KEY_ESCAPE)
ENTER = ord(KEY_ENTER)
BACKSPACE = ord(KEY_BACKSPACE)
DELETE = ord(KEY_DELETE)

NAVIGATION_KEYS = {
    "h": "move_left",
    "j": "move_down",
    "k": "move_up",
    "l": "move_right",
    "/": "command_mode",
    "!": "do_recalc",
}

ARROW_KEYS = {
    "A": "move_up",
    "B": "move_down",
    "C": "move_right",
    "D": "move_left",
}

COMMANDS = {
    "G": "cmd_goto",
    "C": "cmd_clear",
    "Q": "quit",
    "R": "cmd_copy",
    "W": "cmd_width",
}


class Application(RoutineEmitter):
    """Emits the reset entry point, main loop, editing and commands."""

    name = "app"

    def emit(self) -> None:
        self.emit_start()
        self.emit_main_loop()
        self.emit_movement()
        self.emit_editing()
        self.emit_commands()
        self.emit_prompts()

    # =========================================================================
    # Startup
    # =========================================================================

    def emit_start(self) -> None:
        asm, v = self.asm, self.v
        layout = self.layout

        asm.label("start")
        asm.ld_rr_nn("sp", layout.stack_top)
        asm.call("acia_init")
        asm.ld_rr_nn("hl", "welcome_msg")
        asm.call("print_string")

        asm.xor("a")
        self.store_a(
            v.CURSOR_COL, v.CURSOR_ROW, v.VIEW_TOP, v.VIEW_LEFT,
            v.INPUT_LEN, v.EDIT_MODE, layout.input_buf,
        )
        asm.ld_r_n("a", self.config.default_col_width)
        asm.ld_addr_a(v.COL_WIDTH)
        asm.ld_rr_nn("hl", layout.heap_start)
        asm.ld_addr_rr(v.HEAP_PTR, "hl")
        asm.call("clear_cells")
        asm.call("refresh_display")

    # =========================================================================
    # Main Loop
    # =========================================================================

    def emit_main_loop(self) -> None:
        asm, v = self.asm, self.v

        asm.label("main_loop")
        asm.call("getchar")
        asm.ld_r_r("b", "a")
        asm.ld_a_addr(v.EDIT_MODE)
        asm.or_("a")
        asm.ld_r_r("a", "b")
        asm.jp("edit_key", "nz")

        asm.cp_n(ESC)
        asm.jp("nav_escape", "z")
        asm.cp_n(ord("q"))
        asm.jp("quit", "z")
        asm.cp_n(ENTER)
        asm.jp("start_edit", "z")
        for key in '=-"':
            asm.cp_n(ord(key))
            asm.jp("start_entry", "z")
        asm.cp_n(ord("0"))
        asm.jp("nav_other", "c")
        asm.cp_n(ord("9") + 1)
        asm.jp("start_entry", "c")
        asm.label("nav_other")
        for key, routine in NAVIGATION_KEYS.items():
            asm.cp_n(ord(key))
            asm.jp(routine, "z")
        asm.jp("main_loop")

        # ESC [ A-D
        asm.label("nav_escape")
        asm.call("getchar")
        asm.cp_n(ord("["))
        asm.jp("main_loop", "nz")
        asm.call("getchar")
        for key, routine in ARROW_KEYS.items():
            asm.cp_n(ord(key))
            asm.jp(routine, "z")
        asm.jp("main_loop")

    def emit_movement(self) -> None:
        asm, v = self.asm, self.v

        for routine, variable, step, edge in (
            ("move_up", v.CURSOR_ROW, -1, 0),
            ("move_down", v.CURSOR_ROW, 1, GRID_ROWS - 1),
            ("move_left", v.CURSOR_COL, -1, 0),
            ("move_right", v.CURSOR_COL, 1, GRID_COLS - 1),
        ):
            asm.label(routine)
            asm.ld_a_addr(variable)
            asm.cp_n(edge)
            asm.jp("main_loop", "z")
            if step < 0:
                asm.dec("a")
            else:
                asm.inc("a")
            asm.ld_addr_a(variable)
            asm.jp("move_done")

        asm.label("move_done")
        asm.call("adjust_view")
        asm.call("refresh_display")
        asm.jp("main_loop")

        asm.label("do_recalc")
        asm.call("recalculate")
        asm.call("refresh_display")
        asm.jp("main_loop")

    # =========================================================================
    # Editing
    # =========================================================================

    def emit_editing(self) -> None:
        asm, v = self.asm, self.v
        input_buf = self.layout.input_buf

        # Enter: edit the current cell's source
        asm.label("start_edit")
        asm.call("load_cell_to_input")
        asm.ld_r_n("a", 1)
        asm.ld_addr_a(v.EDIT_MODE)
        asm.call("show_input_line")
        asm.jp("main_loop")

        # A = first key of a new entry
        asm.label("start_entry")
        asm.ld_addr_a(input_buf)
        asm.xor("a")
        asm.ld_addr_a(input_buf + 1)
        asm.inc("a")
        self.store_a(v.INPUT_LEN, v.EDIT_MODE)
        asm.call("show_input_line")
        asm.jp("main_loop")

        asm.label("edit_key")
        asm.cp_n(ESC)
        asm.jp("cancel_edit", "z")
        asm.cp_n(ENTER)
        asm.jp("confirm_edit", "z")
        asm.cp_n(BACKSPACE)
        asm.jp("edit_backspace", "z")
        asm.cp_n(DELETE)
        asm.jp("edit_backspace", "z")
        asm.cp_n(ord(" "))
        asm.jp("main_loop", "c")
        asm.cp_n(DELETE)
        asm.jp("main_loop", "nc")

        asm.ld_r_r("b", "a")
        asm.ld_a_addr(v.INPUT_LEN)
        asm.cp_n(self.config.input_capacity)
        asm.jp("main_loop", "nc")       # buffer full: key dropped
        asm.ld_r_r("e", "a")
        asm.ld_r_n("d", 0)
        asm.ld_rr_nn("hl", input_buf)
        asm.add_hl("de")
        asm.ld_r_r("(hl)", "b")
        asm.inc_rr("hl")
        asm.ld_r_n("(hl)", 0)
        asm.inc("a")
        asm.ld_addr_a(v.INPUT_LEN)
        asm.ld_r_r("a", "b")
        asm.call("putchar")
        asm.jp("main_loop")

        asm.label("edit_backspace")
        asm.ld_a_addr(v.INPUT_LEN)
        asm.or_("a")
        asm.jp("main_loop", "z")
        asm.dec("a")
        asm.ld_addr_a(v.INPUT_LEN)
        asm.ld_r_r("e", "a")
        asm.ld_r_n("d", 0)
        asm.ld_rr_nn("hl", input_buf)
        asm.add_hl("de")
        asm.ld_r_n("(hl)", 0)
        asm.call("show_input_line")
        asm.jp("main_loop")

        asm.label("cancel_edit")
        asm.xor("a")
        self.store_a(v.EDIT_MODE, v.INPUT_LEN, input_buf)
        asm.call("refresh_display")
        asm.jp("main_loop")

        asm.label("confirm_edit")
        asm.xor("a")
        asm.ld_addr_a(v.EDIT_MODE)
        asm.call("commit_input")
        asm.jp("ce_done", "c")          # rejected: nothing changed, no recalc
        asm.call("recalculate")
        asm.label("ce_done")
        asm.xor("a")
        self.store_a(v.INPUT_LEN, input_buf)
        asm.call("refresh_display")
        asm.jp("main_loop")

    # =========================================================================
    # Command Menu
    # =========================================================================

    def emit_commands(self) -> None:
        asm, v = self.asm, self.v

        asm.label("command_mode")
        asm.ld_rr_nn("hl", "cmd_help_str")
        asm.call("show_prompt")
        asm.call("getchar")
        asm.cp_n(ord("-"))
        asm.jp("cmd_fill", "z")
        asm.and_n(UPPERCASE_MASK)
        for key, routine in COMMANDS.items():
            asm.cp_n(ord(key))
            asm.jp(routine, "z")
        asm.label("cmd_done")
        asm.call("refresh_display")
        asm.jp("main_loop")

        asm.label("cmd_clear")
        asm.call("cur_cell_addr")
        asm.ld_r_n("(hl)", CellType.EMPTY)
        asm.inc_rr("hl")
        asm.ld_r_n("b", RECORD_SIZE - 1)
        asm.call("zero_n")
        asm.jp("cmd_done")

        asm.label("cmd_fill")
        asm.ld_rr_nn("hl", "fill_prompt")
        asm.call("show_prompt")
        asm.call("getchar")
        asm.cp_n(ord(" "))
        asm.jp("cmd_done", "c")
        asm.cp_n(DELETE)
        asm.jp("cmd_done", "nc")
        asm.push("af")
        asm.call("cur_cell_addr")
        asm.pop("af")
        asm.ld_r_n("(hl)", CellType.REPEAT)
        asm.inc_rr("hl")
        asm.ld_r_r("(hl)", "a")
        asm.inc_rr("hl")
        asm.ld_r_r("(hl)", "a")
        asm.inc_rr("hl")
        asm.ld_r_n("b", RECORD_SIZE - 3)
        asm.call("zero_n")
        asm.jp("cmd_done")

        asm.label("cmd_goto")
        asm.ld_rr_nn("hl", "goto_prompt")
        asm.call("show_prompt")
        asm.call("read_cell_arg")
        asm.jp("cmd_done", "c")
        asm.call("goto_arg")
        asm.jp("cmd_done")

        # Block copy of the record; formula and label cells share the heap entry
        asm.label("cmd_copy")
        asm.ld_rr_nn("hl", "copy_prompt")
        asm.call("show_prompt")
        asm.call("read_cell_arg")
        asm.jp("cmd_done", "c")
        asm.call("cur_cell_addr")
        asm.push("hl")
        asm.ld_a_addr(v.TEMP1)
        asm.ld_r_r("b", "a")
        asm.ld_a_addr(v.TEMP1 + 1)
        asm.ld_r_r("c", "a")
        asm.call("get_cell_addr")
        asm.ex_de_hl()
        asm.pop("hl")
        asm.ld_rr_nn("bc", RECORD_SIZE)
        asm.ldir()
        asm.call("goto_arg")
        asm.jp("cmd_done")

        asm.label("cmd_width")
        asm.ld_rr_nn("hl", "width_prompt")
        asm.call("show_prompt")
        asm.call("read_number")
        asm.jp("cmd_done", "c")
        asm.ld_r_r("a", "c")
        asm.cp_n(MIN_COL_WIDTH)
        asm.jp("cmd_done", "c")
        asm.cp_n(MAX_COL_WIDTH + 1)
        asm.jp("cmd_done", "nc")
        asm.ld_addr_a(v.COL_WIDTH)
        asm.jp("cmd_done")

        asm.label("goto_arg")
        asm.ld_a_addr(v.TEMP1)
        asm.ld_addr_a(v.CURSOR_COL)
        asm.ld_a_addr(v.TEMP1 + 1)
        asm.ld_addr_a(v.CURSOR_ROW)
        asm.jp("adjust_view")

        asm.label("quit")
        asm.call("cursor_show")
        asm.ld_rr_nn("hl", "quit_msg")
        asm.call("print_string")
        asm.di()
        asm.label("quit_halt")
        asm.halt()
        asm.jr("quit_halt")

    # =========================================================================
    # Prompt Arguments
    # =========================================================================

    def emit_prompts(self) -> None:
        asm, v = self.asm, self.v

        # TEMP1 = column, TEMP1+1 = row (0-based); C when cancelled
        asm.label("read_cell_arg")
        asm.call("getchar")
        asm.ld_r_r("b", "a")
        asm.and_n(UPPERCASE_MASK)
        asm.sub_n(ord("A"))
        asm.ret("c")
        asm.cp_n(GRID_COLS)
        asm.ccf()
        asm.ret("c")
        asm.ld_addr_a(v.TEMP1)
        asm.ld_r_r("a", "b")
        asm.call("putchar")
        asm.call("read_number")
        asm.ret("c")
        asm.ld_r_r("a", "c")
        asm.or_("a")
        asm.scf()
        asm.ret("z")
        asm.cp_n(GRID_ROWS + 1)
        asm.ccf()
        asm.ret("c")
        asm.dec("a")
        asm.ld_addr_a(v.TEMP1 + 1)
        asm.or_("a")
        asm.ret()

        # One or two digits then Enter; C = value, carry when cancelled
        asm.label("read_number")
        asm.call("read_digit")
        asm.ret("c")
        asm.ld_r_r("c", "a")
        asm.call("getchar")
        asm.cp_n(ENTER)
        asm.ret("z")
        asm.ld_r_r("b", "a")
        asm.sub_n(ord("0"))
        asm.ret("c")
        asm.cp_n(10)
        asm.ccf()
        asm.ret("c")
        asm.ld_r_r("d", "a")
        asm.ld_r_r("a", "b")
        asm.call("putchar")
        asm.ld_r_r("a", "c")            # C = C * 10 + D
        asm.add_a("a")
        asm.ld_r_r("c", "a")
        asm.add_a("a")
        asm.add_a("a")
        asm.add_a("c")
        asm.add_a("d")
        asm.ld_r_r("c", "a")
        asm.call("getchar")
        asm.cp_n(ENTER)
        asm.ret("z")
        asm.scf()
        asm.ret()

        # A = digit value of the next key (echoed), C if it is not a digit
        asm.label("read_digit")
        asm.call("getchar")
        asm.ld_r_r("b", "a")
        asm.sub_n(ord("0"))
        asm.ret("c")
        asm.cp_n(10)
        asm.ccf()
        asm.ret("c")
        asm.push("af")
        asm.ld_r_r("a", "b")
        asm.call("putchar")
        asm.pop("af")
        asm.ret()
