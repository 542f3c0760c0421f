"""
Screen Rendering (Firmware)
===========================

Draws the sheet the way z80calc.sheet.Sheet.render() describes it: title,
help line, column headers, ten data rows of eight cells and the status line,
then the input/prompt line below on demand.

| Routine          | Inputs           | Notes                                 |
|------------------|------------------|---------------------------------------|
| refresh_display  |                  | full redraw                           |
| print_cell       | B = col, C = row | one field of COL_WIDTH - 2 characters |
| print_field_text | HL, B = width    | left-aligned, truncated, padded       |
| print_status     |                  | "A1: source"                          |
| show_input_line  |                  | "> " and the edit buffer on row 16    |
| show_prompt      | HL -> prompt     | prompt text on row 16                 |
| adjust_view      |                  | scroll so the cursor cell is visible  |
"""

from z80calc.cells import CellType
from z80calc.codegen.base import RoutineEmitter
from z80calc.codegen.cells import VALUE_SIZE
from z80calc.sheet import ERROR_TEXT, ROW_LABEL_WIDTH, VISIBLE_COLS, VISIBLE_ROWS

INPUT_ROW = 16


class DisplayRoutines(RoutineEmitter):
    """Emits the screen refresh and its helpers."""

    name = "display"

    def emit(self) -> None:
        self.emit_refresh()
        self.emit_print_cell()
        self.emit_status()
        self.emit_view()

    # =========================================================================
    # Full Refresh
    # =========================================================================

    def emit_refresh(self) -> None:
        asm, v = self.asm, self.v
        cols, rows = v.TEMP1, v.TEMP1 + 1

        asm.label("refresh_display")
        asm.call("cursor_hide")
        asm.call("clear_screen")
        for text in ("title_str", "help_str"):
            asm.ld_rr_nn("hl", text)
            asm.call("print_string")
            asm.call("print_crlf")
        asm.call("print_crlf")

        # Column letters centred in each field, spare space on the right
        asm.ld_r_n("b", ROW_LABEL_WIDTH)
        asm.call("print_spaces")
        asm.ld_a_addr(v.VIEW_LEFT)
        asm.ld_addr_a(v.DISP_COL)
        asm.ld_r_n("a", VISIBLE_COLS)
        asm.ld_addr_a(cols)
        asm.label("rd_header")
        asm.ld_a_addr(v.COL_WIDTH)
        asm.dec("a")
        asm.srl("a")
        asm.ld_r_r("b", "a")
        asm.call("print_spaces")
        asm.ld_a_addr(v.DISP_COL)
        asm.add_a_n(ord("A"))
        asm.call("putchar")
        asm.ld_a_addr(v.COL_WIDTH)
        asm.dec("a")
        asm.ld_r_r("b", "a")
        asm.srl("a")
        asm.ld_r_r("c", "a")
        asm.ld_r_r("a", "b")
        asm.sub("c")
        asm.ld_r_r("b", "a")
        asm.call("print_spaces")
        asm.ld_rr_nn("hl", v.DISP_COL)
        asm.inc("(hl)")
        asm.ld_rr_nn("hl", cols)
        asm.dec("(hl)")
        asm.jp("rd_header", "nz")
        asm.call("print_crlf")

        # Data rows
        asm.ld_a_addr(v.VIEW_TOP)
        asm.ld_addr_a(v.DISP_ROW)
        asm.ld_r_n("a", VISIBLE_ROWS)
        asm.ld_addr_a(rows)
        asm.label("rd_row")
        asm.ld_a_addr(v.DISP_ROW)
        asm.inc("a")
        asm.call("print_row_label")
        asm.ld_a_addr(v.VIEW_LEFT)
        asm.ld_addr_a(v.DISP_COL)
        asm.ld_r_n("a", VISIBLE_COLS)
        asm.ld_addr_a(cols)

        asm.label("rd_cell")
        asm.call("is_cursor_cell")
        asm.ld_r_n("a", ord(" "))
        asm.jp("rd_open", "nz")
        asm.ld_r_n("a", ord("["))
        asm.label("rd_open")
        asm.call("putchar")
        asm.ld_a_addr(v.DISP_COL)
        asm.ld_r_r("b", "a")
        asm.ld_a_addr(v.DISP_ROW)
        asm.ld_r_r("c", "a")
        asm.call("print_cell")
        asm.call("is_cursor_cell")
        asm.ld_r_n("a", ord(" "))
        asm.jp("rd_close", "nz")
        asm.ld_r_n("a", ord("]"))
        asm.label("rd_close")
        asm.call("putchar")
        asm.ld_rr_nn("hl", v.DISP_COL)
        asm.inc("(hl)")
        asm.ld_rr_nn("hl", cols)
        asm.dec("(hl)")
        asm.jp("rd_cell", "nz")

        asm.call("print_crlf")
        asm.ld_rr_nn("hl", v.DISP_ROW)
        asm.inc("(hl)")
        asm.ld_rr_nn("hl", rows)
        asm.dec("(hl)")
        asm.jp("rd_row", "nz")

        asm.call("print_status")
        asm.jp("cursor_show")

        # Z when (DISP_COL, DISP_ROW) is the cursor cell
        asm.label("is_cursor_cell")
        for current, shown in ((v.CURSOR_COL, v.DISP_COL), (v.CURSOR_ROW, v.DISP_ROW)):
            asm.ld_a_addr(current)
            asm.ld_r_r("b", "a")
            asm.ld_a_addr(shown)
            asm.cp("b")
            asm.ret("nz")
        asm.ret()

    # =========================================================================
    # Cells
    # =========================================================================

    def emit_print_cell(self) -> None:
        asm, v = self.asm, self.v

        asm.label("field_width")
        asm.ld_a_addr(v.COL_WIDTH)
        asm.sub_n(2)
        asm.ret()

        asm.label("print_cell")
        asm.call("get_cell_addr")
        asm.ld_r_r("a", "(hl)")
        for cell_type in (CellType.NUMBER, CellType.FORMULA, CellType.ERROR,
                          CellType.REPEAT, CellType.LABEL):
            asm.cp_n(cell_type)
            asm.jp(f"pc_{cell_type.name.lower()}", "z")
        asm.call("field_width")
        asm.ld_r_r("b", "a")
        asm.jp("print_spaces")

        asm.label("pc_formula")
        self.heap_pointer_from_record()
        self.skip_string()
        asm.dec_rr("hl")
        # falls through with HL one byte before the cached result

        asm.label("pc_number")
        asm.inc_rr("hl")
        asm.ld_rr_nn("de", v.ACC_SIGN)
        asm.ld_rr_nn("bc", VALUE_SIZE)
        asm.ldir()
        asm.call("format_value")
        asm.call("field_width")
        asm.cp("b")
        asm.jp("pc_hashes", "c")        # too wide for the field
        asm.sub("b")
        asm.ld_r_r("b", "a")
        asm.call("print_spaces")
        asm.ld_rr_nn("hl", v.TEXT_BUF)
        asm.jp("print_string")
        asm.label("pc_hashes")
        asm.ld_r_r("b", "a")
        asm.ld_r_n("c", ord("#"))
        asm.jp("print_chars")

        asm.label("pc_error")
        asm.call("field_width")
        asm.sub_n(len(ERROR_TEXT))
        asm.jp("pc_error_clip", "c")
        asm.ld_r_r("b", "a")
        asm.call("print_spaces")
        asm.ld_rr_nn("hl", "error_str")
        asm.jp("print_string")
        asm.label("pc_error_clip")
        asm.call("field_width")
        asm.ld_r_r("b", "a")
        asm.ld_rr_nn("hl", "error_str")
        asm.jp("print_field_text")

        asm.label("pc_repeat")
        asm.inc_rr("hl")
        asm.ld_r_r("c", "(hl)")
        asm.call("field_width")
        asm.ld_r_r("b", "a")
        asm.jp("print_chars")

        asm.label("pc_label")
        self.heap_pointer_from_record()
        asm.inc_rr("hl")                # skip the leading '"'
        asm.call("field_width")
        asm.ld_r_r("b", "a")

        asm.label("print_field_text")
        asm.ld_r_r("a", "(hl)")
        asm.or_("a")
        asm.jp("print_spaces", "z")
        asm.call("putchar")
        asm.inc_rr("hl")
        asm.djnz("print_field_text")
        asm.ret()

    # =========================================================================
    # Status and Input Lines
    # =========================================================================

    def emit_status(self) -> None:
        asm, v = self.asm, self.v

        asm.label("print_status")
        asm.ld_a_addr(v.CURSOR_COL)
        asm.add_a_n(ord("A"))
        asm.call("putchar")
        asm.ld_a_addr(v.CURSOR_ROW)
        asm.inc("a")
        asm.call("print_u8")
        asm.ld_rr_nn("hl", "status_sep")
        asm.call("print_string")
        asm.call("cur_cell_addr")
        asm.ld_r_r("a", "(hl)")
        asm.cp_n(CellType.NUMBER)
        asm.jp("ps_number", "z")
        asm.cp_n(CellType.FORMULA)
        asm.jp("ps_text", "z")
        asm.cp_n(CellType.LABEL)
        asm.jp("ps_text", "z")
        asm.jp("clear_to_eol")

        asm.label("ps_number")
        asm.inc_rr("hl")
        asm.ld_rr_nn("de", v.ACC_SIGN)
        asm.ld_rr_nn("bc", VALUE_SIZE)
        asm.ldir()
        asm.call("format_value")
        asm.ld_rr_nn("hl", v.TEXT_BUF)
        asm.jp("ps_print")

        asm.label("ps_text")
        self.heap_pointer_from_record()
        asm.label("ps_print")
        asm.call("print_string")
        asm.jp("clear_to_eol")

        asm.label("show_input_line")
        asm.ld_rr_nn("hl", "input_prefix")
        asm.call("show_prompt")
        asm.ld_rr_nn("hl", self.layout.input_buf)
        asm.call("print_string")
        asm.jp("clear_to_eol")

        asm.label("show_prompt")
        asm.push("hl")
        asm.ld_r_n("b", INPUT_ROW)
        asm.ld_r_n("c", 1)
        asm.call("cursor_pos")
        asm.pop("hl")
        asm.call("print_string")
        asm.jp("clear_to_eol")

    # =========================================================================
    # Scrolling
    # =========================================================================

    def emit_view(self) -> None:
        asm, v = self.asm, self.v

        asm.label("adjust_view")
        for cursor, origin, visible, axis in (
            (v.CURSOR_ROW, v.VIEW_TOP, VISIBLE_ROWS, "row"),
            (v.CURSOR_COL, v.VIEW_LEFT, VISIBLE_COLS, "col"),
        ):
            asm.ld_a_addr(origin)
            asm.ld_r_r("b", "a")
            asm.ld_a_addr(cursor)
            asm.cp("b")
            asm.jp(f"av_{axis}_after", "nc")
            asm.ld_addr_a(origin)       # cursor above/left of the window
            asm.jp(f"av_{axis}_done")
            asm.label(f"av_{axis}_after")
            asm.ld_r_r("a", "b")
            asm.add_a_n(visible)
            asm.ld_r_r("b", "a")
            asm.ld_a_addr(cursor)
            asm.cp("b")
            asm.jp(f"av_{axis}_done", "c")
            asm.sub_n(visible - 1)
            asm.ld_addr_a(origin)
            asm.label(f"av_{axis}_done")
        asm.ret()
