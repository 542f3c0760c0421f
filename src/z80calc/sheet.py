"""
Spreadsheet Editor State Machine
================================

Keystroke-level model of the editor the firmware runs: cursor movement,
cell editing, the '/' command menu and cell rendering. It drives the cell
store, the formula evaluator and recalculation exactly as the generated
main loop does, so host-side tests can exercise whole editing sessions.

Modes
-----
    NAVIGATE  h/j/k/l or arrows move, Enter edits, = - 0-9 " start input,
              / opens the command menu, ! recalculates, q quits
    EDIT      printable characters append, BS/DEL delete, ESC cancels,
              Enter commits and recalculates
    COMMAND   one key selects G C - R W Q; anything else returns
    PROMPT    collects the argument of G, -, R or W

Screen Layout (80x24 VT100)
---------------------------
    row 1   title
    row 2   key help
    row 4   column headers
    row 5   first of 10 data rows
    row 15  status line (current cell and its contents)
    row 16  input / prompt line
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from z80calc import bcd
from z80calc.bcd import is_digit
from z80calc.cells import CellStore, CellType, cell_name
from z80calc.config import GRID_COLS, GRID_ROWS, TargetConfig
from z80calc.errors import (
    BCDArithmeticError,
    CapacityError,
    FormulaParseError,
    InputTooLongError,
)
from z80calc.formula import FormulaEvaluator, is_letter, recalculate
from z80calc.layout import MemoryLayout

logger = logging.getLogger(__name__)


# =============================================================================
# Keys and Screen Constants
# =============================================================================

KEY_BACKSPACE = "\x08"
KEY_ENTER = "\r"
KEY_ESCAPE = "\x1b"
KEY_DELETE = "\x7f"

VISIBLE_ROWS = 10
VISIBLE_COLS = 8
ROW_LABEL_WIDTH = 5

MIN_COL_WIDTH = 5
MAX_COL_WIDTH = 15

TITLE = "z80calc v0.1 - Z80 Spreadsheet"
WELCOME = "z80calc v0.1\r\n"
HELP_LINE = "Arrows:move  Enter:edit  /:cmd  !:recalc  q:quit"
COMMAND_HELP = "/G:go /C:clr /R:cpy /-:fil /W:wid /Q:q"
GOODBYE = "\r\nGoodbye!\r\n"
ERROR_TEXT = "#ERR"


class Mode(Enum):
    NAVIGATE = "navigate"
    EDIT = "edit"
    COMMAND = "command"
    PROMPT = "prompt"


class Prompt(Enum):
    """Argument prompts of the command menu, with their prompt text."""
    GOTO = "Goto cell (e.g. B5): "
    FILL = "Fill char: "
    COPY = "Copy to (e.g. B5): "
    WIDTH = "Width (5-15): "


# =============================================================================
# Editor State
# =============================================================================

@dataclass
class Cursor:
    col: int = 0
    row: int = 0

    @property
    def name(self) -> str:
        return cell_name(self.col, self.row)


@dataclass
class View:
    """Top-left cell of the visible window."""
    top: int = 0
    left: int = 0


class Sheet:
    """
    Editor state plus the cell store it edits.

    Usage:
        sheet = Sheet()
        sheet.type_keys("12.5\\r")      # A1 = 12.50
        sheet.type_keys("j=A1*2\\r")    # A2 = 25.00
        sheet.display_cell(0, 1)       # '  25.00'
    """

    def __init__(self, config: Optional[TargetConfig] = None):
        self.config = config or TargetConfig()
        self.layout = MemoryLayout.from_config(self.config)
        self.store = CellStore(self.layout)
        self.evaluator = FormulaEvaluator(self.store)

        self.cursor = Cursor()
        self.view = View()
        self.mode = Mode.NAVIGATE
        self.prompt: Optional[Prompt] = None
        self.input = ""
        self.prompt_input = ""
        self.col_width = self.config.default_col_width
        self.running = True
        self.last_error: Optional[Exception] = None
        self._escape = 0

    @property
    def input_capacity(self) -> int:
        return self.config.input_capacity

    # =========================================================================
    # Key Dispatch
    # =========================================================================

    def type_keys(self, keys: str) -> None:
        """Feed a string of keystrokes, one character at a time."""
        for key in keys:
            self.press(key)

    def press(self, key: str) -> None:
        """Handle one keystroke in the current mode."""
        if not self.running:
            return
        if self.mode == Mode.EDIT:
            self._edit_key(key)
        elif self.mode == Mode.COMMAND:
            self._command_key(key)
        elif self.mode == Mode.PROMPT:
            self._prompt_key(key)
        else:
            self._navigate_key(key)

    def _navigate_key(self, key: str) -> None:
        # ESC [ A..D arrow sequences
        if self._escape == 1:
            self._escape = 2 if key == "[" else 0
            return
        if self._escape == 2:
            self._escape = 0
            moves = {"A": (0, -1), "B": (0, 1), "C": (1, 0), "D": (-1, 0)}
            if key in moves:
                self.move(*moves[key])
            return

        if key == KEY_ESCAPE:
            self._escape = 1
        elif key == "q":
            self.quit()
        elif key == KEY_ENTER:
            self.start_edit()
        elif key in "=-\"" or is_digit(key):
            self.start_edit(key)
        elif key in "hjkl":
            self.move(*{"h": (-1, 0), "j": (0, 1), "k": (0, -1), "l": (1, 0)}[key])
        elif key == "/":
            self.mode = Mode.COMMAND
        elif key == "!":
            self.recalculate()

    # =========================================================================
    # Navigation
    # =========================================================================

    def move(self, dcol: int, drow: int) -> None:
        """Move the cursor, stopping at the grid edges."""
        self.cursor.col = min(max(self.cursor.col + dcol, 0), GRID_COLS - 1)
        self.cursor.row = min(max(self.cursor.row + drow, 0), GRID_ROWS - 1)
        self.adjust_view()

    def goto(self, col: int, row: int) -> None:
        self.cursor.col = col
        self.cursor.row = row
        self.adjust_view()

    def adjust_view(self) -> None:
        """Scroll the window so the cursor cell is visible."""
        if self.cursor.row < self.view.top:
            self.view.top = self.cursor.row
        elif self.cursor.row >= self.view.top + VISIBLE_ROWS:
            self.view.top = self.cursor.row - VISIBLE_ROWS + 1
        if self.cursor.col < self.view.left:
            self.view.left = self.cursor.col
        elif self.cursor.col >= self.view.left + VISIBLE_COLS:
            self.view.left = self.cursor.col - VISIBLE_COLS + 1

    def quit(self) -> None:
        self.running = False

    # =========================================================================
    # Editing
    # =========================================================================

    def start_edit(self, first_key: Optional[str] = None) -> None:
        """
        Enter edit mode.

        With a first key the buffer starts with it; without one the current
        cell's source text is loaded for editing.
        """
        self.mode = Mode.EDIT
        self.input = first_key if first_key is not None else self.cell_source(
            self.cursor.col, self.cursor.row
        )

    def _edit_key(self, key: str) -> None:
        if key == KEY_ESCAPE:
            self.mode = Mode.NAVIGATE
            self.input = ""
        elif key == KEY_ENTER:
            self.mode = Mode.NAVIGATE
            text, self.input = self.input, ""
            try:
                self.commit_input(text)
            except CapacityError as e:
                logger.debug(f"Edit of {self.cursor.name} rejected: {e}")
                self.last_error = e
                return
            self.recalculate()
        elif key in (KEY_BACKSPACE, KEY_DELETE):
            self.input = self.input[:-1]
        elif " " <= key < KEY_DELETE:
            if len(self.input) >= self.input_capacity:
                self.last_error = InputTooLongError(len(self.input) + 1, self.input_capacity)
                return
            self.input += key

    def commit_input(self, text: str) -> None:
        """
        Store edit text in the current cell.

        '=...' is a formula, '"...' a label, anything else a number. A
        formula or number that fails to parse or evaluate turns the cell
        into an Error cell, as does text with characters outside printable
        ASCII. Empty text leaves the cell alone.

        Raises:
            InputTooLongError: If text exceeds the input buffer
            HeapFullError: If a formula or label does not fit the heap
        """
        col, row = self.cursor.col, self.cursor.row
        if not text:
            return
        if len(text) > self.input_capacity:
            raise InputTooLongError(len(text), self.input_capacity)

        # Only printable ASCII can be typed on the terminal or stored on the heap
        for position, char in enumerate(text):
            if not " " <= char < KEY_DELETE:
                self.last_error = FormulaParseError(
                    f"character {char!r} is not printable ASCII", text, position
                )
                self.store.write_error(col, row)
                return

        if text.startswith('"'):
            self.store.write_label(col, row, text)
            return

        if text.startswith("="):
            self.store.heap.check(self.store.heap.entry_size(text, formula=True))
            try:
                sign, magnitude = self.evaluator.evaluate(text)
            except (FormulaParseError, BCDArithmeticError) as e:
                logger.debug(f"Formula in {cell_name(col, row)} failed: {e}")
                self.last_error = e
                self.store.write_error(col, row)
                return
            self.store.write_formula(col, row, text, sign, magnitude)
            return

        try:
            sign, magnitude = bcd.ascii_to_bcd(text)
        except FormulaParseError as e:
            self.last_error = e
            self.store.write_error(col, row)
            return
        self.store.write_number(col, row, sign, magnitude)

    def recalculate(self) -> int:
        return recalculate(self.store)

    # =========================================================================
    # Command Menu
    # =========================================================================

    def _command_key(self, key: str) -> None:
        self.mode = Mode.NAVIGATE
        command = key.upper()
        if command == "C":
            self.store.clear(self.cursor.col, self.cursor.row)
        elif command == "Q":
            self.quit()
        elif command in ("G", "-", "R", "W"):
            self.mode = Mode.PROMPT
            self.prompt = {
                "G": Prompt.GOTO,
                "-": Prompt.FILL,
                "R": Prompt.COPY,
                "W": Prompt.WIDTH,
            }[command]
            self.prompt_input = ""

    def _prompt_key(self, key: str) -> None:
        if self.prompt == Prompt.FILL:
            if " " <= key < KEY_DELETE:
                self.store.write_repeat(self.cursor.col, self.cursor.row, key)
            self._end_prompt()
            return

        if key != KEY_ENTER:
            if self._prompt_accepts(key):
                self.prompt_input += key
            else:
                self._end_prompt()
            return

        argument = self.prompt_input
        prompt = self.prompt
        self._end_prompt()
        if prompt == Prompt.WIDTH:
            if argument and MIN_COL_WIDTH <= int(argument) <= MAX_COL_WIDTH:
                self.col_width = int(argument)
            return

        target = parse_prompt_cell(argument)
        if target is None:
            return
        if prompt == Prompt.COPY:
            self.store.copy((self.cursor.col, self.cursor.row), target)
        self.goto(*target)

    def _prompt_accepts(self, key: str) -> bool:
        """Whether `key` can extend the current prompt argument."""
        text = self.prompt_input
        if self.prompt == Prompt.WIDTH:
            return is_digit(key) and len(text) < 2
        if not text:
            return is_letter(key) and "A" <= key.upper() <= "P"
        return is_digit(key) and len(text) < 3

    def _end_prompt(self) -> None:
        self.mode = Mode.NAVIGATE
        self.prompt = None
        self.prompt_input = ""

    # =========================================================================
    # Rendering
    # =========================================================================

    def cell_source(self, col: int, row: int) -> str:
        """Text loaded into the edit buffer when a cell is edited."""
        record = self.store.read(col, row)
        if record.type == CellType.NUMBER:
            return bcd.format_value(record.sign, record.magnitude)
        if record.type in (CellType.FORMULA, CellType.LABEL):
            return self.store.heap.read_text(record.pointer)
        return ""

    def display_cell(self, col: int, row: int, width: Optional[int] = None) -> str:
        """
        Render a cell's contents into a field of width - 2 characters.

        Numbers and formula results are right-aligned (all '#' when they do
        not fit), labels left-aligned and truncated, fills repeat their
        character across the field.
        """
        size = (width or self.col_width) - 2
        record = self.store.read(col, row)

        if record.type in (CellType.NUMBER, CellType.FORMULA):
            text = bcd.format_value(*self.store.value(col, row))
            return text.rjust(size) if len(text) <= size else "#" * size
        if record.type == CellType.ERROR:
            return ERROR_TEXT[:size].rjust(size)
        if record.type == CellType.REPEAT:
            return chr(record.fill) * size
        if record.type == CellType.LABEL:
            text = self.store.heap.read_text(record.pointer)[1:]
            return text[:size].ljust(size)
        return " " * size

    def render_row(self, row: int) -> str:
        """One data line: right-aligned row number, then the visible cells."""
        cells = []
        for col in range(self.view.left, min(self.view.left + VISIBLE_COLS, GRID_COLS)):
            current = (col, row) == (self.cursor.col, self.cursor.row)
            left, right = ("[", "]") if current else (" ", " ")
            cells.append(f"{left}{self.display_cell(col, row)}{right}")
        return f"{row + 1:>{ROW_LABEL_WIDTH - 1}} " + "".join(cells)

    def render_header(self) -> str:
        """Column letters, each centred in its field (extra space goes right)."""
        columns = range(self.view.left, min(self.view.left + VISIBLE_COLS, GRID_COLS))
        left = (self.col_width - 1) // 2
        right = self.col_width - 1 - left
        return " " * ROW_LABEL_WIDTH + "".join(
            " " * left + chr(ord("A") + col) + " " * right for col in columns
        )

    def render(self) -> list[str]:
        """Title, help, blank, header, 10 data rows and the status line."""
        rows = range(self.view.top, min(self.view.top + VISIBLE_ROWS, GRID_ROWS))
        return [
            TITLE,
            HELP_LINE,
            "",
            self.render_header(),
            *(self.render_row(row) for row in rows),
            self.status_line(),
        ]

    def status_line(self) -> str:
        source = self.cell_source(self.cursor.col, self.cursor.row)
        return f"{self.cursor.name}: {source}"


def parse_prompt_cell(text: str) -> Optional[tuple[int, int]]:
    """Cell typed at a Goto/Copy prompt, or None if it is not on the grid."""
    if len(text) < 2:
        return None
    col = ord(text[0].upper()) - ord("A")
    row = int(text[1:]) - 1
    if not (0 <= col < GRID_COLS and 0 <= row < GRID_ROWS):
        return None
    return col, row
