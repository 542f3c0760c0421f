"""
Formula Evaluation
==================

Single-pass, left-to-right evaluator for cell formulas, and the global
recalculation scan.

Formula Syntax
--------------
    ```
    formula   := '=' expr
    expr      := operand (op operand)*
    op        := '+' | '-' | '*' | '/'
    operand   := number | cellref | rangefunc
    number    := ['-'] digits ['.' digits]
    cellref   := ['$'] letter ['$'] digit [digit]       (A..P, 1..64)
    rangefunc := '@' name '(' cellref ':' cellref ')'   (SUM AVG MIN MAX COUNT)
    ```

There is no operator precedence: `=2+3*4` is `(2+3)*4 = 20`. Whitespace is
not accepted anywhere. The `$` markers are accepted and ignored.

Any error aborts the whole evaluation with a SheetError subclass; nothing
is written to the store by the evaluator itself.
"""

from enum import IntEnum
from string import ascii_letters
from typing import Optional
import logging

from z80calc import bcd
from z80calc.bcd import SIGN_POSITIVE, ZERO, is_digit
from z80calc.cells import CellStore, cell_name
from z80calc.config import GRID_COLS, GRID_ROWS
from z80calc.errors import (
    CellReferenceError,
    MalformedNumberError,
    RangeSyntaxError,
    SheetError,
    UnknownOperatorError,
)

logger = logging.getLogger(__name__)

Value = tuple[int, bytes]


class RangeFunction(IntEnum):
    """Range functions, numbered as the firmware's FUNC_TYPE variable."""
    SUM = 0
    AVG = 1
    MIN = 2
    MAX = 3
    COUNT = 4


OPERATORS = {
    "+": bcd.signed_add,
    "-": bcd.signed_sub,
    "*": bcd.signed_mul,
    "/": bcd.signed_div,
}


# =============================================================================
# Evaluator
# =============================================================================

class FormulaEvaluator:
    """
    Evaluates formula text against a CellStore.

    Usage:
        evaluator = FormulaEvaluator(store)
        sign, magnitude = evaluator.evaluate("=A1+@SUM(B1:B10)")
    """

    def __init__(self, store: CellStore):
        self.store = store

    def evaluate(self, text: str) -> Value:
        """
        Evaluate a formula; a leading '=' is optional.

        Raises:
            FormulaParseError: Malformed number, cell reference, range or
                               operator
            BCDArithmeticError: Division by zero or overflow
        """
        pos = 1 if text.startswith("=") else 0
        sign, magnitude, pos = self._operand(text, pos)

        while pos < len(text):
            operator = text[pos]
            if operator not in OPERATORS:
                raise UnknownOperatorError(f"unknown operator '{operator}'", text, pos)
            operand_sign, operand, pos = self._operand(text, pos + 1)
            sign, magnitude = OPERATORS[operator](sign, magnitude, operand_sign, operand)

        return sign, magnitude

    # =========================================================================
    # Operands
    # =========================================================================

    def _operand(self, text: str, pos: int) -> tuple[int, bytes, int]:
        if pos >= len(text):
            raise MalformedNumberError("missing operand", text, pos)

        char = text[pos]
        if char == "@":
            return self._range_function(text, pos)
        if char == "$" or is_letter(char):
            col, row, end = parse_cell_reference(text, pos)
            sign, magnitude = self._cell_value(text, pos, col, row)
            return sign, magnitude, end
        return bcd.parse_decimal(text, pos)

    def _cell_value(self, text: str, pos: int, col: int, row: int) -> Value:
        value = self.store.value(col, row)
        if value is None:
            record = self.store.read(col, row)
            raise CellReferenceError(
                f"cell {cell_name(col, row)} is {record.type.name.lower()}, not a number",
                text,
                pos,
            )
        return value

    def _range_function(self, text: str, pos: int) -> tuple[int, bytes, int]:
        start = pos
        pos += 1
        name_end = pos
        while name_end < len(text) and is_letter(text[name_end]):
            name_end += 1
        name = text[pos:name_end].upper()
        if name not in RangeFunction.__members__:
            raise RangeSyntaxError(f"unknown range function '@{text[pos:name_end]}'", text, start)
        function = RangeFunction[name]
        pos = name_end

        pos = _expect(text, pos, "(")
        col1, row1, pos = parse_cell_reference(text, pos)
        pos = _expect(text, pos, ":")
        col2, row2, pos = parse_cell_reference(text, pos)
        pos = _expect(text, pos, ")")

        if col2 < col1 or row2 < row1:
            raise RangeSyntaxError(
                f"range {cell_name(col1, row1)}:{cell_name(col2, row2)} is reversed",
                text,
                start,
            )

        sign, magnitude = self.aggregate(function, col1, row1, col2, row2)
        return sign, magnitude, pos

    # =========================================================================
    # Range Functions
    # =========================================================================

    def aggregate(
        self, function: RangeFunction, col1: int, row1: int, col2: int, row2: int
    ) -> Value:
        """
        Apply a range function to the inclusive rectangle (col1,row1)-(col2,row2).

        Cells are visited column by column, top to bottom. Only Number and
        Formula cells participate. AVG of no cells is zero; MIN and MAX of
        no cells are zero.
        """
        total: Value = (SIGN_POSITIVE, ZERO)
        count = ZERO
        extreme: Optional[Value] = None

        for col in range(col1, col2 + 1):
            for row in range(row1, row2 + 1):
                if not self.store.read(col, row).type.is_numeric:
                    continue
                value = self.store.value(col, row)
                count = bcd.add(count, bcd.ONE)
                if function in (RangeFunction.SUM, RangeFunction.AVG):
                    total = bcd.signed_add(*total, *value)
                elif function in (RangeFunction.MIN, RangeFunction.MAX):
                    if extreme is None:
                        extreme = value
                        continue
                    order = bcd.signed_compare(*value, *extreme)
                    if function == RangeFunction.MIN and order == bcd.Comparison.LESS:
                        extreme = value
                    elif function == RangeFunction.MAX and order == bcd.Comparison.GREATER:
                        extreme = value

        if function == RangeFunction.SUM:
            return total
        if function == RangeFunction.AVG:
            if bcd.is_zero(count):
                return SIGN_POSITIVE, ZERO
            return bcd.signed_div(*total, SIGN_POSITIVE, count)
        if function == RangeFunction.COUNT:
            return SIGN_POSITIVE, count
        return extreme if extreme is not None else (SIGN_POSITIVE, ZERO)


def is_letter(char: str) -> bool:
    """True for the ASCII letters only."""
    return len(char) == 1 and char in ascii_letters


def _expect(text: str, pos: int, char: str) -> int:
    if pos >= len(text) or text[pos] != char:
        found = f"'{text[pos]}'" if pos < len(text) else "end of formula"
        raise RangeSyntaxError(f"expected '{char}', found {found}", text, pos)
    return pos + 1


def parse_cell_reference(text: str, pos: int) -> tuple[int, int, int]:
    """
    Parse `[$]letter[$]digits` at text[pos].

    Returns:
        (col, row, end) with 0-based col and row

    Raises:
        CellReferenceError: If the column is not A-P or the row is not 1-64
    """
    start = pos
    if pos < len(text) and text[pos] == "$":
        pos += 1
    if pos >= len(text) or not is_letter(text[pos]):
        raise CellReferenceError("expected column letter", text, pos)
    col = ord(text[pos].upper()) - ord("A")
    if not 0 <= col < GRID_COLS:
        raise CellReferenceError(f"column '{text[pos]}' is outside A-P", text, pos)
    pos += 1
    if pos < len(text) and text[pos] == "$":
        pos += 1

    digits_start = pos
    while pos < len(text) and is_digit(text[pos]):
        pos += 1
    digits = text[digits_start:pos]
    if not 1 <= len(digits) <= 2 or not 1 <= int(digits) <= GRID_ROWS:
        raise CellReferenceError(
            f"row '{digits}' is outside 1-{GRID_ROWS}" if digits else "expected row number",
            text,
            start,
        )
    return col, int(digits) - 1, pos


# =============================================================================
# Recalculation
# =============================================================================

def recalculate(store: CellStore, passes: int = 1) -> int:
    """
    Re-evaluate every Formula cell and rewrite its cached result.

    Each pass scans the grid in address order (row-major). There is no
    dependency ordering: a formula that reads a cell later in the scan
    sees that cell's previous cached value. Extra passes let such chains
    settle; the firmware always runs one.

    A formula that fails to evaluate keeps its previous cached result.

    Returns:
        Number of formula evaluations that failed
    """
    evaluator = FormulaEvaluator(store)
    failures = 0
    for _ in range(passes):
        for col, row, record in store.formulas():
            text = store.heap.read_text(record.pointer)
            try:
                sign, magnitude = evaluator.evaluate(text)
            except SheetError as e:
                logger.debug(f"Recalc of {cell_name(col, row)} failed: {e}")
                failures += 1
                continue
            store.set_cached_result(col, row, sign, magnitude)

    logger.debug(f"Recalculated {passes} pass(es), {failures} failure(s)")
    return failures
