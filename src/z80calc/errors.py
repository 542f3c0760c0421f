"""
z80calc Error Hierarchy
=======================

This module defines the exception hierarchy for the whole package. All
exceptions inherit from Z80CalcError, allowing callers to catch every
package error with a single except clause if desired.

Exception Hierarchy
-------------------
Z80CalcError (base)
├── GenerationError (fatal, build-time)
│   ├── UndefinedLabelError - fixup or branch names a label never defined
│   ├── DuplicateLabelError - label defined more than once
│   ├── BranchRangeError - relative branch target too far away
│   ├── BuilderFinalizedError - builder used after finish()
│   ├── ImageSizeError - generated code does not fit the ROM
│   └── LayoutError - RAM regions overlap or leave the RAM window
└── SheetError (spreadsheet runtime, reported per cell)
    ├── FormulaParseError - malformed input text
    │   ├── MalformedNumberError
    │   ├── CellReferenceError
    │   ├── RangeSyntaxError
    │   └── UnknownOperatorError
    ├── BCDArithmeticError - arithmetic failure
    │   ├── DivideByZeroError
    │   └── BCDOverflowError
    └── CapacityError - fixed resource exhausted
        ├── HeapFullError
        └── InputTooLongError

Design Philosophy
-----------------
Generation errors are fatal: the generator never writes a partial image.
Sheet errors are local: parse and arithmetic failures turn the edited cell
into an Error cell, while capacity failures reject the edit before any state
is changed. The split lets callers handle the two groups differently with a
single except clause each.
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class Z80CalcError(Exception):
    """
    Base exception for all z80calc errors.

        try:
            image = SpreadsheetGenerator().generate()
        except Z80CalcError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Generation Exceptions
# =============================================================================

class GenerationError(Z80CalcError):
    """
    Base exception for build-time errors.

    Attributes:
        message: The error description
        hint: A suggestion for fixing the error (optional)
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with its optional hint.

        Example output:
            error: undefined label 'print_strng' (fixup at offset $0123)
            hint: did you mean 'print_string'?
        """
        parts = [f"error: {self.message}"]
        if self.hint:
            parts.append(f"hint: {self.hint}")
        return "\n".join(parts)


class UndefinedLabelError(GenerationError):
    """
    Reference to a label that has no definition.

    Raised by the resolution pass for absolute fixups, and immediately by
    emit_relative() for short branches, which can only target labels that
    are already defined.

    Attributes:
        label: The missing label name
        site: Output offset of the reference (None when unknown)
        similar_labels: Defined labels with a similar spelling
    """

    def __init__(
        self,
        label: str,
        site: Optional[int] = None,
        similar_labels: Optional[list[str]] = None,
    ):
        self.label = label
        self.site = site
        self.similar_labels = similar_labels or []

        hint = None
        if self.similar_labels:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_labels[:3])
            hint = f"did you mean {suggestions}?"

        message = f"undefined label '{label}'"
        if site is not None:
            message += f" (referenced at offset ${site:04X})"
        super().__init__(message, hint=hint)


class DuplicateLabelError(GenerationError):
    """
    Label defined more than once.

    Attributes:
        label: The label name
        address: Address of the original definition
    """

    def __init__(self, label: str, address: Optional[int] = None):
        self.label = label
        self.address = address

        hint = None
        if address is not None:
            hint = f"'{label}' was first defined at ${address:04X}"

        super().__init__(f"duplicate label '{label}'", hint=hint)


class BranchRangeError(GenerationError):
    """
    Relative branch target is out of range.

    Z80 relative jumps (JR, DJNZ) use a signed 8-bit displacement measured
    from the byte after the displacement, limiting the range to -128..+127.
    Use JP for targets further away.
    """

    def __init__(self, label: str, offset: int):
        self.label = label
        self.offset = offset

        direction = "forward" if offset > 0 else "backward"
        hint = (
            f"branch offset is {offset}, but range is -128 to +127; "
            f"use JP for {direction} references"
        )
        super().__init__(
            f"branch target '{label}' is out of range (offset: {offset})",
            hint=hint,
        )


class BuilderFinalizedError(GenerationError):
    """
    The image builder was used after finish().

    Once the fixups have been resolved the output is final; emitting bytes
    or defining labels afterwards would produce an image whose fixups no
    longer match its labels.
    """

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"cannot {operation}: image builder already finished")


class ImageSizeError(GenerationError):
    """Generated code is larger than the configured ROM size."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"image too large: {size} bytes (max {limit})",
            hint="increase the ROM size or remove features",
        )


class LayoutError(GenerationError):
    """
    Invalid target memory layout.

    Raised when two RAM regions overlap, when a region falls outside the
    RAM window, or when the RAM window overlaps the ROM.
    """
    pass


# =============================================================================
# Spreadsheet Exceptions
# =============================================================================

class SheetError(Z80CalcError):
    """Base exception for errors raised while editing or evaluating cells."""
    pass


class FormulaParseError(SheetError):
    """
    Malformed cell input.

    Attributes:
        text: The text being parsed
        position: Index of the offending character (None when unknown)
    """

    def __init__(self, message: str, text: str = "", position: Optional[int] = None):
        self.text = text
        self.position = position
        if position is not None and text:
            message = f"{message} at column {position + 1} in '{text}'"
        super().__init__(message)


class MalformedNumberError(FormulaParseError):
    """Number literal without digits, with stray characters, or too large."""
    pass


class CellReferenceError(FormulaParseError):
    """Bad column letter or row number, or a reference to a non-numeric cell."""
    pass


class RangeSyntaxError(FormulaParseError):
    """Unknown range function name or malformed @NAME(A1:B2) syntax."""
    pass


class UnknownOperatorError(FormulaParseError):
    """A character other than + - * / after an operand."""
    pass


class BCDArithmeticError(SheetError):
    """Base exception for BCD arithmetic failures."""
    pass


class DivideByZeroError(BCDArithmeticError):
    """Division by a zero magnitude with the plain '/' operator."""

    def __init__(self, message: str = "division by zero"):
        super().__init__(message)


class BCDOverflowError(BCDArithmeticError):
    """Result needs more than the 8 digits of the packed representation."""

    def __init__(self, message: str = "BCD result exceeds 8 digits"):
        super().__init__(message)


class CapacityError(SheetError):
    """
    A fixed-size resource would be exceeded.

    Capacity errors are raised before any state is changed, so the rejected
    edit leaves the sheet exactly as it was.
    """
    pass


class HeapFullError(CapacityError):
    """
    The formula/label heap cannot hold another entry.

    Attributes:
        requested: Bytes needed by the entry
        available: Bytes left in the heap region
    """

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"formula heap full: need {requested} bytes, {available} available"
        )


class InputTooLongError(CapacityError):
    """Edit text longer than the fixed input buffer."""

    def __init__(self, length: int, capacity: int):
        self.length = length
        self.capacity = capacity
        super().__init__(
            f"input too long: {length} characters (max {capacity})"
        )
