"""
Packed BCD Arithmetic
=====================

Exact fixed-point decimal arithmetic on the spreadsheet's number format:
a separate sign byte plus a 4-byte packed-BCD magnitude holding 8 decimal
digits, most significant digit first, with 2 implied decimal places.

    magnitude 00 01 23 45, sign 0x00  ->  123.45
    magnitude 00 00 00 50, sign 0x80  ->  -0.50

The routines here work digit by digit, the same way the generated Z80
routines do (ADC/SBC followed by DAA on byte pairs, RLD to shift one decimal
digit), so results match the firmware bit for bit. Zero is always returned
with a positive sign.

Multi-Byte Primitives
---------------------
Every operation is built from four primitives over variable-length packed
buffers (mutable bytearrays, MSB first):

    _add_into(dst, src)    dst += src, returns the carry out of the top byte
    _sub_into(dst, src)    dst -= src, returns the borrow out of the top byte
    _shift_in(buf, digit)  buf = buf * 10 + digit, returns the digit shifted out
    compare(a, b)          byte-wise lexicographic order

Multiplication and division use wider scratch buffers built from the same
primitives.
"""

from decimal import Decimal
from enum import IntEnum
import logging

from z80calc.errors import (
    BCDOverflowError,
    DivideByZeroError,
    MalformedNumberError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAGNITUDE_SIZE = 4        # bytes
DIGITS = 8                # decimal digits in a magnitude
WHOLE_DIGITS = 6          # digits before the implied decimal point
FRACTION_DIGITS = 2

SIGN_POSITIVE = 0x00
SIGN_NEGATIVE = 0x80

ZERO = bytes(MAGNITUDE_SIZE)
ONE = bytes([0x00, 0x00, 0x01, 0x00])          # 1.00
MAX_MAGNITUDE = bytes([0x99] * MAGNITUDE_SIZE)  # 999999.99


class Comparison(IntEnum):
    """Result of compare(); ordered like the values it compares."""
    LESS = -1
    EQUAL = 0
    GREATER = 1


# =============================================================================
# Multi-Byte Primitives
# =============================================================================

def _add_into(dst: bytearray, src: bytes) -> int:
    """Add src to dst in place (both MSB first, same length); return carry."""
    carry = 0
    for i in reversed(range(len(dst))):
        low = (dst[i] & 0x0F) + (src[i] & 0x0F) + carry
        carry = 1 if low > 9 else 0
        if carry:
            low -= 10
        high = (dst[i] >> 4) + (src[i] >> 4) + carry
        carry = 1 if high > 9 else 0
        if carry:
            high -= 10
        dst[i] = (high << 4) | low
    return carry


def _sub_into(dst: bytearray, src: bytes) -> int:
    """Subtract src from dst in place; return the borrow out of the top byte."""
    borrow = 0
    for i in reversed(range(len(dst))):
        low = (dst[i] & 0x0F) - (src[i] & 0x0F) - borrow
        borrow = 1 if low < 0 else 0
        if borrow:
            low += 10
        high = (dst[i] >> 4) - (src[i] >> 4) - borrow
        borrow = 1 if high < 0 else 0
        if borrow:
            high += 10
        dst[i] = (high << 4) | low
    return borrow


def _shift_in(buf: bytearray, digit: int) -> int:
    """
    Shift buf left by one decimal digit, inserting `digit` at the bottom.

    Returns the digit shifted out of the top, like a chain of RLD
    instructions walking from the last byte to the first.
    """
    for i in reversed(range(len(buf))):
        out = buf[i] >> 4
        buf[i] = ((buf[i] << 4) & 0xF0) | digit
        digit = out
    return digit


def _check_magnitude(value: bytes) -> None:
    if len(value) != MAGNITUDE_SIZE:
        raise ValueError(
            f"BCD magnitude must be {MAGNITUDE_SIZE} bytes, got {len(value)}"
        )


def _normalise(sign: int, magnitude: bytes) -> tuple[int, bytes]:
    if magnitude == ZERO:
        return SIGN_POSITIVE, ZERO
    return sign, magnitude


def is_zero(magnitude: bytes) -> bool:
    return magnitude == ZERO


# =============================================================================
# Unsigned Operations
# =============================================================================

def add(a: bytes, b: bytes) -> bytes:
    """
    Decimal addition of two magnitudes.

    Raises:
        BCDOverflowError: If the sum needs more than 8 digits
    """
    _check_magnitude(a)
    _check_magnitude(b)
    result = bytearray(a)
    if _add_into(result, b):
        raise BCDOverflowError()
    return bytes(result)


def sub(a: bytes, b: bytes) -> bytes:
    """
    Decimal subtraction a - b.

    The caller orders the operands so that a >= b; signed_add() does this.

    Raises:
        ValueError: If b is larger than a
    """
    _check_magnitude(a)
    _check_magnitude(b)
    result = bytearray(a)
    if _sub_into(result, b):
        raise ValueError("BCD subtraction would go negative; order the operands")
    return bytes(result)


def compare(a: bytes, b: bytes) -> Comparison:
    """Compare two magnitudes (fixed width, MSD first, so byte order works)."""
    _check_magnitude(a)
    _check_magnitude(b)
    if a < b:
        return Comparison.LESS
    if a > b:
        return Comparison.GREATER
    return Comparison.EQUAL


def mul(a: bytes, b: bytes) -> bytes:
    """
    Decimal multiplication with rescaling to 2 decimal places.

    The multiplier is consumed one digit at a time, most significant first.
    For each digit the 16-digit accumulator is shifted left one digit and
    the multiplicand is added digit-value times. The product then carries
    4 decimal places; dropping the low byte brings it back to 2 (the
    truncated digits are discarded, not rounded).

    Raises:
        BCDOverflowError: If the rescaled product needs more than 8 digits
    """
    _check_magnitude(a)
    _check_magnitude(b)
    accumulator = bytearray(2 * MAGNITUDE_SIZE)
    multiplicand = bytes(MAGNITUDE_SIZE) + a
    multiplier = bytearray(b)

    for _ in range(DIGITS):
        digit = _shift_in(multiplier, 0)
        _shift_in(accumulator, 0)
        for _ in range(digit):
            _add_into(accumulator, multiplicand)

    # 16 digits with 4 decimals -> drop the last byte, keep the next four
    if any(accumulator[:3]):
        raise BCDOverflowError()
    return bytes(accumulator[3:7])


def div(a: bytes, b: bytes) -> bytes:
    """
    Decimal division with 2 decimal places.

    The dividend is scaled by 100 first so the quotient keeps 2 decimal
    places. The quotient is then produced one digit at a time by restoring
    long division: bring down the next dividend digit, subtract the divisor
    while it fits, and record how many times it did. The result equals that
    of plain repeated subtraction; remainders are truncated.

    Raises:
        DivideByZeroError: If b is zero
        BCDOverflowError: If the quotient needs more than 8 digits
    """
    _check_magnitude(a)
    _check_magnitude(b)
    if is_zero(b):
        raise DivideByZeroError()

    width = MAGNITUDE_SIZE + 2
    dividend = bytearray(b"\x00" + a + b"\x00")     # a x 100
    divisor = bytes(2) + b
    remainder = bytearray(width)
    quotient = bytearray(width)

    for _ in range(2 * width):
        _shift_in(remainder, _shift_in(dividend, 0))
        count = 0
        while remainder >= divisor:
            _sub_into(remainder, divisor)
            count += 1
        _shift_in(quotient, count)

    if any(quotient[:2]):
        raise BCDOverflowError()
    return bytes(quotient[2:])


# =============================================================================
# Signed Operations
# =============================================================================

def signed_add(sign_a: int, a: bytes, sign_b: int, b: bytes) -> tuple[int, bytes]:
    """
    Add two signed values.

    Equal signs add magnitudes. Different signs subtract the smaller
    magnitude from the larger and take the sign of the larger. A zero
    result is always positive.

    Example:
        >>> signed_add(SIGN_POSITIVE, from_int(100)[1], SIGN_NEGATIVE, from_int(30)[1])
        (0, b'\\x00\\x00p\\x00')
    """
    if sign_a == sign_b:
        return _normalise(sign_a, add(a, b))
    if compare(a, b) == Comparison.LESS:
        return _normalise(sign_b, sub(b, a))
    return _normalise(sign_a, sub(a, b))


def signed_sub(sign_a: int, a: bytes, sign_b: int, b: bytes) -> tuple[int, bytes]:
    """Subtract by adding the negated second operand."""
    return signed_add(sign_a, a, sign_b ^ SIGN_NEGATIVE, b)


def signed_mul(sign_a: int, a: bytes, sign_b: int, b: bytes) -> tuple[int, bytes]:
    return _normalise(sign_a ^ sign_b, mul(a, b))


def signed_div(sign_a: int, a: bytes, sign_b: int, b: bytes) -> tuple[int, bytes]:
    return _normalise(sign_a ^ sign_b, div(a, b))


def signed_compare(sign_a: int, a: bytes, sign_b: int, b: bytes) -> Comparison:
    """Order two signed values (used by MIN/MAX)."""
    sign_a, a = _normalise(sign_a, a)
    sign_b, b = _normalise(sign_b, b)
    if sign_a != sign_b:
        return Comparison.LESS if sign_a == SIGN_NEGATIVE else Comparison.GREATER
    result = compare(a, b)
    if sign_a == SIGN_NEGATIVE:
        return Comparison(-result)
    return result


# =============================================================================
# ASCII Conversion
# =============================================================================

def is_digit(char: str) -> bool:
    """True for the ASCII digits 0-9 only."""
    return len(char) == 1 and "0" <= char <= "9"


def parse_decimal(text: str, pos: int = 0) -> tuple[int, bytes, int]:
    """
    Scan a decimal literal starting at text[pos].

    Accepts an optional '-', whole digits, and an optional '.' followed by
    fraction digits. Fraction digits past the second are consumed but
    ignored. Scanning stops at the first character that cannot continue the
    literal.

    Returns:
        (sign, magnitude, end) where end is the index after the literal

    Raises:
        MalformedNumberError: If there is no digit, or the whole part has
                              more than 6 significant digits
    """
    start = pos
    sign = SIGN_POSITIVE
    if pos < len(text) and text[pos] == "-":
        sign = SIGN_NEGATIVE
        pos += 1

    magnitude = bytearray(MAGNITUDE_SIZE)
    digits = 0
    while pos < len(text) and is_digit(text[pos]):
        _shift_in(magnitude, ord(text[pos]) - 0x30)
        if magnitude[0]:
            raise MalformedNumberError(
                f"number has more than {WHOLE_DIGITS} whole digits", text, start
            )
        digits += 1
        pos += 1

    fraction = 0
    if pos < len(text) and text[pos] == ".":
        pos += 1
        while pos < len(text) and is_digit(text[pos]):
            if fraction < FRACTION_DIGITS:
                _shift_in(magnitude, ord(text[pos]) - 0x30)
                fraction += 1
            digits += 1
            pos += 1

    if digits == 0:
        raise MalformedNumberError("number has no digits", text, start)

    for _ in range(FRACTION_DIGITS - fraction):
        _shift_in(magnitude, 0)

    sign, value = _normalise(sign, bytes(magnitude))
    return sign, value, pos


def ascii_to_bcd(text: str) -> tuple[int, bytes]:
    """
    Convert a complete numeric string to (sign, magnitude).

    Example:
        >>> ascii_to_bcd("123.45")
        (0, b'\\x00\\x01#E')
        >>> ascii_to_bcd("-0.5")
        (128, b'\\x00\\x00\\x00P')

    Raises:
        MalformedNumberError: On an empty string, a stray character, or a
                              value with too many whole digits
    """
    sign, magnitude, end = parse_decimal(text)
    if end != len(text):
        raise MalformedNumberError(f"unexpected character '{text[end]}'", text, end)
    return sign, magnitude


def _digit_string(magnitude: bytes) -> str:
    _check_magnitude(magnitude)
    return magnitude.hex()


def bcd_to_ascii(sign: int, magnitude: bytes) -> str:
    """
    Render a value as 6 whole digits, '.', 2 fraction digits.

    No zero suppression; negative values carry a leading '-'.

        >>> bcd_to_ascii(SIGN_POSITIVE, bytes([0x00, 0x01, 0x23, 0x45]))
        '000123.45'
    """
    digits = _digit_string(magnitude)
    text = f"{digits[:WHOLE_DIGITS]}.{digits[WHOLE_DIGITS:]}"
    if sign == SIGN_NEGATIVE and not is_zero(magnitude):
        return "-" + text
    return text


def format_value(sign: int, magnitude: bytes) -> str:
    """
    Display form with leading zeros suppressed: '123.45', '-0.50', '0.00'.
    """
    digits = _digit_string(magnitude)
    whole = digits[:WHOLE_DIGITS].lstrip("0") or "0"
    text = f"{whole}.{digits[WHOLE_DIGITS:]}"
    if sign == SIGN_NEGATIVE and not is_zero(magnitude):
        return "-" + text
    return text


# =============================================================================
# Python Interop
# =============================================================================

def from_int(value: int) -> tuple[int, bytes]:
    """Encode a whole number as (sign, magnitude) with a .00 fraction."""
    if abs(value) >= 10 ** WHOLE_DIGITS:
        raise BCDOverflowError(f"{value} does not fit in {WHOLE_DIGITS} whole digits")
    sign = SIGN_NEGATIVE if value < 0 else SIGN_POSITIVE
    magnitude = bytes.fromhex(f"{abs(value) * 100:08d}")
    return _normalise(sign, magnitude)


def to_int(sign: int, magnitude: bytes) -> int:
    """Whole part of a value, truncated toward zero."""
    whole = int(_digit_string(magnitude)[:WHOLE_DIGITS])
    return -whole if sign == SIGN_NEGATIVE else whole


def to_decimal(sign: int, magnitude: bytes) -> Decimal:
    """Exact value as a Decimal with 2 places."""
    value = Decimal(int(_digit_string(magnitude))).scaleb(-FRACTION_DIGITS)
    return -value if sign == SIGN_NEGATIVE and not is_zero(magnitude) else value
